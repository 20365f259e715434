"""
CoronaVirus API Archive

快照归档：键格式、序列化、存储后端与写入器
"""
from .keys import ArchiveKey
from .serialization import decode_snapshot, encode_snapshot
from .stores import (
    ArchiveStore,
    DatabaseArchiveStore,
    FileSystemArchiveStore,
    InMemoryArchiveStore,
)
from .writer import ArchiveWriter

__all__ = [
    "ArchiveKey",
    "ArchiveStore",
    "ArchiveWriter",
    "DatabaseArchiveStore",
    "FileSystemArchiveStore",
    "InMemoryArchiveStore",
    "decode_snapshot",
    "encode_snapshot",
]
