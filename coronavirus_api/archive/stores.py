"""
CoronaVirus API Archive Stores

归档存储后端：按键存取不透明二进制数据

- FileSystemArchiveStore: 每个键一个文件，临时文件 + 原子替换
- DatabaseArchiveStore: SQLAlchemy 异步表 snapshot_archive
- InMemoryArchiveStore: 进程内字典（测试和演练使用）

所有后端错误统一抛出 StorageError
"""
import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from coronavirus_api.core import StorageError, get_logger
from coronavirus_api.domain import ArchiveEntryRecord

from .keys import ArchiveKey

logger = get_logger(__name__)

# 驱动层连接失败（如 asyncpg 的 ConnectionRefusedError）不会包装成 SQLAlchemyError
_DATABASE_ERRORS = (SQLAlchemyError, OSError)


class ArchiveStore(ABC):
    """归档存储接口"""

    @abstractmethod
    async def put(self, key: str, blob: bytes) -> None:
        """写入（同键覆盖）"""
        pass

    @abstractmethod
    async def get(self, key: str) -> bytes:
        """读取，不存在时抛出 StorageError"""
        pass

    @abstractmethod
    async def list_keys(self) -> List[str]:
        """列出全部键（字典序）"""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """删除，不存在时视为成功"""
        pass

    async def close(self) -> None:
        """释放资源"""
        pass


class InMemoryArchiveStore(ArchiveStore):
    """进程内归档存储"""

    def __init__(self):
        self._blobs: Dict[str, bytes] = {}

    async def put(self, key: str, blob: bytes) -> None:
        self._blobs[key] = bytes(blob)

    async def get(self, key: str) -> bytes:
        try:
            return self._blobs[key]
        except KeyError:
            raise StorageError(f"Archive entry not found: {key}") from None

    async def list_keys(self) -> List[str]:
        return sorted(self._blobs)

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class FileSystemArchiveStore(ArchiveStore):
    """
    文件系统归档存储

    写入先落到同目录的临时文件再 os.replace，进程在任意时刻中断都不会留下半个文件
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"FileSystemArchiveStore initialized: {self.directory}")

    def _path(self, key: str) -> Path:
        if "/" in key or "\\" in key or key.startswith("."):
            raise StorageError(f"Invalid archive key: {key}")
        return self.directory / key

    def _write(self, key: str, blob: bytes) -> None:
        target = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(blob)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def put(self, key: str, blob: bytes) -> None:
        try:
            await asyncio.to_thread(self._write, key, blob)
        except OSError as e:
            raise StorageError(f"Failed to write archive entry {key}: {e}") from e

    async def get(self, key: str) -> bytes:
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError:
            raise StorageError(f"Archive entry not found: {key}") from None
        except OSError as e:
            raise StorageError(f"Failed to read archive entry {key}: {e}") from e

    async def list_keys(self) -> List[str]:
        def _list() -> List[str]:
            return sorted(
                p.name for p in self.directory.iterdir()
                if p.is_file() and not p.name.startswith(".")
            )

        try:
            return await asyncio.to_thread(_list)
        except OSError as e:
            raise StorageError(f"Failed to list archive directory {self.directory}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to delete archive entry {key}: {e}") from e


class DatabaseArchiveStore(ArchiveStore):
    """
    数据库归档存储

    使用 SQLAlchemy 异步会话；键中编码的代号和时间同时写入独立列便于查询
    """

    def __init__(self, session_maker: async_sessionmaker):
        self.session_maker = session_maker

    async def put(self, key: str, blob: bytes) -> None:
        parsed = ArchiveKey.parse(key)
        if parsed is None:
            raise StorageError(f"Invalid archive key: {key}")
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    row = await session.get(ArchiveEntryRecord, key)
                    if row is None:
                        row = ArchiveEntryRecord(key=key)
                        session.add(row)
                    row.generation = parsed.generation
                    row.fetched_at = parsed.fetched_at
                    row.size_bytes = len(blob)
                    row.payload = blob
        except _DATABASE_ERRORS as e:
            raise StorageError(f"Failed to write archive entry {key}: {e}") from e

    async def get(self, key: str) -> bytes:
        try:
            async with self.session_maker() as session:
                row = await session.get(ArchiveEntryRecord, key)
        except _DATABASE_ERRORS as e:
            raise StorageError(f"Failed to read archive entry {key}: {e}") from e
        if row is None:
            raise StorageError(f"Archive entry not found: {key}")
        return row.payload

    async def list_keys(self) -> List[str]:
        try:
            async with self.session_maker() as session:
                result = await session.execute(
                    select(ArchiveEntryRecord.key).order_by(ArchiveEntryRecord.key.asc())
                )
                return list(result.scalars().all())
        except _DATABASE_ERRORS as e:
            raise StorageError(f"Failed to list archive entries: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await session.execute(
                        delete(ArchiveEntryRecord).where(ArchiveEntryRecord.key == key)
                    )
        except _DATABASE_ERRORS as e:
            raise StorageError(f"Failed to delete archive entry {key}: {e}") from e
