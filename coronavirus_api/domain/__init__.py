"""
CoronaVirus API Domain Models

领域模型导出
"""
from .base import Base, TimestampMixin
from .country import Country, CountryRecord
from .bucket import GLOBAL_SCOPE, Bucket, DateRange, Granularity
from .snapshot import BucketKey, Snapshot
from .archive import ArchiveEntry, ArchiveEntryRecord

__all__ = [
    # Base classes
    "Base",
    "TimestampMixin",
    # Models
    "Country",
    "CountryRecord",
    "Bucket",
    "DateRange",
    "Snapshot",
    "ArchiveEntry",
    "ArchiveEntryRecord",
    # Enums / constants
    "Granularity",
    "GLOBAL_SCOPE",
    "BucketKey",
]
