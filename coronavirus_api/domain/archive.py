"""
CoronaVirus API Archive Models

归档条目：已发布快照的持久化副本，只由保留策略删除
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import BigInteger, DateTime, Index, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


@dataclass(frozen=True)
class ArchiveEntry:
    """归档条目元信息"""

    key: str
    generation: int
    fetched_at: datetime
    size_bytes: int

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "key": self.key,
            "generation": self.generation,
            "fetched_at": self.fetched_at.isoformat(),
            "size_bytes": self.size_bytes,
        }


class ArchiveEntryRecord(Base, TimestampMixin):
    """
    数据库归档行

    key 为主键，重复保存同一代号时覆盖原行
    """
    __tablename__ = "snapshot_archive"

    key: Mapped[str] = mapped_column(String(128), primary_key=True, comment="归档键")
    generation: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="快照代号")
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, comment="抓取时间")
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, comment="数据大小")
    payload: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, comment="序列化快照")

    __table_args__ = (
        Index("idx_archive_generation", "generation"),
    )

    def __repr__(self) -> str:
        return f"<ArchiveEntryRecord(key='{self.key}', generation={self.generation})>"
