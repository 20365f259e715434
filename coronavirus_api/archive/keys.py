"""
CoronaVirus API Archive Keys

归档键格式：snapshot-{代号:016d}-{抓取时间 UTC}.json.gz

代号零填充保证字典序与发布顺序一致；时间戳供保留策略计算年龄
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
_KEY_PATTERN = re.compile(r"^snapshot-(?P<generation>\d{16})-(?P<timestamp>\d{8}T\d{6}Z)\.json\.gz$")


@dataclass(frozen=True)
class ArchiveKey:
    """归档键"""

    generation: int
    fetched_at: datetime

    @classmethod
    def build(cls, generation: int, fetched_at: datetime) -> str:
        """生成键字符串"""
        return str(cls(generation=generation, fetched_at=fetched_at))

    @classmethod
    def parse(cls, key: str) -> Optional["ArchiveKey"]:
        """
        解析键字符串

        Returns:
            ArchiveKey，不符合格式时返回 None
        """
        match = _KEY_PATTERN.match(key)
        if not match:
            return None
        try:
            fetched_at = datetime.strptime(match.group("timestamp"), _TIMESTAMP_FORMAT)
        except ValueError:
            return None
        return cls(
            generation=int(match.group("generation")),
            fetched_at=fetched_at.replace(tzinfo=timezone.utc),
        )

    def __str__(self) -> str:
        fetched_at = self.fetched_at
        if fetched_at.tzinfo is not None:
            fetched_at = fetched_at.astimezone(timezone.utc)
        return f"snapshot-{self.generation:016d}-{fetched_at.strftime(_TIMESTAMP_FORMAT)}.json.gz"
