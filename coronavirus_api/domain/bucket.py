"""
CoronaVirus API Bucket Models

聚合桶：按周/月/年对某地区或全球数据进行预计算汇总
"""
import enum
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

# 全球汇总的 scope 标识
GLOBAL_SCOPE = "global"


class Granularity(str, enum.Enum):
    """聚合粒度"""
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def pandas_freq(self) -> str:
        """对应的 pandas Period 频率（周从周一开始）"""
        return {
            Granularity.WEEK: "W-SUN",
            Granularity.MONTH: "M",
            Granularity.YEAR: "Y",
        }[self]


@dataclass(frozen=True)
class DateRange:
    """
    闭区间日期范围，端点为 None 表示不限
    """

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self):
        if self.start and self.end and self.start > self.end:
            raise ValueError(f"Invalid date range: {self.start} > {self.end}")

    def contains(self, day: date) -> bool:
        if self.start and day < self.start:
            return False
        if self.end and day > self.end:
            return False
        return True

    def overlaps(self, start: date, end: date) -> bool:
        """与 [start, end] 是否有交集"""
        if self.start and end < self.start:
            return False
        if self.end and start > self.end:
            return False
        return True


@dataclass(frozen=True)
class Bucket:
    """
    聚合桶

    confirmed/recovered/deceased 为区间内最后一个观测日的累计值，
    new_* 为相对同一 scope 上一个桶的增量（第一个桶的增量即其自身值）
    """

    scope: str
    granularity: Granularity
    start: date
    end: date
    confirmed: int
    recovered: int
    deceased: int
    new_confirmed: int
    new_recovered: int
    new_deceased: int

    @property
    def is_global(self) -> bool:
        return self.scope == GLOBAL_SCOPE

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        return {
            "scope": self.scope,
            "granularity": self.granularity.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "confirmed": self.confirmed,
            "recovered": self.recovered,
            "deceased": self.deceased,
            "new_confirmed": self.new_confirmed,
            "new_recovered": self.new_recovered,
            "new_deceased": self.new_deceased,
        }
