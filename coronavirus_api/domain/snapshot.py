"""
CoronaVirus API Snapshot Model

快照：一次成功刷新得到的完整、不可变、内部一致的数据副本
"""
from bisect import bisect_left, bisect_right
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .bucket import Bucket, DateRange, Granularity
from .country import Country, CountryRecord

BucketKey = Tuple[str, Granularity]


@dataclass(frozen=True, eq=False)
class Snapshot:
    """
    不可变快照

    所有派生视图（Bucket）在构造前已计算完成，读取只做查表。
    fetched_at 不参与相等比较，同一份原始数据两次解析得到的快照相等。
    """

    generation: int
    countries: Mapping[str, Country]
    records: Mapping[str, Tuple[CountryRecord, ...]]
    buckets: Mapping[BucketKey, Tuple[Bucket, ...]]
    source_digest: str = ""
    fetched_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        generation: int,
        countries: Dict[str, Country],
        records: Dict[str, Iterable[CountryRecord]],
        buckets: Dict[BucketKey, Iterable[Bucket]],
        source_digest: str = "",
        fetched_at: Optional[datetime] = None,
    ) -> "Snapshot":
        """
        构建快照，冻结所有容器

        Args:
            generation: 代号（严格递增）
            countries: 国家代码 -> Country
            records: 国家代码 -> 记录（任意顺序，按日期排序后冻结）
            buckets: (scope, 粒度) -> 聚合桶
            source_digest: 原始数据摘要
            fetched_at: 抓取时间
        """
        frozen_records = {
            code: tuple(sorted(items, key=lambda r: r.date))
            for code, items in records.items()
        }
        frozen_buckets = {
            key: tuple(sorted(items, key=lambda b: b.start))
            for key, items in buckets.items()
        }
        return cls(
            generation=generation,
            countries=MappingProxyType(dict(countries)),
            records=MappingProxyType(frozen_records),
            buckets=MappingProxyType(frozen_buckets),
            source_digest=source_digest,
            fetched_at=fetched_at,
        )

    def __eq__(self, other) -> bool:
        # MappingProxyType 不支持相等比较，展开后比较内容
        if not isinstance(other, Snapshot):
            return NotImplemented
        return (
            self.generation == other.generation
            and self.source_digest == other.source_digest
            and dict(self.countries) == dict(other.countries)
            and dict(self.records) == dict(other.records)
            and dict(self.buckets) == dict(other.buckets)
        )

    @property
    def record_count(self) -> int:
        return sum(len(items) for items in self.records.values())

    def get_country(self, code: str) -> Optional[Country]:
        return self.countries.get(code)

    def records_for(self, code: str, date_range: Optional[DateRange] = None) -> Tuple[CountryRecord, ...]:
        """
        查询某地区记录

        记录已按日期排序，使用二分查找截取范围
        """
        items = self.records.get(code, ())
        if not items or date_range is None:
            return items
        dates = [r.date for r in items]
        lo = bisect_left(dates, date_range.start) if date_range.start else 0
        hi = bisect_right(dates, date_range.end) if date_range.end else len(items)
        return items[lo:hi]

    def buckets_for(
        self,
        scope: str,
        granularity: Granularity,
        date_range: Optional[DateRange] = None,
    ) -> Tuple[Bucket, ...]:
        """查询某 scope 的聚合桶，按与日期范围是否相交过滤"""
        items = self.buckets.get((scope, granularity), ())
        if date_range is None:
            return items
        return tuple(b for b in items if date_range.overlaps(b.start, b.end))

    def __repr__(self) -> str:
        return (
            f"<Snapshot(generation={self.generation}, countries={len(self.countries)}, "
            f"records={self.record_count})>"
        )
