"""
CoronaVirus API Query Facade

只读查询接口：每次调用只读取一次当前快照，并完全基于该快照作答，
因此单次查询的结果永远来自同一个代号
"""
import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, Optional, Tuple, TypeVar

from coronavirus_api.core import SnapshotCache
from coronavirus_api.domain import (
    GLOBAL_SCOPE,
    Bucket,
    Country,
    CountryRecord,
    DateRange,
    Granularity,
    Snapshot,
)

T = TypeVar("T")


class DataStatus(str, enum.Enum):
    """数据就绪状态"""
    PENDING = "pending"
    READY = "ready"


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """查询结果"""

    status: DataStatus
    generation: int = 0
    fetched_at: Optional[datetime] = None
    items: Tuple[T, ...] = field(default_factory=tuple)

    @property
    def is_ready(self) -> bool:
        return self.status == DataStatus.READY

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)


class QueryFacade:
    """
    查询门面

    Args:
        cache: 快照缓存
    """

    def __init__(self, cache: SnapshotCache):
        self.cache = cache

    @staticmethod
    def _pending() -> QueryResult:
        return QueryResult(status=DataStatus.PENDING)

    @staticmethod
    def _ready(snapshot: Snapshot, items) -> QueryResult:
        return QueryResult(
            status=DataStatus.READY,
            generation=snapshot.generation,
            fetched_at=snapshot.fetched_at,
            items=tuple(items),
        )

    @staticmethod
    def _normalize_code(code: str) -> str:
        return (code or "").strip().upper()

    def get_countries(self) -> QueryResult[Country]:
        """获取全部国家/地区（按代码排序）"""
        snapshot = self.cache.peek()
        if snapshot is None:
            return self._pending()
        return self._ready(snapshot, (snapshot.countries[code] for code in sorted(snapshot.countries)))

    def get_records(
        self,
        country_code: str,
        date_range: Optional[DateRange] = None,
    ) -> QueryResult[CountryRecord]:
        """
        获取某国家/地区的逐日记录

        Args:
            country_code: 国家代码（不区分大小写）
            date_range: 日期范围（闭区间），None 表示全部

        Returns:
            按日期升序的记录；未知代码或范围外返回空结果
        """
        snapshot = self.cache.peek()
        if snapshot is None:
            return self._pending()
        return self._ready(snapshot, snapshot.records_for(self._normalize_code(country_code), date_range))

    def get_buckets(
        self,
        scope: str,
        granularity: Granularity,
        date_range: Optional[DateRange] = None,
    ) -> QueryResult[Bucket]:
        """
        获取聚合桶

        Args:
            scope: 国家代码或 "global"
            granularity: 聚合粒度
            date_range: 只返回与该范围相交的桶

        Returns:
            按起始日期升序的聚合桶
        """
        snapshot = self.cache.peek()
        if snapshot is None:
            return self._pending()

        if (scope or "").strip().lower() == GLOBAL_SCOPE:
            key = GLOBAL_SCOPE
        else:
            key = self._normalize_code(scope)
        return self._ready(snapshot, snapshot.buckets_for(key, Granularity(granularity), date_range))

    def get_status(self) -> dict:
        """获取数据状态"""
        snapshot = self.cache.peek()
        if snapshot is None:
            return {"status": DataStatus.PENDING.value, "generation": 0}
        return {
            "status": DataStatus.READY.value,
            "generation": snapshot.generation,
            "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
            "countries": len(snapshot.countries),
            "records": snapshot.record_count,
            "source_digest": snapshot.source_digest,
        }
