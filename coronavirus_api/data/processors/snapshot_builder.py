"""
CoronaVirus API Snapshot Builder

把解析得到的标准列 DataFrame 构建为不可变快照：
1. 生成国家/地区（取每个地区在原始数据中的第一行属性）
2. 生成逐日记录（按日期排序）
3. 预计算所有 scope × 粒度 的聚合桶

整个过程是纯函数：不做 I/O，不依赖共享状态，相同输入得到相同快照
"""
import hashlib
from datetime import datetime
from typing import Dict, List, Optional

import pandas as pd

from coronavirus_api.core import get_logger
from coronavirus_api.data.parsers import COUNT_COLUMNS, BaseParser, TimeSeriesCsvParser
from coronavirus_api.domain import (
    GLOBAL_SCOPE,
    Bucket,
    BucketKey,
    Country,
    CountryRecord,
    Granularity,
    Snapshot,
)

logger = get_logger(__name__)


def _optional_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return float(value)


def _optional_text(value) -> Optional[str]:
    return BaseParser._text_or_none(value)


def build_countries(frame: pd.DataFrame) -> Dict[str, Country]:
    """每个地区取原始顺序中的第一行作为属性来源"""
    first_rows = frame.drop_duplicates(subset="code", keep="first")
    return {
        row.code: Country(
            code=row.code,
            name=row.name,
            province=_optional_text(row.province),
            latitude=_optional_float(row.latitude),
            longitude=_optional_float(row.longitude),
        )
        for row in first_rows.itertuples(index=False)
    }


def build_records(frame: pd.DataFrame, countries: Dict[str, Country]) -> Dict[str, List[CountryRecord]]:
    """按地区分组生成逐日记录"""
    records: Dict[str, List[CountryRecord]] = {code: [] for code in countries}
    ordered = frame.sort_values(["code", "date"], kind="mergesort")
    for row in ordered.itertuples(index=False):
        records[row.code].append(
            CountryRecord(
                date=row.date.date(),
                confirmed=int(row.confirmed),
                recovered=int(row.recovered),
                deceased=int(row.deceased),
                country=countries[row.code],
            )
        )
    return records


def _period_buckets(
    scope: str,
    granularity: Granularity,
    last: pd.DataFrame,
) -> List[Bucket]:
    """
    由每个周期的最后观测值生成聚合桶

    Args:
        last: 以 Period 为索引、COUNT_COLUMNS 为列的累计值
    """
    delta = last.diff().fillna(last).astype("int64")
    return [
        Bucket(
            scope=scope,
            granularity=granularity,
            start=period.start_time.date(),
            end=period.end_time.date(),
            confirmed=int(totals.confirmed),
            recovered=int(totals.recovered),
            deceased=int(totals.deceased),
            new_confirmed=int(changes.confirmed),
            new_recovered=int(changes.recovered),
            new_deceased=int(changes.deceased),
        )
        for period, totals, changes in zip(
            last.index, last.itertuples(index=False), delta.itertuples(index=False)
        )
    ]


def build_buckets(frame: pd.DataFrame) -> Dict[BucketKey, List[Bucket]]:
    """
    预计算全部聚合桶

    每个地区和全球都会生成 week/month/year 三种粒度；
    全球桶是同一周期内各地区桶累计值之和（各地区取自己在该周期的最后观测日）

    Returns:
        (scope, 粒度) -> 按开始日期排序的聚合桶
    """
    buckets: Dict[BucketKey, List[Bucket]] = {}
    ordered = frame.sort_values(["code", "date"], kind="mergesort")

    for granularity in Granularity:
        freq = granularity.pandas_freq

        periods = ordered["date"].dt.to_period(freq)
        per_country = ordered[COUNT_COLUMNS].groupby([ordered["code"], periods], sort=True).last()
        for code, last in per_country.groupby(level=0, sort=True):
            buckets[(code, granularity)] = _period_buckets(code, granularity, last.droplevel(0))

        global_last = per_country.groupby(level=1, sort=True).sum()
        buckets[(GLOBAL_SCOPE, granularity)] = _period_buckets(GLOBAL_SCOPE, granularity, global_last)

    return buckets


def build_snapshot(
    frame: pd.DataFrame,
    generation: int,
    fetched_at: Optional[datetime] = None,
    source_digest: str = "",
) -> Snapshot:
    """
    由标准列 DataFrame 构建快照

    Args:
        frame: 解析器输出
        generation: 快照代号
        fetched_at: 抓取时间（由调用方提供，不从数据中推导）
        source_digest: 原始数据摘要

    Returns:
        Snapshot
    """
    countries = build_countries(frame)
    records = build_records(frame, countries)
    buckets = build_buckets(frame)
    return Snapshot.create(
        generation=generation,
        countries=countries,
        records=records,
        buckets=buckets,
        source_digest=source_digest,
        fetched_at=fetched_at,
    )


def normalize(
    payload: bytes,
    *,
    generation: int,
    fetched_at: Optional[datetime] = None,
    parser: Optional[BaseParser] = None,
) -> Snapshot:
    """
    原始数据 -> 快照

    Args:
        payload: 数据源返回的原始字节
        generation: 快照代号
        fetched_at: 抓取时间
        parser: 解析器，默认 TimeSeriesCsvParser

    Returns:
        所有聚合桶都已计算完成的 Snapshot

    Raises:
        ParseError: 数据格式错误
    """
    parser = parser or TimeSeriesCsvParser()
    frame = parser.parse(payload)
    digest = hashlib.sha256(payload).hexdigest()
    snapshot = build_snapshot(frame, generation, fetched_at=fetched_at, source_digest=digest)
    logger.debug(f"Normalized payload {digest[:12]} into {snapshot!r}")
    return snapshot
