"""
CoronaVirus API Snapshot Serialization

快照 <-> gzip 压缩 JSON

只保存国家和逐日记录，聚合桶在读取时用同一个构建函数重新计算，
因此往返是无损的
"""
import gzip
import json
from datetime import datetime
from typing import Any, Dict

import pandas as pd

from coronavirus_api.core import StorageError
from coronavirus_api.data.parsers import NORMALIZED_COLUMNS
from coronavirus_api.data.processors import build_snapshot
from coronavirus_api.domain import Snapshot

FORMAT_VERSION = 1


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    """快照 -> 可 JSON 序列化的字典"""
    return {
        "format": FORMAT_VERSION,
        "generation": snapshot.generation,
        "fetched_at": snapshot.fetched_at.isoformat() if snapshot.fetched_at else None,
        "source_digest": snapshot.source_digest,
        "countries": [snapshot.countries[code].to_dict() for code in sorted(snapshot.countries)],
        "records": {
            code: [
                [r.date.isoformat(), r.confirmed, r.recovered, r.deceased]
                for r in snapshot.records[code]
            ]
            for code in sorted(snapshot.records)
        },
    }


def snapshot_from_dict(data: Dict[str, Any]) -> Snapshot:
    """字典 -> 快照（重新计算聚合桶）"""
    if data.get("format") != FORMAT_VERSION:
        raise StorageError(f"Unsupported archive format: {data.get('format')}")

    rows = []
    for country in data["countries"]:
        for day, confirmed, recovered, deceased in data["records"].get(country["code"], []):
            rows.append((
                country["code"],
                country["name"],
                country["province"],
                country["latitude"],
                country["longitude"],
                day,
                confirmed,
                recovered,
                deceased,
            ))

    frame = pd.DataFrame(rows, columns=NORMALIZED_COLUMNS)
    frame["date"] = pd.to_datetime(frame["date"], format="%Y-%m-%d")
    for column in ("confirmed", "recovered", "deceased"):
        frame[column] = frame[column].astype("int64")

    fetched_at = data.get("fetched_at")
    return build_snapshot(
        frame,
        generation=int(data["generation"]),
        fetched_at=datetime.fromisoformat(fetched_at) if fetched_at else None,
        source_digest=data.get("source_digest", ""),
    )


def encode_snapshot(snapshot: Snapshot) -> bytes:
    """
    序列化快照

    gzip 的 mtime 固定为 0，相同快照得到相同字节
    """
    text = json.dumps(snapshot_to_dict(snapshot), ensure_ascii=False, separators=(",", ":"))
    return gzip.compress(text.encode("utf-8"), mtime=0)


def decode_snapshot(blob: bytes) -> Snapshot:
    """
    反序列化快照

    Raises:
        StorageError: 数据损坏或格式不支持
    """
    try:
        data = json.loads(gzip.decompress(blob).decode("utf-8"))
    except (OSError, EOFError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise StorageError(f"Corrupted archive blob: {e}") from e
    try:
        return snapshot_from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise StorageError(f"Invalid archive content: {e}") from e
