"""
CoronaVirus API Data Processors

解析结果 -> 不可变快照（含预计算聚合桶）
"""

from .snapshot_builder import build_buckets, build_snapshot, normalize

__all__ = [
    "build_buckets",
    "build_snapshot",
    "normalize",
]
