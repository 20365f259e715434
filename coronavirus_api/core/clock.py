"""
CoronaVirus API 时钟工具

所有时间戳均为 UTC aware，调度器通过注入替换以便测试
"""
from datetime import datetime, timezone


def utc_now() -> datetime:
    """返回当前 UTC 时间"""
    return datetime.now(timezone.utc)
