"""
CoronaVirus API Services

后台调度器和查询门面
"""

from .query import DataStatus, QueryFacade, QueryResult
from .refresh import CycleResult, RefreshScheduler, RefreshState
from .retention import RetentionReport, RetentionScheduler

__all__ = [
    "CycleResult",
    "DataStatus",
    "QueryFacade",
    "QueryResult",
    "RefreshScheduler",
    "RefreshState",
    "RetentionReport",
    "RetentionScheduler",
]
