"""核心服务模块"""

from .config import AppSettings, get_config, load_config
from .exceptions import (
    ConfigurationError,
    CoronaApiError,
    NotInitializedError,
    ParseError,
    StorageError,
    TransportError,
)
from .logging import setup_logging, get_logger
from .clock import utc_now
from .backoff import BackoffPolicy
from .cache import PublishResult, SnapshotCache

__all__ = [
    "AppSettings",
    "get_config",
    "load_config",
    "setup_logging",
    "get_logger",
    "utc_now",
    "BackoffPolicy",
    "SnapshotCache",
    "PublishResult",
    "CoronaApiError",
    "ConfigurationError",
    "TransportError",
    "ParseError",
    "StorageError",
    "NotInitializedError",
]
