"""
CoronaVirus API 日志系统

基于 loguru：控制台 + 按天轮转的运行日志 + 错误日志 + 刷新/归档审计日志
"""

import sys
from typing import Optional

from loguru import logger

from .config import AppSettings, get_config

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[name]}:{function}:{line} - {message}"

# 刷新调度与归档相关组件，单独写入审计日志
AUDIT_PREFIXES = (
    "coronavirus_api.services",
    "coronavirus_api.archive",
    "RefreshScheduler",
    "RetentionScheduler",
)

_configured_for: Optional[AppSettings] = None


def _is_audit_record(record) -> bool:
    return str(record["extra"].get("name", "")).startswith(AUDIT_PREFIXES)


def setup_logging(settings: Optional[AppSettings] = None, *, force: bool = False) -> None:
    """
    配置日志输出

    Args:
        settings: 应用配置，None 时使用全局配置
        force: 已配置过时是否重新配置
    """
    global _configured_for

    if _configured_for is not None and not force:
        return

    settings = settings or get_config()
    log_dir = settings.log_dir

    logger.remove()
    logger.configure(extra={"name": "coronavirus_api"})

    logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=settings.log_level,
        colorize=True,
        diagnose=settings.debug,
    )
    logger.add(
        log_dir / "coronavirus_api_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level=settings.log_level,
        rotation="00:00",
        retention="30 days",
        compression="zip",
        enqueue=True,
    )
    logger.add(
        log_dir / "refresh_audit_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT,
        level="INFO",
        filter=_is_audit_record,
        rotation="00:00",
        retention="90 days",
        enqueue=True,
    )
    logger.add(
        log_dir / "error_{time:YYYY-MM-DD}.log",
        format=FILE_FORMAT + "\n{exception}",
        level="ERROR",
        rotation="10 MB",
        retention="90 days",
        compression="zip",
        enqueue=True,
        backtrace=True,
        diagnose=settings.debug,
    )

    _configured_for = settings
    logger.bind(name=__name__).debug(f"Logging configured: level={settings.log_level}, dir={log_dir}")


def get_logger(name: str):
    """
    获取绑定了组件名的 logger

    Args:
        name: 组件名，通常为 __name__ 或类名
    """
    if _configured_for is None:
        setup_logging()
    return logger.bind(name=name)
