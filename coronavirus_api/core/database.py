"""
CoronaVirus API 数据库连接管理

基于 SQLAlchemy 2.0 的异步数据库连接（归档存储的 database 后端使用）
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from coronavirus_api.domain import Base

from .config import ArchiveSettings, get_config
from .logging import get_logger

logger = get_logger(__name__)

# 全局引擎和session maker
_engine: Optional[AsyncEngine] = None
_session_maker: Optional[async_sessionmaker] = None


def create_engine_from_settings(settings: ArchiveSettings) -> AsyncEngine:
    """
    根据归档配置创建异步引擎

    SQLite 不支持连接池参数，仅对其他数据库设置
    """
    kwargs = {"echo": settings.echo}
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.pool_size,
            max_overflow=settings.max_overflow,
            pool_pre_ping=True,  # 连接前测试
            pool_recycle=3600,  # 1小时回收连接
        )
    engine = create_async_engine(settings.database_url, **kwargs)
    logger.info(f"Database engine created: {engine.url.render_as_string(hide_password=True)}")
    return engine


def get_engine(settings: Optional[ArchiveSettings] = None) -> AsyncEngine:
    """获取数据库引擎（单例），未传入配置时使用全局配置"""
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings(settings or get_config().archive)
    return _engine


def get_session_maker(settings: Optional[ArchiveSettings] = None) -> async_sessionmaker:
    """获取session maker（单例）"""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_engine(settings),
            class_=AsyncSession,
            expire_on_commit=False,  # 提交后不过期对象
        )
        logger.info("Session maker created")
    return _session_maker


async def init_database(engine: Optional[AsyncEngine] = None) -> None:
    """
    初始化数据库（创建所有表）

    注意：生产环境应使用 Alembic 进行迁移
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def close_database() -> None:
    """关闭数据库连接"""
    global _engine, _session_maker
    if _engine:
        await _engine.dispose()
        logger.info("Database engine disposed")
        _engine = None
        _session_maker = None
