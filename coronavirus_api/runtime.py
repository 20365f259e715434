"""
CoronaVirus API Runtime

根据配置组装所有组件：数据源、快照缓存、归档、两个后台调度器和查询门面

用法：
    runtime = Runtime(get_config())
    await runtime.start()
    ...
    await runtime.stop()
"""
import asyncio
import contextlib
import signal
from typing import Optional

from coronavirus_api.archive import (
    ArchiveStore,
    ArchiveWriter,
    DatabaseArchiveStore,
    FileSystemArchiveStore,
    InMemoryArchiveStore,
)
from coronavirus_api.core import AppSettings, SnapshotCache, StorageError, get_logger
from coronavirus_api.core.database import close_database, get_engine, get_session_maker, init_database
from coronavirus_api.data.sources import BaseSourceClient, OpenDataClient
from coronavirus_api.services import QueryFacade, RefreshScheduler, RetentionScheduler

logger = get_logger(__name__)


class Runtime:
    """
    应用运行时

    Args:
        settings: 应用配置
        source: 数据源客户端（默认按配置创建 OpenDataClient）
        store: 归档存储（默认按配置选择后端）
    """

    def __init__(
        self,
        settings: AppSettings,
        source: Optional[BaseSourceClient] = None,
        store: Optional[ArchiveStore] = None,
    ):
        self.settings = settings
        self.source = source or OpenDataClient.from_settings(settings.source)
        self.cache = SnapshotCache()
        self.store = store or self._create_store()
        self.archive_writer = ArchiveWriter(self.store)
        self.refresh_scheduler = RefreshScheduler(
            self.source,
            self.cache,
            self.archive_writer if settings.archive.enabled else None,
            settings.refresh,
        )
        self.retention_scheduler = RetentionScheduler(self.store, settings.retention)
        self.query = QueryFacade(self.cache)
        self._stopped = asyncio.Event()

    def _create_store(self) -> ArchiveStore:
        """按配置创建归档存储后端"""
        archive = self.settings.archive
        if archive.backend == "database":
            return DatabaseArchiveStore(get_session_maker(archive))
        if archive.backend == "memory":
            return InMemoryArchiveStore()
        return FileSystemArchiveStore(archive.directory)

    async def prepare_storage(self) -> None:
        """数据库后端需要先建表"""
        if isinstance(self.store, DatabaseArchiveStore):
            await init_database(get_engine(self.settings.archive))

    async def initialize(self) -> None:
        """准备存储并按需预热缓存"""
        await self.prepare_storage()
        if self.settings.refresh.warm_start:
            await self.warm_start()

    async def warm_start(self) -> bool:
        """
        用最新的归档快照预热缓存，使读者在首次抓取完成前就能拿到数据

        Returns:
            是否成功预热
        """
        try:
            snapshot = await self.archive_writer.load_latest()
        except StorageError as e:
            logger.error(f"Warm start skipped, archive unavailable: {e}")
            return False

        if snapshot is None:
            logger.info("Warm start skipped, archive is empty")
            return False

        result = self.cache.publish(snapshot)
        if result.accepted:
            logger.info(f"Cache warmed from archive: generation {snapshot.generation}")
        return result.accepted

    async def start(self) -> None:
        """初始化并启动后台调度器"""
        await self.initialize()
        self.refresh_scheduler.start()
        self.retention_scheduler.start()
        logger.info(f"{self.settings.app_name} runtime started")

    async def stop(self) -> None:
        """停止调度器并释放资源"""
        await self.refresh_scheduler.stop()
        await self.retention_scheduler.stop()
        await self.store.close()
        if isinstance(self.store, DatabaseArchiveStore):
            await close_database()
        self.source.close()
        self._stopped.set()
        logger.info(f"{self.settings.app_name} runtime stopped")

    def request_shutdown(self) -> None:
        """信号处理：请求停止"""
        logger.info("Shutdown requested")
        self._stopped.set()

    def install_signal_handlers(self) -> None:
        """注册 SIGINT/SIGTERM 处理"""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            # Windows 事件循环不支持 add_signal_handler
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, self.request_shutdown)

    async def serve(self) -> None:
        """启动后一直运行，直到收到停止信号"""
        self.install_signal_handlers()
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.stop()

    def get_stats(self) -> dict:
        return {
            "cache": self.cache.get_stats(),
            "refresh": self.refresh_scheduler.get_stats(),
            "retention": self.retention_scheduler.get_stats(),
        }
