"""
CoronaVirus API Retention Scheduler

归档保留清理：定期删除超过保留期限的归档条目

只操作归档存储，从不接触快照缓存
"""
import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from coronavirus_api.archive import ArchiveKey, ArchiveStore
from coronavirus_api.core import StorageError, get_logger, utc_now
from coronavirus_api.core.config import RetentionSettings

logger = get_logger(__name__)


@dataclass
class RetentionReport:
    """一次清理周期的结果（键列表）"""

    examined: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "examined": len(self.examined),
            "deleted": len(self.deleted),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }


class RetentionScheduler:
    """
    保留清理调度器

    Args:
        store: 归档存储
        settings: 保留策略配置
        sleep: 异步等待函数（测试时注入）
        now: 时钟函数（测试时注入）
    """

    def __init__(
        self,
        store: ArchiveStore,
        settings: RetentionSettings,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.settings = settings
        self._sleep = sleep
        self._now = now
        self._task: Optional[asyncio.Task] = None

        self.cycles_completed = 0
        self.total_deleted = 0
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None

    async def run_cycle(self) -> RetentionReport:
        """
        执行一次清理

        单个条目删除失败只记录，不中断本次清理；
        列举失败时本次清理直接结束

        Returns:
            RetentionReport
        """
        report = RetentionReport()
        now = self._now()
        cutoff = now - self.settings.horizon

        try:
            keys = await self.store.list_keys()
        except StorageError as e:
            self.last_error = str(e)
            logger.error(f"Retention cycle aborted, cannot list archive: {e}")
            return report
        except Exception as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.opt(exception=e).error(f"Retention cycle aborted, unexpected listing failure: {e}")
            return report

        for key in keys:
            report.examined.append(key)
            parsed = ArchiveKey.parse(key)
            if parsed is None:
                logger.debug(f"Skipping foreign archive object: {key}")
                report.skipped.append(key)
                continue
            if parsed.fetched_at >= cutoff:
                continue

            try:
                await self.store.delete(key)
            except StorageError as e:
                logger.error(f"Failed to delete expired archive entry {key}: {e}")
                report.failed.append(key)
                continue
            except Exception as e:
                logger.opt(exception=e).error(f"Unexpected failure deleting archive entry {key}: {e}")
                report.failed.append(key)
                continue
            report.deleted.append(key)
            logger.debug(f"Deleted expired archive entry {key}")

        self.cycles_completed += 1
        self.total_deleted += len(report.deleted)
        self.last_run_at = now
        self.last_error = None if not report.failed else f"{len(report.failed)} deletions failed"

        logger.info(
            f"Retention cycle completed: examined {len(report.examined)}, "
            f"deleted {len(report.deleted)}, failed {len(report.failed)}, "
            f"skipped {len(report.skipped)} (horizon {self.settings.horizon})"
        )
        return report

    async def run_forever(self) -> None:
        """按固定周期无限运行，直到被取消；单个周期的意外失败不终止循环"""
        interval = self.settings.interval.total_seconds()
        logger.info(f"Retention scheduler started (interval {interval:.0f}s)")
        try:
            while True:
                try:
                    await self.run_cycle()
                except Exception as e:
                    self.last_error = f"{type(e).__name__}: {e}"
                    logger.opt(exception=e).error(f"Retention cycle aborted: {e}")
                await self._sleep(interval)
        finally:
            logger.info("Retention scheduler stopped")

    def start(self) -> asyncio.Task:
        """在后台启动清理循环"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="retention-scheduler")
        return self._task

    async def stop(self) -> None:
        """停止后台任务"""
        task = self._task
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def get_stats(self) -> dict:
        return {
            "running": self.is_running,
            "cycles_completed": self.cycles_completed,
            "total_deleted": self.total_deleted,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }
