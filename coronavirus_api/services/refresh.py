"""
CoronaVirus API Refresh Scheduler

数据刷新调度器：按固定周期执行 抓取 -> 解析 -> 发布 -> 归档

状态机：
    idle -> fetching -> parsing -> publishing -> idle
    任一失败点 -> backoff -> fetching（重试同一个周期）

失败处理：
1. 传输错误、解析错误进入指数退避并无限重试，当前可见快照保持不变
2. 归档失败只记录日志并标记持久化降级，不回滚已发布的快照
3. 支持协作式停止，进行中的抓取/解析被放弃，不会发布半成品
"""
import asyncio
import contextlib
import enum
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_never

from coronavirus_api.archive import ArchiveWriter
from coronavirus_api.core import (
    BackoffPolicy,
    ParseError,
    SnapshotCache,
    StorageError,
    TransportError,
    get_logger,
    utc_now,
)
from coronavirus_api.core.config import RefreshSettings
from coronavirus_api.data.parsers import BaseParser
from coronavirus_api.data.processors import normalize
from coronavirus_api.data.sources import BaseSourceClient
from coronavirus_api.domain import ArchiveEntry, Snapshot

logger = get_logger(__name__)


class RefreshState(str, enum.Enum):
    """刷新调度器状态"""
    IDLE = "idle"
    FETCHING = "fetching"
    PARSING = "parsing"
    PUBLISHING = "publishing"
    BACKOFF = "backoff"
    STOPPED = "stopped"


@dataclass(frozen=True)
class CycleResult:
    """一次刷新周期的结果"""

    generation: int
    accepted: bool
    attempts: int
    archive_entry: Optional[ArchiveEntry] = None
    durability_degraded: bool = False


class RefreshScheduler:
    """
    刷新调度器

    唯一调用 SnapshotCache.publish 的写者

    Args:
        source: 数据源客户端
        cache: 快照缓存
        archive_writer: 归档写入器，None 表示不归档
        settings: 刷新配置
        parser: 解析器，默认 CSV 解析器
        sleep: 异步等待函数（测试时注入）
        now: 时钟函数（测试时注入）
        rng: 抖动使用的随机数生成器
    """

    def __init__(
        self,
        source: BaseSourceClient,
        cache: SnapshotCache,
        archive_writer: Optional[ArchiveWriter],
        settings: RefreshSettings,
        *,
        parser: Optional[BaseParser] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.source = source
        self.cache = cache
        self.settings = settings
        self.archive_writer = archive_writer
        self.parser = parser
        self.backoff = BackoffPolicy.from_settings(settings, rng)

        self._sleep = sleep
        self._now = now
        self._task: Optional[asyncio.Task] = None
        self._last_generation = 0

        self.state = RefreshState.IDLE
        self.cycles_completed = 0
        self.failed_attempts = 0
        self.failed_cycles = 0
        self.consecutive_failures = 0
        self.last_success_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self.durability_degraded = False
        self.last_archive_error: Optional[str] = None

    def _set_state(self, state: RefreshState) -> None:
        if state != self.state:
            logger.debug(f"Refresh state: {self.state.value} -> {state.value}")
            self.state = state

    def _next_generation(self, fetched_at: datetime) -> int:
        """
        分配新代号

        取 (已知最大代号 + 1) 与抓取时间毫秒数中的较大者，进程重启后仍严格递增
        """
        floor = max(self.cache.generation, self._last_generation) + 1
        generation = max(floor, int(fetched_at.timestamp() * 1000))
        self._last_generation = generation
        return generation

    async def _attempt(self) -> Snapshot:
        """执行一次抓取 + 解析"""
        self._set_state(RefreshState.FETCHING)
        fetched_at = self._now()
        payload = await asyncio.to_thread(self.source.fetch)

        self._set_state(RefreshState.PARSING)
        generation = self._next_generation(fetched_at)
        return await asyncio.to_thread(
            normalize,
            payload,
            generation=generation,
            fetched_at=fetched_at,
            parser=self.parser,
        )

    def _before_backoff(self, retry_state: RetryCallState) -> None:
        """失败后进入退避前记录日志"""
        self._set_state(RefreshState.BACKOFF)
        self.failed_attempts += 1
        self.consecutive_failures += 1

        error = retry_state.outcome.exception()
        self.last_error = f"{type(error).__name__}: {error}"
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0

        if isinstance(error, ParseError):
            logger.error(f"Upstream payload rejected: {error}; keeping generation {self.cache.generation}")
        elif isinstance(error, TransportError):
            logger.warning(f"Fetch failed: {error}")
        else:
            logger.opt(exception=error).error(f"Unexpected refresh failure: {error}")

        logger.warning(
            f"Refresh attempt {retry_state.attempt_number} failed, "
            f"retrying in {delay:.2f}s"
        )

    async def _archive(self, snapshot: Snapshot) -> Optional[ArchiveEntry]:
        """归档快照，失败只降级不抛出"""
        if self.archive_writer is None:
            return None
        try:
            entry = await self.archive_writer.save(snapshot)
        except StorageError as e:
            self._degrade(snapshot, e)
            return None
        except Exception as e:
            logger.opt(exception=e).error(f"Unexpected archive failure: {e}")
            self._degrade(snapshot, e)
            return None

        if self.durability_degraded:
            logger.info("Archive writes recovered, durability restored")
        self.durability_degraded = False
        return entry

    def _degrade(self, snapshot: Snapshot, error: Exception) -> None:
        self.durability_degraded = True
        self.last_archive_error = f"{type(error).__name__}: {error}"
        logger.error(f"Archive write failed for generation {snapshot.generation}, durability degraded: {error}")

    async def run_cycle(self) -> CycleResult:
        """
        执行一个完整的刷新周期

        失败时按退避策略重试直到成功，或者被取消

        Returns:
            CycleResult
        """
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(Exception),
            wait=self.backoff,
            stop=stop_never,
            sleep=self._sleep,
            before_sleep=self._before_backoff,
            reraise=True,
        )
        snapshot = await retrying(self._attempt)
        attempts = retrying.statistics.get("attempt_number", 1)

        self._set_state(RefreshState.PUBLISHING)
        result = self.cache.publish(snapshot)

        entry = None
        if result.accepted:
            entry = await self._archive(snapshot)
        else:
            logger.warning(
                f"Snapshot generation {snapshot.generation} was not published "
                f"(current {result.current_generation}), skipping archive"
            )

        self.cycles_completed += 1
        self.consecutive_failures = 0
        self.last_success_at = self._now()
        self.last_error = None
        self._set_state(RefreshState.IDLE)

        logger.info(
            f"Refresh cycle completed: generation {snapshot.generation}, "
            f"{attempts} attempt(s), accepted={result.accepted}"
        )
        return CycleResult(
            generation=snapshot.generation,
            accepted=result.accepted,
            attempts=attempts,
            archive_entry=entry,
            durability_degraded=self.durability_degraded,
        )

    async def run_forever(self) -> None:
        """按固定周期无限运行，直到被取消；单个周期的意外失败只记录，不终止循环"""
        interval = self.settings.interval.total_seconds()
        logger.info(f"Refresh scheduler started (interval {interval:.0f}s)")
        try:
            while True:
                try:
                    await self.run_cycle()
                except Exception as e:
                    self.failed_cycles += 1
                    self.last_error = f"{type(e).__name__}: {e}"
                    self._set_state(RefreshState.IDLE)
                    logger.opt(exception=e).error(f"Refresh cycle aborted: {e}")
                await self._sleep(interval)
        finally:
            self._set_state(RefreshState.STOPPED)
            logger.info("Refresh scheduler stopped")

    def start(self) -> asyncio.Task:
        """在后台启动调度循环"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="refresh-scheduler")
        return self._task

    async def stop(self) -> None:
        """协作式停止，等待后台任务退出"""
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
        """
        获取统计信息

        Returns:
            包含当前状态的字典
        """
        return {
            "state": self.state.value,
            "running": self.is_running,
            "generation": self.cache.generation,
            "cycles_completed": self.cycles_completed,
            "failed_attempts": self.failed_attempts,
            "consecutive_failures": self.consecutive_failures,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_error": self.last_error,
            "failed_cycles": self.failed_cycles,
            "durability_degraded": self.durability_degraded,
            "last_archive_error": self.last_archive_error,
        }
