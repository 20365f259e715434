"""
CoronaVirus API 快照缓存

单槽位、多读单写的进程内快照缓存

读取只是对不可变对象引用的一次属性读取，永远不会阻塞；
发布通过比较代号后整体替换引用完成，读者要么看到旧快照，要么看到完整的新快照。
"""

import threading
from dataclasses import dataclass
from typing import Optional

from coronavirus_api.domain import Snapshot

from .exceptions import NotInitializedError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """发布结果"""

    accepted: bool
    current_generation: int
    previous_generation: int = 0


class SnapshotCache:
    """
    快照缓存

    - read(): 无锁读取当前快照，首次发布前抛出 NotInitializedError
    - publish(): 唯一的写操作，代号必须严格大于当前代号，否则作为空操作拒绝
    """

    def __init__(self):
        self._current: Optional[Snapshot] = None
        # 只用于写者之间的比较并交换，读者从不获取
        self._publish_lock = threading.Lock()

    @property
    def is_initialized(self) -> bool:
        return self._current is not None

    @property
    def generation(self) -> int:
        """当前代号，未初始化时为 0"""
        current = self._current
        return current.generation if current is not None else 0

    def peek(self) -> Optional[Snapshot]:
        """获取当前快照，未初始化时返回 None"""
        return self._current

    def read(self) -> Snapshot:
        """
        获取当前快照

        Returns:
            当前快照

        Raises:
            NotInitializedError: 尚未发布任何快照
        """
        current = self._current
        if current is None:
            raise NotInitializedError("Snapshot cache has not been initialized yet")
        return current

    def publish(self, snapshot: Snapshot) -> PublishResult:
        """
        发布新快照

        代号小于等于当前代号的发布会被拒绝（调度异常，而非数据损坏），
        返回 accepted=False，当前快照保持不变。

        Args:
            snapshot: 已完全构建的不可变快照

        Returns:
            PublishResult
        """
        with self._publish_lock:
            current = self._current
            current_generation = current.generation if current is not None else 0

            if snapshot.generation <= current_generation:
                logger.warning(
                    f"Rejected stale snapshot publish: generation {snapshot.generation} "
                    f"<= current {current_generation}"
                )
                return PublishResult(
                    accepted=False,
                    current_generation=current_generation,
                    previous_generation=current_generation,
                )

            self._current = snapshot

        logger.info(
            f"Snapshot published: generation {current_generation} -> {snapshot.generation} "
            f"({len(snapshot.countries)} countries, {snapshot.record_count} records)"
        )
        return PublishResult(
            accepted=True,
            current_generation=snapshot.generation,
            previous_generation=current_generation,
        )

    def get_stats(self) -> dict:
        """
        获取统计信息

        Returns:
            包含当前状态的字典
        """
        current = self._current
        return {
            "initialized": current is not None,
            "generation": current.generation if current is not None else 0,
            "fetched_at": current.fetched_at.isoformat() if current is not None and current.fetched_at else None,
            "countries": len(current.countries) if current is not None else 0,
            "records": current.record_count if current is not None else 0,
        }
