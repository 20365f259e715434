"""
CoronaVirus API 退避策略

指数退避 + 上限 + 抖动，仅依赖重试次数，不依赖真实计时器
"""
import random
from dataclasses import dataclass, field
from typing import Optional

from tenacity import RetryCallState


@dataclass(frozen=True)
class BackoffPolicy:
    """
    指数退避策略

    第 n 次失败后的等待时间：
        min(base * 2 ** (n - 1), cap) * (1 ± jitter)

    Args:
        base: 基础延迟（秒）
        cap: 最大延迟（秒）
        jitter: 抖动比例（0 表示无抖动）
        rng: 随机数生成器，测试时可注入固定种子
    """

    base: float
    cap: float
    jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self):
        if self.base <= 0 or self.cap <= 0:
            raise ValueError("backoff base and cap must be positive")
        if self.cap < self.base:
            raise ValueError("backoff cap must not be smaller than base")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("backoff jitter must be within [0, 1]")

    @classmethod
    def from_settings(cls, settings, rng: Optional[random.Random] = None) -> "BackoffPolicy":
        """从 RefreshSettings 构建"""
        return cls(
            base=settings.backoff_base.total_seconds(),
            cap=settings.backoff_max.total_seconds(),
            jitter=settings.backoff_jitter,
            rng=rng or random.Random(),
        )

    def raw_delay(self, attempt: int) -> float:
        """不含抖动的延迟"""
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        # 指数增长到上限后不再计算幂，避免大数溢出
        exponent = min(attempt - 1, 64)
        return min(self.base * (2 ** exponent), self.cap)

    def delay(self, attempt: int) -> float:
        """
        计算第 attempt 次失败后的等待秒数

        Args:
            attempt: 失败次数（从 1 开始）

        Returns:
            等待秒数，不超过 cap * (1 + jitter)
        """
        raw = self.raw_delay(attempt)
        if not self.jitter:
            return raw
        spread = raw * self.jitter
        return max(0.0, raw + self.rng.uniform(-spread, spread))

    def __call__(self, retry_state: RetryCallState) -> float:
        """作为 tenacity 的 wait 策略使用"""
        return self.delay(retry_state.attempt_number)
