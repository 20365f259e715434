"""
测试退避策略

退避是重试次数的纯函数，不需要真实计时器
"""
import random
from datetime import timedelta

import pytest

from coronavirus_api.core import BackoffPolicy
from coronavirus_api.core.config import RefreshSettings


class TestBackoffPolicy:
    def test_exponential_growth_until_cap(self):
        policy = BackoffPolicy(base=5, cap=60)
        assert [policy.delay(n) for n in range(1, 7)] == [5, 10, 20, 40, 60, 60]

    def test_huge_attempt_numbers_stay_capped(self):
        policy = BackoffPolicy(base=1, cap=900)
        assert policy.delay(10_000) == 900

    def test_jitter_stays_within_bounds(self):
        policy = BackoffPolicy(base=10, cap=100, jitter=0.2, rng=random.Random(42))
        for attempt in range(1, 20):
            raw = policy.raw_delay(attempt)
            delay = policy.delay(attempt)
            assert raw * 0.8 <= delay <= raw * 1.2

    def test_seeded_jitter_is_reproducible(self):
        first = BackoffPolicy(base=1, cap=30, jitter=0.5, rng=random.Random(7))
        second = BackoffPolicy(base=1, cap=30, jitter=0.5, rng=random.Random(7))
        assert [first.delay(n) for n in range(1, 10)] == [second.delay(n) for n in range(1, 10)]

    def test_attempt_numbers_start_at_one(self):
        with pytest.raises(ValueError):
            BackoffPolicy(base=1, cap=2).delay(0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"base": 0, "cap": 1},
            {"base": 2, "cap": 1},
            {"base": 1, "cap": 2, "jitter": 1.5},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ValueError):
            BackoffPolicy(**kwargs)

    def test_from_settings(self):
        settings = RefreshSettings(
            backoff_base=timedelta(seconds=2),
            backoff_max=timedelta(minutes=1),
            backoff_jitter=0,
        )
        policy = BackoffPolicy.from_settings(settings)
        assert policy.base == 2
        assert policy.cap == 60
        assert policy.delay(3) == 8
