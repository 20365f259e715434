"""
共享测试夹具

样例数据和测试替身见 tests/fakes.py
"""
import os

import pytest

# 测试期间只输出警告以上级别的日志
os.environ.setdefault("LOG_LEVEL", "WARNING")

from coronavirus_api.core import SnapshotCache, TransportError  # noqa: E402
from coronavirus_api.data.processors import normalize  # noqa: E402
from tests.fakes import SAMPLE_CSV, T0, FakeClock, RecordingSleep  # noqa: E402


@pytest.fixture
def sample_payload() -> bytes:
    return SAMPLE_CSV


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recording_sleep(clock: FakeClock) -> RecordingSleep:
    return RecordingSleep(clock)


@pytest.fixture
def cache() -> SnapshotCache:
    return SnapshotCache()


@pytest.fixture
def snapshot():
    return normalize(SAMPLE_CSV, generation=1, fetched_at=T0)


@pytest.fixture
def transport_error() -> TransportError:
    return TransportError("connection reset by peer")
