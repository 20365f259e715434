"""
测试归档保留清理
"""
import asyncio
from datetime import timedelta

import pytest

from coronavirus_api.archive import ArchiveKey, InMemoryArchiveStore
from coronavirus_api.core import StorageError
from coronavirus_api.core.config import RetentionSettings
from coronavirus_api.services import RetentionScheduler

from tests.fakes import T0


class FlakyStore(InMemoryArchiveStore):
    """指定键删除失败的归档存储"""

    def __init__(self, broken=(), list_fails: bool = False):
        super().__init__()
        self.broken = set(broken)
        self.list_fails = list_fails

    async def list_keys(self):
        if self.list_fails:
            raise StorageError("bucket unavailable")
        return await super().list_keys()

    async def delete(self, key: str) -> None:
        if key in self.broken:
            raise StorageError(f"permission denied: {key}")
        await super().delete(key)



class UnreachableStore(InMemoryArchiveStore):
    """驱动层直接抛出连接错误的归档存储"""

    def __init__(self, list_fails: bool = True, delete_fails: bool = True):
        super().__init__()
        self.list_fails = list_fails
        self.delete_fails = delete_fails

    async def list_keys(self):
        if self.list_fails:
            raise ConnectionRefusedError(111, "Connect call failed")
        return await super().list_keys()

    async def delete(self, key: str) -> None:
        if self.delete_fails:
            raise ConnectionResetError(104, "Connection reset by peer")
        await super().delete(key)


@pytest.fixture
def settings() -> RetentionSettings:
    return RetentionSettings(interval=timedelta(days=1), horizon=timedelta(days=30))


async def _seed(store, ages_in_days):
    keys = {}
    for generation, age in enumerate(ages_in_days, start=1):
        key = ArchiveKey.build(generation, T0 - timedelta(days=age))
        await store.put(key, b"snapshot")
        keys[age] = key
    return keys


class TestRetentionCycle:
    @pytest.mark.asyncio
    async def test_only_entries_older_than_horizon_are_deleted(self, settings, clock):
        store = InMemoryArchiveStore()
        keys = await _seed(store, [1, 10, 40])
        scheduler = RetentionScheduler(store, settings, now=clock)

        report = await scheduler.run_cycle()

        assert report.deleted == [keys[40]]
        assert sorted(await store.list_keys()) == sorted([keys[1], keys[10]])
        assert len(report.examined) == 3
        assert report.failed == []

    @pytest.mark.asyncio
    async def test_entry_exactly_at_horizon_is_kept(self, settings, clock):
        store = InMemoryArchiveStore()
        keys = await _seed(store, [30])

        report = await RetentionScheduler(store, settings, now=clock).run_cycle()

        assert report.deleted == []
        assert await store.list_keys() == [keys[30]]

    @pytest.mark.asyncio
    async def test_foreign_objects_are_skipped(self, settings, clock):
        store = InMemoryArchiveStore()
        await store.put("README.md", b"do not delete")

        report = await RetentionScheduler(store, settings, now=clock).run_cycle()

        assert report.skipped == ["README.md"]
        assert await store.list_keys() == ["README.md"]

    @pytest.mark.asyncio
    async def test_failed_delete_does_not_abort_cycle(self, settings, clock):
        store = FlakyStore()
        keys = await _seed(store, [35, 40, 45])
        store.broken.add(keys[40])
        scheduler = RetentionScheduler(store, settings, now=clock)

        report = await scheduler.run_cycle()

        assert report.failed == [keys[40]]
        assert sorted(report.deleted) == sorted([keys[35], keys[45]])
        assert await store.list_keys() == [keys[40]]
        assert scheduler.get_stats()["last_error"] is not None

    @pytest.mark.asyncio
    async def test_list_failure_aborts_only_this_cycle(self, settings, clock):
        store = FlakyStore(list_fails=True)
        await _seed(store, [40])
        scheduler = RetentionScheduler(store, settings, now=clock)

        report = await scheduler.run_cycle()
        assert report.examined == []

        store.list_fails = False
        report = await scheduler.run_cycle()
        assert len(report.deleted) == 1

    @pytest.mark.asyncio
    async def test_entries_age_out_as_time_passes(self, settings, clock):
        store = InMemoryArchiveStore()
        await _seed(store, [1])
        scheduler = RetentionScheduler(store, settings, now=clock)

        assert (await scheduler.run_cycle()).deleted == []
        clock.advance(days=30)
        assert len((await scheduler.run_cycle()).deleted) == 1

    @pytest.mark.asyncio
    async def test_driver_error_on_delete_is_recorded(self, settings, clock):
        store = UnreachableStore(list_fails=False)
        keys = await _seed(store, [40])

        report = await RetentionScheduler(store, settings, now=clock).run_cycle()

        assert report.failed == [keys[40]]
        assert report.deleted == []


class TestRetentionLifecycle:
    @pytest.mark.asyncio
    async def test_run_forever_uses_interval(self, settings, clock, recording_sleep):
        store = InMemoryArchiveStore()
        await _seed(store, [29])
        scheduler = RetentionScheduler(store, settings, sleep=recording_sleep, now=clock)

        def _stop_after_three(seconds):
            if len(recording_sleep.delays) == 3:
                raise asyncio.CancelledError()

        recording_sleep.hooks.append(_stop_after_three)

        with pytest.raises(asyncio.CancelledError):
            await scheduler.run_forever()

        assert recording_sleep.delays == [86400, 86400, 86400]
        assert scheduler.total_deleted == 1
        assert await store.list_keys() == []

    @pytest.mark.asyncio
    async def test_run_forever_survives_unreachable_store(self, settings, clock, recording_sleep):
        store = UnreachableStore(delete_fails=False)
        scheduler = RetentionScheduler(store, settings, sleep=recording_sleep, now=clock)

        def _recover_then_stop(seconds):
            if len(recording_sleep.delays) == 1:
                store.list_fails = False
            if len(recording_sleep.delays) == 2:
                raise asyncio.CancelledError()

        recording_sleep.hooks.append(_recover_then_stop)

        with pytest.raises(asyncio.CancelledError):
            await scheduler.run_forever()

        assert recording_sleep.delays == [86400, 86400]
        assert scheduler.cycles_completed == 1
        assert scheduler.get_stats()["last_error"] is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, settings):
        scheduler = RetentionScheduler(InMemoryArchiveStore(), settings)
        scheduler.start()
        await asyncio.sleep(0)
        assert scheduler.is_running

        await scheduler.stop()
        assert not scheduler.is_running
