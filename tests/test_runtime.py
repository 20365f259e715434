"""
测试运行时组装：预热、启动和停止
"""
import asyncio

import pytest

from coronavirus_api.archive import ArchiveWriter, FileSystemArchiveStore, InMemoryArchiveStore
from coronavirus_api.core import load_config
from coronavirus_api.data.processors import normalize
from coronavirus_api.runtime import Runtime
from coronavirus_api.services import DataStatus

from tests.fakes import REVISED_CSV, SAMPLE_CSV, T0, ScriptedSource


@pytest.fixture
def settings(tmp_path):
    return load_config(
        log_dir=tmp_path / "logs",
        data_dir=tmp_path / "data",
        archive={"backend": "memory"},
    )


class TestRuntime:
    def test_store_follows_configuration(self, tmp_path):
        cfg = load_config(
            log_dir=tmp_path / "logs",
            data_dir=tmp_path / "data",
            archive={"backend": "filesystem", "directory": tmp_path / "archive"},
        )
        runtime = Runtime(cfg, source=ScriptedSource(SAMPLE_CSV))
        assert isinstance(runtime.store, FileSystemArchiveStore)

    @pytest.mark.asyncio
    async def test_warm_start_from_archive(self, settings):
        store = InMemoryArchiveStore()
        archived = normalize(SAMPLE_CSV, generation=42, fetched_at=T0)
        await ArchiveWriter(store).save(archived)

        runtime = Runtime(settings, source=ScriptedSource(REVISED_CSV), store=store)
        assert runtime.query.get_countries().status == DataStatus.PENDING

        await runtime.initialize()

        result = runtime.query.get_countries()
        assert result.status == DataStatus.READY
        assert result.generation == 42

    @pytest.mark.asyncio
    async def test_warm_start_with_empty_archive(self, settings):
        runtime = Runtime(settings, source=ScriptedSource(SAMPLE_CSV), store=InMemoryArchiveStore())
        assert await runtime.warm_start() is False
        assert not runtime.cache.is_initialized

    @pytest.mark.asyncio
    async def test_start_refreshes_and_stop_releases(self, settings):
        source = ScriptedSource(SAMPLE_CSV)
        runtime = Runtime(settings, source=source)

        await runtime.start()
        for _ in range(200):
            if runtime.cache.is_initialized:
                break
            await asyncio.sleep(0.01)
        await runtime.stop()

        assert runtime.cache.is_initialized
        assert runtime.get_stats()["refresh"]["running"] is False
        assert runtime.get_stats()["retention"]["running"] is False
        assert source.closed

    @pytest.mark.asyncio
    async def test_serve_until_shutdown_requested(self, settings):
        runtime = Runtime(settings, source=ScriptedSource(SAMPLE_CSV))
        serving = asyncio.create_task(runtime.serve())
        await asyncio.sleep(0.05)

        runtime.request_shutdown()
        await asyncio.wait_for(serving, timeout=5)

        assert not runtime.refresh_scheduler.is_running
