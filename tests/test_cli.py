"""
测试命令行接口
"""
import asyncio

import pytest
from typer.testing import CliRunner

from coronavirus_api import __version__
from coronavirus_api.archive import ArchiveWriter, FileSystemArchiveStore
from coronavirus_api.cli.main import app
from coronavirus_api.data.processors import normalize

from tests.fakes import SAMPLE_CSV, T0

runner = CliRunner()


@pytest.fixture
def env(tmp_path):
    return {
        "LOG_DIR": str(tmp_path / "logs"),
        "DATA_DIR": str(tmp_path / "data"),
        "ARCHIVE__BACKEND": "filesystem",
        "ARCHIVE__DIRECTORY": str(tmp_path / "archive"),
    }


@pytest.fixture
def archived(tmp_path):
    store = FileSystemArchiveStore(tmp_path / "archive")
    asyncio.run(ArchiveWriter(store).save(normalize(SAMPLE_CSV, generation=3, fetched_at=T0)))


class TestCli:
    def test_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_config(self, env):
        result = runner.invoke(app, ["config"], env=env)
        assert result.exit_code == 0
        assert "filesystem" in result.output

    def test_invalid_configuration_exits_with_status_1(self, env):
        result = runner.invoke(app, ["config"], env={**env, "REFRESH__INTERVAL": "0"})
        assert result.exit_code == 1

    def test_countries_from_archive(self, env, archived):
        result = runner.invoke(app, ["countries"], env=env)
        assert result.exit_code == 0
        assert "AFGHANISTAN" in result.output

    def test_records_unknown_country(self, env, archived):
        result = runner.invoke(app, ["records", "zz"], env=env)
        assert result.exit_code == 0
        assert "No records for ZZ" in result.output

    def test_queries_without_archive_exit_with_status_1(self, env):
        result = runner.invoke(app, ["countries"], env=env)
        assert result.exit_code == 1

    def test_archive_list(self, env, archived):
        result = runner.invoke(app, ["archive-list"], env=env)
        assert result.exit_code == 0
        assert "1 entries" in result.output
