"""Unit tests for CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from orgsync.cache import FileCache
from orgsync.cli.main import cli
from orgsync.common.config import CacheConfig, ReplicationConfig, Settings
from tests.fixtures.clients import EXTERNAL_ID_FIELD, make_client


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        cache=CacheConfig(enabled=True, directory=str(tmp_path / "cache")),
        replication=ReplicationConfig(external_id_field=EXTERNAL_ID_FIELD, max_retries=0),
    )


@pytest.mark.unit
class TestReplicateCommand:
    """Test the replicate command."""

    def test_replicate_json_report(self, runner, settings, stores):
        source, dest = stores
        clients = (make_client(source, label="source"), make_client(dest, label="destination"))

        with patch("orgsync.cli.commands.replicate.get_settings", return_value=settings), patch(
            "orgsync.cli.runtime.build_clients", return_value=clients
        ):
            result = runner.invoke(cli, ["--log-level", "ERROR", "replicate", "--json", "--filter", "Account"])

        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["summary"] == {"total": 1, "done": 1, "error": 0}
        assert report["objects"][0]["upserted"] == 3
        assert len(dest.rows("Account")) == 3

    def test_replicate_aborts_on_failed_types(self, runner, settings, stores):
        source, dest = stores
        dest.reject = lambda object_type, record: ["invalid"]
        settings.replication.continue_on_batch_error = False
        clients = (make_client(source, label="source"), make_client(dest, label="destination"))

        with patch("orgsync.cli.commands.replicate.get_settings", return_value=settings), patch(
            "orgsync.cli.runtime.build_clients", return_value=clients
        ):
            result = runner.invoke(cli, ["replicate", "--filter", "Account"])

        assert result.exit_code != 0
        assert "failed" in result.output


@pytest.mark.unit
class TestOrderCommand:
    """Test the order command."""

    def test_order_table(self, runner, settings, stores):
        source, dest = stores
        clients = (make_client(source, label="source"), make_client(dest, label="destination"))

        with patch("orgsync.cli.commands.order.get_settings", return_value=settings), patch(
            "orgsync.cli.runtime.build_clients", return_value=clients
        ):
            result = runner.invoke(cli, ["order"])

        assert result.exit_code == 0, result.output
        assert result.output.index("Account") < result.output.index("Contact")


@pytest.mark.unit
class TestCacheCommands:
    """Test cache inspection commands."""

    def test_list_and_clear(self, runner, settings):
        store = FileCache(settings.cache.directory)
        store.put("00Da/describe/Account", {"name": "Account"})
        store.put("00Db/describe/Account", {"name": "Account"})

        with patch("orgsync.cli.commands.cache.get_settings", return_value=settings):
            listed = runner.invoke(cli, ["cache", "list", "00Da"])
            cleared = runner.invoke(cli, ["cache", "clear", "00Da", "--force"])

        assert listed.exit_code == 0
        assert "00Da/describe/Account" in listed.output
        assert "00Db/describe/Account" not in listed.output
        assert "Removed 1 key(s)" in cleared.output
        assert list(store.list()) == ["00Db/describe/Account"]

    def test_disabled_cache(self, runner, settings):
        settings.cache.enabled = False

        with patch("orgsync.cli.commands.cache.get_settings", return_value=settings):
            result = runner.invoke(cli, ["cache", "list"])

        assert result.exit_code == 0
        assert "disabled" in result.output
