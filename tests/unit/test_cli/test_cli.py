"""Tests for the account-service CLI."""
from __future__ import annotations

import pytest
from click.testing import CliRunner

from account_service import __version__
from account_service.cli.main import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.mark.unit
class TestCli:
    """Test suite for the top-level command group."""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("worker", "outbox", "server"):
            assert command in result.output


@pytest.mark.unit
class TestOutboxCommands:
    """Test suite for the outbox command group (database disabled)."""

    def test_count_empty(self, runner):
        result = runner.invoke(cli, ["outbox", "count"])

        assert result.exit_code == 0
        assert result.output.strip().splitlines()[-1] == "0"

    def test_list_empty(self, runner):
        result = runner.invoke(cli, ["outbox", "list"])

        assert result.exit_code == 0
        assert "Outbox is empty" in result.output

    def test_dead_letters_empty(self, runner):
        result = runner.invoke(cli, ["outbox", "dead-letters", "--limit", "5"])

        assert result.exit_code == 0
        assert "No dead-lettered records" in result.output

    def test_sweep_requires_rabbit(self, runner):
        result = runner.invoke(cli, ["outbox", "sweep"])

        assert result.exit_code == 1
        assert "RabbitMQ is disabled" in result.output

    def test_sweep_rejects_zero_retries(self, runner):
        result = runner.invoke(cli, ["outbox", "sweep", "--retries", "0"])

        assert result.exit_code == 2


@pytest.mark.unit
class TestWorkerCommand:
    """Test suite for the worker command."""

    def test_worker_requires_rabbit(self, runner):
        result = runner.invoke(cli, ["worker"])

        assert result.exit_code == 1
        assert "RabbitMQ is disabled" in result.output
