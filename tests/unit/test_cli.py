"""Tests for the command-line interface."""

import pytest
from pydantic import ValidationError
from typer.testing import CliRunner

from ratequeue import __version__
from ratequeue.cli import main as cli
from ratequeue.core.config import reload_settings

runner = CliRunner()


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI runs from reconfiguring global logging."""
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


class TestVersion:
    def test_version(self):
        result = runner.invoke(cli.app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestConfig:
    def test_config_from_yaml(self, tmp_path):
        path = tmp_path / "ratequeue.yaml"
        path.write_text("queue:\n  window_cap: 42\n")

        result = runner.invoke(cli.app, ["config", "--config", str(path)])
        assert result.exit_code == 0
        assert "window_cap" in result.output
        assert "42" in result.output


class TestSimulate:
    def test_simulate_runs_all_tasks(self):
        result = runner.invoke(
            cli.app,
            [
                "simulate",
                "--tasks", "3",
                "--concurrency", "1",
                "--window-ms", "100",
                "--cap", "2",
                "--work-ms", "1",
            ],
        )
        assert result.exit_code == 0
        assert "Task Admissions" in result.output
        assert "total_completed" in result.output
        assert "cleared" not in result.output.replace("total_cleared", "")

    def test_simulate_reports_failures(self):
        result = runner.invoke(
            cli.app,
            ["simulate", "--tasks", "2", "--cap", "10", "--work-ms", "1", "--fail-every", "2"],
        )
        assert result.exit_code == 0
        assert "task 2 failed" in result.output

    def test_simulate_clear(self):
        result = runner.invoke(
            cli.app,
            [
                "simulate",
                "--tasks", "3",
                "--concurrency", "1",
                "--window-ms", "60000",
                "--cap", "1",
                "--work-ms", "1",
                "--clear-after-ms", "20",
            ],
        )
        assert result.exit_code == 0
        assert "cleared" in result.output.replace("total_cleared", "")

    def test_simulate_invalid_limits(self):
        result = runner.invoke(cli.app, ["simulate", "--cap", "0"])
        assert result.exit_code == 1


class TestSimulateEnvironment:
    @pytest.fixture
    def invalid_cap_env(self, monkeypatch):
        monkeypatch.setenv("RATEQUEUE_QUEUE_WINDOW_CAP", "0")
        reload_settings()
        yield
        monkeypatch.delenv("RATEQUEUE_QUEUE_WINDOW_CAP")
        reload_settings()

    def test_invalid_env_limits_reported(self, invalid_cap_env):
        result = runner.invoke(cli.app, ["simulate", "--tasks", "1"])
        assert result.exit_code == 1
        assert "Invalid queue configuration" in result.output
        assert not isinstance(result.exception, ValidationError)

    def test_cli_option_overrides_invalid_env(self, invalid_cap_env):
        result = runner.invoke(
            cli.app, ["simulate", "--tasks", "1", "--cap", "2", "--work-ms", "1"]
        )
        assert result.exit_code == 0
        assert "Task Admissions" in result.output
