"""Smoke-Tests für die Kommandozeile (click.testing.CliRunner)."""

from datetime import date, timedelta
from pathlib import Path

from click.testing import CliRunner

from main import cli


def _setup(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["setup"])
    assert result.exit_code == 0, result.output


class TestCli:
    def test_setup_and_config_show(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            _setup(runner)
            assert Path("config/tutoring_config.yaml").exists()
            result = runner.invoke(cli, ["config", "show"])
            assert result.exit_code == 0, result.output
            assert "Muster-Nachhilfe" in result.output

    def test_commands_require_config(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(cli, ["class", "list"])
            assert result.exit_code == 1
            assert "setup" in result.output

    def test_generate_and_list(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            _setup(runner)
            result = runner.invoke(cli, ["generate", "--seed", "1"])
            assert result.exit_code == 0, result.output
            assert Path("output/tutoring_data.json").exists()

            result = runner.invoke(cli, ["class", "list"])
            assert result.exit_code == 0, result.output
            assert "K01" in result.output

            result = runner.invoke(cli, ["session", "list", "K01"])
            assert result.exit_code == 0, result.output

    def test_class_lifecycle_via_cli(self):
        runner = CliRunner()
        start = (date.today() + timedelta(days=14)).isoformat()
        end = (date.today() + timedelta(days=42)).isoformat()
        with runner.isolated_filesystem():
            _setup(runner)
            runner.invoke(cli, ["generate", "--seed", "1"])

            result = runner.invoke(cli, [
                "class", "create", "--id", "K50", "--title", "Physik Aufbaukurs",
                "--subject", "Physik", "--start", start, "--end", end,
                "--tz", "America/Toronto", "--slot", "sat=10:00-11:00",
                "--teacher", "T02", "--student", "S05", "--yes",
            ])
            assert result.exit_code == 0, result.output
            assert "K50 angelegt" in result.output

            result = runner.invoke(cli, ["session", "list", "K50"])
            assert result.exit_code == 0, result.output

            result = runner.invoke(cli, ["reschedule", "list"])
            assert result.exit_code == 0, result.output

            result = runner.invoke(cli, ["class", "delete", "K50", "--yes"])
            assert result.exit_code == 0, result.output
            assert "gelöscht" in result.output

    def test_rejected_action_exits_with_error(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            _setup(runner)
            runner.invoke(cli, ["generate", "--seed", "1"])
            result = runner.invoke(cli, ["session", "transition", "K01_1999-01-01",
                                         "start", "--actor", "A01"])
            assert result.exit_code == 1
            assert "nicht gefunden" in result.output

    def test_invalid_slot_is_usage_error(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            _setup(runner)
            result = runner.invoke(cli, [
                "conflicts", "T01", "--slot", "montag09:00", "--start", "2024-03-11",
                "--end", "2024-03-25",
            ])
            assert result.exit_code == 2
