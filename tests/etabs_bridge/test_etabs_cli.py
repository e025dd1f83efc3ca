"""Tests for the ETABS sidecar CLI wrapper."""

import pytest

from src.core.errors import CommandFailedError, ToolUnavailableError
from src.etabs_bridge import EtabsCli


@pytest.fixture
def cli(cli_executable, cli_runner):
    return EtabsCli(str(cli_executable), timeout_seconds=5, runner=cli_runner)


class TestValidate:
    """Tests for the validate command."""

    def test_parses_camel_case_payload(self, cli, tmp_path):
        model = tmp_path / "tower.edb"
        model.write_bytes(b"model")

        result = cli.validate_file(str(model))

        assert result.success is True
        assert result.data.etabs_installed is True
        assert result.data.etabs_version == "22.0.0"
        assert result.data.file_valid is True
        assert result.data.file_extension == ".edb"
        assert result.data.validation_messages == ["Checked file"]

    def test_command_line(self, cli, cli_runner, cli_executable):
        cli.validate_file("C:/models/a.edb")
        assert cli_runner.calls[-1] == [str(cli_executable), "validate", "--file", "C:/models/a.edb"]

    def test_reported_failure_is_returned(self, cli, cli_runner):
        cli_runner.failing.add("validate")
        result = cli.validate_file("a.edb")
        assert result.success is False
        assert result.error == "validate failed"


class TestInvocationFailures:
    """Tests for process-level failures."""

    def test_not_installed(self, tmp_path, cli_runner):
        cli = EtabsCli(str(tmp_path / "missing"), runner=cli_runner)
        assert cli.is_available() is False
        assert cli.version() is None
        with pytest.raises(ToolUnavailableError):
            cli.validate_file("a.edb")
        assert cli_runner.calls == []

    def test_timeout(self, cli, cli_runner):
        cli_runner.timeout = True
        with pytest.raises(CommandFailedError, match="timed out"):
            cli.generate_e2k("a.edb", "a.e2k", overwrite=False)

    def test_unreadable_output(self, cli, cli_runner):
        cli_runner.stdout_override = "ETABS crashed"
        with pytest.raises(CommandFailedError, match="unreadable"):
            cli.save_model("a.edb")

    def test_empty_output(self, cli, cli_runner):
        cli_runner.stdout_override = ""
        with pytest.raises(CommandFailedError, match="no output"):
            cli.save_model("a.edb")
