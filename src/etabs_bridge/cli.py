"""
ETABS sidecar CLI wrapper.

The sidecar is a separate executable that drives ETABS through its API.
Supported commands:

    <cli> --version
    <cli> validate --file <path>
    <cli> generate-e2k --input <edb> --output <e2k> [--overwrite]
    <cli> save-model --file <path>

Each command except ``--version`` prints a JSON ``Result<T>`` on stdout.
"""

import json
import logging
import shutil
import subprocess
from pathlib import Path
from typing import Any, Callable, Optional, Type

from pydantic import ValidationError as PydanticValidationError

from src.core.errors import CommandFailedError, ToolUnavailableError
from .models import CliResult, GenerateE2KData, ValidationData

logger = logging.getLogger(__name__)

Runner = Callable[..., subprocess.CompletedProcess]


def run_subprocess(args: list[str], timeout: float) -> subprocess.CompletedProcess:
    """Default runner: capture text output, never raise on non-zero exit."""
    return subprocess.run(
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


class EtabsCli:
    """
    Invokes the sidecar CLI.

    Args:
        cli_path: Executable name (looked up on PATH) or path
        timeout_seconds: Timeout for a single command
        runner: Callable with the signature of ``run_subprocess``
    """

    def __init__(
        self,
        cli_path: str,
        timeout_seconds: float = 600.0,
        runner: Optional[Runner] = None,
    ):
        self.cli_path = cli_path
        self.timeout_seconds = timeout_seconds
        self._runner = runner or run_subprocess

    def resolve(self) -> Optional[str]:
        """Absolute executable path, or None if the CLI is not installed."""
        found = shutil.which(self.cli_path)
        if found:
            return found
        candidate = Path(self.cli_path)
        if candidate.is_file():
            return str(candidate)
        return None

    def is_available(self) -> bool:
        return self.resolve() is not None

    def version(self) -> Optional[str]:
        """Sidecar version string, or None if unavailable."""
        if not self.is_available():
            return None
        completed = self._invoke(["--version"])
        if completed.returncode != 0:
            return None
        return completed.stdout.strip() or None

    def validate_file(self, path: str) -> CliResult[ValidationData]:
        """Run ``validate`` on an ETABS file."""
        completed = self._invoke(["validate", "--file", path])
        return self._parse(completed, CliResult[ValidationData], "validate")

    def generate_e2k(
        self,
        input_path: str,
        output_path: str,
        overwrite: bool,
    ) -> CliResult[GenerateE2KData]:
        """Run ``generate-e2k``."""
        args = ["generate-e2k", "--input", input_path, "--output", output_path]
        if overwrite:
            args.append("--overwrite")
        completed = self._invoke(args)
        return self._parse(completed, CliResult[GenerateE2KData], "generate-e2k")

    def save_model(self, path: str) -> CliResult[dict[str, Any]]:
        """Ask the running ETABS instance to save the model at ``path``."""
        completed = self._invoke(["save-model", "--file", path])
        return self._parse(completed, CliResult[dict[str, Any]], "save-model")

    def _invoke(self, args: list[str]) -> subprocess.CompletedProcess:
        executable = self.resolve()
        if executable is None:
            raise ToolUnavailableError(f"ETABS CLI not found: {self.cli_path}")

        command = [executable, *args]
        logger.info("Running ETABS CLI | command=%s", args[0])
        try:
            return self._runner(command, timeout=self.timeout_seconds)
        except subprocess.TimeoutExpired as e:
            raise CommandFailedError(
                f"ETABS CLI '{args[0]}' timed out after {self.timeout_seconds:.0f}s"
            ) from e
        except OSError as e:
            raise ToolUnavailableError(f"ETABS CLI could not be started: {e}") from e

    @staticmethod
    def _parse(
        completed: subprocess.CompletedProcess,
        model: Type[CliResult],
        command: str,
    ) -> CliResult:
        stdout = (completed.stdout or "").strip()
        if not stdout:
            stderr = (completed.stderr or "").strip()
            raise CommandFailedError(
                f"ETABS CLI '{command}' produced no output "
                f"(exit code {completed.returncode}){': ' + stderr if stderr else ''}"
            )
        try:
            return model.model_validate_json(stdout)
        except (PydanticValidationError, json.JSONDecodeError) as e:
            logger.error("Unreadable CLI output | command=%s error=%s", command, e)
            raise CommandFailedError(f"ETABS CLI '{command}' returned unreadable output") from e
