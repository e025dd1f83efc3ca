"""
Lifecycle management for a single ETABS process.

The bridge tracks at most one process it launched itself. Status is polled:
callers must not assume it stays true beyond the moment of the call. The
bridge is advisory and never decides what happens to version storage.
"""

import logging
import subprocess
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from src.core.errors import (
    AlreadyRunningError,
    CommandFailedError,
    LaunchFailedError,
    NotFoundError,
    NotRunningError,
    OutputExistsError,
    SourceInvalidError,
    ToolUnavailableError,
)
from .cli import EtabsCli
from .models import (
    CliInfo,
    CliResult,
    CloseResult,
    EtabsStatus,
    ExportResult,
    OpenResult,
    ValidationData,
)

logger = logging.getLogger(__name__)

Launcher = Callable[[list[str]], subprocess.Popen]

# Design files ETABS can export from
EDB_EXTENSIONS = {".edb"}
E2K_EXTENSION = ".e2k"


class EtabsBridge:
    """
    Launches, polls and closes ETABS; generates E2K exports via the sidecar.

    Args:
        executable: Path of the ETABS program (None if not installed)
        cli: Sidecar CLI wrapper (None if not installed)
        launcher: Callable with the signature of ``subprocess.Popen``
        close_timeout_seconds: Grace period after terminate before kill
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        cli: Optional[EtabsCli] = None,
        launcher: Optional[Launcher] = None,
        close_timeout_seconds: float = 30.0,
    ):
        self.executable = executable
        self.cli = cli
        self.close_timeout_seconds = close_timeout_seconds
        self._launcher = launcher or subprocess.Popen
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._open_path: Optional[str] = None

    # --- Process lifecycle ---

    def _alive(self) -> bool:
        """Poll the tracked process; forget it once it has exited."""
        if self._process is None:
            return False
        if self._process.poll() is None:
            return True
        logger.info(
            "ETABS process exited | pid=%s returncode=%s",
            self._process.pid,
            self._process.returncode,
        )
        self._process = None
        self._open_path = None
        return False

    def status(self) -> EtabsStatus:
        """Poll the tracked process."""
        with self._lock:
            if not self._alive():
                return EtabsStatus(is_running=False)
            return EtabsStatus(
                is_running=True,
                open_file_path=self._open_path,
                process_id=self._process.pid,
                can_save=self._open_path is not None and self.cli is not None,
            )

    def is_running(self) -> bool:
        with self._lock:
            return self._alive()

    def is_open(self, path: Path) -> bool:
        """Whether the tracked process was launched on ``path``."""
        with self._lock:
            if not self._alive() or self._open_path is None:
                return False
            return Path(self._open_path).resolve() == Path(path).resolve()

    def open(self, path: Path) -> OpenResult:
        """
        Launch ETABS on a file.

        Raises:
            ToolUnavailableError: If ETABS is not installed
            NotFoundError: If the file does not exist
            AlreadyRunningError: If a tracked instance is still running
            LaunchFailedError: If the process cannot be started
        """
        if not self.executable or not Path(self.executable).is_file():
            raise ToolUnavailableError(
                f"ETABS executable not found: {self.executable or '(not configured)'}"
            )
        path = Path(path)
        if not path.is_file():
            raise NotFoundError(f"File not found: {path}")

        with self._lock:
            if self._alive():
                raise AlreadyRunningError(
                    f"ETABS is already running (pid {self._process.pid}) "
                    f"with {self._open_path}; close it first"
                )
            try:
                process = self._launcher([self.executable, str(path)])
            except (OSError, ValueError) as e:
                raise LaunchFailedError(f"Failed to start ETABS: {e}") from e

            returncode = process.poll()
            if returncode is not None:
                raise LaunchFailedError(f"ETABS exited immediately with code {returncode}")

            self._process = process
            self._open_path = str(path)

        logger.info("Opened ETABS | pid=%s file=%s", process.pid, path)
        return OpenResult(opened=True, file_path=str(path), process_id=process.pid)

    def close(self, save_changes: bool = False) -> CloseResult:
        """
        Close the tracked ETABS process.

        With ``save_changes=False`` this is the abort mechanism for a running
        tool: the process is terminated without saving.

        Raises:
            NotRunningError: If no instance is tracked
            ToolUnavailableError: If a save is requested but the CLI is missing
            CommandFailedError: If the save fails (the process is left running), or
                the process survives being killed (it is no longer tracked)
        """
        with self._lock:
            if not self._alive():
                raise NotRunningError("ETABS is not running")

            changes_saved = False
            if save_changes:
                if self.cli is None:
                    raise ToolUnavailableError("ETABS CLI is required to save before closing")
                result = self.cli.save_model(self._open_path)
                if not result.success:
                    raise CommandFailedError(
                        f"Saving before close failed: {result.error or 'unknown error'}"
                    )
                changes_saved = True

            process = self._process
            self._process = None
            self._open_path = None
            process.terminate()
            try:
                process.wait(timeout=self.close_timeout_seconds)
            except subprocess.TimeoutExpired:
                logger.warning("ETABS did not exit, killing | pid=%s", process.pid)
                process.kill()
                try:
                    process.wait(timeout=self.close_timeout_seconds)
                except subprocess.TimeoutExpired as e:
                    raise CommandFailedError(
                        f"ETABS (pid {process.pid}) did not exit after being killed"
                    ) from e

        logger.info("Closed ETABS | pid=%s saved=%s", process.pid, changes_saved)
        return CloseResult(closed=True, changes_saved=changes_saved)

    # --- Sidecar commands ---

    def _require_cli(self) -> EtabsCli:
        if self.cli is None or not self.cli.is_available():
            raise ToolUnavailableError("ETABS CLI is not installed")
        return self.cli

    def export_e2k(
        self,
        input_path: Path,
        output_path: Optional[Path] = None,
        overwrite: bool = False,
    ) -> ExportResult:
        """
        Generate an E2K text export from an ETABS design file.

        Args:
            input_path: Source .edb file
            output_path: Target .e2k path (defaults to the input with .e2k suffix)
            overwrite: Replace an existing output file

        Returns:
            ExportResult with the output path, size, duration and message log

        Raises:
            SourceInvalidError: If the input is missing or not an ETABS design file
            OutputExistsError: If the output exists and overwrite is False
            ToolUnavailableError: If the CLI is not installed
            CommandFailedError: If the CLI reports failure or produces no file
        """
        input_path = Path(input_path)
        if not input_path.is_file():
            raise SourceInvalidError(f"Input file does not exist: {input_path}")
        if input_path.suffix.lower() not in EDB_EXTENSIONS:
            raise SourceInvalidError(
                f"Input must be an ETABS .edb file, got '{input_path.suffix or '(none)'}'"
            )

        output_path = Path(output_path) if output_path else input_path.with_suffix(E2K_EXTENSION)
        if output_path.exists() and not overwrite:
            raise OutputExistsError(f"Output file already exists: {output_path}")

        cli = self._require_cli()
        started = time.perf_counter()
        result = cli.generate_e2k(str(input_path), str(output_path), overwrite)
        duration_ms = int((time.perf_counter() - started) * 1000)

        if not result.success:
            raise CommandFailedError(f"E2K generation failed: {result.error or 'unknown error'}")
        if not output_path.is_file():
            raise CommandFailedError(f"E2K generation reported success but {output_path} is missing")

        messages = list(result.data.messages) if result.data else []
        size = output_path.stat().st_size
        logger.info(
            "Generated E2K | input=%s output=%s size=%d duration_ms=%d",
            input_path,
            output_path,
            size,
            duration_ms,
        )
        return ExportResult(
            output_path=str(output_path),
            size_bytes=size,
            duration_ms=duration_ms,
            messages=messages,
        )

    def validate_file(self, path: Path) -> CliResult[ValidationData]:
        """Validate an ETABS file with the sidecar."""
        return self._require_cli().validate_file(str(path))

    def cli_info(self) -> CliInfo:
        if self.cli is None or not self.cli.is_available():
            return CliInfo(available=False)
        return CliInfo(available=True, version=self.cli.version())
