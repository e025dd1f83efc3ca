"""Pytest configuration and fixtures."""

import json
import shutil
import subprocess
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from app.dependencies import get_registry, get_tool_bridge
from app.main import app
from src.etabs_bridge import EtabsBridge, EtabsCli
from src.version_control import ProjectRegistry, VersionControlEngine


BASE_E2K = """\
$ File C:\\Models\\tower.e2k saved 10/19/2026 09:00:00

$ PROGRAM INFORMATION
  PROGRAM  "ETABS"  VERSION "22.0.0"

$ CONTROLS
  UNITS  "KIP"  "IN"  "F"

$ STORIES - IN SEQUENCE FROM TOP
  STORY "STORY2"  HEIGHT 144
  STORY "STORY1"  HEIGHT 144
  STORY "BASE"  ELEV 0

$ MATERIAL PROPERTIES
  MATERIAL  "A992Fy50"  TYPE "Steel"  WEIGHTPERVOLUME 0.000283
  MATERIAL  "A992Fy50"  SYMTYPE "Isotropic"  E 29000  U 0.3
  MATERIAL  "4000Psi"  TYPE "Concrete"  FC 4

$ FRAME SECTIONS
  FRAMESECTION  "COL1"  MATERIAL "A992Fy50"  SHAPE "W14X90"
  FRAMESECTION  "BM1"  MATERIAL "A992Fy50"  SHAPE "W18X35"

$ SLAB PROPERTIES
  SHELLPROP  "SLAB1"  PROPTYPE  "Slab"  MATERIAL "4000Psi"  THICKNESS 8

$ POINT COORDINATES
  POINT "1"  0  0
  POINT "2"  360  0
  POINT "3"  360  360
  POINT "4"  0  360

$ LINE CONNECTIVITIES
  LINE  "C1"  COLUMN  "1"  "1"  1
  LINE  "C2"  COLUMN  "2"  "2"  1
  LINE  "B1"  BEAM  "1"  "2"  0

$ AREA CONNECTIVITIES
  AREA "F1"  FLOOR  4  "1"  "2"  "3"  "4"  0  0  0  0

$ LINE ASSIGNS
  LINEASSIGN  "C1"  "STORY1"  SECTION "COL1"
  LINEASSIGN  "C2"  "STORY1"  SECTION "COL1"
  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"

$ AREA ASSIGNS
  AREAASSIGN  "F1"  "STORY1"  SECTION "SLAB1"

$ LOAD PATTERNS
  LOADPATTERN "DEAD"  TYPE  "Dead"  SELFWEIGHT  1

$ ANALYSIS OPTIONS
  ACTIVEDOF "UX UY UZ RX RY RZ"

$ STEEL DESIGN PREFERENCES
  STEELPREFERENCE  CODE "AISC 360-16"

$ END OF MODEL FILE
"""


# --- Fake ETABS process ---

class FakeProcess:
    """Stands in for the ``subprocess.Popen`` object of a running ETABS."""

    _next_pid = 4100

    def __init__(self, args, exit_code=None, hang_on_terminate=False):
        FakeProcess._next_pid += 1
        self.args = args
        self.pid = FakeProcess._next_pid
        self.returncode = exit_code
        self.hang_on_terminate = hang_on_terminate
        self.terminated = False
        self.killed = False

    def poll(self):
        return self.returncode

    def terminate(self):
        self.terminated = True
        if not self.hang_on_terminate:
            self.returncode = 0

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.args, timeout)
        return self.returncode

    def kill(self):
        self.killed = True
        self.returncode = -9

    def exit(self, code=0):
        """The user closed ETABS."""
        self.returncode = code


class FakeLauncher:
    """Callable with the signature of ``subprocess.Popen``."""

    def __init__(self):
        self.processes: list[FakeProcess] = []
        self.error = None
        self.exit_immediately = None
        self.hang_on_terminate = False

    def __call__(self, args):
        if self.error is not None:
            raise self.error
        process = FakeProcess(
            args,
            exit_code=self.exit_immediately,
            hang_on_terminate=self.hang_on_terminate,
        )
        self.processes.append(process)
        return process

    @property
    def last(self) -> FakeProcess:
        return self.processes[-1]


# --- Fake sidecar CLI ---

class FakeCliRunner:
    """
    Callable with the signature of ``run_subprocess``.

    ``generate-e2k`` copies the input file to the output, so design files
    used in tests are themselves E2K text.
    """

    def __init__(self):
        self.calls: list[list[str]] = []
        self.failing: set[str] = set()
        self.stdout_override = None
        self.timeout = False

    def __call__(self, command, timeout):
        self.calls.append(command)
        args = command[1:]
        name = args[0]
        if self.timeout:
            raise subprocess.TimeoutExpired(command, timeout)
        if self.stdout_override is not None:
            return subprocess.CompletedProcess(command, 1, stdout=self.stdout_override, stderr="boom")
        if name == "--version":
            return subprocess.CompletedProcess(command, 0, stdout="etabs-cli 1.2.0\n", stderr="")

        if name in self.failing:
            payload = {"success": False, "error": f"{name} failed", "timestamp": "2026-10-19T09:00:00Z"}
        elif name == "generate-e2k":
            source = args[args.index("--input") + 1]
            target = args[args.index("--output") + 1]
            shutil.copyfile(source, target)
            payload = {
                "success": True,
                "timestamp": "2026-10-19T09:00:00Z",
                "data": {
                    "inputFile": source,
                    "outputFile": target,
                    "fileExists": True,
                    "fileExtension": ".edb",
                    "outputExists": True,
                    "generationSuccessful": True,
                    "fileSizeBytes": Path(target).stat().st_size,
                    "generationTimeMs": 12,
                    "messages": ["Opening model", "Exporting E2K", "Export complete"],
                },
            }
        elif name == "validate":
            path = Path(args[args.index("--file") + 1])
            payload = {
                "success": True,
                "timestamp": "2026-10-19T09:00:00Z",
                "data": {
                    "etabsInstalled": True,
                    "etabsVersion": "22.0.0",
                    "fileValid": path.is_file() and path.suffix == ".edb",
                    "filePath": str(path),
                    "fileExists": path.is_file(),
                    "fileExtension": path.suffix,
                    "isAnalyzed": False,
                    "validationMessages": ["Checked file"],
                },
            }
        else:
            payload = {"success": True, "timestamp": "2026-10-19T09:00:00Z", "data": {"saved": True}}

        return subprocess.CompletedProcess(command, 0, stdout=json.dumps(payload), stderr="")

    def commands(self) -> list[str]:
        return [call[1] for call in self.calls]


# --- Fixtures ---

@pytest.fixture
def base_e2k() -> str:
    return BASE_E2K


@pytest.fixture
def launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def cli_runner() -> FakeCliRunner:
    return FakeCliRunner()


@pytest.fixture
def tool_dir(tmp_path) -> Path:
    path = tmp_path / "tools"
    path.mkdir()
    return path


@pytest.fixture
def etabs_executable(tool_dir) -> Path:
    path = tool_dir / "ETABS.exe"
    path.write_bytes(b"")
    return path


@pytest.fixture
def cli_executable(tool_dir) -> Path:
    path = tool_dir / "etabs-cli"
    path.write_bytes(b"")
    return path


@pytest.fixture
def bridge_factory(etabs_executable, cli_executable, launcher, cli_runner):
    """Builds bridges wired to the fake process launcher and CLI runner."""

    def factory() -> EtabsBridge:
        return EtabsBridge(
            executable=str(etabs_executable),
            cli=EtabsCli(str(cli_executable), timeout_seconds=5, runner=cli_runner),
            launcher=launcher,
            close_timeout_seconds=1,
        )

    return factory


@pytest.fixture
def bridge(bridge_factory) -> EtabsBridge:
    return bridge_factory()


@pytest.fixture
def design_file(tmp_path, base_e2k) -> Path:
    """A design file to seed projects with."""
    path = tmp_path / "incoming" / "tower.edb"
    path.parent.mkdir()
    path.write_text(base_e2k, encoding="utf-8")
    return path


@pytest.fixture
def engine(tmp_path, design_file, bridge) -> VersionControlEngine:
    """Project whose main working file holds the base model (no versions yet)."""
    return VersionControlEngine.create(
        tmp_path / "project",
        "Tower A",
        initial_file=design_file,
        bridge=bridge,
    )


@pytest.fixture
def registry(bridge_factory) -> ProjectRegistry:
    return ProjectRegistry(bridge_factory=bridge_factory)


@pytest.fixture
async def client(registry, bridge):
    """Async test client fixture with the fake ETABS tooling wired in."""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_tool_bridge] = lambda: bridge
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def api_project(client, tmp_path, design_file) -> str:
    """Project created through the API with main/v1 saved (with an E2K export)."""
    path = str(tmp_path / "api-project")
    await client.post(
        "/projects",
        json={"project_path": path, "project_name": "Tower A", "initial_edb_file": str(design_file)},
    )
    await client.post(
        "/versions",
        json={
            "project_path": path,
            "branch_name": "main",
            "message": "Initial design",
            "generate_e2k": True,
        },
    )
    return path


@pytest.fixture
def working_path():
    """Locates a branch's working file in a project created with default settings."""

    def locate(project_path: str, branch: str) -> Path:
        return Path(project_path) / "branches" / branch / "working" / "model.edb"

    return locate
