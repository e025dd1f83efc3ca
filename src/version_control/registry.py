"""
Registry of open projects.

Projects are addressed by path on every call; the registry maps each
resolved project root to its engine so that all callers of one project
share its lock and its ETABS bridge.
"""

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from src.etabs_bridge import EtabsBridge
from .engine import Clock, VersionControlEngine

logger = logging.getLogger(__name__)

BridgeFactory = Callable[[], Optional[EtabsBridge]]


class ProjectRegistry:
    """
    Engines keyed by project root.

    Args:
        bridge_factory: Builds the ETABS bridge for each newly opened project
        working_file_name: Working file name for newly created projects
        clock: Source of timestamps passed to every engine
    """

    def __init__(
        self,
        bridge_factory: Optional[BridgeFactory] = None,
        working_file_name: str = "model.edb",
        clock: Optional[Clock] = None,
    ):
        self._bridge_factory = bridge_factory or (lambda: None)
        self.working_file_name = working_file_name
        self._clock = clock
        self._engines: dict[str, VersionControlEngine] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(path: Path) -> str:
        return str(Path(path).expanduser().resolve())

    def create(
        self,
        path: Path,
        project_name: str,
        initial_file: Optional[Path] = None,
    ) -> VersionControlEngine:
        """
        Create a project and register its engine.

        Raises:
            InvalidNameError, DuplicateNameError, NotFoundError, IOFailureError
        """
        key = self._key(path)
        with self._lock:
            engine = VersionControlEngine.create(
                Path(key),
                project_name,
                initial_file=initial_file,
                working_file_name=self.working_file_name,
                bridge=self._bridge_factory(),
                clock=self._clock,
            )
            self._engines[key] = engine
        return engine

    def get(self, path: Path) -> VersionControlEngine:
        """
        Engine for a project, opening it on first use.

        Raises:
            NotFoundError: If no project exists at path
        """
        key = self._key(path)
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = VersionControlEngine.open(
                    Path(key),
                    bridge=self._bridge_factory(),
                    clock=self._clock,
                )
                self._engines[key] = engine
            return engine

    def forget(self, path: Path) -> None:
        """Drop a cached engine; the next call re-reads the manifest."""
        with self._lock:
            self._engines.pop(self._key(path), None)

    def __len__(self) -> int:
        return len(self._engines)
