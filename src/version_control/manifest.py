"""
Project manifest persistence.

The manifest is the serialized ``ProjectState``. It is rewritten in full,
atomically, on every mutation.
"""

import logging
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from src.branch_graph.models import ProjectState
from src.content_store.atomic import atomic_write_text
from src.core.errors import IOFailureError, NotFoundError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "etabs-project.json"


class ManifestStore:
    """
    Reads and writes ``<project root>/etabs-project.json``.

    Args:
        root: Project root directory
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.path = self.root / MANIFEST_FILENAME

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self) -> ProjectState:
        """
        Load the project state.

        Raises:
            NotFoundError: If the directory holds no project
            IOFailureError: If the manifest cannot be read or is corrupt
        """
        if not self.path.is_file():
            raise NotFoundError(f"No project found at {self.root}")
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            raise IOFailureError(f"Failed to read manifest {self.path}: {e}") from e
        except UnicodeDecodeError as e:
            raise IOFailureError(f"Project manifest is corrupt (not UTF-8): {self.path}") from e
        try:
            return ProjectState.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.error("Corrupt manifest | path=%s errors=%d", self.path, e.error_count())
            raise IOFailureError(f"Project manifest is corrupt: {self.path}") from e

    def save(self, state: ProjectState) -> None:
        """
        Atomically replace the manifest.

        Raises:
            IOFailureError: If the write fails (the previous manifest is kept)
        """
        atomic_write_text(self.path, state.model_dump_json(indent=2))
