"""
Durable storage for version snapshots and working files.

Directory layout under a project root:

    branches/<branch>/snapshots/<sha256>      immutable version content
    branches/<branch>/working/<file name>     the single mutable working file
    branches/<branch>/views/<version>/<file>  read-only copies opened in ETABS
    branches/<branch>/.staging/               scratch space for exports

Every branch owns its subtree exclusively. Nothing is cached in memory: the
filesystem is the durability boundary.
"""

import hashlib
import logging
import shutil
from pathlib import Path

from src.core.errors import IOFailureError, NotFoundError
from .atomic import atomic_write_bytes
from .models import SnapshotRef, WorkingFileStat

logger = logging.getLogger(__name__)

BRANCHES_DIR = "branches"
SNAPSHOTS_DIR = "snapshots"
WORKING_DIR = "working"
VIEWS_DIR = "views"
STAGING_DIR = ".staging"


def compute_digest(data: bytes) -> str:
    """SHA-256 hex digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def file_digest(path: Path, chunk_size: int = 1024 * 1024) -> str:
    """
    SHA-256 hex digest of a file, read in chunks.

    Raises:
        IOFailureError: If the file cannot be read
    """
    hasher = hashlib.sha256()
    try:
        with path.open("rb") as handle:
            for chunk in iter(lambda: handle.read(chunk_size), b""):
                hasher.update(chunk)
    except OSError as e:
        raise IOFailureError(f"Failed to read {path}: {e}") from e
    return hasher.hexdigest()


class ContentStore:
    """
    Content-addressed snapshot storage plus one working file per branch.

    Args:
        root: Project root directory
        working_file_name: File name used for every branch's working file
    """

    def __init__(self, root: Path, working_file_name: str = "model.edb"):
        self.root = Path(root)
        self.working_file_name = working_file_name

    # --- Paths ---

    def branch_dir(self, branch: str) -> Path:
        return self.root / BRANCHES_DIR / branch

    def _snapshot_path(self, ref: SnapshotRef) -> Path:
        return self.branch_dir(ref.branch) / SNAPSHOTS_DIR / ref.digest

    def working_file_path(self, branch: str) -> Path:
        return self.branch_dir(branch) / WORKING_DIR / self.working_file_name

    def staging_dir(self, branch: str) -> Path:
        path = self.branch_dir(branch) / STAGING_DIR
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise IOFailureError(f"Failed to create staging area {path}: {e}") from e
        return path

    # --- Snapshots ---

    def put_snapshot(self, branch: str, data: bytes) -> SnapshotRef:
        """
        Store immutable content for a branch.

        Idempotent: identical bytes on the same branch return the same
        reference and are not written a second time.

        Args:
            branch: Owning branch
            data: Content to store

        Returns:
            Reference to the stored snapshot

        Raises:
            IOFailureError: If the write fails
        """
        ref = SnapshotRef(branch=branch, digest=compute_digest(data), size_bytes=len(data))
        path = self._snapshot_path(ref)
        try:
            if path.is_file() and path.stat().st_size == ref.size_bytes:
                return ref
        except OSError as e:
            raise IOFailureError(f"Failed to inspect {path}: {e}") from e

        atomic_write_bytes(path, data)
        logger.debug("Stored snapshot | ref=%s size=%d", ref.key, ref.size_bytes)
        return ref

    def has_snapshot(self, ref: SnapshotRef) -> bool:
        return self._snapshot_path(ref).is_file()

    def get_snapshot(self, ref: SnapshotRef) -> bytes:
        """
        Read snapshot content.

        Raises:
            NotFoundError: If the reference is unknown
            IOFailureError: If the content cannot be read or fails its digest check
        """
        path = self._snapshot_path(ref)
        if not path.is_file():
            raise NotFoundError(f"Snapshot not found: {ref.key}")
        try:
            data = path.read_bytes()
        except OSError as e:
            raise IOFailureError(f"Failed to read snapshot {ref.key}: {e}") from e
        if compute_digest(data) != ref.digest:
            raise IOFailureError(f"Snapshot {ref.key} is corrupt (digest mismatch)")
        return data

    # --- Working files ---

    def write_working_file(self, branch: str, data: bytes) -> WorkingFileStat:
        """Replace a branch's working file and return its new on-disk state."""
        path = self.working_file_path(branch)
        atomic_write_bytes(path, data)
        return self.stat_working_file(branch)

    def read_working_file(self, branch: str) -> bytes:
        """
        Read a branch's working file.

        Raises:
            NotFoundError: If the branch has no working file
            IOFailureError: If the file cannot be read
        """
        path = self.working_file_path(branch)
        if not path.is_file():
            raise NotFoundError(f"Working file not found for branch '{branch}'")
        try:
            return path.read_bytes()
        except OSError as e:
            raise IOFailureError(f"Failed to read working file {path}: {e}") from e

    def stat_working_file(self, branch: str) -> WorkingFileStat:
        path = self.working_file_path(branch)
        try:
            stat = path.stat()
        except FileNotFoundError:
            return WorkingFileStat(path=str(path), exists=False)
        except OSError as e:
            raise IOFailureError(f"Failed to inspect working file {path}: {e}") from e
        return WorkingFileStat(
            path=str(path),
            exists=True,
            size_bytes=stat.st_size,
            mtime_ns=stat.st_mtime_ns,
        )

    def working_file_digest(self, branch: str) -> str:
        return file_digest(self.working_file_path(branch))

    # --- Read-only views ---

    def materialize_view(self, ref: SnapshotRef, version_id: str) -> Path:
        """
        Write a read-only copy of a snapshot that an external tool may open.

        The copy lives in the owning branch's subtree and is rewritten from the
        snapshot each time, so edits made to it never reach version storage.
        """
        data = self.get_snapshot(ref)
        path = self.branch_dir(ref.branch) / VIEWS_DIR / version_id / self.working_file_name
        if path.exists():
            try:
                path.chmod(0o644)
            except OSError as e:
                raise IOFailureError(f"Failed to unlock view {path}: {e}") from e
        atomic_write_bytes(path, data)
        try:
            path.chmod(0o444)
        except OSError as e:
            raise IOFailureError(f"Failed to protect view {path}: {e}") from e
        return path

    # --- Branch lifecycle ---

    def branch_storage_size(self, branch: str) -> int:
        """Total bytes stored under a branch's subtree."""
        base = self.branch_dir(branch)
        if not base.exists():
            return 0
        try:
            return sum(p.stat().st_size for p in base.rglob("*") if p.is_file())
        except OSError as e:
            raise IOFailureError(f"Failed to measure {base}: {e}") from e

    def delete_branch_storage(self, branch: str) -> int:
        """
        Remove every snapshot, view and the working file of a branch.

        Branch subtrees are never shared, so removal cannot affect another
        branch.

        Returns:
            Number of bytes freed
        """
        base = self.branch_dir(branch)
        if not base.exists():
            return 0
        freed = self.branch_storage_size(branch)
        try:
            for view in (base / VIEWS_DIR).rglob("*"):
                if view.is_file():
                    view.chmod(0o644)
            shutil.rmtree(base)
        except OSError as e:
            raise IOFailureError(f"Failed to delete storage for branch '{branch}': {e}") from e
        logger.debug("Deleted branch storage | branch=%s freed=%d", branch, freed)
        return freed
