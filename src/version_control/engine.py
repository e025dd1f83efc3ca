"""
Version Control Engine

Transactional surface over the branch graph and the content store. Every
public operation either fully succeeds (content written, manifest replaced)
or fails leaving the previous project state untouched.

Mutations run against a deep copy of the project state. Content is written
first; the manifest is written last; the in-memory state is swapped only
after the manifest write succeeded. A failure in between can leave an
orphan snapshot on disk but never a version that points at missing content.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional

from src.branch_graph import (
    MAIN_BRANCH,
    AnalysisResults,
    BranchGraph,
    BranchInfo,
    ProjectState,
    VersionInfo,
    WorkingFileInfo,
    validate_branch_name,
)
from src.content_store import ContentStore, SnapshotRef, WorkingFileStat, compute_digest
from src.core.errors import (
    AlreadyRunningError,
    DuplicateNameError,
    EmptyMessageError,
    EtabsVcError,
    HasUncommittedChangesError,
    IOFailureError,
    InvalidNameError,
    NoWorkingFileError,
    NotFoundError,
    NotRunningError,
    ToolUnavailableError,
)
from src.diff_engine import diff_e2k, diff_geometry
from src.etabs_bridge import CloseResult, EtabsBridge, EtabsStatus
from .manifest import ManifestStore
from .models import (
    BranchListResult,
    CheckoutResult,
    CompareResult,
    DeleteBranchResult,
    DiffType,
    OpenInEtabsResult,
    SaveVersionResult,
    SwitchBranchResult,
    VersionListResult,
    VersionRef,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VersionControlEngine:
    """
    Versioned-branch store for one ETABS project.

    All operations on one project are serialized by a per-project lock.
    Diffing runs outside the lock on snapshot bytes loaded under it.

    Args:
        root: Project root directory
        state: Loaded project state
        bridge: ETABS bridge for this project (None disables ETABS features)
        clock: Source of timestamps
    """

    def __init__(
        self,
        root: Path,
        state: ProjectState,
        bridge: Optional[EtabsBridge] = None,
        clock: Optional[Clock] = None,
    ):
        self.root = Path(root)
        self.manifest = ManifestStore(self.root)
        self.store = ContentStore(self.root, state.working_file_name)
        self.bridge = bridge
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._state = state
        self._state.project_path = str(self.root)

    # --- Lifecycle ---

    @classmethod
    def create(
        cls,
        root: Path,
        project_name: str,
        initial_file: Optional[Path] = None,
        working_file_name: str = "model.edb",
        bridge: Optional[EtabsBridge] = None,
        clock: Optional[Clock] = None,
    ) -> "VersionControlEngine":
        """
        Create a new project with a single ``main`` branch.

        Args:
            root: Project root directory (created if missing)
            project_name: Display name
            initial_file: Optional design file that seeds main's working file
            working_file_name: File name of each branch's working file
            bridge: ETABS bridge for the project
            clock: Source of timestamps

        Returns:
            Engine bound to the new project

        Raises:
            InvalidNameError: If the project name is blank
            DuplicateNameError: If a project already exists at root
            NotFoundError: If initial_file does not exist
            IOFailureError: If the project cannot be written
        """
        name = (project_name or "").strip()
        if not name:
            raise InvalidNameError("Project name is required and cannot be empty")

        root = Path(root).absolute()
        manifest = ManifestStore(root)
        if manifest.exists():
            raise DuplicateNameError(f"A project already exists at {root}")

        seed: Optional[bytes] = None
        if initial_file is not None:
            initial_file = Path(initial_file)
            if not initial_file.is_file():
                raise NotFoundError(f"Initial design file not found: {initial_file}")
            try:
                seed = initial_file.read_bytes()
            except OSError as e:
                raise IOFailureError(f"Failed to read {initial_file}: {e}") from e

        now = (clock or utc_now)()
        store = ContentStore(root, working_file_name)
        main = BranchInfo(
            name=MAIN_BRANCH,
            created=now,
            working_file=WorkingFileInfo(
                exists=False,
                path=str(store.working_file_path(MAIN_BRANCH)),
            ),
        )
        state = ProjectState(
            project_name=name,
            project_path=str(root),
            created=now,
            last_modified=now,
            working_file_name=working_file_name,
            branches={MAIN_BRANCH: main},
        )

        try:
            if seed is not None:
                stat = store.write_working_file(MAIN_BRANCH, seed)
                _set_baseline(main.working_file, stat, compute_digest(seed), source_version=None)
            manifest.save(state)
        except EtabsVcError:
            _discard_storage(store, MAIN_BRANCH)
            raise

        logger.info(
            "Created project | path=%s name=%s seeded=%s",
            root,
            name,
            seed is not None,
        )
        return cls(root, state, bridge=bridge, clock=clock)

    @classmethod
    def open(
        cls,
        root: Path,
        bridge: Optional[EtabsBridge] = None,
        clock: Optional[Clock] = None,
    ) -> "VersionControlEngine":
        """
        Open an existing project.

        Raises:
            NotFoundError: If no project exists at root
            IOFailureError: If the manifest is unreadable
        """
        root = Path(root).absolute()
        state = ManifestStore(root).load()
        logger.info("Opened project | path=%s branches=%d", root, len(state.branches))
        return cls(root, state, bridge=bridge, clock=clock)

    @contextmanager
    def _transaction(self) -> Iterator[ProjectState]:
        """
        Stage a copy of the state; persist and adopt it if the block succeeds.

        Raising inside the block discards the copy.
        """
        with self._lock:
            staged = self._state.model_copy(deep=True)
            yield staged
            staged.last_modified = self._clock()
            self.manifest.save(staged)
            self._state = staged

    # --- Working-file tracking ---

    def _refresh_working_file(self, branch: BranchInfo) -> WorkingFileInfo:
        """Re-derive a branch's working-file flags from disk."""
        stat = self.store.stat_working_file(branch.name)
        info = branch.working_file or WorkingFileInfo(exists=False, path=stat.path)
        info.path = stat.path
        info.exists = stat.exists
        if stat.exists:
            info.last_modified = datetime.fromtimestamp(stat.mtime_ns / 1e9, tz=timezone.utc)
            info.has_unsaved_changes = self._is_dirty(branch.name, info, stat)
        else:
            info.last_modified = None
            info.has_unsaved_changes = False
        info.is_open = self.bridge.is_open(Path(stat.path)) if self.bridge else False
        branch.working_file = info
        return info

    def _is_dirty(self, branch_name: str, info: WorkingFileInfo, stat: WorkingFileStat) -> bool:
        if info.baseline_digest is None:
            return True
        if stat.size_bytes != info.baseline_size:
            return True
        if stat.mtime_ns == info.baseline_mtime_ns:
            return False
        return self.store.working_file_digest(branch_name) != info.baseline_digest

    def _refresh_all(self, state: ProjectState) -> None:
        for branch in state.branches.values():
            self._refresh_working_file(branch)

    # --- Queries ---

    def get_state(self) -> ProjectState:
        """Current project state with working-file flags refreshed from disk."""
        with self._lock:
            self._refresh_all(self._state)
            return self._state.model_copy(deep=True)

    def list_branches(self) -> BranchListResult:
        with self._lock:
            self._refresh_all(self._state)
            branches = [b.model_copy(deep=True) for b in self._state.branches.values()]
            return BranchListResult(branches=branches, current_branch=self._state.current_branch)

    def list_versions(self, branch_name: str) -> VersionListResult:
        """
        Versions of a branch, newest first.

        Raises:
            NotFoundError: If the branch does not exist
        """
        with self._lock:
            branch = BranchGraph(self._state).get_branch(branch_name)
            working = self._refresh_working_file(branch)
            return VersionListResult(
                branch=branch.name,
                versions=[v.model_copy(deep=True) for v in branch.versions_newest_first()],
                working_file=working.model_copy(),
            )

    # --- Branch operations ---

    def create_branch(
        self,
        name: str,
        from_branch: str,
        from_version: str,
        description: Optional[str] = None,
    ) -> BranchInfo:
        """
        Fork a new branch from an existing version.

        The new branch starts with no versions; its working file is a copy of
        the parent version's content, so edits never reach the parent.

        Raises:
            InvalidNameError: If the name is not acceptable
            DuplicateNameError: If the name is taken
            InvalidParentError: If from_branch/from_version doesn't resolve
            IOFailureError: If the working file cannot be written
        """
        name = validate_branch_name(name)
        seeded = False
        try:
            with self._transaction() as staged:
                graph = BranchGraph(staged)
                working = WorkingFileInfo(
                    exists=False,
                    path=str(self.store.working_file_path(name)),
                )
                branch = graph.create_branch(
                    name, from_branch, from_version, self._clock(), working, description
                )
                parent = graph.resolve_version(from_branch, from_version)
                data = self.store.get_snapshot(parent.snapshot)

                # Clear leftovers of an earlier branch with the same name
                self.store.delete_branch_storage(name)
                seeded = True
                stat = self.store.write_working_file(name, data)
                _set_baseline(branch.working_file, stat, parent.snapshot.digest, source_version=None)
        except EtabsVcError:
            if seeded:
                _discard_storage(self.store, name)
            raise

        logger.info(
            "Created branch | project=%s branch=%s from=%s/%s",
            self.root,
            name,
            from_branch,
            from_version,
        )
        return branch.model_copy(deep=True)

    def switch_branch(self, branch_name: str, close_current_file: bool = False) -> SwitchBranchResult:
        """
        Make another branch current.

        Raises:
            NotFoundError: If the branch does not exist
        """
        with self._lock:
            BranchGraph(self._state).get_branch(branch_name)

            etabs_was_closed = False
            if close_current_file and self.bridge is not None and self.bridge.is_running():
                etabs_was_closed = self._close_quietly()

            with self._transaction() as staged:
                previous = staged.current_branch
                staged.current_branch = branch_name

        logger.info(
            "Switched branch | project=%s from=%s to=%s etabs_closed=%s",
            self.root,
            previous,
            branch_name,
            etabs_was_closed,
        )
        return SwitchBranchResult(
            current_branch=branch_name,
            previous_branch=previous,
            etabs_was_closed=etabs_was_closed,
        )

    def delete_branch(self, name: str, force: bool = False) -> DeleteBranchResult:
        """
        Delete a branch with all its versions and its working file.

        A forced delete first closes ETABS (without saving) if it has a file
        of this branch open. An unforced delete is refused while the working
        file has unsaved changes or is open in ETABS.

        Raises:
            ProtectedBranchError: If name is 'main'
            NotFoundError: If the branch does not exist
            HasUncommittedChangesError: If unforced and changes could be lost
        """
        etabs_was_closed = False
        with self._lock:
            with self._transaction() as staged:
                if name in staged.branches and name != MAIN_BRANCH:
                    self._refresh_working_file(staged.branches[name])
                    if self._etabs_holds_branch(name):
                        if not force:
                            raise HasUncommittedChangesError(
                                f"Branch '{name}' is open in ETABS; close it or force the delete"
                            )
                        etabs_was_closed = self._close_quietly()
                deleted_versions = BranchGraph(staged).delete_branch(name, force=force)
                current = staged.current_branch

            try:
                freed = self.store.delete_branch_storage(name)
            except IOFailureError as e:
                logger.warning("Branch storage left behind | branch=%s error=%s", name, e.message)
                freed = 0

        logger.info(
            "Deleted branch | project=%s branch=%s versions=%d freed=%d forced=%s",
            self.root,
            name,
            len(deleted_versions),
            freed,
            force,
        )
        return DeleteBranchResult(
            deleted_branch=name,
            deleted_versions=deleted_versions,
            freed_space_bytes=freed,
            current_branch=current,
            etabs_was_closed=etabs_was_closed,
        )

    # --- Version operations ---

    def save_version(
        self,
        branch_name: str,
        message: str,
        author: Optional[str] = None,
        generate_e2k: bool = False,
    ) -> SaveVersionResult:
        """
        Store the branch's working file as a new immutable version.

        Args:
            branch_name: Branch to save on
            message: Commit message (blank after trimming is rejected)
            author: Optional author name
            generate_e2k: Also export and store an E2K text snapshot

        Returns:
            SaveVersionResult with the new version id and commit hash

        Raises:
            EmptyMessageError: If the message is blank
            NotFoundError: If the branch does not exist
            NoWorkingFileError: If the branch has no working file
            ToolUnavailableError: If an export is requested without ETABS tooling
            CommandFailedError: If the export fails
        """
        message = (message or "").strip()
        if not message:
            raise EmptyMessageError("Commit message is required and cannot be empty")
        author = author.strip() if author and author.strip() else None

        with self._transaction() as staged:
            graph = BranchGraph(staged)
            branch = graph.get_branch(branch_name)
            working = self._refresh_working_file(branch)
            if not working.exists:
                raise NoWorkingFileError(f"Branch '{branch_name}' has no working file to save")

            before = self.store.stat_working_file(branch_name)
            data = self.store.read_working_file(branch_name)
            snapshot = self.store.put_snapshot(branch_name, data)

            e2k_snapshot = self._export_e2k(branch_name) if generate_e2k else None

            version = graph.append_version(
                branch_name, snapshot, message, self._clock(), author, e2k_snapshot
            )
            _set_baseline(
                working,
                WorkingFileStat(
                    path=before.path,
                    exists=True,
                    size_bytes=len(data),
                    mtime_ns=before.mtime_ns,
                ),
                snapshot.digest,
                source_version=version.id,
            )

        logger.info(
            "Saved version | project=%s branch=%s version=%s size=%d e2k=%s",
            self.root,
            branch_name,
            version.id,
            version.file_size,
            e2k_snapshot is not None,
        )
        return SaveVersionResult(
            version_id=version.id,
            commit_hash=version.commit_hash,
            file_size=version.file_size,
            e2k_generated=e2k_snapshot is not None,
            version=version.model_copy(deep=True),
        )

    def _export_e2k(self, branch_name: str) -> SnapshotRef:
        """Export the working file to E2K in staging and store the result."""
        if self.bridge is None:
            raise ToolUnavailableError("ETABS tooling is not configured; cannot generate E2K")
        working_path = self.store.working_file_path(branch_name)
        output = self.store.staging_dir(branch_name) / f"{working_path.stem}.e2k"
        try:
            result = self.bridge.export_e2k(working_path, output, overwrite=True)
            try:
                data = Path(result.output_path).read_bytes()
            except OSError as e:
                raise IOFailureError(f"Failed to read E2K export {result.output_path}: {e}") from e
        finally:
            output.unlink(missing_ok=True)
        return self.store.put_snapshot(branch_name, data)

    def checkout_version(
        self,
        branch_name: str,
        version_id: str,
        open_in_etabs: bool = False,
    ) -> CheckoutResult:
        """
        Overwrite the branch's working file with a saved version.

        Unsaved working-file changes are discarded without confirmation.
        If opening ETABS afterwards fails, the checkout still stands and
        ``etabs_opened`` is False.

        Raises:
            NotFoundError: If the branch or version does not exist
        """
        with self._transaction() as staged:
            graph = BranchGraph(staged)
            version = graph.resolve_version(branch_name, version_id)
            data = self.store.get_snapshot(version.snapshot)
            stat = self.store.write_working_file(branch_name, data)
            branch = graph.get_branch(branch_name)
            if branch.working_file is None:
                branch.working_file = WorkingFileInfo(exists=True, path=stat.path)
            _set_baseline(branch.working_file, stat, version.snapshot.digest, source_version=version_id)

        logger.info(
            "Checked out version | project=%s branch=%s version=%s",
            self.root,
            branch_name,
            version_id,
        )

        etabs_opened = False
        if open_in_etabs:
            try:
                self._require_bridge().open(Path(stat.path))
                etabs_opened = True
            except EtabsVcError as e:
                logger.warning(
                    "Checkout done but ETABS did not open | branch=%s kind=%s error=%s",
                    branch_name,
                    e.kind,
                    e.message,
                )

        return CheckoutResult(
            branch=branch_name,
            version_id=version_id,
            working_file_path=stat.path,
            etabs_opened=etabs_opened,
        )

    def record_analysis(
        self,
        branch_name: str,
        version_id: str,
        results: AnalysisResults,
    ) -> VersionInfo:
        """
        Attach analysis results to a saved version.

        Only the analysis fields change; content references stay immutable.

        Raises:
            NotFoundError: If the branch or version does not exist
        """
        with self._transaction() as staged:
            version = BranchGraph(staged).resolve_version(branch_name, version_id)
            version.analyzed = True
            version.analysis_results = results

        logger.info(
            "Recorded analysis | project=%s branch=%s version=%s failed_members=%d",
            self.root,
            branch_name,
            version_id,
            results.failed_members,
        )
        return version.model_copy(deep=True)

    def compare_versions(
        self,
        version1: VersionRef,
        version2: VersionRef,
        diff_type: DiffType = DiffType.E2K,
    ) -> CompareResult:
        """
        Compare the E2K exports of two versions.

        Both versions may live on different branches.

        Raises:
            NotFoundError: If a version does not exist or was saved without an E2K export
            ParseError: If an export cannot be parsed
        """
        with self._lock:
            contents = []
            graph = BranchGraph(self._state)
            for ref in (version1, version2):
                version = graph.resolve_version(ref.branch, ref.version_id)
                if version.e2k_snapshot is None:
                    raise NotFoundError(
                        f"Version {ref} has no E2K export; save it with E2K generation enabled"
                    )
                contents.append(self.store.get_snapshot(version.e2k_snapshot))

        old, new = contents
        e2k_diff = None
        geometry_diff = None
        if diff_type in (DiffType.E2K, DiffType.BOTH):
            e2k_diff = diff_e2k(old, new, f"{version1}.e2k", f"{version2}.e2k")
        if diff_type in (DiffType.GEOMETRY, DiffType.BOTH):
            geometry_diff = diff_geometry(old, new)

        logger.info(
            "Compared versions | project=%s a=%s b=%s type=%s",
            self.root,
            version1,
            version2,
            diff_type.value,
        )
        return CompareResult(
            version1=version1,
            version2=version2,
            diff_type=diff_type,
            e2k_diff=e2k_diff,
            geometry_diff=geometry_diff,
        )

    # --- ETABS session ---

    def _require_bridge(self) -> EtabsBridge:
        if self.bridge is None:
            raise ToolUnavailableError("ETABS tooling is not configured")
        return self.bridge

    def _close_quietly(self) -> bool:
        """Close ETABS without saving; False if it had already exited."""
        try:
            self._require_bridge().close(save_changes=False)
        except NotRunningError:
            return False
        return True

    def _etabs_holds_branch(self, branch_name: str) -> bool:
        """Whether ETABS has a file from this branch's storage open."""
        if self.bridge is None:
            return False
        status = self.bridge.status()
        if not status.is_running or not status.open_file_path:
            return False
        branch_root = self.store.branch_dir(branch_name).resolve()
        return Path(status.open_file_path).resolve().is_relative_to(branch_root)

    def open_in_etabs(
        self,
        branch_name: Optional[str] = None,
        version_id: Optional[str] = None,
    ) -> OpenInEtabsResult:
        """
        Open a branch's working file, or a read-only copy of a saved version.

        Args:
            branch_name: Branch (defaults to the current branch)
            version_id: Saved version to open read-only instead of the working file

        Raises:
            NotFoundError: If the branch or version does not exist
            NoWorkingFileError: If the branch has no working file
            ToolUnavailableError, LaunchFailedError, AlreadyRunningError: From the bridge
        """
        bridge = self._require_bridge()
        with self._lock:
            if bridge.is_running():
                raise AlreadyRunningError("ETABS is already running; close it first")
            branch_name = branch_name or self._state.current_branch
            graph = BranchGraph(self._state)
            branch = graph.get_branch(branch_name)
            if version_id:
                version = graph.resolve_version(branch_name, version_id)
                path = self.store.materialize_view(version.snapshot, version_id)
            else:
                if not self.store.stat_working_file(branch.name).exists:
                    raise NoWorkingFileError(f"Branch '{branch_name}' has no working file")
                path = self.store.working_file_path(branch.name)
            result = bridge.open(path)

        return OpenInEtabsResult(
            opened=result.opened,
            file_path=result.file_path,
            process_id=result.process_id,
            branch=branch_name,
            version_id=version_id or None,
            read_only=bool(version_id),
        )

    def close_etabs(self, save_changes: bool = False) -> CloseResult:
        """
        Close the project's ETABS instance.

        Raises:
            ToolUnavailableError: If ETABS tooling is not configured
            NotRunningError: If ETABS is not running
        """
        bridge = self._require_bridge()
        with self._lock:
            return bridge.close(save_changes=save_changes)

    def etabs_status(self) -> EtabsStatus:
        if self.bridge is None:
            return EtabsStatus(is_running=False)
        return self.bridge.status()


def _set_baseline(
    info: WorkingFileInfo,
    stat: WorkingFileStat,
    digest: str,
    source_version: Optional[str],
) -> None:
    """Record the bytes a working file was last seeded, checked out or saved from."""
    info.exists = stat.exists
    info.baseline_digest = digest
    info.baseline_size = stat.size_bytes
    info.baseline_mtime_ns = stat.mtime_ns
    info.source_version = source_version
    info.has_unsaved_changes = False
    info.last_modified = datetime.fromtimestamp(stat.mtime_ns / 1e9, tz=timezone.utc)


def _discard_storage(store: ContentStore, branch: str) -> None:
    """Best-effort removal of storage written by a failed operation."""
    try:
        store.delete_branch_storage(branch)
    except IOFailureError as e:
        logger.warning("Could not roll back branch storage | branch=%s error=%s", branch, e.message)
