"""
Branch graph operations.

All operations mutate the ``ProjectState`` they are given in place. Callers
that need all-or-nothing behaviour hand in a staged copy and only keep it
once every step has succeeded.
"""

import hashlib
import re
from datetime import datetime
from typing import Optional

from src.content_store.models import SnapshotRef
from src.core.errors import (
    DuplicateNameError,
    HasUncommittedChangesError,
    InvalidNameError,
    InvalidParentError,
    NotFoundError,
    ProtectedBranchError,
)
from .models import MAIN_BRANCH, BranchInfo, ProjectState, VersionInfo, WorkingFileInfo


BRANCH_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,63}$")
VERSION_ID_PREFIX = "v"


def validate_branch_name(name: str) -> str:
    """
    Validate and normalize a branch name.

    Names become directory names, so they are restricted to letters, digits,
    '.', '_' and '-', must start with a letter or digit and are at most 64
    characters long.

    Raises:
        InvalidNameError: If the name is not acceptable
    """
    candidate = (name or "").strip()
    if not candidate:
        raise InvalidNameError("Branch name is required and cannot be empty")
    if not BRANCH_NAME_PATTERN.match(candidate) or candidate.endswith("."):
        raise InvalidNameError(
            f"Invalid branch name '{candidate}': use letters, digits, '.', '_' or '-' "
            "(max 64 characters, starting with a letter or digit)"
        )
    return candidate


def format_version_id(sequence: int) -> str:
    """Version id for a sequence number, e.g. 3 -> 'v3'."""
    return f"{VERSION_ID_PREFIX}{sequence}"


def compute_commit_hash(
    branch: str,
    version_id: str,
    snapshot: SnapshotRef,
    e2k_snapshot: Optional[SnapshotRef],
    timestamp: datetime,
    message: str,
) -> str:
    """Hash identifying a version's content and metadata (git-style, 40 hex chars)."""
    parts = [
        branch,
        version_id,
        snapshot.digest,
        e2k_snapshot.digest if e2k_snapshot else "",
        timestamp.isoformat(),
        message,
    ]
    return hashlib.sha1("\n".join(parts).encode("utf-8")).hexdigest()


class BranchGraph:
    """
    Branch metadata and lineage over a project state.

    Args:
        state: Project state to read and mutate
    """

    def __init__(self, state: ProjectState):
        self.state = state

    def get_branch(self, name: str) -> BranchInfo:
        """
        Raises:
            NotFoundError: If the branch does not exist
        """
        branch = self.state.branches.get(name)
        if branch is None:
            raise NotFoundError(f"Branch not found: {name}")
        return branch

    def resolve_version(self, branch_name: str, version_id: str) -> VersionInfo:
        """
        Find a version on a branch.

        Raises:
            NotFoundError: If the branch or the version does not exist
        """
        branch = self.get_branch(branch_name)
        version = branch.find_version(version_id)
        if version is None:
            raise NotFoundError(f"Version '{version_id}' not found on branch '{branch_name}'")
        return version

    def create_branch(
        self,
        name: str,
        from_branch: str,
        from_version: str,
        created: datetime,
        working_file: WorkingFileInfo,
        description: Optional[str] = None,
    ) -> BranchInfo:
        """
        Register a new branch forked from an existing version.

        Args:
            name: New branch name
            from_branch: Parent branch
            from_version: Version on the parent the branch starts from
            created: Creation timestamp
            working_file: Working file seeded from the parent version
            description: Optional human description

        Returns:
            The new branch

        Raises:
            InvalidNameError: If the name is not acceptable
            DuplicateNameError: If a branch with this name exists
            InvalidParentError: If from_branch/from_version doesn't resolve
        """
        name = validate_branch_name(name)
        if name in self.state.branches:
            raise DuplicateNameError(f"Branch '{name}' already exists")

        parent = self.state.branches.get(from_branch)
        if parent is None:
            raise InvalidParentError(f"Parent branch not found: {from_branch}")
        if parent.find_version(from_version) is None:
            raise InvalidParentError(
                f"Version '{from_version}' does not exist on branch '{from_branch}'"
            )

        branch = BranchInfo(
            name=name,
            description=description.strip() if description and description.strip() else None,
            parent_branch=from_branch,
            parent_version=from_version,
            created=created,
            working_file=working_file,
        )
        self.state.branches[name] = branch
        return branch

    def delete_branch(self, name: str, force: bool = False) -> list[str]:
        """
        Remove a branch from the graph.

        If the deleted branch is the current branch, ``main`` becomes current.

        Args:
            name: Branch to delete
            force: Delete even if the working file has unsaved changes

        Returns:
            Ids of the versions that belonged to the branch

        Raises:
            ProtectedBranchError: If name is 'main' (regardless of force)
            NotFoundError: If the branch does not exist
            HasUncommittedChangesError: If unforced and the working file is dirty
        """
        if name == MAIN_BRANCH:
            raise ProtectedBranchError("The 'main' branch cannot be deleted")

        branch = self.get_branch(name)
        working = branch.working_file
        if not force and working is not None and working.exists and working.has_unsaved_changes:
            raise HasUncommittedChangesError(
                f"Branch '{name}' has uncommitted working-file changes; "
                "save a version or force the delete"
            )

        del self.state.branches[name]
        if self.state.current_branch == name:
            self.state.current_branch = MAIN_BRANCH
        return [version.id for version in branch.versions]

    def append_version(
        self,
        branch_name: str,
        snapshot: SnapshotRef,
        message: str,
        timestamp: datetime,
        author: Optional[str] = None,
        e2k_snapshot: Optional[SnapshotRef] = None,
    ) -> VersionInfo:
        """
        Append a new version with the next sequential id.

        Ids are never reused: the sequence counter only moves forward.

        Raises:
            NotFoundError: If the branch does not exist
        """
        branch = self.get_branch(branch_name)
        sequence = branch.next_sequence
        version_id = format_version_id(sequence)

        version = VersionInfo(
            id=version_id,
            sequence=sequence,
            timestamp=timestamp,
            message=message,
            author=author,
            commit_hash=compute_commit_hash(
                branch_name, version_id, snapshot, e2k_snapshot, timestamp, message
            ),
            snapshot=snapshot,
            e2k_snapshot=e2k_snapshot,
            file_size=snapshot.size_bytes,
        )
        branch.versions.append(version)
        branch.latest_version = version_id
        branch.next_sequence = sequence + 1
        return version


def check_invariants(state: ProjectState) -> list[str]:
    """
    Check the structural invariants of a project state.

    Returns:
        Human-readable violations (empty if the state is consistent)
    """
    problems: list[str] = []

    if MAIN_BRANCH not in state.branches:
        problems.append("project has no 'main' branch")
    if state.current_branch not in state.branches:
        problems.append(f"current branch '{state.current_branch}' does not exist")

    for name, branch in state.branches.items():
        if branch.name != name:
            problems.append(f"branch key '{name}' does not match name '{branch.name}'")

        expected_latest = branch.versions[-1].id if branch.versions else None
        if branch.latest_version != expected_latest:
            problems.append(
                f"branch '{name}' latest_version={branch.latest_version} "
                f"but last version is {expected_latest}"
            )

        sequences = [v.sequence for v in branch.versions]
        if sequences != sorted(set(sequences)):
            problems.append(f"branch '{name}' version sequence is not strictly increasing")
        if sequences and branch.next_sequence <= sequences[-1]:
            problems.append(f"branch '{name}' next_sequence would reuse an id")

        if name == MAIN_BRANCH and branch.parent_branch is not None:
            problems.append("'main' must not have a parent branch")
        if name != MAIN_BRANCH and branch.parent_branch is None:
            problems.append(f"branch '{name}' has no parent branch")

    return problems
