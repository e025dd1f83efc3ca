"""
Pydantic models for project, branch and version metadata.

These models are the persisted project manifest and the state returned to
callers; the engine is their only writer.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from src.content_store.models import SnapshotRef


MAIN_BRANCH = "main"


class AnalysisResults(BaseModel):
    """Structural analysis summary extracted from ETABS for one version."""

    timestamp: datetime = Field(description="When the analysis was run")

    # Structural performance
    max_displacement: float = Field(default=0.0, description="Maximum displacement (mm)")
    max_drift: float = Field(default=0.0, ge=0, description="Maximum story drift (%)")
    base_shear: float = Field(default=0.0, description="Base shear (kN)")
    overturning_moment: float = Field(default=0.0, description="Overturning moment (kN*m)")

    # Member forces
    max_column_force: float = Field(default=0.0, description="Maximum column axial force (kN)")
    max_beam_moment: float = Field(default=0.0, description="Maximum beam moment (kN*m)")
    max_shell_stress: float = Field(default=0.0, description="Maximum shell stress (MPa)")

    # Design checks
    passed_members: int = Field(default=0, ge=0, description="Members passing design checks")
    failed_members: int = Field(default=0, ge=0, description="Members failing design checks")
    utilization_ratio: float = Field(default=0.0, ge=0, description="Governing utilization (%)")

    report_paths: list[str] = Field(default_factory=list, description="Generated report files")


class VersionInfo(BaseModel):
    """
    An immutable snapshot of a branch's design file.

    ``snapshot`` and ``e2k_snapshot`` are never changed after creation; only
    the analysis fields may be filled in later.
    """

    id: str = Field(description="Version id unique within the branch, e.g. 'v3'")
    sequence: int = Field(ge=1, description="Numeric part of the id")
    timestamp: datetime = Field(description="Creation time (UTC)")
    message: str = Field(min_length=1, description="Commit message")
    author: Optional[str] = Field(default=None, description="Author name")
    commit_hash: str = Field(description="Hash identifying this version's content and metadata")

    snapshot: SnapshotRef = Field(description="Stored design file (.edb) content")
    e2k_snapshot: Optional[SnapshotRef] = Field(
        default=None,
        description="Stored E2K export, if one was generated at save time"
    )
    file_size: int = Field(ge=0, description="Design file size in bytes")

    analyzed: bool = Field(default=False, description="Whether analysis results are recorded")
    analysis_results: Optional[AnalysisResults] = Field(default=None)


class WorkingFileInfo(BaseModel):
    """
    The single mutable, uncommitted design file of a branch.

    The baseline fields describe the bytes the file was last seeded,
    checked out or saved from; ``has_unsaved_changes`` is derived by
    comparing the file on disk against that baseline.
    """

    exists: bool = Field(description="Whether the file exists on disk")
    path: str = Field(description="Absolute path of the working file")
    source_version: Optional[str] = Field(
        default=None,
        description="Version the file was checked out from or last saved as"
    )
    is_open: bool = Field(default=False, description="Open in ETABS")
    has_unsaved_changes: bool = Field(default=False)
    last_modified: Optional[datetime] = Field(default=None)

    baseline_digest: Optional[str] = Field(default=None)
    baseline_size: Optional[int] = Field(default=None)
    baseline_mtime_ns: Optional[int] = Field(default=None)


class BranchInfo(BaseModel):
    """A named, independently versioned line of design development."""

    name: str = Field(description="Branch name, unique within the project")
    description: Optional[str] = Field(default=None)
    parent_branch: Optional[str] = Field(
        default=None,
        description="Branch this one was created from (None only for main)"
    )
    parent_version: Optional[str] = Field(default=None)
    created: datetime = Field(description="Creation time (UTC)")

    versions: list[VersionInfo] = Field(
        default_factory=list,
        description="Versions in creation order (append-only)"
    )
    latest_version: Optional[str] = Field(
        default=None,
        description="Id of the most recently saved version"
    )
    next_sequence: int = Field(
        default=1,
        ge=1,
        description="Sequence number the next saved version will receive"
    )
    working_file: Optional[WorkingFileInfo] = Field(default=None)

    def versions_newest_first(self) -> list[VersionInfo]:
        """Versions in display order."""
        return list(reversed(self.versions))

    def find_version(self, version_id: str) -> Optional[VersionInfo]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None


class ProjectState(BaseModel):
    """
    Root aggregate: the project manifest.

    Invariants:
        - ``current_branch`` names an existing branch
        - a branch named ``main`` always exists
    """

    format_version: int = Field(default=1, description="Manifest format version")
    project_name: str = Field(min_length=1)
    project_path: str = Field(description="Absolute project root (identity)")
    created: datetime
    last_modified: datetime
    current_branch: str = Field(default=MAIN_BRANCH)
    working_file_name: str = Field(default="model.edb")
    version_control_enabled: bool = Field(
        default=True,
        description="Whether the project is backed by version storage"
    )
    branches: dict[str, BranchInfo] = Field(default_factory=dict)
