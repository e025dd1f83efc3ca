"""
Pydantic models for version control requests and results.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from src.branch_graph.models import BranchInfo, ProjectState, VersionInfo, WorkingFileInfo
from src.diff_engine.models import E2KDiffResult, GeometryDiffResult


class VersionRef(BaseModel):
    """Identifies one version of one branch."""

    branch: str = Field(..., min_length=1, description="Branch name")
    version_id: str = Field(..., min_length=1, description="Version id, e.g. 'v2'")

    def __str__(self) -> str:
        return f"{self.branch}/{self.version_id}"


class DiffType(str, Enum):
    """Which comparisons to compute."""

    E2K = "e2k"
    GEOMETRY = "geometry"
    BOTH = "both"


class CreateProjectResult(BaseModel):
    """Result of creating a project."""

    project_path: str
    project_name: str
    created_branches: list[str]
    version_control_enabled: bool
    state: ProjectState


class BranchListResult(BaseModel):
    """All branches of a project."""

    branches: list[BranchInfo]
    current_branch: str


class VersionListResult(BaseModel):
    """Versions of one branch, newest first."""

    branch: str
    versions: list[VersionInfo]
    working_file: Optional[WorkingFileInfo] = None


class SwitchBranchResult(BaseModel):
    """Result of switching the current branch."""

    current_branch: str
    previous_branch: str
    etabs_was_closed: bool = Field(
        default=False,
        description="Whether a running ETABS instance was closed (without saving) first"
    )


class DeleteBranchResult(BaseModel):
    """Result of deleting a branch."""

    deleted_branch: str
    deleted_versions: list[str]
    freed_space_bytes: int = Field(ge=0)
    current_branch: str = Field(description="Current branch after the delete")
    etabs_was_closed: bool = False


class SaveVersionResult(BaseModel):
    """Result of saving a working file as a new version."""

    version_id: str
    commit_hash: str
    file_size: int = Field(ge=0)
    e2k_generated: bool = False
    version: VersionInfo


class CheckoutResult(BaseModel):
    """Result of checking out a version into the working file."""

    branch: str
    version_id: str
    working_file_path: str
    etabs_opened: bool = False


class CompareResult(BaseModel):
    """Result of comparing two versions."""

    version1: VersionRef
    version2: VersionRef
    diff_type: DiffType
    e2k_diff: Optional[E2KDiffResult] = None
    geometry_diff: Optional[GeometryDiffResult] = None


class OpenInEtabsResult(BaseModel):
    """Result of opening a working file or a version in ETABS."""

    opened: bool
    file_path: str
    process_id: Optional[int] = None
    branch: str
    version_id: Optional[str] = Field(
        default=None,
        description="Set when a read-only copy of a saved version was opened"
    )
    read_only: bool = False
