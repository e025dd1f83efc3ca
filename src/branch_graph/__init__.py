"""
Branch Graph

Branch metadata, lineage and per-branch append-only version ordering.
"""

__version__ = "0.1.0"

from .models import (
    MAIN_BRANCH,
    AnalysisResults,
    BranchInfo,
    ProjectState,
    VersionInfo,
    WorkingFileInfo,
)
from .graph import (
    BranchGraph,
    check_invariants,
    compute_commit_hash,
    format_version_id,
    validate_branch_name,
)

__all__ = [
    "__version__",
    "MAIN_BRANCH",
    "AnalysisResults",
    "BranchInfo",
    "ProjectState",
    "VersionInfo",
    "WorkingFileInfo",
    "BranchGraph",
    "check_invariants",
    "compute_commit_hash",
    "format_version_id",
    "validate_branch_name",
]
