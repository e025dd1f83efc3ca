"""
Version Control Engine

Atomic create-branch, switch-branch, delete-branch, save-version,
checkout-version and compare-versions operations over one ETABS project.
"""

__version__ = "0.1.0"

from .engine import VersionControlEngine, utc_now
from .manifest import MANIFEST_FILENAME, ManifestStore
from .models import (
    BranchListResult,
    CheckoutResult,
    CompareResult,
    CreateProjectResult,
    DeleteBranchResult,
    DiffType,
    OpenInEtabsResult,
    SaveVersionResult,
    SwitchBranchResult,
    VersionListResult,
    VersionRef,
)
from .registry import ProjectRegistry

__all__ = [
    "__version__",
    "VersionControlEngine",
    "ProjectRegistry",
    "ManifestStore",
    "MANIFEST_FILENAME",
    "utc_now",
    "BranchListResult",
    "CheckoutResult",
    "CompareResult",
    "CreateProjectResult",
    "DeleteBranchResult",
    "DiffType",
    "OpenInEtabsResult",
    "SaveVersionResult",
    "SwitchBranchResult",
    "VersionListResult",
    "VersionRef",
]
