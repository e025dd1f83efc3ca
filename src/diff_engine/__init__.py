"""
Diff Engine

Structural comparison of two E2K text exports, plus derived 3D geometry
for element-level visual diffing. Pure functions; nothing is persisted.
"""

__version__ = "0.1.0"

from .e2k_diff import diff_e2k, unified_diff
from .e2k_parser import E2KDocument, E2KRecord, decode_e2k, parse_e2k
from .geometry import derive_geometry, diff_geometry
from .models import (
    ChangeKind,
    E2KCategory,
    E2KChange,
    E2KDiffResult,
    ElementType,
    GeometryChange,
    GeometryDiffResult,
    GeometryElement,
)

__all__ = [
    "__version__",
    "diff_e2k",
    "unified_diff",
    "parse_e2k",
    "decode_e2k",
    "E2KDocument",
    "E2KRecord",
    "derive_geometry",
    "diff_geometry",
    "ChangeKind",
    "E2KCategory",
    "E2KChange",
    "E2KDiffResult",
    "ElementType",
    "GeometryChange",
    "GeometryDiffResult",
    "GeometryElement",
]
