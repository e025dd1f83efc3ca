"""
Content Store

Durable, content-addressed storage of immutable version snapshots and the
single mutable working file of each branch.
"""

__version__ = "0.1.0"

from .atomic import atomic_write_bytes, atomic_write_text
from .models import SnapshotRef, WorkingFileStat
from .store import ContentStore, compute_digest, file_digest

__all__ = [
    "__version__",
    "ContentStore",
    "SnapshotRef",
    "WorkingFileStat",
    "atomic_write_bytes",
    "atomic_write_text",
    "compute_digest",
    "file_digest",
]
