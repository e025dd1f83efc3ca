"""
Pydantic models for the content store.
"""

from pydantic import BaseModel, ConfigDict, Field


class SnapshotRef(BaseModel):
    """
    Stable reference to an immutable snapshot.

    Snapshots are content-addressed within the branch that owns them:
    storing identical bytes twice on one branch yields an equal reference,
    while the same bytes stored on another branch get a distinct reference
    backed by a separate copy.
    """

    model_config = ConfigDict(frozen=True)

    branch: str = Field(..., description="Branch owning the stored copy")
    digest: str = Field(..., description="SHA-256 hex digest of the content")
    size_bytes: int = Field(..., ge=0, description="Content size in bytes")

    @property
    def key(self) -> str:
        """Compact string form, e.g. 'main/9f86d0...'."""
        return f"{self.branch}/{self.digest}"

    def __str__(self) -> str:
        return self.key


class WorkingFileStat(BaseModel):
    """On-disk facts about a branch's working file."""

    path: str = Field(description="Absolute path of the working file")
    exists: bool = Field(description="Whether the file exists")
    size_bytes: int = Field(default=0, ge=0, description="Size in bytes")
    mtime_ns: int = Field(default=0, description="Modification time (ns since epoch)")
