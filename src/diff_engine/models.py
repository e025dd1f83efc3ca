"""
Pydantic models for E2K and geometry comparisons.

Diff results are derived on demand and never persisted.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, model_validator


class ChangeKind(str, Enum):
    """Kind of a single change record."""

    ADD = "add"
    REMOVE = "remove"
    MODIFY = "modify"


class E2KCategory(str, Enum):
    """Category of an E2K record, derived from the section it appears in."""

    MATERIAL = "material"
    SECTION = "section"
    MEMBER = "member"
    LOAD = "load"
    ANALYSIS = "analysis"
    DESIGN = "design"
    GENERAL = "general"


class ElementType(str, Enum):
    """Structural element types used for visual diffing."""

    COLUMN = "column"
    BEAM = "beam"
    BRACE = "brace"
    SLAB = "slab"
    WALL = "wall"
    FOUNDATION = "foundation"
    OTHER = "other"


class E2KChange(BaseModel):
    """One classified change between two E2K texts."""

    change_type: ChangeKind = Field(description="add, remove or modify")
    category: E2KCategory = Field(description="Record category")
    identity: str = Field(description='Record identity, e.g. FRAMESECTION "W14X90"')
    description: str = Field(description="Human-readable summary")
    line_number: int = Field(
        ge=1,
        description="Line in the newer text (add/modify) or older text (remove)"
    )
    old_value: Optional[str] = Field(default=None)
    new_value: Optional[str] = Field(default=None)


class E2KDiffResult(BaseModel):
    """
    Structural comparison of two E2K exports.

    Invariant: ``added``, ``removed`` and ``modified`` equal the number of
    changes of the respective kind.
    """

    added: int = Field(ge=0)
    removed: int = Field(ge=0)
    modified: int = Field(ge=0)
    changes: list[E2KChange] = Field(default_factory=list)
    raw_diff: str = Field(default="", description="Unified line diff of the raw texts")

    @model_validator(mode="after")
    def counts_match_changes(self) -> "E2KDiffResult":
        """Counts must agree with the change list."""
        kinds = [c.change_type for c in self.changes]
        expected = (
            kinds.count(ChangeKind.ADD),
            kinds.count(ChangeKind.REMOVE),
            kinds.count(ChangeKind.MODIFY),
        )
        if (self.added, self.removed, self.modified) != expected:
            raise ValueError("added/removed/modified counts do not match the change list")
        return self


class GeometryElement(BaseModel):
    """Derived 3D representation of one structural member on one story."""

    id: str = Field(description="Stable id '<object>@<story>'")
    name: str = Field(description="ETABS object label")
    type: ElementType
    story: str
    coordinates: list[list[float]] = Field(description="3D points in model units")
    properties: dict[str, str] = Field(default_factory=dict)


class GeometryChange(BaseModel):
    """One classified geometry change."""

    change_type: ChangeKind
    element_id: str
    element_type: ElementType
    description: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None


class GeometryDiffResult(BaseModel):
    """
    Element-level comparison of two derived geometry models.

    Invariant: ``total_changes`` equals the sum of the three element lists.
    """

    members_added: list[GeometryElement] = Field(default_factory=list)
    members_removed: list[GeometryElement] = Field(default_factory=list)
    members_modified: list[GeometryElement] = Field(
        default_factory=list,
        description="Modified elements in their newer state"
    )
    changes: list[GeometryChange] = Field(default_factory=list)
    total_changes: int = Field(ge=0)

    @model_validator(mode="after")
    def total_matches_lists(self) -> "GeometryDiffResult":
        """Total must agree with the element lists."""
        expected = len(self.members_added) + len(self.members_removed) + len(self.members_modified)
        if self.total_changes != expected:
            raise ValueError("total_changes does not match the element lists")
        return self
