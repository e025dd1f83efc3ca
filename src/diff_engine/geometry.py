"""
Geometry Derivation and Diff

Derives 3D structural elements from the E2K object model and compares two
derived models element by element.

Element placement:
    - Story elevations are accumulated bottom-up from the lowest story's
      ELEV plus each story HEIGHT.
    - Columns and braces span from the level STORIES below their story up to
      the story itself; beams lie at the story elevation.
    - Floor areas are slabs (foundations at the lowest story); panel areas
      are walls.

Point DZ values lower a point below its story elevation.
"""

import logging
from typing import Union

from src.core.errors import ParseError
from .e2k_parser import E2KDocument, E2KRecord, decode_e2k, parse_e2k
from .models import (
    ChangeKind,
    ElementType,
    GeometryChange,
    GeometryDiffResult,
    GeometryElement,
)

logger = logging.getLogger(__name__)

COORDINATE_DECIMALS = 6
COORDINATE_TOLERANCE = 1e-6

LINE_TYPES = {
    "COLUMN": ElementType.COLUMN,
    "BEAM": ElementType.BEAM,
    "BRACE": ElementType.BRACE,
}

AREA_TYPES = {
    "FLOOR": ElementType.SLAB,
    "PANEL": ElementType.WALL,
}


def _number(value: str, what: str, record: E2KRecord) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ParseError(
            f"{what} is not numeric: {value}",
            category=record.category.value,
            line_number=record.line_number,
        ) from e


class StoryTable:
    """Story names ordered top to bottom with their elevations."""

    def __init__(self, document: E2KDocument):
        stories = document.by_keyword("STORY")
        for story in stories:
            if len(story.names) != 1:
                raise ParseError(
                    "STORY line must name exactly one story",
                    category=story.category.value,
                    line_number=story.line_number,
                )
        self.names = [s.names[0] for s in stories]
        self.elevations: dict[str, float] = {}
        if not stories:
            return

        base = stories[-1]
        elevation = _number(base.first("ELEV") or "0", "Story elevation", base)
        self.elevations[base.names[0]] = elevation
        for story in reversed(stories[:-1]):
            height = story.first("HEIGHT")
            if height is None:
                elev = story.first("ELEV")
                if elev is None:
                    raise ParseError(
                        f'Story "{story.names[0]}" has neither HEIGHT nor ELEV',
                        category=story.category.value,
                        line_number=story.line_number,
                    )
                elevation = _number(elev, "Story elevation", story)
            else:
                elevation += _number(height, "Story height", story)
            self.elevations[story.names[0]] = elevation

    @property
    def lowest(self) -> str:
        return self.names[-1] if self.names else ""

    def elevation(self, story: str, record: E2KRecord) -> float:
        if story not in self.elevations:
            raise ParseError(
                f'Unknown story "{story}"',
                category=record.category.value,
                line_number=record.line_number,
            )
        return self.elevations[story]

    def below(self, story: str, levels: int, record: E2KRecord) -> str:
        """Story ``levels`` below ``story``."""
        index = self.names.index(story) + levels if story in self.names else -1
        if index < 0 or index >= len(self.names):
            raise ParseError(
                f'Object spans {levels} level(s) below "{story}", past the lowest story',
                category=record.category.value,
                line_number=record.line_number,
            )
        return self.names[index]


class GeometryBuilder:
    """Builds geometry elements from a parsed E2K document."""

    def __init__(self, document: E2KDocument):
        self.document = document
        self.stories = StoryTable(document)
        self.points = {r.names[0]: r for r in document.by_keyword("POINT") if r.names}
        self.lines = {r.names[0]: r for r in document.by_keyword("LINE") if r.names}
        self.areas = {r.names[0]: r for r in document.by_keyword("AREA") if r.names}

    def _point(self, name: str, story: str, record: E2KRecord) -> list[float]:
        point = self.points.get(name)
        if point is None:
            raise ParseError(
                f'Unknown point "{name}"',
                category=record.category.value,
                line_number=record.line_number,
            )
        x = _number(point.first("X"), "Point X", point)
        y = _number(point.first("Y"), "Point Y", point)
        dz = _number(point.first("DZ") or "0", "Point DZ", point)
        z = self.stories.elevation(story, record) - dz
        return [round(c, COORDINATE_DECIMALS) + 0.0 for c in (x, y, z)]

    @staticmethod
    def _properties(obj: E2KRecord, assign: E2KRecord, story: str) -> dict[str, str]:
        properties = {"story": story, "object_type": obj.first("TYPE") or ""}
        for key, values in assign.fields.items():
            if key.startswith("#"):
                continue
            properties[key.lower()] = ", ".join(values)
        return properties

    def _line_element(self, assign: E2KRecord) -> GeometryElement:
        name, story = assign.names
        line = self.lines.get(name)
        if line is None:
            raise ParseError(
                f'Line assignment references unknown line "{name}"',
                category=assign.category.value,
                line_number=assign.line_number,
            )
        line_type = (line.first("TYPE") or "").upper()
        element_type = LINE_TYPES.get(line_type, ElementType.OTHER)
        i_name, j_name = line.first("I"), line.first("J")

        if element_type in (ElementType.COLUMN, ElementType.BRACE):
            levels = int(_number(line.first("STORIES") or "1", "Line STORIES", line))
            bottom = self.stories.below(story, levels, assign) if levels else story
            coordinates = [
                self._point(i_name, bottom, assign),
                self._point(j_name, story, assign),
            ]
        else:
            coordinates = [
                self._point(i_name, story, assign),
                self._point(j_name, story, assign),
            ]

        return GeometryElement(
            id=f"{name}@{story}",
            name=name,
            type=element_type,
            story=story,
            coordinates=coordinates,
            properties=self._properties(line, assign, story),
        )

    def _area_element(self, assign: E2KRecord) -> GeometryElement:
        name, story = assign.names
        area = self.areas.get(name)
        if area is None:
            raise ParseError(
                f'Area assignment references unknown area "{name}"',
                category=assign.category.value,
                line_number=assign.line_number,
            )
        area_type = (area.first("TYPE") or "").upper()
        element_type = AREA_TYPES.get(area_type, ElementType.OTHER)
        if element_type == ElementType.SLAB and story == self.stories.lowest:
            element_type = ElementType.FOUNDATION

        points = area.fields.get("POINTS", [])
        offsets = area.fields.get("OFFSETS", [])
        coordinates = []
        for index, point_name in enumerate(points):
            levels = int(_number(offsets[index], "Area offset", area)) if index < len(offsets) else 0
            level = self.stories.below(story, levels, assign) if levels else story
            coordinates.append(self._point(point_name, level, assign))

        return GeometryElement(
            id=f"{name}@{story}",
            name=name,
            type=element_type,
            story=story,
            coordinates=coordinates,
            properties=self._properties(area, assign, story),
        )

    def build(self) -> list[GeometryElement]:
        line_assigns = self.document.by_keyword("LINEASSIGN")
        area_assigns = self.document.by_keyword("AREAASSIGN")
        for assign in line_assigns + area_assigns:
            if len(assign.names) != 2:
                raise ParseError(
                    f"{assign.keyword} must name an object and a story",
                    category=assign.category.value,
                    line_number=assign.line_number,
                )
        elements = [self._line_element(a) for a in line_assigns]
        elements += [self._area_element(a) for a in area_assigns]
        return sorted(elements, key=lambda e: e.id)


def derive_geometry(content: Union[bytes, str]) -> list[GeometryElement]:
    """
    Derive structural elements from E2K content.

    Returns:
        Elements sorted by id

    Raises:
        ParseError: If the content is not E2K or references unknown objects
    """
    return GeometryBuilder(parse_e2k(decode_e2k(content))).build()


def _coordinates_equal(a: list[list[float]], b: list[list[float]]) -> bool:
    if len(a) != len(b):
        return False
    return all(
        len(p) == len(q) and all(abs(x - y) <= COORDINATE_TOLERANCE for x, y in zip(p, q))
        for p, q in zip(a, b)
    )


def _format_coordinates(coordinates: list[list[float]]) -> str:
    return " -> ".join("(" + ", ".join(f"{c:g}" for c in point) + ")" for point in coordinates)


def _element_differences(old: GeometryElement, new: GeometryElement) -> list[tuple[str, str, str]]:
    differences = []
    if old.type != new.type:
        differences.append(("type", old.type.value, new.type.value))
    if not _coordinates_equal(old.coordinates, new.coordinates):
        differences.append(
            ("coordinates", _format_coordinates(old.coordinates), _format_coordinates(new.coordinates))
        )
    keys = list(old.properties) + [k for k in new.properties if k not in old.properties]
    for key in keys:
        before = old.properties.get(key)
        after = new.properties.get(key)
        if before != after:
            differences.append((key, before or "(none)", after or "(none)"))
    return differences


def diff_geometry(old: Union[bytes, str], new: Union[bytes, str]) -> GeometryDiffResult:
    """
    Compare the derived geometry of two E2K exports.

    Elements are matched by id; an element present on both sides is modified
    if its type, coordinates or properties differ. Changes are reported in
    element-id order.

    Raises:
        ParseError: If either side cannot be parsed
    """
    old_elements = {e.id: e for e in derive_geometry(old)}
    new_elements = {e.id: e for e in derive_geometry(new)}

    added, removed, modified = [], [], []
    changes: list[GeometryChange] = []

    for element_id in sorted(set(old_elements) | set(new_elements)):
        before = old_elements.get(element_id)
        after = new_elements.get(element_id)
        if before is None:
            added.append(after)
            changes.append(
                GeometryChange(
                    change_type=ChangeKind.ADD,
                    element_id=element_id,
                    element_type=after.type,
                    description=f"{after.type.value.capitalize()} {after.name} added on {after.story}",
                    new_value=_format_coordinates(after.coordinates),
                )
            )
        elif after is None:
            removed.append(before)
            changes.append(
                GeometryChange(
                    change_type=ChangeKind.REMOVE,
                    element_id=element_id,
                    element_type=before.type,
                    description=f"{before.type.value.capitalize()} {before.name} removed from {before.story}",
                    old_value=_format_coordinates(before.coordinates),
                )
            )
        else:
            differences = _element_differences(before, after)
            if not differences:
                continue
            modified.append(after)
            changes.append(
                GeometryChange(
                    change_type=ChangeKind.MODIFY,
                    element_id=element_id,
                    element_type=after.type,
                    description=(
                        f"{after.type.value.capitalize()} {after.name} on {after.story} "
                        f"modified ({', '.join(d[0] for d in differences)})"
                    ),
                    old_value="; ".join(f"{k}={v}" for k, v, _ in differences),
                    new_value="; ".join(f"{k}={v}" for k, _, v in differences),
                )
            )

    result = GeometryDiffResult(
        members_added=added,
        members_removed=removed,
        members_modified=modified,
        changes=changes,
        total_changes=len(added) + len(removed) + len(modified),
    )
    logger.info(
        "Diffed geometry | added=%d removed=%d modified=%d",
        len(added),
        len(removed),
        len(modified),
    )
    return result
