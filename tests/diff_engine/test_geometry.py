"""Tests for geometry derivation and geometry diff."""

import pytest

from src.core.errors import ParseError
from src.diff_engine import ChangeKind, ElementType, GeometryDiffResult, derive_geometry, diff_geometry


def by_id(elements):
    return {e.id: e for e in elements}


class TestDeriveGeometry:
    """Tests for building elements from the object model."""

    def test_elements_sorted_by_id(self, base_e2k):
        elements = derive_geometry(base_e2k)
        assert [e.id for e in elements] == ["B1@STORY1", "C1@STORY1", "C2@STORY1", "F1@STORY1"]

    def test_column_spans_story_below(self, base_e2k):
        column = by_id(derive_geometry(base_e2k))["C2@STORY1"]

        assert column.type == ElementType.COLUMN
        assert column.name == "C2"
        assert column.story == "STORY1"
        assert column.coordinates == [[360.0, 0.0, 0.0], [360.0, 0.0, 144.0]]
        assert column.properties["section"] == "COL1"
        assert column.properties["object_type"] == "COLUMN"

    def test_beam_at_story_elevation(self, base_e2k):
        beam = by_id(derive_geometry(base_e2k))["B1@STORY1"]
        assert beam.type == ElementType.BEAM
        assert beam.coordinates == [[0.0, 0.0, 144.0], [360.0, 0.0, 144.0]]

    def test_floor_is_slab(self, base_e2k):
        slab = by_id(derive_geometry(base_e2k))["F1@STORY1"]
        assert slab.type == ElementType.SLAB
        assert len(slab.coordinates) == 4
        assert all(point[2] == 144.0 for point in slab.coordinates)

    def test_floor_at_lowest_story_is_foundation(self, base_e2k):
        text = base_e2k.replace(
            '  AREAASSIGN  "F1"  "STORY1"  SECTION "SLAB1"\n',
            '  AREAASSIGN  "F1"  "BASE"  SECTION "SLAB1"\n',
        )
        mat = by_id(derive_geometry(text))["F1@BASE"]
        assert mat.type == ElementType.FOUNDATION
        assert all(point[2] == 0.0 for point in mat.coordinates)

    def test_upper_story_elevation_accumulates(self, base_e2k):
        text = base_e2k.replace(
            '  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"\n',
            '  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"\n  LINEASSIGN  "B1"  "STORY2"  SECTION "BM1"\n',
        )
        beam = by_id(derive_geometry(text))["B1@STORY2"]
        assert beam.coordinates[0][2] == 288.0

    def test_point_dz_lowers_point(self, base_e2k):
        text = base_e2k.replace('POINT "2"  360  0', 'POINT "2"  360  0  6')
        beam = by_id(derive_geometry(text))["B1@STORY1"]
        assert beam.coordinates[1] == [360.0, 0.0, 138.0]

    def test_panel_is_wall(self, base_e2k):
        text = base_e2k.replace('AREA "F1"  FLOOR', 'AREA "F1"  PANEL')
        assert by_id(derive_geometry(text))["F1@STORY1"].type == ElementType.WALL

    def test_empty_model(self):
        assert derive_geometry("$ PROGRAM INFORMATION\n") == []


class TestDeriveGeometryErrors:
    """Tests for unresolvable references and malformed records."""

    def test_story_without_name(self):
        text = '$ STORIES\n  STORY  HEIGHT 144\n  STORY "BASE"  ELEV 0\n'
        with pytest.raises(ParseError, match="exactly one story") as exc_info:
            diff_geometry(text, text)
        assert exc_info.value.line_number == 2

    def test_line_assignment_without_story(self, base_e2k):
        text = base_e2k.replace(
            '  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"\n',
            '  LINEASSIGN  "B1"  SECTION "BM1"\n',
        )
        with pytest.raises(ParseError, match="LINEASSIGN must name an object and a story") as exc_info:
            derive_geometry(text)
        assert exc_info.value.line_number == text.splitlines().index('  LINEASSIGN  "B1"  SECTION "BM1"') + 1

    def test_area_assignment_without_story(self, base_e2k):
        text = base_e2k.replace('AREAASSIGN  "F1"  "STORY1"', 'AREAASSIGN  "F1"')
        with pytest.raises(ParseError, match="AREAASSIGN"):
            diff_geometry(base_e2k, text)

    def test_unknown_point(self, base_e2k):
        text = base_e2k.replace('LINE  "B1"  BEAM  "1"  "2"  0', 'LINE  "B1"  BEAM  "1"  "9"  0')
        with pytest.raises(ParseError, match='Unknown point "9"'):
            derive_geometry(text)

    def test_unknown_line(self, base_e2k):
        text = base_e2k.replace('LINEASSIGN  "C2"', 'LINEASSIGN  "C7"')
        with pytest.raises(ParseError, match='unknown line "C7"') as exc_info:
            derive_geometry(text)
        assert exc_info.value.category == "member"

    def test_unknown_story(self, base_e2k):
        text = base_e2k.replace('LINEASSIGN  "B1"  "STORY1"', 'LINEASSIGN  "B1"  "ROOF"')
        with pytest.raises(ParseError, match='Unknown story "ROOF"'):
            derive_geometry(text)

    def test_column_below_lowest_story(self, base_e2k):
        text = base_e2k.replace('LINE  "C1"  COLUMN  "1"  "1"  1', 'LINE  "C1"  COLUMN  "1"  "1"  2')
        with pytest.raises(ParseError, match="past the lowest story"):
            derive_geometry(text)

    def test_story_without_height(self, base_e2k):
        text = base_e2k.replace('STORY "STORY2"  HEIGHT 144', 'STORY "STORY2"')
        with pytest.raises(ParseError, match="neither HEIGHT nor ELEV"):
            derive_geometry(text)

    def test_non_numeric_coordinate(self, base_e2k):
        text = base_e2k.replace('POINT "4"  0  360', 'POINT "4"  0  abc')
        with pytest.raises(ParseError, match="not numeric"):
            derive_geometry(text)


class TestDiffGeometry:
    """Tests for element-level comparison."""

    def test_identical(self, base_e2k):
        result = diff_geometry(base_e2k, base_e2k)
        assert result.total_changes == 0
        assert result.changes == []

    def test_section_shape_change_has_no_geometric_effect(self, base_e2k):
        changed = base_e2k.replace('SHAPE "W14X90"', 'SHAPE "W14X120"')
        assert diff_geometry(base_e2k, changed).total_changes == 0

    def test_added_column(self, base_e2k):
        changed = base_e2k.replace(
            '  LINE  "B1"  BEAM  "1"  "2"  0\n',
            '  LINE  "B1"  BEAM  "1"  "2"  0\n  LINE  "C3"  COLUMN  "3"  "3"  1\n',
        ).replace(
            '  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"\n',
            '  LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"\n  LINEASSIGN  "C3"  "STORY1"  SECTION "COL1"\n',
        )
        result = diff_geometry(base_e2k, changed)

        assert result.total_changes == 1
        assert [e.id for e in result.members_added] == ["C3@STORY1"]
        change = result.changes[0]
        assert change.change_type == ChangeKind.ADD
        assert change.element_type == ElementType.COLUMN
        assert change.new_value == "(360, 360, 0) -> (360, 360, 144)"

    def test_removed_slab(self, base_e2k):
        changed = base_e2k.replace('  AREAASSIGN  "F1"  "STORY1"  SECTION "SLAB1"\n', "")
        result = diff_geometry(base_e2k, changed)

        assert [e.id for e in result.members_removed] == ["F1@STORY1"]
        assert result.changes[0].change_type == ChangeKind.REMOVE

    def test_moved_point_modifies_connected_members(self, base_e2k):
        changed = base_e2k.replace('POINT "2"  360  0', 'POINT "2"  372  0')
        result = diff_geometry(base_e2k, changed)

        assert [e.id for e in result.members_modified] == ["B1@STORY1", "C2@STORY1", "F1@STORY1"]
        assert result.total_changes == 3
        assert result.members_modified[1].coordinates[0] == [372.0, 0.0, 0.0]
        assert all("coordinates" in c.description for c in result.changes)

    def test_reassigned_section(self, base_e2k):
        changed = base_e2k.replace(
            'LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"',
            'LINEASSIGN  "B1"  "STORY1"  SECTION "BM2"',
        )
        result = diff_geometry(base_e2k, changed)

        change = result.changes[0]
        assert change.change_type == ChangeKind.MODIFY
        assert change.old_value == "section=BM1"
        assert change.new_value == "section=BM2"

    def test_changes_in_element_id_order(self, base_e2k):
        changed = base_e2k.replace('  AREAASSIGN  "F1"  "STORY1"  SECTION "SLAB1"\n', "").replace(
            'LINEASSIGN  "B1"  "STORY1"  SECTION "BM1"',
            'LINEASSIGN  "B1"  "STORY1"  SECTION "BM2"',
        )
        result = diff_geometry(base_e2k, changed)
        assert [c.element_id for c in result.changes] == ["B1@STORY1", "F1@STORY1"]

    def test_total_invariant_enforced(self):
        with pytest.raises(ValueError):
            GeometryDiffResult(total_changes=2)
