from __future__ import annotations

import re

from regingest.excel.structure import (
    COURSE_CODE_TOKEN_RE,
    COURSE_MARKER_RE,
    SECTION_MARKER_RE,
    SECTION_NUMBER_RE,
    StructureKind,
    detect_structure,
    find_marker_value,
)
from regingest.models.config_models import DetectionSettings
from regingest.models.grid import RawGrid


def _flat_rows(n: int = 10) -> list[list[object]]:
    rows: list[list[object]] = [["Student ID", "Course Code", "Class No"]]
    rows += [[f"44100{i:04d}", "CS 101", str(i % 3 + 1)] for i in range(n)]
    return rows


def _block_rows(students: int = 5) -> list[list[object]]:
    rows: list[list[object]] = []
    for i in range(students):
        rows.append([f"44100{i:04d}", "Student name"])
        rows.append(["", "رقم المقرر", "اسم المقرر", "الشعبة"])
        rows.append(["", "CS 101", "Programming I", "1"])
        rows.append([])
    return rows


def _section_rows() -> list[list[object]]:
    return [
        ["المقرر", "CS 101", "Programming I"],
        ["الشعبة", "1"],
        ["", "رقم الطالب", "اسم الطالب"],
        ["", "441000001", "A"],
        ["", "441000002", "B"],
        [],
        ["المقرر", "MATH 201", "Calculus II"],
        ["الشعبة", "2"],
        ["", "رقم الطالب", "اسم الطالب"],
        ["", "441000003", "C"],
    ]


def test_flat_table():
    report = detect_structure(RawGrid.from_values(_flat_rows(10)))
    assert report.kind is StructureKind.FLAT_TABLE
    assert report.has_headers
    assert not report.is_block_structure
    assert not report.is_section_structure
    assert report.estimated_row_count == 10


def test_flat_table_with_single_gap_is_not_block():
    rows = _flat_rows(6)
    rows.insert(4, [])
    report = detect_structure(RawGrid.from_values(rows))
    assert report.kind is StructureKind.FLAT_TABLE
    assert report.block_count == 2


def test_block_layout():
    report = detect_structure(RawGrid.from_values(_block_rows(5)))
    assert report.kind is StructureKind.BLOCK
    assert report.is_block_structure
    assert report.block_count == 5


def test_block_thresholds_are_configurable():
    grid = RawGrid.from_values(_block_rows(3))
    assert detect_structure(grid).kind is StructureKind.FLAT_TABLE
    assert detect_structure(grid, DetectionSettings(min_block_starts=3)).kind is StructureKind.BLOCK


def test_section_layout_wins_over_block_evidence():
    report = detect_structure(RawGrid.from_values(_section_rows()))
    assert report.kind is StructureKind.SECTION
    assert report.course_markers == 2
    assert report.section_markers == 2


def test_block_flag_is_cleared_when_section_layout_wins():
    rows: list[list[object]] = []
    for i in range(6):
        rows += [
            ["المقرر", f"CS {101 + i}"],
            ["الشعبة", str(i + 1)],
            ["", "رقم الطالب"],
            ["", f"44100000{i}"],
            [],
        ]
    report = detect_structure(RawGrid.from_values(rows))
    assert report.is_section_structure
    assert not report.is_block_structure
    assert report.block_count == 6
    assert report.to_dict()["is_block_structure"] is False


def test_unknown_layout():
    report = detect_structure(RawGrid.from_values([[1, 2, 3], [4, 5, 6]]))
    assert report.kind is StructureKind.UNKNOWN
    assert not report.has_headers


def test_empty_grid():
    report = detect_structure(RawGrid())
    assert report.kind is StructureKind.UNKNOWN
    assert report.estimated_row_count == 0
    assert report.block_count == 0


def test_report_to_dict():
    data = detect_structure(RawGrid.from_values(_flat_rows(3))).to_dict()
    assert data["kind"] == "flat_table"
    assert set(data) == {
        "kind", "is_block_structure", "is_section_structure", "has_headers",
        "estimated_row_count", "block_count",
    }


class TestFindMarkerValue:
    def test_value_in_following_cell(self):
        texts = ["المقرر", "", "CS 101", "Programming"]
        assert find_marker_value(texts, COURSE_MARKER_RE, COURSE_CODE_TOKEN_RE, 5) == "CS 101"

    def test_value_after_colon(self):
        assert find_marker_value(["Section: 3"], SECTION_MARKER_RE, SECTION_NUMBER_RE, 5) == "3"
        assert find_marker_value(["Course: MATH201"], COURSE_MARKER_RE, COURSE_CODE_TOKEN_RE, 5) == "MATH201"

    def test_arabic_indic_section_number(self):
        assert find_marker_value(["الشعبة", "٣"], SECTION_MARKER_RE, SECTION_NUMBER_RE, 5) == "3"

    def test_lookahead_limit(self):
        texts = ["الشعبة", "a", "b", "7"]
        assert find_marker_value(texts, SECTION_MARKER_RE, SECTION_NUMBER_RE, 2) is None
        assert find_marker_value(texts, SECTION_MARKER_RE, SECTION_NUMBER_RE, 3) == "7"

    def test_no_marker(self):
        assert find_marker_value(["CS 101", "3"], re.compile("nothing"), SECTION_NUMBER_RE, 5) is None
