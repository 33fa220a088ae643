from __future__ import annotations

import json
import zipfile
from pathlib import Path

import pytest

import regingest.services.orchestrator as orchestrator
from regingest.excel.reader import StructureError
from regingest.excel.structure import StructureKind
from regingest.logging.error_log import ErrorLogBuffer
from regingest.models.config_models import IngestSettings
from regingest.models.grid import RawGrid
from regingest.models.records import EnrollmentRecord
from regingest.models.source_file import FileStatus, SourceFile
from regingest.models.vocabulary import RecordType
from regingest.services.orchestrator import (
    MappingError,
    ProcessingError,
    ingest,
    ingest_many,
    probe_auto_detect,
    probe_structure,
    read_headers,
    scan_source_files,
)

EXAM_HEADERS = ["Course Code", "Course Name", "Class", "Exam Date", "Start Time", "End Time", "Place", "Period"]


def _exam_rows(n: int, missing_place_every: int = 0) -> list[list[object]]:
    rows: list[list[object]] = [EXAM_HEADERS]
    for i in range(n):
        place = None if missing_place_every and i % missing_place_every == 0 else "A-101"
        rows.append([f"CS {100 + i}", "Course", str(i % 4 + 1), "2025-03-15", "09:00", "11:00", place, "Final"])
    return rows


def test_flat_enrollment():
    grid = RawGrid.from_values([["Student ID", "Course Code", "Class No"], ["1001", "CS101", "2"]])
    result = ingest(grid, "enrollment")
    assert result.valid_rows == [EnrollmentRecord(student_id="1001", course_code="CS101", class_no="2")]
    assert result.errors == []
    assert result.structure.kind is StructureKind.FLAT_TABLE
    assert result.mapping == {"student_id": "Student ID", "course_code": "Course Code", "class_no": "Class No"}


def test_rows_missing_a_required_field_are_rejected_individually():
    result = ingest(RawGrid.from_values(_exam_rows(100, missing_place_every=20)), RecordType.EXAM)
    assert len(result.valid_rows) == 95
    assert len(result.errors) == 5
    assert {e.field for e in result.errors} == {"place"}
    assert {e.message for e in result.errors} == {"Place is required"}
    assert [e.row for e in result.errors] == [2, 22, 42, 62, 82]


def test_exam_end_time_defaults_to_start_plus_duration():
    headers = ["Course Code", "Course Name", "Class", "Exam Date", "Start Time", "Place", "Period"]
    grid = RawGrid.from_values([headers, ["CS 101", "Prog", "1", "1446/09/15", "08:00 ص", "A-101", "Final"]])

    record = ingest(grid, "exam").valid_rows[0]
    assert record.start_time == "08:00"
    assert record.end_time == "10:00"
    assert record.exam_date == "1446-09-15"

    record = ingest(grid, "exam", settings=IngestSettings(default_exam_duration_minutes=90)).valid_rows[0]
    assert record.end_time == "09:30"


def test_explicit_end_time_is_kept():
    result = ingest(RawGrid.from_values(_exam_rows(1)), "exam", settings=IngestSettings(default_exam_duration_minutes=30))
    assert result.valid_rows[0].end_time == "11:00"


def test_unmapped_required_fields_raise_mapping_error():
    grid = RawGrid.from_values([["Student ID"], ["441000001"]])
    with pytest.raises(MappingError) as exc:
        ingest(grid, "enrollment")
    assert exc.value.missing_fields == ["course_code", "class_no"]


def test_unrecognised_layout_raises_mapping_error():
    with pytest.raises(MappingError):
        ingest(RawGrid.from_values([[1, 2], [3, 4]]), "exam")


def test_explicit_mapping():
    grid = RawGrid.from_values([["Matric", "Module", "Group"], ["441000001", "CS 101", "3"]])
    result = ingest(grid, "enrollment", {"student_id": "Matric", "course_code": "Module", "class_no": "Group"})
    assert result.valid_rows == [EnrollmentRecord("441000001", "CS 101", "3")]


def test_block_file_is_routed_to_block_extractor():
    rows: list[list[object]] = []
    for i in range(5):
        rows += [
            [f"44100000{i}", "Student"],
            ["", "رقم المقرر", "اسم المقرر", "الشعبة"],
            ["", "CS 101", "Programming I", str(i + 1)],
            [],
        ]
    result = ingest(RawGrid.from_values(rows), "enrollment")
    assert result.structure.kind is StructureKind.BLOCK
    assert len(result.valid_rows) == 5
    assert result.mapping == {}


def test_section_file_is_routed_to_section_extractor():
    rows = [
        ["المقرر", "CS 101"], ["الشعبة", "1"], ["", "رقم الطالب"], ["", "441000001"], [],
        ["المقرر", "CS 102"], ["الشعبة", "2"], ["", "رقم الطالب"], ["", "441000002"],
    ]
    result = ingest(RawGrid.from_values(rows), "enrollment")
    assert result.structure.kind is StructureKind.SECTION
    assert [(r.course_code, r.class_no) for r in result.valid_rows] == [("CS 101", "1"), ("CS 102", "2")]


def test_exam_files_are_always_read_as_flat_tables():
    rows: list[list[object]] = []
    for i in range(5):
        rows += [EXAM_HEADERS, [f"CS {i}01", "Course", "1", "2025-03-15", "09:00", "", "A", "Final"], []]
    result = ingest(RawGrid.from_values(rows), "exam")
    assert result.structure.kind is StructureKind.BLOCK
    assert result.mapping["course_code"] == "Course Code"


def test_read_headers_and_probe(make_workbook):
    path = make_workbook("enrollments.xlsx", [["Student ID", "Course Code", "Class No"], ["1", "CS 1", "1"]])
    assert read_headers(path) == ["Student ID", "Course Code", "Class No"]
    assert probe_structure(path).kind is StructureKind.FLAT_TABLE

    report = probe_auto_detect(path, "enrollment")
    assert report.can_auto_detect
    assert report.missing_fields == []
    assert report.to_dict()["mapping"]["class_no"] == "Class No"


def test_probe_auto_detect_flags_guessed_and_missing_fields():
    guessed = probe_auto_detect(RawGrid.from_values([["Matric", "Module", "Group"]]), "enrollment")
    assert not guessed.can_auto_detect
    assert sorted(guessed.guessed_fields) == ["class_no", "course_code", "student_id"]

    missing = probe_auto_detect(RawGrid.from_values([["Student ID"]]), "enrollment")
    assert not missing.can_auto_detect
    assert missing.missing_fields == ["course_code", "class_no"]


def test_unreadable_file_raises_structure_error(tmp_path: Path):
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"not a workbook")
    with pytest.raises(StructureError):
        ingest(bad, "enrollment")


class TestIngestMany:
    def test_partial_failure(self, tmp_path: Path, make_workbook):
        good = make_workbook(
            "enrollments.xlsx",
            [["Student ID", "Course Code", "Class No"], ["441000001", "CS 101", "1"], ["441000002", "CS 101", None]],
        )
        bad = tmp_path / "students_bad.xlsx"
        bad.write_bytes(b"garbage")
        unmapped = make_workbook("students_x.xlsx", [["Student ID"], ["441000003"]])
        files = [SourceFile(p, RecordType.ENROLLMENT) for p in (good, bad, unmapped)]
        error_log = ErrorLogBuffer(logs_dir=tmp_path / "logs")

        batch = ingest_many(files, IngestSettings(max_workers=2), error_log=error_log)

        assert batch.success
        assert batch.success_files == 1
        assert batch.failed_files == 2
        assert batch.total_valid_rows == 1
        assert batch.total_errors == 1
        assert list(batch.results) == [str(good)]
        assert [s.status for s in batch.file_stats] == ["success", "failed", "failed"]
        assert batch.file_stats[1].error.startswith("cannot read workbook")

        log_path = error_log.flush()
        records = [json.loads(line) for line in log_path.read_text(encoding="utf-8").splitlines()]
        assert [(r["file"], r["row"], r["error_type"]) for r in records] == [
            ("enrollments.xlsx", 3, "VALIDATION_ERROR"),
            ("students_bad.xlsx", -1, "STRUCTURE_ERROR"),
            ("students_x.xlsx", -1, "MAPPING_ERROR"),
        ]

    def test_malformed_workbook_next_to_good_file(self, tmp_path: Path, make_workbook):
        bad = tmp_path / "bad.xlsx"
        with zipfile.ZipFile(bad, "w") as zf:
            zf.writestr("[Content_Types].xml", "<")
        good = make_workbook("good.xlsx", [["Student ID", "Course Code", "Class No"], ["441000001", "CS 101", "1"]])

        batch = ingest_many([SourceFile(bad, RecordType.ENROLLMENT), SourceFile(good, RecordType.ENROLLMENT)])

        assert batch.failed_files == 1
        assert batch.total_valid_rows == 1
        assert batch.file_stats[0].error.startswith("cannot read workbook bad.xlsx")

    def test_unexpected_error_is_confined_to_its_file(self, tmp_path: Path, make_workbook, monkeypatch):
        good = make_workbook("good.xlsx", [["Student ID", "Course Code", "Class No"], ["441000001", "CS 101", "1"]])
        odd = make_workbook("odd.xlsx", [["Student ID", "Course Code", "Class No"], ["441000002", "CS 101", "1"]])
        real_ingest = orchestrator.ingest

        def flaky_ingest(source, *args, **kwargs):
            if Path(source).name == "odd.xlsx":
                raise RuntimeError("worksheet exploded")
            return real_ingest(source, *args, **kwargs)

        monkeypatch.setattr(orchestrator, "ingest", flaky_ingest)
        error_log = ErrorLogBuffer(logs_dir=tmp_path / "logs")
        batch = ingest_many(
            [SourceFile(odd, RecordType.ENROLLMENT), SourceFile(good, RecordType.ENROLLMENT)], error_log=error_log
        )

        assert batch.success
        assert [s.status for s in batch.file_stats] == ["failed", "success"]
        assert batch.file_stats[0].error == "worksheet exploded"
        records = [json.loads(line) for line in error_log.flush().read_text(encoding="utf-8").splitlines()]
        assert [(r["file"], r["error_type"]) for r in records] == [("odd.xlsx", "STRUCTURE_ERROR")]

    def test_results_keep_input_order(self, make_workbook):
        files = []
        for i in range(4):
            path = make_workbook(
                f"enrollments_{i}.xlsx",
                [["Student ID", "Course Code", "Class No"], [f"44100000{i}", "CS 101", str(i)]],
            )
            files.append(SourceFile(path, RecordType.ENROLLMENT))
        batch = ingest_many(files, IngestSettings(max_workers=4))
        assert [r.student_id for r in batch.valid_rows] == [f"44100000{i}" for i in range(4)]
        assert [s.file_name for s in batch.file_stats] == [f"enrollments_{i}.xlsx" for i in range(4)]

    def test_nothing_valid_is_not_success(self, tmp_path: Path):
        bad = tmp_path / "bad.xlsx"
        bad.write_bytes(b"garbage")
        batch = ingest_many([SourceFile(bad, RecordType.EXAM)])
        assert not batch.success
        assert batch.throughput_rows_per_sec == 0.0

    def test_explicit_mappings_by_record_type(self, make_workbook):
        path = make_workbook("e.xlsx", [["Matric", "Module", "Group"], ["441000001", "CS 101", "3"]])
        batch = ingest_many(
            [SourceFile(path, RecordType.ENROLLMENT)],
            mappings={"enrollment": {"student_id": "Module", "course_code": "Matric", "class_no": "Group"}},
        )
        assert batch.valid_rows == [EnrollmentRecord("CS 101", "441000001", "3")]


class TestScanSourceFiles:
    def test_patterns_by_record_type(self, tmp_path: Path):
        for name in ("exams_2025.xlsx", "students_a.xlsx", "students_b.xlsx", "readme.txt"):
            (tmp_path / name).write_bytes(b"")
        (tmp_path / "students_dir.xlsx").mkdir()
        files = scan_source_files(tmp_path, {"exam": ["exams*.xlsx"], "enrollment": ["*.xlsx"]})
        assert [(f.name, f.record_type) for f in files] == [
            ("exams_2025.xlsx", RecordType.EXAM),
            ("students_a.xlsx", RecordType.ENROLLMENT),
            ("students_b.xlsx", RecordType.ENROLLMENT),
        ]

    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(ProcessingError, match="Directory not found"):
            scan_source_files(tmp_path / "nope", {"exam": ["*.xlsx"]})

    def test_path_is_not_a_directory(self, tmp_path: Path):
        f = tmp_path / "file.xlsx"
        f.write_bytes(b"")
        with pytest.raises(ProcessingError, match="not a directory"):
            scan_source_files(f, {"exam": ["*.xlsx"]})


def test_file_status_values_match_file_stats():
    assert [s.value for s in FileStatus] == ["success", "failed"]
