from __future__ import annotations

import json
from pathlib import Path

from regingest.cli.__main__ import main as cli_main

EXPECTED_KEYS = {"timestamp", "file", "record_type", "row", "field", "error_type", "message"}


def _read_error_log(workdir: Path) -> list[dict]:
    logs = sorted((workdir / "logs").glob("errors-*.log"))
    assert len(logs) == 1
    return [json.loads(line) for line in logs[0].read_text(encoding="utf-8").splitlines()]


def test_error_log_lines(write_config: Path, make_workbook, monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    workdir = write_config.parent.parent
    make_workbook(
        "enrollments.xlsx",
        [["Student ID", "Course Code", "Class No"], ["441000001", "CS 101", "1"], ["441000002", None, "2"]],
        directory=workdir / "data",
    )
    make_workbook("lecturers.xlsx", [["Lecturer Name"], ["Dr. Salem"]], directory=workdir / "data")
    (workdir / "data" / "exams_broken.xlsx").write_bytes(b"garbage")

    cli_main([])
    records = _read_error_log(workdir)

    assert all(set(r) == EXPECTED_KEYS for r in records)
    assert all(r["timestamp"].endswith("Z") for r in records)
    by_type = {r["error_type"]: r for r in records}
    assert set(by_type) == {"VALIDATION_ERROR", "STRUCTURE_ERROR", "MAPPING_ERROR"}

    validation = by_type["VALIDATION_ERROR"]
    assert (validation["file"], validation["row"], validation["field"]) == ("enrollments.xlsx", 3, "course_code")
    assert validation["message"] == "Course code is required"

    assert by_type["STRUCTURE_ERROR"]["row"] == -1
    assert by_type["STRUCTURE_ERROR"]["field"] is None
    assert by_type["MAPPING_ERROR"]["record_type"] == "lecturer_duty"


def test_no_error_log_when_clean(write_config: Path, make_workbook, monkeypatch):
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    workdir = write_config.parent.parent
    make_workbook("enrollments.xlsx", [["Student ID", "Course Code", "Class No"], ["441000001", "CS 101", "1"]],
                  directory=workdir / "data")
    cli_main([])
    assert list((workdir / "logs").glob("errors-*.log")) == []
