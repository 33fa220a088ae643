from __future__ import annotations

import json

from regingest.models.error_record import ErrorRecord


def test_create_sets_utc_timestamp():
    rec = ErrorRecord.create("exams.xlsx", "exam", 12, "VALIDATION_ERROR", "Place is required", field="place")
    assert rec.timestamp.endswith("Z")
    assert "+00:00" not in rec.timestamp
    assert rec.row == 12
    assert rec.field == "place"


def test_json_line_keeps_arabic_text():
    rec = ErrorRecord.create("جدول.xlsx", "exam", -1, "MAPPING_ERROR", "required fields not mapped: place")
    data = json.loads(rec.to_json_line())
    assert data["file"] == "جدول.xlsx"
    assert data["row"] == -1
    assert data["field"] is None
    assert "جدول" in rec.to_json_line()
