from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from regingest.models.processing_result import BatchResult, FileStat, IngestResult
from regingest.models.records import EnrollmentRecord
from regingest.models.validation_error import ValidationError
from regingest.services.summary import render_summary_line, summarize_errors

SUMMARY_RE = re.compile(
    r"^SUMMARY files=(\d+)/(\d+) success=(\d+) failed=(\d+) valid=(\d+) errors=(\d+) "
    r"elapsed_sec=([0-9.]+) throughput_rps=([0-9.]+)$"
)


def _batch(valid: int, errors: int, failed: int = 0, elapsed: float = 2.0) -> BatchResult:
    start = datetime(2025, 1, 1, tzinfo=UTC)
    result = IngestResult(
        valid_rows=[EnrollmentRecord(str(i), "CS 101", "1") for i in range(valid)],
        errors=[ValidationError(row=i + 2, message="Place is required", field="place") for i in range(errors)],
    )
    stats = [FileStat("a.xlsx", "enrollment", "success", valid, errors, elapsed)]
    stats += [FileStat(f"bad{i}.xlsx", "enrollment", "failed", 0, 0, 0.0, "boom") for i in range(failed)]
    return BatchResult(
        results={"a.xlsx": result},
        file_stats=stats,
        start_time=start,
        end_time=start + timedelta(seconds=elapsed),
        elapsed_seconds=elapsed,
    )


def test_summary_line_format():
    line = render_summary_line(3, _batch(valid=950, errors=50, failed=2))
    m = SUMMARY_RE.match(line)
    assert m, line
    assert m.groups() == ("3", "3", "1", "2", "950", "50", "2", "475")


def test_summary_line_small_numbers_avoid_scientific_notation():
    line = render_summary_line(1, _batch(valid=0, errors=0, elapsed=0.0001))
    assert "elapsed_sec=0.0001" in line
    assert "e-" not in line
    assert line.endswith("throughput_rps=0")


def test_batch_properties():
    batch = _batch(valid=4, errors=1, failed=1)
    assert batch.total_valid_rows == 4
    assert batch.total_errors == 1
    assert batch.success_files == 1
    assert batch.failed_files == 1
    assert batch.success
    assert batch.throughput_rows_per_sec == 2.0
    assert not _batch(valid=0, errors=3).success


def test_summarize_errors_samples_and_counts():
    errors = [ValidationError(row=i, message="Place is required", field="place") for i in range(2, 14)]
    errors.append(ValidationError(row=20, message="unreadable row"))
    summary = summarize_errors(errors, total_valid=95, sample_size=10)
    assert summary.total_valid == 95
    assert summary.total_errors == 13
    assert len(summary.sample) == 10
    assert summary.sample[0].row == 2
    assert summary.by_key == {"place": 12, "unreadable row": 1}
    assert summary.to_dict()["sample"][0] == {"row": 2, "field": "place", "message": "Place is required"}
