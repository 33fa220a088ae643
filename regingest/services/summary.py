from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass

from ..models.processing_result import BatchResult
from ..models.validation_error import ValidationError

"""Result summaries.

render_summary_line() produces the single SUMMARY line printed at the end of
a CLI run:

    SUMMARY files=3/3 success=3 failed=0 valid=950 errors=50 elapsed_sec=1.2 throughput_rps=791.67

summarize_errors() gives callers a bounded view of row errors: the first N
errors verbatim plus a frequency count keyed by field (or by message when an
error has no field).
"""

__all__ = [
    "ErrorSummary",
    "summarize_errors",
    "render_summary_line",
]


@dataclass(frozen=True)
class ErrorSummary:
    total_valid: int
    total_errors: int
    sample: list[ValidationError]
    by_key: dict[str, int]

    def to_dict(self) -> dict[str, object]:
        return {
            "total_valid": self.total_valid,
            "total_errors": self.total_errors,
            "sample": [{"row": e.row, "field": e.field, "message": e.message} for e in self.sample],
            "by_key": self.by_key,
        }


def summarize_errors(errors: Sequence[ValidationError], total_valid: int, sample_size: int = 10) -> ErrorSummary:
    counts = Counter(e.summary_key for e in errors)
    return ErrorSummary(
        total_valid=total_valid,
        total_errors=len(errors),
        sample=list(errors[:sample_size]),
        by_key=dict(counts.most_common()),
    )


def _format_number(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(total_files: int, result: BatchResult) -> str:
    """Render the SUMMARY line for a batch.

    Args:
        total_files: number of files detected
        result: batch outcome

    Returns:
        "SUMMARY files=.. success=.. failed=.. valid=.. errors=.. elapsed_sec=.. throughput_rps=.."
    """
    return (
        f"SUMMARY files={total_files}/{total_files} "
        f"success={result.success_files} "
        f"failed={result.failed_files} "
        f"valid={result.total_valid_rows} "
        f"errors={result.total_errors} "
        f"elapsed_sec={_format_number(result.elapsed_seconds)} "
        f"throughput_rps={_format_number(result.throughput_rows_per_sec)}"
    )
