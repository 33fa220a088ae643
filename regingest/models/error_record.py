from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One ErrorRecord is written per rejected row and per failed file. File-level
failures (unreadable workbook, unmapped required fields) carry row=-1 because
no single row is at fault.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name
        record_type: exam / enrollment / lecturer_duty
        row: 1-based worksheet row, -1 for file-level errors
        field: offending canonical field, when known
        error_type: classification in UPPER_SNAKE_CASE (VALIDATION, MAPPING, STRUCTURE, ...)
        message: human readable description
    """
    timestamp: str  # ISO8601 UTC
    file: str
    record_type: str
    row: int
    field: str | None
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(
        file: str,
        record_type: str,
        row: int,
        error_type: str,
        message: str,
        field: str | None = None,
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            record_type=record_type,
            row=row,
            field=field,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
