from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .vocabulary import RecordType

"""ExtractedRecord model.

An ExtractedRecord is one physical occurrence of a record in the source grid,
before validation. Extractors never merge occurrences; duplicates are for the
storage layer to resolve.
"""

__all__ = [
    "ExtractedRecord",
]


@dataclass(frozen=True)
class ExtractedRecord:
    """Field values pulled from one grid location.

    row_number is the 1-based worksheet row the record was read from (for
    block and section files, the row carrying the course or student id).
    """
    row_number: int
    record_type: RecordType
    values: dict[str, Any]

    def with_values(self, **updates: Any) -> ExtractedRecord:
        merged = dict(self.values)
        merged.update(updates)
        return ExtractedRecord(self.row_number, self.record_type, merged)
