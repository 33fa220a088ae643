from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .validation_error import ValidationError

if TYPE_CHECKING:
    from ..excel.structure import StructureReport

"""Result models for single-file and multi-file ingestion.

No record ever appears in both valid_rows and errors: a record either passes
validation and becomes a canonical record, or produces exactly one
ValidationError.
"""

__all__ = [
    "ExtractionResult",
    "IngestResult",
    "FileStat",
    "BatchResult",
]


@dataclass
class ExtractionResult:
    valid_rows: list[Any] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)


@dataclass
class IngestResult(ExtractionResult):
    """Outcome of ingesting one grid.

    structure and mapping are diagnostics: the detected layout and the
    effective field -> header mapping (empty for block/section files).
    """
    structure: StructureReport | None = None
    mapping: dict[str, str | None] = field(default_factory=dict)


@dataclass(frozen=True)
class FileStat:
    """Per-file outcome inside a batch."""
    file_name: str
    record_type: str
    status: str  # success/failed
    valid_rows: int
    error_rows: int
    elapsed_seconds: float
    error: str | None = None  # failure reason for status=failed


@dataclass(frozen=True)
class BatchResult:
    """Concatenated outcome of a multi-file ingestion.

    results keeps the per-file IngestResult in input order; failed files have
    no entry there but appear in file_stats.
    """
    results: dict[str, IngestResult]
    file_stats: list[FileStat]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float

    @property
    def valid_rows(self) -> list[Any]:
        return [r for res in self.results.values() for r in res.valid_rows]

    @property
    def errors(self) -> list[ValidationError]:
        return [e for res in self.results.values() for e in res.errors]

    @property
    def total_valid_rows(self) -> int:
        return sum(len(res.valid_rows) for res in self.results.values())

    @property
    def total_errors(self) -> int:
        return sum(len(res.errors) for res in self.results.values())

    @property
    def success_files(self) -> int:
        return sum(1 for s in self.file_stats if s.status == "success")

    @property
    def failed_files(self) -> int:
        return sum(1 for s in self.file_stats if s.status == "failed")

    @property
    def success(self) -> bool:
        # the whole batch only fails when nothing at all could be ingested
        return self.total_valid_rows > 0

    @property
    def throughput_rows_per_sec(self) -> float:
        if self.elapsed_seconds <= 0:
            return 0.0
        return round(self.total_valid_rows / self.elapsed_seconds, 2)
