from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

from ..excel.temporal import parse_date, parse_time, to_ascii_digits
from ..models.extracted_record import ExtractedRecord
from ..models.grid import Cell, RawGrid
from ..models.processing_result import ExtractionResult
from ..models.vocabulary import FieldKind, RecordType

if TYPE_CHECKING:
    from .header_mapper import HeaderMapping
    from .validator import RowValidator

"""Shared extraction plumbing.

Every extractor yields ExtractedRecords from a grid; RecordExtractor.extract
submits each one to the row validator individually and splits the outcome
into valid rows and errors. One bad row never affects another.
"""

__all__ = [
    "RecordExtractor",
    "coerce_value",
    "normalize_course_code",
    "find_student_id",
    "STUDENT_ID_RE",
]

logger = logging.getLogger(__name__)

STUDENT_ID_RE = re.compile(r"^\d{9}$")
_LETTERS_FIRST_RE = re.compile(r"^([A-Z]{2,})[\s.]*(\d{2,})(?![\d])", re.IGNORECASE)
_NUMBERS_FIRST_RE = re.compile(r"^(\d{2,})[\s.]*([A-Z]{2,})(?![A-Z])", re.IGNORECASE)
_RANGE_SEP_RE = re.compile(r"\s*-\s*")

Prepare = Callable[[ExtractedRecord], ExtractedRecord]


def normalize_course_code(text: str) -> str | None:
    """Course code at the start of a cell ("CS 101", "cs101", "281 QURN").

    The matched text is kept as written, uppercased and space-collapsed, so the
    same course reads the same in every layout. None when the cell holds no code.
    """
    s = to_ascii_digits(text).strip()
    m = _LETTERS_FIRST_RE.match(s) or _NUMBERS_FIRST_RE.match(s)
    if not m:
        return None
    return " ".join(m.group(0).split()).upper()


def find_student_id(grid: RawGrid, row: int, columns: tuple[int, ...]) -> str | None:
    """First 9-digit token found in the given columns (priority order)."""
    for col in columns:
        token = to_ascii_digits(grid.text(row, col))
        if STUDENT_ID_RE.match(token):
            return token
    return None


def coerce_value(kind: FieldKind, cell: Cell) -> Any:
    """Cell -> raw field value according to the field kind (None for blank cells).

    Unparseable dates and times are passed through as text so that the
    validator reports them instead of silently dropping them.
    """
    if cell.is_empty:
        return None
    text = cell.display_text.strip()
    if kind is FieldKind.DATE:
        return parse_date(cell) or text
    if kind is FieldKind.TIME:
        return parse_time(cell) or text
    if kind is FieldKind.CODE:
        return " ".join(to_ascii_digits(text).split())
    if kind is FieldKind.RANGE:
        return _RANGE_SEP_RE.sub("-", to_ascii_digits(text))
    if kind is FieldKind.INTEGER:
        if isinstance(cell.value, (int, float)) and not isinstance(cell.value, bool):
            return cell.value
        return to_ascii_digits(text)
    return text


class RecordExtractor(ABC):
    record_type: RecordType

    @abstractmethod
    def iter_records(self, grid: RawGrid, mapping: HeaderMapping | None = None) -> Iterator[ExtractedRecord]:
        """Yield one ExtractedRecord per physical occurrence in the grid."""

    def extract(
        self,
        grid: RawGrid,
        validator: RowValidator,
        mapping: HeaderMapping | None = None,
        prepare: Prepare | None = None,
    ) -> ExtractionResult:
        result = ExtractionResult()
        for record in self.iter_records(grid, mapping):
            if prepare is not None:
                record = prepare(record)
            outcome = validator.validate(record)
            if outcome.error is not None:
                logger.debug("row %d rejected: %s", record.row_number, outcome.error.message)
                result.errors.append(outcome.error)
            else:
                logger.debug("row %d accepted", record.row_number)
                result.valid_rows.append(outcome.record)
        return result
