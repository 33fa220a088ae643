from __future__ import annotations

import logging
from collections.abc import Iterator

from ..models.extracted_record import ExtractedRecord
from ..models.grid import RawGrid
from ..models.vocabulary import FieldVocabulary
from .extraction import RecordExtractor, coerce_value
from .header_mapper import HeaderMapping

"""Flat-table extractor: header row 1, one record per following row."""

__all__ = [
    "FlatTableExtractor",
]

logger = logging.getLogger(__name__)


class FlatTableExtractor(RecordExtractor):
    """Extract records from a flat table using a field -> header mapping.

    Each mapped header is resolved to its own column index. Rows whose mapped
    cells are all blank are skipped.
    """

    def __init__(self, vocabulary: FieldVocabulary) -> None:
        self.vocabulary = vocabulary
        self.record_type = vocabulary.record_type

    def iter_records(self, grid: RawGrid, mapping: HeaderMapping | None = None) -> Iterator[ExtractedRecord]:
        if mapping is None:
            raise ValueError("flat-table extraction requires a header mapping")
        columns = grid.header_columns()
        field_columns: dict[str, int] = {}
        for name, header in mapping.mapped().items():
            if header in columns:
                field_columns[name] = columns[header]
            else:
                logger.warning("mapped header %r for %s not found in row 1", header, name)

        for row in range(2, grid.row_count + 1):
            values: dict[str, object] = {}
            empty = True
            for name, col in field_columns.items():
                cell = grid.cell(row, col)
                if not cell.is_empty:
                    empty = False
                values[name] = coerce_value(self.vocabulary.field(name).kind, cell)
            if empty:
                continue
            yield ExtractedRecord(row_number=row, record_type=self.record_type, values=values)
