from __future__ import annotations

import logging
import re
from collections.abc import Iterator

from ..models.config_models import BlockSettings
from ..models.extracted_record import ExtractedRecord
from ..models.grid import RawGrid
from ..models.vocabulary import RecordType
from .extraction import RecordExtractor, find_student_id, normalize_course_code
from .header_mapper import HeaderMapping

"""Block extractor for per-student enrollment reports.

Layout handled (one block per student, blocks separated by blank rows):

    | 441012345 | Student name ...            |
    | رقم المقرر | اسم المقرر | الشعبة | ...   |   <- course header row
    | CS 101     | Programming | 3      | ...   |
    | MATH 201   | Calculus II | 1      | ...   |

A block whose first rows carry no 9-digit student id is skipped. A student
segment without a course header row yields nothing: that is a normal case
(students with no registered courses), not an error.
"""

__all__ = [
    "BlockExtractor",
    "split_blocks",
]

logger = logging.getLogger(__name__)

_COURSE_HEADER_SPECIFIC_RE = re.compile(
    r"رقم\s*المقرر|رمز\s*المقرر|course\s*(?:no|code|number)", re.IGNORECASE
)
_COURSE_HEADER_GENERIC_RE = re.compile(r"المقرر")
_CLASS_HEADER_RE = re.compile(r"الشعبة|شعبة|شعب|section|class", re.IGNORECASE)


def split_blocks(grid: RawGrid) -> list[tuple[int, int]]:
    """Maximal runs of non-empty rows as (first_row, last_row), 1-based inclusive."""
    blocks: list[tuple[int, int]] = []
    start: int | None = None
    for row in range(1, grid.row_count + 1):
        if grid.is_empty_row(row):
            if start is not None:
                blocks.append((start, row - 1))
                start = None
        elif start is None:
            start = row
    if start is not None:
        blocks.append((start, grid.row_count))
    return blocks


def _first_column(texts: list[str], pattern: re.Pattern[str], skip: int | None = None) -> int | None:
    for idx, text in enumerate(texts, start=1):
        if idx != skip and text and pattern.search(text):
            return idx
    return None


class BlockExtractor(RecordExtractor):
    record_type = RecordType.ENROLLMENT

    def __init__(self, settings: BlockSettings | None = None) -> None:
        self.settings = settings or BlockSettings()

    def iter_records(self, grid: RawGrid, mapping: HeaderMapping | None = None) -> Iterator[ExtractedRecord]:
        for start, end in split_blocks(grid):
            anchors: list[tuple[int, str]] = []
            for row in range(start, end + 1):
                student_id = find_student_id(grid, row, self.settings.student_id_columns)
                if student_id:
                    anchors.append((row, student_id))
            if not anchors or anchors[0][0] - start >= self.settings.student_scan_rows:
                logger.debug("block rows %d-%d: no student id, skipped", start, end)
                continue
            for idx, (row, student_id) in enumerate(anchors):
                segment_end = anchors[idx + 1][0] - 1 if idx + 1 < len(anchors) else end
                yield from self._segment_records(grid, student_id, row, segment_end)

    def _segment_records(
        self, grid: RawGrid, student_id: str, first_row: int, last_row: int
    ) -> Iterator[ExtractedRecord]:
        header_row = course_col = None
        for row in range(first_row, last_row + 1):
            texts = grid.row_texts(row)
            course_col = _first_column(texts, _COURSE_HEADER_SPECIFIC_RE) or _first_column(
                texts, _COURSE_HEADER_GENERIC_RE
            )
            if course_col is not None:
                header_row = row
                break
        if header_row is None or course_col is None:
            logger.debug("student %s (rows %d-%d): no course header", student_id, first_row, last_row)
            return

        class_col = _first_column(grid.row_texts(header_row), _CLASS_HEADER_RE, skip=course_col)
        if class_col is None:
            logger.debug("student %s: course header row %d has no section column", student_id, header_row)
            return

        # merged header cells can leave the code one column off
        candidates: list[int] = []
        for col in (course_col, course_col + 1, course_col - 1, 2, 3):
            if col >= 1 and col != class_col and col not in candidates:
                candidates.append(col)

        seen: set[tuple[str, str]] = set()
        for row in range(header_row + 1, last_row + 1):
            code = None
            for col in candidates:
                code = normalize_course_code(grid.text(row, col))
                if code:
                    break
            if not code:
                continue
            class_no = grid.text(row, class_col)
            if not class_no or class_no == "-":
                continue
            key = (code, class_no)
            if key in seen:
                continue
            seen.add(key)
            yield ExtractedRecord(
                row_number=row,
                record_type=self.record_type,
                values={"student_id": student_id, "course_code": code, "class_no": class_no},
            )
