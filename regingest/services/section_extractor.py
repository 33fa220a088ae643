from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from ..excel.structure import (
    COURSE_CODE_TOKEN_RE,
    COURSE_MARKER_RE,
    SECTION_MARKER_RE,
    SECTION_NUMBER_RE,
    find_marker_value,
)
from ..models.config_models import BlockSettings, DetectionSettings
from ..models.extracted_record import ExtractedRecord
from ..models.grid import RawGrid
from ..models.vocabulary import RecordType
from .extraction import RecordExtractor, find_student_id, normalize_course_code
from .header_mapper import HeaderMapping

"""Section extractor for course/section roster reports.

Layout handled:

    | المقرر  | CS 101 |
    | الشعبة  | 3      |
    | رقم الطالب | اسم الطالب |      <- roster header
    |  | 441012345 | name |         <- roster rows
    |  | 441012346 | name |
    | الشعبة  | 4      |            <- new section, same course
    ...

The extractor is a state machine over rows:

    SEEKING -> HAVE_COURSE -> HAVE_COURSE_AND_SECTION -> IN_ROSTER

A course marker sets the course and clears the section. A section marker sets
the section once a course is known. A student-id header enters roster mode,
where every row with a 9-digit id yields an enrollment for the carried
course/section. Blank rows do not end roster mode; the next marker does.
"""

__all__ = [
    "SectionState",
    "SectionExtractor",
]

logger = logging.getLogger(__name__)

_STUDENT_HEADER_RE = re.compile(r"رقم\s*الطالب|student\s*(?:id|no|number)", re.IGNORECASE)


class SectionState(Enum):
    SEEKING = "seeking"
    HAVE_COURSE = "have_course"
    HAVE_COURSE_AND_SECTION = "have_course_and_section"
    IN_ROSTER = "in_roster"


@dataclass
class _Cursor:
    state: SectionState = SectionState.SEEKING
    course: str | None = None
    section: str | None = None

    def set_course(self, course: str) -> None:
        self.course = course
        self.section = None
        self.state = SectionState.HAVE_COURSE

    def set_section(self, section: str) -> None:
        self.section = section
        self.state = SectionState.HAVE_COURSE_AND_SECTION


class SectionExtractor(RecordExtractor):
    record_type = RecordType.ENROLLMENT

    def __init__(
        self, settings: BlockSettings | None = None, detection: DetectionSettings | None = None
    ) -> None:
        self.settings = settings or BlockSettings()
        self.lookahead = (detection or DetectionSettings()).marker_lookahead

    def iter_records(self, grid: RawGrid, mapping: HeaderMapping | None = None) -> Iterator[ExtractedRecord]:
        cursor = _Cursor()
        for row in range(1, grid.row_count + 1):
            texts = grid.row_texts(row)
            if not any(texts):
                continue

            course = find_marker_value(texts, COURSE_MARKER_RE, COURSE_CODE_TOKEN_RE, self.lookahead)
            section = find_marker_value(texts, SECTION_MARKER_RE, SECTION_NUMBER_RE, self.lookahead)
            if course or section:
                if course:
                    cursor.set_course(normalize_course_code(course) or " ".join(course.split()).upper())
                if section:
                    if cursor.course is None:
                        logger.debug("row %d: section %s before any course, ignored", row, section)
                    else:
                        cursor.set_section(section)
                continue

            if cursor.state is SectionState.HAVE_COURSE_AND_SECTION:
                if any(_STUDENT_HEADER_RE.search(t) for t in texts if t):
                    cursor.state = SectionState.IN_ROSTER
                continue

            if cursor.state is SectionState.IN_ROSTER:
                student_id = find_student_id(grid, row, self.settings.roster_id_columns)
                if student_id is None:
                    continue
                yield ExtractedRecord(
                    row_number=row,
                    record_type=self.record_type,
                    values={
                        "student_id": student_id,
                        "course_code": cursor.course,
                        "class_no": cursor.section,
                    },
                )
