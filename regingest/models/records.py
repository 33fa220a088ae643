from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from .vocabulary import RecordType

"""Canonical validated records.

Date fields hold YYYY-MM-DD strings (Hijri or Gregorian, distinguished by the
year range 1200-1599). Time fields hold 24-hour HH:MM strings.
"""

__all__ = [
    "ExamRecord",
    "EnrollmentRecord",
    "LecturerDutyRecord",
    "RECORD_CLASSES",
    "CanonicalRecord",
]


@dataclass(frozen=True)
class ExamRecord:
    course_code: str
    course_name: str
    class_no: str
    exam_date: str
    start_time: str
    end_time: str | None
    place: str
    period: str
    rows: str | None = None
    seats: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class EnrollmentRecord:
    student_id: str
    course_code: str
    class_no: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LecturerDutyRecord:
    lecturer_name: str
    section: str
    course_code: str
    course_name: str
    room: str
    exam_date: str
    exam_period: str
    period_start: str
    role: str | None = None
    grade: str | None = None
    exam_code: str | None = None
    number_of_students: int | None = None
    column: str | None = None
    day: str | None = None
    invigilator: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


CanonicalRecord = ExamRecord | EnrollmentRecord | LecturerDutyRecord

RECORD_CLASSES: dict[RecordType, type] = {
    RecordType.EXAM: ExamRecord,
    RecordType.ENROLLMENT: EnrollmentRecord,
    RecordType.LECTURER_DUTY: LecturerDutyRecord,
}
