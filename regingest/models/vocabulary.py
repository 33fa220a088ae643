from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Field vocabularies for each record type.

Every target record type declares its canonical fields: whether a field is
required, how its cell value is coerced, the bilingual header phrases that
identify it (most specific first), and an optional positional guess used when
no phrase matches.

Header phrases come from the registration system's historical exports, which
mix Arabic and English and are not consistent about articles, spacing or
underscores.
"""

__all__ = [
    "RecordType",
    "FieldKind",
    "FieldSpec",
    "FieldVocabulary",
    "EXAM_VOCABULARY",
    "ENROLLMENT_VOCABULARY",
    "LECTURER_DUTY_VOCABULARY",
    "get_vocabulary",
]


class RecordType(str, Enum):
    EXAM = "exam"
    ENROLLMENT = "enrollment"
    LECTURER_DUTY = "lecturer_duty"


class FieldKind(str, Enum):
    TEXT = "text"
    CODE = "code"  # trimmed, inner whitespace collapsed
    DATE = "date"
    TIME = "time"
    INTEGER = "integer"
    RANGE = "range"  # "1 - 8" -> "1-8"


@dataclass(frozen=True)
class FieldSpec:
    """Canonical field declaration.

    Attributes:
        name: canonical snake_case field name
        label: human readable label used in validation messages
        required: record is rejected when the value is missing
        kind: value coercion applied at extraction time
        patterns: header phrases, ranked by specificity (most specific first)
        position: 0-based header index guess for positional fallback (None = no guess)
        exclusive: False lets the field reclaim a header that another field only guessed
    """
    name: str
    label: str
    required: bool
    kind: FieldKind
    patterns: tuple[str, ...]
    position: int | None = None
    exclusive: bool = True


@dataclass(frozen=True)
class FieldVocabulary:
    record_type: RecordType
    fields: tuple[FieldSpec, ...]

    @property
    def names(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def required_fields(self) -> list[FieldSpec]:
        return [f for f in self.fields if f.required]

    def ordered_fields(self) -> list[FieldSpec]:
        """Mapping priority: required fields first, then optional, vocabulary order kept."""
        return [f for f in self.fields if f.required] + [f for f in self.fields if not f.required]

    def field(self, name: str) -> FieldSpec:
        for f in self.fields:
            if f.name == name:
                return f
        raise KeyError(name)


EXAM_VOCABULARY = FieldVocabulary(
    record_type=RecordType.EXAM,
    fields=(
        FieldSpec(
            "course_code", "Course code", True, FieldKind.CODE,
            ("رمز المقرر", "رمز_المقرر", "رقم المقرر", "course code", "course_code", "coursecode", "رمز", "code"),
            position=0,
        ),
        FieldSpec(
            "course_name", "Course name", True, FieldKind.TEXT,
            ("اسم المقرر", "اسم_المقرر", "course name", "course_name", "coursename", "اسم", "name"),
            position=1,
        ),
        FieldSpec(
            "class_no", "Class number", True, FieldKind.CODE,
            ("الشعبة", "شعبة", "class no", "class_no", "classno", "section", "class"),
            position=2,
        ),
        FieldSpec(
            "exam_date", "Exam date", True, FieldKind.DATE,
            ("تاريخ الاختبار", "التاريخ", "تاريخ", "exam date", "exam_date", "examdate", "date"),
            position=3,
        ),
        FieldSpec(
            "start_time", "Start time", True, FieldKind.TIME,
            (
                "بداية الفترة", "بداية_الفترة", "وقت البداية", "وقت_البداية",
                "start time", "start_time", "starttime", "وقت", "start", "begin",
            ),
            position=4,
        ),
        FieldSpec(
            "end_time", "End time", False, FieldKind.TIME,
            (
                "نهاية الفترة", "نهاية_الفترة", "وقت النهاية", "وقت_النهاية",
                "end time", "end_time", "endtime", "نهاية", "finish", "end",
            ),
            exclusive=False,
        ),
        FieldSpec(
            "place", "Place", True, FieldKind.TEXT,
            ("القاعة", "قاعة", "المكان", "مكان", "place", "location", "venue", "room"),
            position=6,
        ),
        FieldSpec(
            "period", "Period", True, FieldKind.TEXT,
            ("فترة الاختبار", "فترة_الاختبار", "exam period", "exam_type", "الفترة", "فترة", "period", "type"),
            position=7,
        ),
        FieldSpec(
            "rows", "Rows", False, FieldKind.RANGE,
            ("العمود", "عمود", "number of rows", "number_of_rows", "rows", "row"),
            exclusive=False,
        ),
        FieldSpec(
            "seats", "Seats", False, FieldKind.INTEGER,
            ("عدد الطلاب", "عدد_الطلاب", "number of seats", "number_of_seats", "seats", "seat", "capacity", "عدد"),
            exclusive=False,
        ),
    ),
)


ENROLLMENT_VOCABULARY = FieldVocabulary(
    record_type=RecordType.ENROLLMENT,
    fields=(
        FieldSpec(
            "student_id", "Student ID", True, FieldKind.CODE,
            ("رقم الطالب", "الرقم الجامعي", "student id", "student_id", "studentid", "student no", "student", "id"),
            position=0,
        ),
        FieldSpec(
            "course_code", "Course code", True, FieldKind.CODE,
            ("رمز المقرر", "رقم المقرر", "course code", "course_code", "coursecode", "code", "course", "المقرر"),
            position=1,
        ),
        FieldSpec(
            "class_no", "Class number", True, FieldKind.CODE,
            ("الشعبة", "شعبة", "class no", "class_no", "classno", "section", "class"),
            position=2,
        ),
    ),
)


LECTURER_DUTY_VOCABULARY = FieldVocabulary(
    record_type=RecordType.LECTURER_DUTY,
    fields=(
        FieldSpec(
            "lecturer_name", "Lecturer name", True, FieldKind.TEXT,
            ("lecturer's name", "lecturer name", "lecturer_name", "اسم المحاضر", "المحاضر", "lecturer"),
            position=0,
        ),
        FieldSpec("role", "Role", False, FieldKind.TEXT, ("role", "الدور", "المنصب")),
        FieldSpec("grade", "Grade", False, FieldKind.TEXT, ("grade", "الدرجة", "الرتبة")),
        FieldSpec("exam_code", "Exam code", False, FieldKind.CODE, ("exam code", "exam_code", "رمز الاختبار")),
        FieldSpec(
            "section", "Section", True, FieldKind.CODE,
            ("section", "الشعبة", "شعبة", "class no", "class_no", "class"),
            position=4,
        ),
        FieldSpec(
            "course_code", "Course code", True, FieldKind.CODE,
            ("course code", "course_code", "رمز المقرر", "رقم المقرر", "code"),
            position=5,
        ),
        FieldSpec(
            "course_name", "Course name", True, FieldKind.TEXT,
            ("course name", "course_name", "اسم المقرر", "name"),
            position=6,
        ),
        FieldSpec(
            "number_of_students", "Number of students", False, FieldKind.INTEGER,
            ("number of students", "number_of_students", "no. of students", "عدد الطلاب", "students"),
        ),
        FieldSpec(
            "room", "Room", True, FieldKind.TEXT,
            ("room", "القاعة", "قاعة", "place", "location"),
            position=8,
        ),
        FieldSpec("column", "Column", False, FieldKind.RANGE, ("column", "العمود", "عمود")),
        FieldSpec("day", "Day", False, FieldKind.TEXT, ("day", "اليوم")),
        FieldSpec(
            "exam_date", "Exam date", True, FieldKind.DATE,
            ("exam date", "exam_date", "تاريخ الاختبار", "التاريخ", "تاريخ", "date"),
            position=11,
        ),
        # claimed before exam_period so that "period" cannot swallow the start column
        FieldSpec(
            "period_start", "Period start", True, FieldKind.TIME,
            ("period start", "period_start", "بداية الفترة", "start time", "start_time", "start"),
            position=13,
        ),
        FieldSpec(
            "exam_period", "Exam period", True, FieldKind.TEXT,
            ("exam period", "exam_period", "فترة الاختبار", "الفترة", "period"),
            position=12,
        ),
        FieldSpec("invigilator", "Invigilator", False, FieldKind.TEXT, ("invigilator", "المراقب", "مراقب")),
    ),
)


_VOCABULARIES = {
    RecordType.EXAM: EXAM_VOCABULARY,
    RecordType.ENROLLMENT: ENROLLMENT_VOCABULARY,
    RecordType.LECTURER_DUTY: LECTURER_DUTY_VOCABULARY,
}


def get_vocabulary(record_type: RecordType | str) -> FieldVocabulary:
    return _VOCABULARIES[RecordType(record_type)]
