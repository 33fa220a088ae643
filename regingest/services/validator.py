from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from jsonschema import Draft202012Validator

from ..excel.temporal import is_hijri, to_ascii_digits, to_gregorian_storage
from ..models.config_models import CalendarPolicy, IngestSettings
from ..models.extracted_record import ExtractedRecord
from ..models.records import RECORD_CLASSES, CanonicalRecord
from ..models.validation_error import ValidationError
from ..models.vocabulary import FieldKind, FieldVocabulary, RecordType, get_vocabulary

"""Row validation.

Each record type has a JSON Schema derived from its vocabulary (required
presence, date/time patterns, nullable counts). Values are coerced first:
codes trimmed and space-collapsed, ranges normalized ("1 - 8" -> "1-8"),
counts parsed as integers (anything unparseable becomes null). The first
schema violation in field order becomes the record's single ValidationError.

The calendar policy is applied here and only here, so every record type gets
the same treatment.
"""

__all__ = [
    "ValidationOutcome",
    "RowValidator",
    "build_record_schema",
    "DATE_PATTERN",
    "TIME_PATTERN",
]

logger = logging.getLogger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^\d{2}:\d{2}$"
_RANGE_SEP_RE = re.compile(r"\s*-\s*")
_INT_RE = re.compile(r"^[+-]?\d+(?:\.0+)?$")


@dataclass(frozen=True)
class ValidationOutcome:
    record: CanonicalRecord | None = None
    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def build_record_schema(vocabulary: FieldVocabulary) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    for spec in vocabulary.fields:
        if spec.kind is FieldKind.INTEGER:
            prop: dict[str, Any] = {"type": ["integer", "null"]}
        elif spec.required:
            prop = {"type": "string", "minLength": 1}
        else:
            prop = {"type": ["string", "null"]}
        if spec.kind is FieldKind.DATE:
            prop["pattern"] = DATE_PATTERN
        elif spec.kind is FieldKind.TIME:
            prop["pattern"] = TIME_PATTERN
        properties[spec.name] = prop
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": vocabulary.record_type.value,
        "type": "object",
        "properties": properties,
        "required": [f.name for f in vocabulary.required_fields],
    }


def _coerce_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = to_ascii_digits(str(value)).strip()
    if _INT_RE.match(text):
        return int(float(text))
    return None


def _as_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class RowValidator:
    """Validate ExtractedRecords of one record type into canonical records."""

    def __init__(self, record_type: RecordType | str, settings: IngestSettings | None = None) -> None:
        self.vocabulary = get_vocabulary(record_type)
        self.record_type = self.vocabulary.record_type
        self.settings = settings or IngestSettings()
        self.schema = build_record_schema(self.vocabulary)
        self._validator = Draft202012Validator(self.schema)
        self._order = {name: idx for idx, name in enumerate(self.vocabulary.names)}

    def _coerce(self, values: dict[str, Any]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for spec in self.vocabulary.fields:
            raw = values.get(spec.name)
            if spec.kind is FieldKind.INTEGER:
                data[spec.name] = _coerce_int(raw)
                continue
            if raw is None:
                data[spec.name] = None
                continue
            text = _as_text(raw).strip()
            if spec.kind is FieldKind.CODE:
                text = " ".join(to_ascii_digits(text).split())
            elif spec.kind is FieldKind.RANGE:
                text = _RANGE_SEP_RE.sub("-", to_ascii_digits(text))
            elif spec.kind in (FieldKind.DATE, FieldKind.TIME):
                text = to_ascii_digits(text)
            data[spec.name] = text if text else None
        return data

    def _message(self, field_name: str, keyword: str) -> str:
        spec = self.vocabulary.field(field_name)
        if keyword == "pattern" and spec.kind is FieldKind.DATE:
            return f"{spec.label} must be a date in YYYY-MM-DD format"
        if keyword == "pattern" and spec.kind is FieldKind.TIME:
            return f"{spec.label} must be a time in HH:MM format"
        if keyword in ("required", "type", "minLength") and spec.required:
            return f"{spec.label} is required"
        return f"{spec.label} is invalid"

    def _first_error(self, row: int, data: dict[str, Any]) -> ValidationError | None:
        found: list[tuple[int, str, str]] = []
        for err in self._validator.iter_errors(data):
            if err.validator == "required":
                missing = [n for n in err.validator_value if n not in err.instance]
                names = missing or [str(err.validator_value[0])]
            elif err.path:
                names = [str(err.path[0])]
            else:
                continue
            for name in names:
                found.append((self._order.get(name, len(self._order)), name, str(err.validator)))
        if not found:
            return None
        _, name, keyword = min(found)
        return ValidationError(row=row, field=name, message=self._message(name, keyword))

    def _apply_calendar_policy(self, row: int, data: dict[str, Any]) -> ValidationError | None:
        if self.settings.calendar_policy is not CalendarPolicy.GREGORIAN:
            return None
        for spec in self.vocabulary.fields:
            value = data.get(spec.name)
            if spec.kind is not FieldKind.DATE or not value or not is_hijri(value):
                continue
            try:
                data[spec.name] = to_gregorian_storage(value)
            except ValueError:
                return ValidationError(row=row, field=spec.name, message=f"{spec.label} is not a valid Hijri date")
        return None

    def validate(self, record: ExtractedRecord) -> ValidationOutcome:
        data = self._coerce(record.values)
        error = self._first_error(record.row_number, data)
        if error is None:
            error = self._apply_calendar_policy(record.row_number, data)
        if error is not None:
            return ValidationOutcome(error=error)
        return ValidationOutcome(record=RECORD_CLASSES[self.record_type](**data))
