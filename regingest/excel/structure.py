from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from ..models.config_models import DetectionSettings
from ..models.grid import RawGrid
from .temporal import to_ascii_digits

"""Structure detection for registration exports.

Three layouts are recognised:

- flat table: header row 1, one record per row
- block: one group of rows per student, groups separated by blank rows
- section: repeating "course:" / "section:" key-value rows, each followed by a
  roster of student rows

Detection is heuristic and looks only at a leading sample of rows. Section
evidence wins over block evidence because section files also contain many
blank separator rows.
"""

__all__ = [
    "StructureKind",
    "StructureReport",
    "detect_structure",
    "COURSE_MARKER_RE",
    "SECTION_MARKER_RE",
    "COURSE_CODE_TOKEN_RE",
    "SECTION_NUMBER_RE",
    "find_marker_value",
]

logger = logging.getLogger(__name__)

COURSE_MARKER_RE = re.compile(r"المقرر|\bcourse\s*:", re.IGNORECASE)
SECTION_MARKER_RE = re.compile(r"الشعبة|شعبة|\bsection\s*:", re.IGNORECASE)
COURSE_CODE_TOKEN_RE = re.compile(r"^[A-Z]{2,}\s*\d{2,}", re.IGNORECASE)
SECTION_NUMBER_RE = re.compile(r"^\d+$")
_NUMERIC_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)?$")


class StructureKind(str, Enum):
    FLAT_TABLE = "flat_table"
    BLOCK = "block"
    SECTION = "section"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class StructureReport:
    is_block_structure: bool
    is_section_structure: bool
    has_headers: bool
    estimated_row_count: int
    block_count: int
    course_markers: int = 0
    section_markers: int = 0

    @property
    def kind(self) -> StructureKind:
        if self.is_section_structure:
            return StructureKind.SECTION
        if self.is_block_structure:
            return StructureKind.BLOCK
        if self.has_headers:
            return StructureKind.FLAT_TABLE
        return StructureKind.UNKNOWN

    def to_dict(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "is_block_structure": self.is_block_structure,
            "is_section_structure": self.is_section_structure,
            "has_headers": self.has_headers,
            "estimated_row_count": self.estimated_row_count,
            "block_count": self.block_count,
        }


def find_marker_value(
    texts: list[str], marker: re.Pattern[str], value: re.Pattern[str], lookahead: int
) -> str | None:
    """Value of the first marker cell followed within ``lookahead`` cells by a matching token.

    The marker cell itself may carry the value after a colon ("Section: 3").
    """
    for idx, text in enumerate(texts):
        if not text or not marker.search(text):
            continue
        _, sep, tail = text.partition(":")
        tail = to_ascii_digits(tail).strip()
        if sep and tail and value.match(tail):
            return tail
        for candidate in texts[idx + 1 : idx + 1 + lookahead]:
            candidate = to_ascii_digits(candidate).strip()
            if candidate and value.match(candidate):
                return candidate
    return None


def _has_headers(grid: RawGrid, scan_columns: int) -> bool:
    for text in grid.row_texts(1)[:scan_columns]:
        if text and not _NUMERIC_RE.match(to_ascii_digits(text)):
            return True
    return False


def detect_structure(grid: RawGrid, settings: DetectionSettings | None = None) -> StructureReport:
    """Classify a grid as flat table, block or section layout.

    Args:
        grid: worksheet grid
        settings: sample sizes and thresholds (defaults when None)

    Returns:
        StructureReport with flags, estimated data row count and block count
    """
    settings = settings or DetectionSettings()

    # block statistics
    sample = min(settings.block_sample_rows, grid.row_count)
    empty_rows = 0
    block_starts = 0
    data_rows = 0
    prev_empty = True
    for row in range(1, sample + 1):
        empty = grid.is_empty_row(row)
        if empty:
            empty_rows += 1
        else:
            data_rows += 1
            if prev_empty:
                block_starts += 1
        prev_empty = empty
    empty_ratio = (empty_rows / sample) if sample else 0.0
    is_block = block_starts >= settings.min_block_starts and empty_ratio > settings.min_empty_ratio

    # section statistics
    course_hits = 0
    section_hits = 0
    for row in range(1, min(settings.section_sample_rows, grid.row_count) + 1):
        texts = grid.row_texts(row)
        if find_marker_value(texts, COURSE_MARKER_RE, COURSE_CODE_TOKEN_RE, settings.marker_lookahead):
            course_hits += 1
        if find_marker_value(texts, SECTION_MARKER_RE, SECTION_NUMBER_RE, settings.marker_lookahead):
            section_hits += 1
    is_section = course_hits >= settings.min_marker_hits and section_hits >= settings.min_marker_hits

    has_headers = _has_headers(grid, settings.header_scan_columns)
    # data rows exclude the header row for flat tables
    estimated = data_rows - 1 if has_headers and not (is_block or is_section) and data_rows else data_rows

    report = StructureReport(
        is_block_structure=is_block and not is_section,
        is_section_structure=is_section,
        has_headers=has_headers,
        estimated_row_count=max(estimated, 0),
        block_count=block_starts,
        course_markers=course_hits,
        section_markers=section_hits,
    )
    logger.debug(
        "structure %s: sampled=%d empty_ratio=%.2f block_starts=%d course_markers=%d section_markers=%d",
        report.kind.value, sample, empty_ratio, block_starts, course_hits, section_hits,
    )
    return report
