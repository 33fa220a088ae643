from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

"""Configuration dataclasses.

IngestSettings carries the tunables the ingestion engine needs; it has
defaults for every value so library callers can ingest without a config file.
IngestConfig is the root object built by regingest.config.loader for the CLI.
"""

__all__ = [
    "CalendarPolicy",
    "DetectionSettings",
    "BlockSettings",
    "IngestSettings",
    "DatabaseConfig",
    "IngestConfig",
]


class CalendarPolicy(str, Enum):
    PRESERVE = "preserve"  # Hijri dates stored verbatim
    GREGORIAN = "gregorian"  # Hijri dates converted once, at validation


@dataclass(frozen=True)
class DetectionSettings:
    block_sample_rows: int = 100
    section_sample_rows: int = 200
    min_block_starts: int = 4
    min_empty_ratio: float = 0.1
    min_marker_hits: int = 2
    marker_lookahead: int = 5
    header_scan_columns: int = 10


@dataclass(frozen=True)
class BlockSettings:
    student_id_columns: tuple[int, ...] = (2, 4, 1, 3, 5)  # 1-based, priority order
    student_scan_rows: int = 10
    roster_id_columns: tuple[int, ...] = (2, 3, 4, 5)


@dataclass(frozen=True)
class IngestSettings:
    calendar_policy: CalendarPolicy = CalendarPolicy.PRESERVE
    default_exam_duration_minutes: int = 120
    error_sample_size: int = 10
    max_workers: int = 4
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    blocks: BlockSettings = field(default_factory=BlockSettings)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection fallback; environment variables take precedence."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class IngestConfig:
    source_directory: str
    files: dict[str, list[str]]  # record type -> glob patterns
    mappings: dict[str, dict[str, str]]  # record type -> explicit field -> header
    settings: IngestSettings
    dataset: str | None = None  # label written alongside persisted rows
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
