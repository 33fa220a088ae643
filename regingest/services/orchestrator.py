from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from ..excel.reader import IngestError, Source, read_grid
from ..excel.structure import StructureKind, StructureReport, detect_structure
from ..excel.temporal import add_minutes
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import IngestSettings
from ..models.error_record import ErrorRecord
from ..models.extracted_record import ExtractedRecord
from ..models.processing_result import BatchResult, FileStat, IngestResult
from ..models.source_file import FileStatus, SourceFile
from ..models.vocabulary import RecordType, get_vocabulary
from .block_extractor import BlockExtractor
from .extraction import Prepare, RecordExtractor
from .flat_extractor import FlatTableExtractor
from .header_mapper import HeaderMapping, build_mapping
from .progress import ProgressTracker
from .section_extractor import SectionExtractor
from .validator import RowValidator

"""Ingestion orchestration.

ingest() runs one source through detection -> mapping -> extraction ->
validation. Enrollment files may be flat, block or section shaped; exam and
lecturer duty files are always flat tables. Fatal, file-level problems raise
IngestError subclasses; row problems are collected in the result.

ingest_many() runs independent files on a thread pool and concatenates their
results in input order. A failed file is recorded and the others continue;
the batch as a whole only fails when no valid row was produced.

probe_structure() and probe_auto_detect() answer "what is this file?" and
"would auto-mapping alone work?" without extracting anything.
"""

__all__ = [
    "ProcessingError",
    "MappingError",
    "AutoDetectReport",
    "read_headers",
    "probe_structure",
    "probe_auto_detect",
    "ingest",
    "ingest_many",
    "scan_source_files",
]

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^\d{2}:\d{2}$")


class ProcessingError(Exception):
    """Fatal error before any file is processed (bad source directory)."""


class MappingError(IngestError):
    """Required fields could not be mapped, or the layout is not recognised."""

    def __init__(self, message: str, missing_fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.missing_fields = missing_fields or []


@dataclass(frozen=True)
class AutoDetectReport:
    """Result of probe_auto_detect.

    can_auto_detect is True only when every required field is mapped by a
    header phrase match. Fields filled by positional guessing are listed in
    guessed_fields and make the proposal advisory.
    """
    can_auto_detect: bool
    mapping: dict[str, str | None]
    missing_fields: list[str]
    headers: list[str]
    guessed_fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "can_auto_detect": self.can_auto_detect,
            "mapping": self.mapping,
            "missing_fields": self.missing_fields,
            "headers": self.headers,
            "guessed_fields": self.guessed_fields,
        }


def read_headers(source: Source, *, file_name: str | None = None) -> list[str]:
    """Non-empty texts of row 1."""
    return read_grid(source, file_name=file_name).headers()


def probe_structure(
    source: Source, settings: IngestSettings | None = None, *, file_name: str | None = None
) -> StructureReport:
    settings = settings or IngestSettings()
    return detect_structure(read_grid(source, file_name=file_name), settings.detection)


def probe_auto_detect(
    source: Source, record_type: RecordType | str, *, file_name: str | None = None
) -> AutoDetectReport:
    vocabulary = get_vocabulary(record_type)
    headers = read_headers(source, file_name=file_name)
    mapping = build_mapping(headers, vocabulary)
    missing = mapping.missing_required(vocabulary)
    guessed = mapping.positional_fields()
    required = {f.name for f in vocabulary.required_fields}
    all_exist = all(h in headers for h in mapping.mapped().values())
    can = not missing and all_exist and not (required & set(guessed))
    return AutoDetectReport(
        can_auto_detect=can,
        mapping=mapping.fields,
        missing_fields=missing,
        headers=headers,
        guessed_fields=guessed,
    )


def _default_end_time(minutes: int) -> Prepare:
    def prepare(record: ExtractedRecord) -> ExtractedRecord:
        if record.values.get("end_time"):
            return record
        start = record.values.get("start_time")
        if isinstance(start, str) and _HHMM_RE.match(start):
            return record.with_values(end_time=add_minutes(start, minutes))
        return record

    return prepare


def _select_extractor(
    grid_headers: list[str],
    structure: StructureReport,
    record_type: RecordType,
    settings: IngestSettings,
    explicit_mapping: Mapping[str, str] | None,
) -> tuple[RecordExtractor, HeaderMapping | None]:
    if record_type is RecordType.ENROLLMENT and structure.kind is StructureKind.SECTION:
        return SectionExtractor(settings.blocks, settings.detection), None
    if record_type is RecordType.ENROLLMENT and structure.kind is StructureKind.BLOCK:
        return BlockExtractor(settings.blocks), None

    if structure.kind in (StructureKind.BLOCK, StructureKind.SECTION):
        logger.debug("%s files are read as flat tables; ignoring %s layout", record_type.value, structure.kind.value)
    if not structure.has_headers:
        raise MappingError("unrecognised layout: no header row found")

    vocabulary = get_vocabulary(record_type)
    mapping = build_mapping(grid_headers, vocabulary, explicit_mapping)
    missing = mapping.missing_required(vocabulary)
    if missing:
        raise MappingError(f"required fields not mapped: {', '.join(missing)}", missing)
    return FlatTableExtractor(vocabulary), mapping


def ingest(
    source: Source,
    record_type: RecordType | str,
    explicit_mapping: Mapping[str, str] | None = None,
    settings: IngestSettings | None = None,
    *,
    file_name: str | None = None,
) -> IngestResult:
    """Ingest one spreadsheet.

    Args:
        source: RawGrid, path, bytes or binary stream
        record_type: exam / enrollment / lecturer_duty
        explicit_mapping: field -> header overrides; auto-mapping fills the rest
        settings: engine settings (defaults when None)
        file_name: label for messages when source is in memory

    Returns:
        IngestResult with valid rows, row errors, detected structure and mapping

    Raises:
        StructureError: unreadable source
        MappingError: unrecognised layout or unmapped required fields
    """
    settings = settings or IngestSettings()
    record_type = RecordType(record_type)
    grid = read_grid(source, file_name=file_name)
    structure = detect_structure(grid, settings.detection)
    extractor, mapping = _select_extractor(grid.headers(), structure, record_type, settings, explicit_mapping)

    prepare = _default_end_time(settings.default_exam_duration_minutes) if record_type is RecordType.EXAM else None
    validator = RowValidator(record_type, settings)
    extraction = extractor.extract(grid, validator, mapping, prepare)

    logger.debug(
        "%s: structure=%s valid=%d errors=%d",
        file_name or grid.sheet_name, structure.kind.value, len(extraction.valid_rows), len(extraction.errors),
    )
    return IngestResult(
        valid_rows=extraction.valid_rows,
        errors=extraction.errors,
        structure=structure,
        mapping=dict(mapping.fields) if mapping else {},
    )


def scan_source_files(directory: Path, patterns: Mapping[str, Sequence[str]]) -> list[SourceFile]:
    """Match files in a directory (non-recursive) against per-record-type globs.

    A file matched by several record types is assigned to the first one.

    Raises:
        ProcessingError: if the directory does not exist or cannot be read
    """
    if not directory.exists():
        raise ProcessingError(f"Directory not found: {directory}")
    if not directory.is_dir():
        raise ProcessingError(f"Path is not a directory: {directory}")

    found: dict[Path, SourceFile] = {}
    try:
        for record_type, globs in patterns.items():
            rt = RecordType(record_type)
            for pattern in globs:
                for path in sorted(directory.glob(pattern)):
                    if not path.is_file():
                        continue
                    if path in found:
                        if found[path].record_type is not rt:
                            logger.warning("%s matches %s and %s; using %s",
                                           path.name, found[path].record_type.value, rt.value,
                                           found[path].record_type.value)
                        continue
                    found[path] = SourceFile(path=path, record_type=rt)
    except OSError as e:
        raise ProcessingError(f"Error reading directory {directory}: {e}") from e
    return list(found.values())


def _ingest_file(
    source: SourceFile, settings: IngestSettings, mappings: Mapping[str, Mapping[str, str]]
) -> tuple[IngestResult, float]:
    started = time.perf_counter()
    result = ingest(
        source.path,
        source.record_type,
        explicit_mapping=mappings.get(source.record_type.value),
        settings=settings,
    )
    return result, time.perf_counter() - started


def ingest_many(
    files: Sequence[SourceFile],
    settings: IngestSettings | None = None,
    mappings: Mapping[str, Mapping[str, str]] | None = None,
    error_log: ErrorLogBuffer | None = None,
) -> BatchResult:
    """Ingest several files independently and concatenate the results.

    Args:
        files: sources with their record types, processed in parallel
        settings: engine settings shared by every file
        mappings: explicit mappings keyed by record type value
        error_log: buffer receiving one ErrorRecord per row error / failed file

    Returns:
        BatchResult (results in input order; failed files only in file_stats)
    """
    settings = settings or IngestSettings()
    mappings = mappings or {}
    start_time = datetime.now(UTC)
    results: dict[str, IngestResult] = {}
    file_stats: list[FileStat] = []

    workers = max(1, min(settings.max_workers, len(files) or 1))
    with ProgressTracker(len(files), description="Ingesting files") as progress, \
            ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_ingest_file, f, settings, mappings) for f in files]
        for source, future in zip(files, futures):
            progress.start_file(source.path)
            key = str(source.path)
            try:
                result, elapsed = future.result()
            except Exception as e:
                # any failure is confined to its own file
                error_type = "MAPPING_ERROR" if isinstance(e, MappingError) else "STRUCTURE_ERROR"
                logger.error("%s: %s", source.name, e)
                if error_log is not None:
                    error_log.append(ErrorRecord.create(source.name, source.record_type.value, -1, error_type, str(e)))
                file_stats.append(FileStat(
                    file_name=source.name,
                    record_type=source.record_type.value,
                    status=FileStatus.FAILED.value,
                    valid_rows=0,
                    error_rows=0,
                    elapsed_seconds=0.0,
                    error=str(e),
                ))
                progress.finish_file(success=False)
                continue

            results[key] = result
            if error_log is not None:
                for err in result.errors:
                    error_log.append(ErrorRecord.create(
                        source.name, source.record_type.value, err.row, "VALIDATION_ERROR", err.message, err.field
                    ))
            file_stats.append(FileStat(
                file_name=source.name,
                record_type=source.record_type.value,
                status=FileStatus.SUCCESS.value,
                valid_rows=len(result.valid_rows),
                error_rows=len(result.errors),
                elapsed_seconds=round(elapsed, 3),
            ))
            logger.info("%s: %d valid, %d rejected (%s)",
                        source.name, len(result.valid_rows), len(result.errors),
                        result.structure.kind.value if result.structure else "?")
            progress.set_postfix(valid=len(result.valid_rows), errors=len(result.errors))
            progress.finish_file(success=True)

    end_time = datetime.now(UTC)
    return BatchResult(
        results=results,
        file_stats=file_stats,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=(end_time - start_time).total_seconds(),
    )
