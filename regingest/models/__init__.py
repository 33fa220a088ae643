"""Domain models for registration spreadsheet ingestion.

Grid and vocabulary types describe the input, ExtractedRecord and the
canonical records describe what comes out, and the result models carry
per-file and per-batch outcomes.
"""

from .config_models import CalendarPolicy, DatabaseConfig, IngestConfig, IngestSettings
from .extracted_record import ExtractedRecord
from .grid import Cell, RawGrid
from .processing_result import BatchResult, ExtractionResult, FileStat, IngestResult
from .records import EnrollmentRecord, ExamRecord, LecturerDutyRecord
from .validation_error import ValidationError
from .vocabulary import FieldKind, FieldSpec, FieldVocabulary, RecordType, get_vocabulary

__all__ = [
    # Configuration models
    "CalendarPolicy",
    "DatabaseConfig",
    "IngestConfig",
    "IngestSettings",
    # Input models
    "Cell",
    "RawGrid",
    "FieldKind",
    "FieldSpec",
    "FieldVocabulary",
    "RecordType",
    "get_vocabulary",
    # Processing models
    "ExtractedRecord",
    "ValidationError",
    "ExamRecord",
    "EnrollmentRecord",
    "LecturerDutyRecord",
    "ExtractionResult",
    "IngestResult",
    "FileStat",
    "BatchResult",
]
