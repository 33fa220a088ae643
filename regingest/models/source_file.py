from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from .vocabulary import RecordType

"""SourceFile model and FileStatus enum.

A SourceFile is one spreadsheet queued for ingestion together with the record
type it is expected to contain.
"""

__all__ = [
    "FileStatus",
    "SourceFile",
]


class FileStatus(Enum):
    """Outcome of one file."""
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceFile:
    path: Path
    record_type: RecordType

    @property
    def name(self) -> str:
        return self.path.name
