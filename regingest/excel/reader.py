from __future__ import annotations

import io
import logging
import zipfile
from xml.etree.ElementTree import ParseError
from datetime import date, datetime, time
from pathlib import Path
from typing import IO, Any

import pandas as pd
from openpyxl import load_workbook
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.utils.exceptions import InvalidFileException

from ..models.grid import Cell, RawGrid

"""Workbook reader: spreadsheet file -> RawGrid.

Only the first worksheet is read; later worksheets are ignored. Cells keep
their typed value, number format and rich-text runs so that later stages can
prefer what the spreadsheet displays over the stored value.

CSV exports are read as text with pandas (no NA conversion: the string "NA" in
a room column is a room name, not a missing value).
"""

__all__ = [
    "IngestError",
    "StructureError",
    "Source",
    "read_grid",
]

logger = logging.getLogger(__name__)

Source = RawGrid | str | Path | bytes | IO[bytes]

CSV_SUFFIXES = {".csv", ".txt"}


class IngestError(Exception):
    """Base class for fatal, per-file ingestion failures."""


class StructureError(IngestError):
    """Raised when the source has no readable worksheet."""


def _rich_text_runs(value: CellRichText) -> tuple[str, ...]:
    runs: list[str] = []
    for part in value:
        runs.append(part.text if isinstance(part, TextBlock) else str(part))
    return tuple(runs)


def _to_cell(value: Any, number_format: str | None) -> Cell:
    if value is None:
        return Cell(number_format=number_format)
    if isinstance(value, CellRichText):
        runs = _rich_text_runs(value)
        return Cell(value="".join(runs), rich_text=runs, number_format=number_format)
    if isinstance(value, str):
        return Cell(value=value, text=value, number_format=number_format)
    if isinstance(value, (datetime, date, time, int, float, bool)):
        # display text is rendered from the typed value by Cell
        return Cell(value=value, number_format=number_format)
    return Cell(value=value, text=str(value), number_format=number_format)


def _read_workbook(source: str | Path | bytes | IO[bytes], name: str) -> RawGrid:
    handle: Any = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        wb = load_workbook(handle, data_only=True, rich_text=True)
    except (InvalidFileException, zipfile.BadZipFile, ParseError, KeyError, OSError, ValueError) as e:
        raise StructureError(f"cannot read workbook {name}: {e}") from e

    try:
        if not wb.worksheets:
            raise StructureError(f"workbook {name} has no worksheet")
        ws = wb.worksheets[0]
        if len(wb.worksheets) > 1:
            logger.debug("%s: reading first worksheet %r, ignoring %d others",
                         name, ws.title, len(wb.worksheets) - 1)
        rows: list[list[Cell]] = []
        for row in ws.iter_rows():
            rows.append([_to_cell(c.value, getattr(c, "number_format", None)) for c in row])
        return RawGrid(rows=rows, sheet_name=str(ws.title))
    finally:
        wb.close()


def _read_csv(source: str | Path | bytes | IO[bytes], name: str) -> RawGrid:
    handle: Any = io.BytesIO(source) if isinstance(source, bytes) else source
    try:
        df = pd.read_csv(handle, header=None, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        return RawGrid(rows=[], sheet_name=name)
    except (pd.errors.ParserError, UnicodeDecodeError, OSError) as e:
        raise StructureError(f"cannot read csv {name}: {e}") from e
    rows = [[Cell(value=v, text=v) for v in record] for record in df.itertuples(index=False, name=None)]
    return RawGrid(rows=rows, sheet_name=name)


def read_grid(source: Source, *, file_name: str | None = None, csv: bool | None = None) -> RawGrid:
    """Read the first worksheet of a spreadsheet source into a RawGrid.

    Args:
        source: RawGrid (returned as is), path, raw bytes or binary stream
        file_name: name used in messages and for CSV detection of in-memory sources
        csv: force (True) or forbid (False) CSV parsing; None = decide by suffix

    Raises:
        StructureError: unreadable file or workbook without worksheet
    """
    if isinstance(source, RawGrid):
        return source
    if isinstance(source, (str, Path)):
        path = Path(source)
        name = file_name or path.name
        if not path.exists():
            raise StructureError(f"file not found: {path}")
    else:
        name = file_name or getattr(source, "name", None) or "<memory>"
    if csv is None:
        csv = Path(str(name)).suffix.lower() in CSV_SUFFIXES
    return _read_csv(source, name) if csv else _read_workbook(source, name)
