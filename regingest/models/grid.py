from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any

"""Raw worksheet grid model.

A RawGrid is the untyped view of one worksheet: rows of Cells, 1-based like
Excel. Each Cell keeps the typed value, the rich-text runs (when the cell was
formatted), the number format and the text Excel would display. Display text
is what calendar disambiguation relies on; the typed value is a fallback.
"""

__all__ = [
    "Cell",
    "RawGrid",
    "EMPTY_CELL",
]


def _render_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Cell:
    """Single worksheet cell.

    Attributes:
        value: typed value (str, int, float, datetime, date, time or None)
        text: display text as rendered by the spreadsheet, when known
        rich_text: text runs of a rich-text cell, in order
        number_format: Excel number format code
    """
    value: Any = None
    text: str | None = None
    rich_text: tuple[str, ...] | None = None
    number_format: str | None = None

    @property
    def display_text(self) -> str:
        if self.text is not None:
            return self.text
        if self.rich_text:
            return "".join(self.rich_text)
        return _render_value(self.value)

    @property
    def literal_text(self) -> str | None:
        """Text as written or displayed, without rendering the typed value."""
        if self.text is not None:
            return self.text
        if self.rich_text:
            return "".join(self.rich_text)
        if isinstance(self.value, str):
            return self.value
        return None

    @property
    def is_empty(self) -> bool:
        return self.display_text.strip() == ""


EMPTY_CELL = Cell()


@dataclass
class RawGrid:
    """Worksheet as ordered rows of cells (row/column indexes are 1-based)."""
    rows: list[list[Cell]] = field(default_factory=list)
    sheet_name: str = "Sheet1"

    @classmethod
    def from_values(cls, rows: Iterable[Sequence[Any]], sheet_name: str = "Sheet1") -> RawGrid:
        """Build a grid from plain Python values (strings, numbers, dates)."""
        grid_rows: list[list[Cell]] = []
        for row in rows:
            grid_rows.append([v if isinstance(v, Cell) else Cell(value=v) for v in row])
        return cls(rows=grid_rows, sheet_name=sheet_name)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def column_count(self) -> int:
        return max((len(r) for r in self.rows), default=0)

    def cell(self, row: int, column: int) -> Cell:
        if row < 1 or row > len(self.rows):
            return EMPTY_CELL
        cells = self.rows[row - 1]
        if column < 1 or column > len(cells):
            return EMPTY_CELL
        return cells[column - 1]

    def text(self, row: int, column: int) -> str:
        """Stripped display text of a cell ('' when out of range)."""
        return self.cell(row, column).display_text.strip()

    def row_texts(self, row: int) -> list[str]:
        if row < 1 or row > len(self.rows):
            return []
        return [c.display_text.strip() for c in self.rows[row - 1]]

    def is_empty_row(self, row: int) -> bool:
        return all(t == "" for t in self.row_texts(row))

    def headers(self) -> list[str]:
        """Non-empty header texts of row 1, de-duplicated, in column order."""
        seen: list[str] = []
        for t in self.row_texts(1):
            if t and t not in seen:
                seen.append(t)
        return seen

    def header_columns(self) -> dict[str, int]:
        """Header text -> 1-based column index (first occurrence wins)."""
        columns: dict[str, int] = {}
        for idx, t in enumerate(self.row_texts(1), start=1):
            if t and t not in columns:
                columns[t] = idx
        return columns
