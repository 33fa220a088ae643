from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, fields
from typing import Any

from psycopg2.extras import execute_values

from ..models.records import RECORD_CLASSES
from ..models.vocabulary import RecordType

"""Optional PostgreSQL sink.

Validated records are written with psycopg2.extras.execute_values. A batch
that fails is rolled back to a savepoint and retried in smaller sub-batches
(1000 -> 500 -> 100 by default); rows of a sub-batch that still fails at the
smallest size are counted as failed and the rest of the load continues.
Duplicate rows are skipped (ON CONFLICT DO NOTHING).
"""

__all__ = [
    "BatchInsertError",
    "BatchMetrics",
    "InsertResult",
    "FALLBACK_BATCH_SIZES",
    "TABLES",
    "batch_insert",
    "insert_with_fallback",
    "persist_records",
]

logger = logging.getLogger(__name__)

FALLBACK_BATCH_SIZES = (1000, 500, 100)
_SAVEPOINT = "regingest_batch"

TABLES: dict[RecordType, str] = {
    RecordType.EXAM: "exam_sessions",
    RecordType.ENROLLMENT: "enrollments",
    RecordType.LECTURER_DUTY: "lecturer_duties",
}


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single execute_values call."""
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    failed_rows: int = 0
    skipped_rows: int = 0  # duplicates ignored by ON CONFLICT DO NOTHING


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> int:
    """INSERT rows with execute_values; duplicates are skipped.

    Returns:
        Number of rows actually inserted (cursor.rowcount when available)

    Raises:
        BatchInsertError: wrapping any driver error
    """
    rows_list = list(rows)
    if not rows_list:
        return 0

    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s ON CONFLICT DO NOTHING"

    start_time = time.time()
    try:
        execute_values(cursor, sql, rows_list, page_size=page_size)
    except Exception as e:
        raise BatchInsertError(str(e)) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(
                batch_size=len(rows_list),
                elapsed_seconds=end_time - start_time,
                start_time=start_time,
                end_time=end_time,
            ))

    # rowcount only covers the last page; pages are never split below
    rowcount = getattr(cursor, "rowcount", -1)
    if isinstance(rowcount, int) and 0 <= rowcount <= len(rows_list) and page_size >= len(rows_list):
        return rowcount
    return len(rows_list)


def _insert_chunk(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    chunk: list[Sequence[Any]],
    sizes: Sequence[int],
    level: int,
    metrics_callback: Callable[[BatchMetrics], None] | None,
) -> tuple[int, int]:
    cursor.execute(f"SAVEPOINT {_SAVEPOINT}")
    try:
        inserted = batch_insert(cursor, table, columns, chunk, page_size=len(chunk),
                                metrics_callback=metrics_callback)
    except BatchInsertError as e:
        cursor.execute(f"ROLLBACK TO SAVEPOINT {_SAVEPOINT}")
        if level + 1 >= len(sizes):
            cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
            logger.warning("insert of %d rows into %s failed: %s", len(chunk), table, e)
            return 0, len(chunk)
        sub_size = sizes[level + 1]
        logger.debug("insert of %d rows into %s failed, retrying in batches of %d", len(chunk), table, sub_size)
        inserted = failed = 0
        for start in range(0, len(chunk), sub_size):
            ok, bad = _insert_chunk(cursor, table, columns, chunk[start:start + sub_size],
                                    sizes, level + 1, metrics_callback)
            inserted += ok
            failed += bad
        cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
        return inserted, failed
    cursor.execute(f"RELEASE SAVEPOINT {_SAVEPOINT}")
    return inserted, 0


def insert_with_fallback(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    batch_sizes: Sequence[int] = FALLBACK_BATCH_SIZES,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Insert rows in batches, shrinking the batch size on failure.

    Args:
        cursor: psycopg2 cursor inside an open transaction
        table: target table (trusted name)
        columns: column names in row order
        rows: row tuples
        batch_sizes: decreasing batch sizes to try
        metrics_callback: receives BatchMetrics per execute_values call
    """
    rows_list = list(rows)
    if not rows_list:
        return InsertResult(inserted_rows=0)
    size = batch_sizes[0]
    inserted = failed = 0
    for start in range(0, len(rows_list), size):
        ok, bad = _insert_chunk(cursor, table, columns, rows_list[start:start + size],
                                batch_sizes, 0, metrics_callback)
        inserted += ok
        failed += bad
    skipped = len(rows_list) - inserted - failed
    return InsertResult(inserted_rows=inserted, failed_rows=failed, skipped_rows=skipped)


def persist_records(
    cursor: Any,
    record_type: RecordType | str,
    records: Sequence[Any],
    dataset: str | None = None,
    batch_sizes: Sequence[int] = FALLBACK_BATCH_SIZES,
) -> InsertResult:
    """Write canonical records to the table of their record type.

    When dataset is given it is stored in an extra "dataset" column.
    """
    rt = RecordType(record_type)
    columns = [f.name for f in fields(RECORD_CLASSES[rt])]
    rows = [tuple(getattr(r, c) for c in columns) for r in records]
    if dataset is not None:
        columns.append("dataset")
        rows = [row + (dataset,) for row in rows]
    return insert_with_fallback(cursor, TABLES[rt], columns, rows, batch_sizes=batch_sizes)
