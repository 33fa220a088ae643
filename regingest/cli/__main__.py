from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from regingest.config.loader import DEFAULT_CONFIG_PATH, ConfigError, load_config
from regingest.db.batch_insert import BatchInsertError, persist_records
from regingest.excel.reader import read_grid
from regingest.logging.error_log import ErrorLogBuffer
from regingest.logging.init import log_summary, set_debug, setup_logging
from regingest.models.config_models import IngestConfig
from regingest.models.processing_result import BatchResult
from regingest.models.source_file import SourceFile
from regingest.services.orchestrator import (
    ProcessingError,
    ingest_many,
    probe_auto_detect,
    probe_structure,
    scan_source_files,
)
from regingest.services.summary import render_summary_line, summarize_errors

"""CLI entrypoint.

    python -m regingest.cli [--config PATH] [--debug] [--inspect-data] [--probe]
                            [--output PATH] [--no-db]

Flow: load .env and config -> scan source directory -> ingest every file ->
write the error log, optional JSON Lines output and optional database load ->
print the SUMMARY line.

Exit codes: 0 everything ingested cleanly, 2 partial (failed files or rejected
rows next to valid ones), 1 fatal (bad config/directory or no valid row).
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


@contextmanager
def _db_connection(cfg: IngestConfig) -> Iterator[Any]:  # pragma: no cover (thin wrapper)
    """psycopg2 connection + cursor; commits on success, rolls back on error.

    Connection settings: DATABASE_URL / PGDSN, then PGHOST/PGPORT/PGUSER/
    PGPASSWORD/PGDATABASE, then the config database section.
    """
    db_cfg = cfg.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if not dsn:
        host = os.getenv("PGHOST", db_cfg.host or "localhost")
        port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
        user = os.getenv("PGUSER", db_cfg.user or "postgres")
        password = os.getenv("PGPASSWORD", db_cfg.password or "")
        database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
        dsn = f"host={host} port={port} user={user} dbname={database}"
        if password:
            dsn += f" password={password}"

    conn = psycopg2.connect(dsn)
    try:
        conn.autocommit = False
        with conn.cursor() as cur:
            yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env; its values override existing environment variables."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="regingest", description="Registration spreadsheet ingestion (exams, enrollments, lecturer duties)"
    )
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="YAML config path")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print headers & first rows of each file then exit")
    p.add_argument("--probe", action="store_true", help="Print detected structure and auto-mapping then exit")
    p.add_argument("--output", type=Path, default=None, help="Write valid records as JSON Lines")
    p.add_argument("--no-db", action="store_true", help="Do not load records into PostgreSQL")
    return p.parse_args(argv)


def _inspect_data(files: list[SourceFile]) -> int:
    for f in files:
        print(f"FILE: {f.name} type={f.record_type.value}")
        try:
            grid = read_grid(f.path)
        except Exception as e:
            print(f"  read_error: {e}")
            continue
        print(f"  SHEET: {grid.sheet_name} rows={grid.row_count} cols={grid.column_count}")
        for row in range(1, min(grid.row_count, 4) + 1):
            print(f"    {row}: {grid.row_texts(row)}")
    return EXIT_SUCCESS_ALL


def _probe(files: list[SourceFile], cfg: IngestConfig) -> int:
    for f in files:
        try:
            report: dict[str, Any] = {
                "file": f.name,
                "record_type": f.record_type.value,
                "structure": probe_structure(f.path, cfg.settings).to_dict(),
                "auto_detect": probe_auto_detect(f.path, f.record_type).to_dict(),
            }
        except Exception as e:
            report = {"file": f.name, "error": str(e)}
        print(json.dumps(report, ensure_ascii=False))
    return EXIT_SUCCESS_ALL


def _write_output(path: Path, files: list[SourceFile], batch: BatchResult) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    with path.open("w", encoding="utf-8") as fh:
        for f in files:
            result = batch.results.get(str(f.path))
            if result is None:
                continue
            for record in result.valid_rows:
                line = {"file": f.name, "record_type": f.record_type.value, **record.to_dict()}
                fh.write(json.dumps(line, ensure_ascii=False) + "\n")
                written += 1
    return written


def _load_database(cfg: IngestConfig, files: list[SourceFile], batch: BatchResult) -> None:
    logger = setup_logging()
    with _db_connection(cfg) as cur:
        for f in files:
            result = batch.results.get(str(f.path))
            if result is None or not result.valid_rows:
                continue
            outcome = persist_records(cur, f.record_type, result.valid_rows, dataset=cfg.dataset)
            logger.info(
                f"db: {f.name} inserted={outcome.inserted_rows} "
                f"skipped={outcome.skipped_rows} failed={outcome.failed_rows}"
            )


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # only read sys.argv when no list was given (tests call main([]))
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.debug:
        set_debug()
        logger.debug("debug mode enabled")

    directory = Path(cfg.source_directory)
    try:
        files = scan_source_files(directory, cfg.files)
    except ProcessingError as e:
        logger.error(str(e))
        return EXIT_FATAL
    logger.info(f"Processing {len(files)} files from: {directory}")

    if args.inspect_data:
        return _inspect_data(files)
    if args.probe:
        return _probe(files, cfg)

    error_log = ErrorLogBuffer()
    batch = ingest_many(files, cfg.settings, cfg.mappings, error_log=error_log)
    log_path = error_log.flush()
    if log_path is not None:
        logger.info(f"error log written: {log_path}")

    if batch.total_errors:
        summary = summarize_errors(batch.errors, batch.total_valid_rows, cfg.settings.error_sample_size)
        counts = " ".join(f"{k}={v}" for k, v in summary.by_key.items())
        logger.warning(f"{summary.total_errors} rows rejected: {counts}")
        for err in summary.sample:
            logger.warning(f"row {err.row}: {err.message}")

    if args.output is not None:
        written = _write_output(args.output, files, batch)
        logger.info(f"wrote {written} records to {args.output}")

    # DISABLE_DB_CONNECT=1 turns the database load off entirely (tests, dry runs)
    if not args.no_db and os.getenv("DISABLE_DB_CONNECT") != "1" and batch.total_valid_rows:
        try:
            _load_database(cfg, files, batch)
        except (psycopg2.Error, BatchInsertError) as db_e:
            # the ingestion result stands on its own; the load is rolled back as a whole
            logger.warning(f"database load skipped: {db_e}")

    log_summary(render_summary_line(len(files), batch)[len("SUMMARY "):])

    if not files:
        return EXIT_SUCCESS_ALL
    if not batch.success:
        return EXIT_FATAL
    if batch.failed_files or batch.total_errors:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
