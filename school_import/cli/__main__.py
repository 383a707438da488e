from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import Any

import pandas as pd
from dotenv import load_dotenv

from school_import.config.loader import DEFAULT_CONFIG_PATH, ConfigError, ImportConfig, load_config
from school_import.ingest.reader import FormatError, IngestIOError, read_import_file
from school_import.logging.error_log import ErrorLogBuffer
from school_import.logging.init import log_summary, setup_logging
from school_import.mapping.editor import MappingEditor, parse_mapping_spec
from school_import.mapping.mapper import MappingError, auto_map
from school_import.models import ENTITY_TYPES, FieldMapping
from school_import.remote.ledger import LedgerClient, LedgerError
from school_import.services.session import (
    ImportSession,
    ImportStage,
    abort_processing,
    begin_processing,
    edit_mapping,
    finish_processing,
    new_session,
    select_file,
)
from school_import.services.submitter import (
    CancelToken,
    OperationCreationError,
    count_chunks,
    plan_chunks,
    submit_import,
)
from school_import.services.summary import render_error_list, render_summary_line

"""CLI entrypoint.

    school-import students.csv --entity student --auto-map
    school-import students.csv --entity student --map "Full Name=name:trim" --map "Mail=email"

Flow: load config -> read file -> propose/edit mapping -> validate -> submit
chunks -> print SUMMARY and the first review errors.
"""

EXIT_SUCCESS_ALL = 0
EXIT_FATAL = 1
EXIT_PARTIAL_FAILURE = 2


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env so that SCHOOL_API_* variables win over the YAML config."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="school-import", description="Bulk import school records into the school API")
    p.add_argument("file", nargs="?", type=Path, help="CSV file to import (xlsx/xls are rejected)")
    p.add_argument("--entity", choices=ENTITY_TYPES, help="Entity type to create (default from config)")
    p.add_argument(
        "--map",
        dest="mappings",
        action="append",
        default=[],
        metavar="SRC=TARGET[:TRANSFORM]",
        help="Manual column mapping; overrides the proposal for the same column",
    )
    p.add_argument("--auto-map", action="store_true", help="Propose mappings from column names (default when no --map)")
    p.add_argument("--required", action="append", default=None, metavar="FIELD", help="Required target field")
    p.add_argument("--chunk-size", type=int, default=None, help="Rows per submitted chunk")
    p.add_argument("--operation-id", default=None, help="Resume an existing operation instead of creating one")
    p.add_argument("--start-chunk", type=int, default=0, help="First chunk index to send when resuming")
    p.add_argument("--dry-run", action="store_true", help="Transform and chunk without contacting the API")
    p.add_argument("--inspect-data", action="store_true", help="Print columns, preview rows and mapping then exit")
    p.add_argument("--list-operations", action="store_true", help="List recent bulk operations then exit")
    p.add_argument("--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Path to import.yml")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _build_mappings(session: ImportSession, specs: list[str], use_auto: bool, logger: Any) -> list[FieldMapping]:
    proposals: list[FieldMapping] = []
    if use_auto:
        proposals, state = auto_map(session.columns, session.entity_type)
        for w in state.warnings:
            logger.info(w)
        for e in state.errors:
            logger.warning(e.message)
    editor = MappingEditor(session.columns, session.entity_type, proposals)
    for spec in specs:
        editor.add(parse_mapping_spec(spec))
    return editor.mappings


def _inspect_data(session: ImportSession) -> int:
    print(f"FILE: {session.source} rows={len(session.rows)}")
    print(f"  columns={list(session.columns)}")
    if session.preview:
        frame = pd.DataFrame(list(session.preview))
        print(frame.to_string(index=False))
    else:
        print("  (no data rows)")
    print(f"  mapping ({session.entity_type}):")
    for m in session.mappings:
        print(
            f"    {m.source_field} -> {m.target_field} "
            f"confidence={m.confidence:.2f} transformation={m.transformation.value}"
        )
    return EXIT_SUCCESS_ALL


def _list_operations(cfg: ImportConfig, logger: Any) -> int:
    try:
        with LedgerClient.from_config(cfg) as client:
            operations = client.list_operations(operation_type="import")
    except LedgerError as e:
        logger.error(f"ledger: {e}")
        return EXIT_FATAL
    for op in operations:
        print(
            f"{op.id}\t{op.entity_type}\t{op.status}\t"
            f"total={op.total_records} success={op.successful_records} failed={op.failed_records}"
        )
    return EXIT_SUCCESS_ALL


def _submit(session: ImportSession, cfg: ImportConfig, args: argparse.Namespace, chunk_size: int, logger: Any) -> int:
    token = CancelToken()

    def _on_sigint(signum: int, frame: Any) -> None:
        logger.warning("interrupt received; stopping after the current chunk")
        token.cancel()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        with LedgerClient.from_config(cfg) as client:
            result = submit_import(
                list(session.rows),
                list(session.mappings),
                client=client,
                entity_type=session.entity_type,
                chunk_size=chunk_size,
                cancel_token=token,
                operation_id=args.operation_id,
                start_chunk=args.start_chunk,
                error_log=ErrorLogBuffer(Path(cfg.error_log_dir)),
                source_name=session.source or "",
                preview_rows=cfg.preview_rows,
            )
    except OperationCreationError as e:
        session = abort_processing(session, str(e))
        for issue in session.validation.errors:
            logger.error(issue.message)
        return EXIT_FATAL
    except ValueError as e:
        logger.error(str(e))
        return EXIT_FATAL
    finally:
        signal.signal(signal.SIGINT, previous)

    session = finish_processing(session, result)
    log_summary(render_summary_line(result)[len("SUMMARY "):])
    for line in render_error_list(list(session.validation.errors)):
        logger.error(line)
    for w in session.validation.warnings:
        logger.warning(w)
    if result.cancelled:
        logger.info(
            f"resume with: --operation-id {result.operation_id} --start-chunk {result.next_chunk}"
        )

    if result.all_succeeded:
        return EXIT_SUCCESS_ALL
    return EXIT_PARTIAL_FAILURE


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    if args.list_operations:
        return _list_operations(cfg, logger)

    if args.file is None:
        logger.error("no input file given")
        return EXIT_FATAL

    entity_type = args.entity or cfg.entity_type
    chunk_size = args.chunk_size if args.chunk_size is not None else cfg.chunk_size
    required = tuple(args.required) if args.required else cfg.required_fields
    if chunk_size < 1:
        logger.error(f"chunk size must be >= 1: {chunk_size}")
        return EXIT_FATAL

    try:
        ingested = read_import_file(args.file, preview_rows=cfg.preview_rows)
    except (FormatError, IngestIOError) as e:
        logger.error(f"file: {e}")
        return EXIT_FATAL

    session = select_file(new_session(entity_type), ingested)
    for w in session.validation.warnings:
        logger.warning(w)
    logger.info(f"Processing {session.source}: {len(session.rows)} rows, entity={entity_type}")

    try:
        mappings = _build_mappings(session, args.mappings, args.auto_map or not args.mappings, logger)
    except MappingError as e:
        logger.error(f"mapping: {e}")
        return EXIT_FATAL
    session = edit_mapping(session, mappings)

    if args.inspect_data:
        return _inspect_data(session)

    if not session.rows:
        logger.info("nothing to import")
        return EXIT_SUCCESS_ALL

    session = begin_processing(session, required)
    if session.stage is not ImportStage.PROCESSING:
        for issue in session.validation.errors:
            logger.error(f"mapping: {issue.message}")
        return EXIT_FATAL

    if args.dry_run:
        planned = plan_chunks(list(session.rows), list(session.mappings), chunk_size)
        logger.info(f"dry run: {len(planned)} chunk(s) of up to {chunk_size} rows would be sent")
        if planned:
            logger.debug(f"first record: {planned[0][0]}")
        log_summary(
            f"operation=dry-run total={len(session.rows)} success=0 failed=0 "
            f"chunks={count_chunks(len(session.rows), chunk_size)} elapsed_sec=0"
        )
        return EXIT_SUCCESS_ALL

    return _submit(session, cfg, args, chunk_size, logger)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
