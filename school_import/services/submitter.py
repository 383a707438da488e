from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from school_import.ingest.reader import PREVIEW_ROWS
from school_import.logging.error_log import ErrorLogBuffer
from school_import.models import (
    BulkImportResult,
    ChunkStat,
    ErrorRecord,
    FieldMapping,
    OperationStatus,
    Row,
    ValidationIssue,
)
from school_import.remote.ledger import LedgerClient, LedgerError

from .progress import ChunkProgress
from .transform import transform_row

"""Chunked submission of mapped rows to the operation ledger.

Flow of one run:
1. Create the remote operation record (fatal on failure)
2. Partition rows into contiguous chunks of ``chunk_size``
3. For each chunk, in order: transform every row and PUT the chunk. A failed
   chunk is counted and recorded, then the next chunk is sent
4. Close the record with the aggregated counts (status completed/cancelled)

Chunks are never sent concurrently; each roundtrip finishes before the next
starts, which keeps the progress percentage monotonic. The cancel token is
checked between chunks only.
"""

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50
CHUNK_FAILURE_FIELD = "chunk"
CHUNK_FAILURE_MESSAGE = "Failed to process chunk"


class OperationCreationError(Exception):
    """The remote operation record could not be created; nothing was sent."""


class CancelToken:
    """Cancellation flag shared with the submission loop.

    Safe to set from a signal handler or another thread.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


def chunk_rows(rows: Sequence[Row], chunk_size: int = DEFAULT_CHUNK_SIZE) -> list[list[Row]]:
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1: {chunk_size}")
    return [list(rows[i:i + chunk_size]) for i in range(0, len(rows), chunk_size)]


def count_chunks(total_rows: int, chunk_size: int = DEFAULT_CHUNK_SIZE) -> int:
    return math.ceil(total_rows / chunk_size) if total_rows else 0


def plan_chunks(
    rows: Sequence[Row],
    mappings: Sequence[FieldMapping],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> list[list[dict[str, Any]]]:
    """Transformed chunks exactly as they would be submitted (dry run)."""
    return [[transform_row(r, mappings) for r in chunk] for chunk in chunk_rows(rows, chunk_size)]


def _create_operation(
    client: LedgerClient,
    entity_type: str,
    rows: Sequence[Row],
    mappings: Sequence[FieldMapping],
    preview_rows: int,
) -> Any:
    try:
        operation = client.create_operation(
            entity_type=entity_type,
            total_records=len(rows),
            data_preview=rows[:preview_rows],
            mapping=mappings,
        )
    except LedgerError as e:
        raise OperationCreationError(f"Operation failed: {e}") from e
    logger.info("created bulk operation id=%s entity=%s total=%d", operation.id, entity_type, len(rows))
    return operation.id


def submit_import(
    rows: Sequence[Row],
    mappings: Sequence[FieldMapping],
    *,
    client: LedgerClient,
    entity_type: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    cancel_token: CancelToken | None = None,
    operation_id: Any = None,
    start_chunk: int = 0,
    error_log: ErrorLogBuffer | None = None,
    source_name: str = "",
    preview_rows: int = PREVIEW_ROWS,
    on_progress: Callable[[int], None] | None = None,
) -> BulkImportResult:
    """Import ``rows`` through the ledger in sequential chunks.

    Args:
        rows: Every ingested row (not only the preview)
        mappings: Committed mapping; validated by the caller
        client: Ledger client
        entity_type: Entity type recorded on the operation
        chunk_size: Rows per chunk (last chunk may be shorter)
        cancel_token: Checked before each chunk; when set the run stops and
            the record is closed as cancelled
        operation_id: Existing operation to resume; skips creation
        start_chunk: First chunk index to send when resuming
        error_log: Buffer receiving one record per failed chunk
        source_name: File name used in error log records
        preview_rows: Rows snapshotted into the operation record
        on_progress: Called with the percentage after each accepted chunk

    Returns:
        BulkImportResult with counts for the chunks actually sent

    Raises:
        OperationCreationError: The operation record could not be created
        ValueError: Invalid ``chunk_size`` or ``start_chunk``
    """
    chunks = chunk_rows(rows, chunk_size)
    total_chunks = len(chunks)
    if not 0 <= start_chunk <= total_chunks:
        raise ValueError(f"start_chunk must be within [0, {total_chunks}]: {start_chunk}")

    error_log = error_log if error_log is not None else ErrorLogBuffer()
    start_time = datetime.now(UTC)

    if operation_id is None:
        try:
            operation_id = _create_operation(client, entity_type, rows, mappings, preview_rows)
        except OperationCreationError as e:
            error_log.append(ErrorRecord.create(
                file=source_name,
                operation_id=None,
                row=-1,
                field="operation",
                error_type="OPERATION_CREATION_ERROR",
                message=str(e),
            ))
            _flush(error_log)
            raise
    else:
        logger.info("resuming bulk operation id=%s from chunk %d/%d", operation_id, start_chunk, total_chunks)

    successful = 0
    failed = 0
    errors: list[ValidationIssue] = []
    chunk_stats: list[ChunkStat] = []
    cancelled = False
    next_chunk: int | None = None

    with ChunkProgress(total_chunks, description=f"Importing {entity_type}") as progress:
        for chunk_index in range(start_chunk, total_chunks):
            if cancel_token is not None and cancel_token.cancelled:
                cancelled = True
                next_chunk = chunk_index
                logger.warning("import cancelled before chunk %d/%d", chunk_index, total_chunks)
                break

            chunk = chunks[chunk_index]
            processed = [transform_row(r, mappings) for r in chunk]

            chunk_start = time.time()
            try:
                client.submit_chunk(operation_id, processed, chunk_index, total_chunks)
            except LedgerError as e:
                failed += len(chunk)
                errors.append(ValidationIssue(
                    row=chunk_index * chunk_size,
                    field=CHUNK_FAILURE_FIELD,
                    message=CHUNK_FAILURE_MESSAGE,
                ))
                error_log.append(ErrorRecord.create(
                    file=source_name,
                    operation_id=operation_id,
                    row=chunk_index * chunk_size,
                    field=CHUNK_FAILURE_FIELD,
                    error_type="CHUNK_SUBMISSION_ERROR",
                    message=str(e),
                ))
                logger.warning("chunk %d/%d failed (%d rows): %s", chunk_index + 1, total_chunks, len(chunk), e)
                chunk_stats.append(ChunkStat(chunk_index, len(chunk), False, time.time() - chunk_start))
                progress.skip(chunk_index)
            else:
                successful += len(chunk)
                chunk_stats.append(ChunkStat(chunk_index, len(chunk), True, time.time() - chunk_start))
                percent = progress.advance(chunk_index)
                logger.debug("chunk %d/%d accepted (%d rows) progress=%d%%", chunk_index + 1, total_chunks, len(chunk), percent)
                if on_progress is not None:
                    on_progress(percent)
            progress.set_postfix(success=successful, failed=failed)

    status = OperationStatus.CANCELLED if cancelled else OperationStatus.COMPLETED
    try:
        client.finalize_operation(
            operation_id,
            successful_records=successful,
            failed_records=failed,
            errors=[e.to_payload() for e in errors],
            status=status.value,
        )
    except LedgerError as e:
        # the outcome is known locally; an unclosed ledger record is only logged
        logger.warning("could not mark operation %s as %s: %s", operation_id, status.value, e)

    _flush(error_log)
    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    return BulkImportResult(
        total_records=len(rows),
        successful_records=successful,
        failed_records=failed,
        errors=errors,
        operation_id=operation_id,
        total_chunks=total_chunks,
        chunk_stats=chunk_stats,
        cancelled=cancelled,
        next_chunk=next_chunk,
        elapsed_seconds=elapsed,
    )


def _flush(error_log: ErrorLogBuffer) -> None:
    try:
        path = error_log.flush()
    except OSError as e:
        logger.warning("could not write error log: %s", e)
        return
    if path is not None:
        logger.info("error log written: %s", path)
