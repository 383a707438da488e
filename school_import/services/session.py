from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from school_import.ingest.reader import IngestedFile
from school_import.mapping.editor import DEFAULT_REQUIRED_FIELDS, validate_mapping
from school_import.mapping.mapper import auto_map, vocabulary_for
from school_import.models import (
    BulkImportResult,
    FieldMapping,
    Row,
    ValidationIssue,
    ValidationState,
)

"""Import session state machine.

    uploading -> mapping -> processing -> reviewing
                  ^  |          |
                  +--+          +--> mapping (processing aborted)

Every transition is a pure function returning a new ImportSession; the
session itself is never mutated. The ValidationState is replaced wholesale on
each transition that can invalidate it.
"""

__all__ = [
    "ImportStage",
    "ImportSession",
    "InvalidTransitionError",
    "new_session",
    "select_file",
    "apply_auto_mapping",
    "edit_mapping",
    "begin_processing",
    "abort_processing",
    "finish_processing",
    "reset",
]


class ImportStage(Enum):
    UPLOADING = "uploading"
    MAPPING = "mapping"
    PROCESSING = "processing"
    REVIEWING = "reviewing"


class InvalidTransitionError(Exception):
    pass


@dataclass(frozen=True)
class ImportSession:
    entity_type: str
    stage: ImportStage = ImportStage.UPLOADING
    source: str | None = None
    rows: tuple[Row, ...] = ()
    preview: tuple[Row, ...] = ()
    columns: tuple[str, ...] = ()
    mappings: tuple[FieldMapping, ...] = ()
    validation: ValidationState = field(default_factory=ValidationState)
    result: BulkImportResult | None = None


def _expect(session: ImportSession, *stages: ImportStage) -> None:
    if session.stage not in stages:
        allowed = "/".join(s.value for s in stages)
        raise InvalidTransitionError(f"expected stage {allowed}, session is {session.stage.value}")


def new_session(entity_type: str) -> ImportSession:
    vocabulary_for(entity_type)
    return ImportSession(entity_type=entity_type)


def select_file(session: ImportSession, ingested: IngestedFile) -> ImportSession:
    _expect(session, ImportStage.UPLOADING, ImportStage.MAPPING)
    return replace(
        session,
        stage=ImportStage.MAPPING,
        source=ingested.path.name,
        rows=tuple(ingested.rows),
        preview=tuple(ingested.preview),
        columns=tuple(ingested.columns),
        mappings=(),
        validation=ValidationState.ok(ingested.warnings),
        result=None,
    )


def apply_auto_mapping(session: ImportSession) -> ImportSession:
    _expect(session, ImportStage.MAPPING)
    mappings, state = auto_map(session.columns, session.entity_type)
    return replace(session, mappings=tuple(mappings), validation=state)


def edit_mapping(session: ImportSession, mappings: Iterable[FieldMapping]) -> ImportSession:
    """Replace the working mapping with the operator's edited list."""
    _expect(session, ImportStage.MAPPING)
    return replace(session, mappings=tuple(mappings), validation=ValidationState.ok())


def begin_processing(
    session: ImportSession,
    required_fields: Sequence[str] = DEFAULT_REQUIRED_FIELDS,
) -> ImportSession:
    """Validate and move to processing; stays in mapping when invalid."""
    _expect(session, ImportStage.MAPPING)
    state = validate_mapping(session.mappings, required_fields)
    if not state.is_valid:
        return replace(session, validation=state)
    if not session.rows:
        return replace(session, validation=ValidationState.failed([
            ValidationIssue(row=0, field="file", message="No data rows to import"),
        ]))
    return replace(session, stage=ImportStage.PROCESSING, validation=state)


def abort_processing(session: ImportSession, message: str) -> ImportSession:
    """Back to mapping with a single top-level error (operation creation failed)."""
    _expect(session, ImportStage.PROCESSING)
    return replace(
        session,
        stage=ImportStage.MAPPING,
        validation=ValidationState.failed([ValidationIssue(row=0, field="processing", message=message)]),
    )


def finish_processing(session: ImportSession, result: BulkImportResult) -> ImportSession:
    _expect(session, ImportStage.PROCESSING)
    state = ValidationState(
        is_valid=result.failed_records == 0,
        errors=tuple(result.errors),
        warnings=("Import cancelled before all chunks were sent",) if result.cancelled else (),
    )
    return replace(session, stage=ImportStage.REVIEWING, result=result, validation=state)


def reset(session: ImportSession) -> ImportSession:
    return ImportSession(entity_type=session.entity_type)
