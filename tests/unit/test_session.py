from __future__ import annotations

from pathlib import Path

import pytest

from school_import.ingest.reader import IngestedFile
from school_import.mapping.mapper import UnknownEntityTypeError
from school_import.models import BulkImportResult, FieldMapping, Transformation, ValidationIssue
from school_import.services.session import (
    ImportStage,
    InvalidTransitionError,
    abort_processing,
    apply_auto_mapping,
    begin_processing,
    edit_mapping,
    finish_processing,
    new_session,
    reset,
    select_file,
)


def _ingested(rows=None, warnings=None) -> IngestedFile:
    rows = [{"name": "Alice", "email": "alice@example.com"}, {"name": "Bob", "email": "bob@example.com"}] \
        if rows is None else rows
    return IngestedFile(
        path=Path("data/students.csv"),
        file_format="csv",
        columns=["name", "email"],
        rows=rows,
        warnings=warnings or [],
        preview_rows=1,
    )


def _mapping_session(**kwargs):
    return apply_auto_mapping(select_file(new_session("student"), _ingested(**kwargs)))


def test_new_session_rejects_unknown_entity():
    with pytest.raises(UnknownEntityTypeError):
        new_session("janitor")


def test_select_file_moves_to_mapping():
    s = select_file(new_session("student"), _ingested(warnings=["Large file detected."]))
    assert s.stage is ImportStage.MAPPING
    assert s.source == "students.csv"
    assert len(s.rows) == 2
    assert len(s.preview) == 1
    assert s.columns == ("name", "email")
    assert s.mappings == ()
    assert s.validation.is_valid
    assert s.validation.warnings == ("Large file detected.",)


def test_select_file_again_clears_mapping():
    s = _mapping_session()
    assert s.mappings
    s2 = select_file(s, _ingested())
    assert s2.mappings == ()
    assert s.mappings  # original untouched


def test_apply_auto_mapping():
    s = _mapping_session()
    assert [(m.source_field, m.target_field) for m in s.mappings] == [("name", "name"), ("email", "email")]
    assert s.validation.is_valid


def test_begin_processing_valid():
    s = begin_processing(_mapping_session())
    assert s.stage is ImportStage.PROCESSING


def test_begin_processing_missing_required_stays_in_mapping():
    s = edit_mapping(_mapping_session(), [FieldMapping("email", "email", 1.0, Transformation.LOWERCASE)])
    s2 = begin_processing(s, ["name"])
    assert s2.stage is ImportStage.MAPPING
    assert not s2.validation.is_valid
    assert s2.validation.errors[0].message == 'Required field "name" is not mapped'


def test_begin_processing_without_rows():
    s = begin_processing(_mapping_session(rows=[]))
    assert s.stage is ImportStage.MAPPING
    assert s.validation.errors[0].message == "No data rows to import"


def test_abort_processing_returns_to_mapping():
    s = abort_processing(begin_processing(_mapping_session()), "Operation failed: 500")
    assert s.stage is ImportStage.MAPPING
    assert s.validation.errors == (ValidationIssue(0, "processing", "Operation failed: 500"),)


def test_finish_processing_moves_to_review():
    result = BulkImportResult(
        total_records=2, successful_records=1, failed_records=1,
        errors=[ValidationIssue(1, "chunk", "Failed to process chunk")], operation_id=42,
    )
    s = finish_processing(begin_processing(_mapping_session()), result)
    assert s.stage is ImportStage.REVIEWING
    assert s.result is result
    assert not s.validation.is_valid
    assert s.validation.errors == (ValidationIssue(1, "chunk", "Failed to process chunk"),)


def test_finish_processing_cancelled_warns():
    result = BulkImportResult(
        total_records=2, successful_records=1, failed_records=0, errors=[],
        operation_id=42, cancelled=True, next_chunk=1,
    )
    s = finish_processing(begin_processing(_mapping_session()), result)
    assert s.validation.is_valid
    assert s.validation.warnings


def test_invalid_transitions():
    with pytest.raises(InvalidTransitionError):
        begin_processing(new_session("student"))
    with pytest.raises(InvalidTransitionError):
        edit_mapping(begin_processing(_mapping_session()), [])
    with pytest.raises(InvalidTransitionError):
        finish_processing(_mapping_session(), None)  # type: ignore[arg-type]


def test_reset_keeps_entity_type():
    s = reset(begin_processing(_mapping_session()))
    assert s.stage is ImportStage.UPLOADING
    assert s.entity_type == "student"
    assert s.rows == ()
