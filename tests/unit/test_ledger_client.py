from __future__ import annotations

import pytest
import requests

from school_import.config.loader import ImportConfig
from school_import.models import FieldMapping, Transformation
from school_import.remote.ledger import ChunkSubmissionError, LedgerClient, LedgerError


def _client(session: requests.Session, token: str | None = None) -> LedgerClient:
    return LedgerClient("https://school.example.test/api/", token=token, timeout=5, session=session)


def test_headers_and_base_url(make_ledger_session):
    session = make_ledger_session()
    client = _client(session, token="abc")
    assert client.base_url == "https://school.example.test/api"
    assert session.headers["Content-Type"] == "application/json"
    assert session.headers["Authorization"] == "Bearer abc"


def test_no_authorization_without_token(make_ledger_session):
    session = make_ledger_session()
    _client(session)
    assert "Authorization" not in session.headers


def test_from_config(make_ledger_session):
    cfg = ImportConfig(
        api_base_url="https://api.test", api_token=None, timeout_sec=12.0, chunk_size=50,
        entity_type="student", required_fields=("name",), preview_rows=10, error_log_dir="./logs",
    )
    client = LedgerClient.from_config(cfg, session=make_ledger_session())
    assert client.base_url == "https://api.test"
    assert client.timeout == 12.0


def test_create_operation(make_ledger_session):
    session = make_ledger_session(operation_id=5)
    op = _client(session).create_operation(
        "class", 2, [{"name": "1A"}], [FieldMapping("name", "name", 1.0, Transformation.TRIM)]
    )
    assert op.id == 5
    assert op.entity_type == "class"
    assert op.total_records == 2
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://school.example.test/api/workflows/bulk-operations"
    assert call["timeout"] == 5


def test_create_operation_without_id(make_ledger_session, make_response):
    session = make_ledger_session()
    session.request = lambda *a, **k: make_response({"success": True, "operation": {}})  # type: ignore[method-assign]
    with pytest.raises(LedgerError):
        _client(session).create_operation("student", 1, [], [])


def test_submit_chunk_unsuccessful_response(make_ledger_session):
    session = make_ledger_session(fail_chunks={0})
    with pytest.raises(ChunkSubmissionError):
        _client(session).submit_chunk(1, [{"name": "a"}], 0, 1)


def test_submit_chunk_transport_error(make_ledger_session):
    session = make_ledger_session(broken_chunks={2})
    with pytest.raises(ChunkSubmissionError):
        _client(session).submit_chunk(1, [], 2, 3)


def test_non_json_body(make_ledger_session, make_response):
    session = make_ledger_session()
    session.request = lambda *a, **k: make_response(ValueError("Expecting value"))  # type: ignore[method-assign]
    with pytest.raises(LedgerError) as e:
        _client(session).finalize_operation(1, 0, 0, [], "completed")
    assert "non-JSON" in str(e.value)


def test_http_error_status(make_ledger_session, make_response):
    session = make_ledger_session()
    session.request = lambda *a, **k: make_response({"message": "nope"}, status_code=404)  # type: ignore[method-assign]
    with pytest.raises(LedgerError):
        _client(session).finalize_operation(1, 0, 0, [], "completed")


def test_list_operations(make_ledger_session):
    session = make_ledger_session(operations=[
        {"id": 1, "operationType": "import", "entityType": "student", "totalRecords": 3,
         "successfulRecords": 3, "failedRecords": 0, "status": "completed"},
    ])
    ops = _client(session).list_operations(operation_type="import", limit=5)
    assert [(o.id, o.status, o.successful_records) for o in ops] == [(1, "completed", 3)]
    assert session.calls[0]["params"] == {"operationType": "import", "limit": 5}
