# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any

import pytest
import requests

from school_import.logging.init import reset_logging


class FakeResponse:
    def __init__(self, payload: Any, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeLedgerSession(requests.Session):
    """requests.Session double emulating the bulk-operations resource.

    fail_chunks: chunk indexes answered with ``{"success": false}``
    broken_chunks: chunk indexes raising a transport error
    """

    def __init__(
        self,
        operation_id: Any = 42,
        create_success: bool = True,
        fail_chunks: set[int] | None = None,
        broken_chunks: set[int] | None = None,
        finalize_success: bool = True,
        operations: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__()
        self.operation_id = operation_id
        self.create_success = create_success
        self.fail_chunks = fail_chunks or set()
        self.broken_chunks = broken_chunks or set()
        self.finalize_success = finalize_success
        self.operations = operations or []
        self.calls: list[dict[str, Any]] = []
        self.on_chunk: Any = None

    def request(self, method, url, params=None, json=None, timeout=None, **kwargs):  # type: ignore[override]
        self.calls.append({"method": method, "url": url, "params": params, "json": json, "timeout": timeout})
        if json is not None:
            # same encoding rules as requests: non-finite floats are refused
            try:
                requests.compat.json.dumps(json, allow_nan=False)
            except ValueError as e:
                raise requests.exceptions.InvalidJSONError(e) from e
        if method == "POST":
            if not self.create_success:
                return FakeResponse({"message": "Failed to create bulk operation"}, status_code=500)
            return FakeResponse({"success": True, "operation": {"id": self.operation_id, **json, "status": "pending"}})
        if method == "GET":
            return FakeResponse({"success": True, "operations": self.operations, "total": len(self.operations)})
        data = json["operationData"]
        if "chunkIndex" in data:
            index = data["chunkIndex"]
            if self.on_chunk is not None:
                self.on_chunk(index)
            if index in self.broken_chunks:
                raise requests.ConnectionError("connection reset by peer")
            return FakeResponse({"success": index not in self.fail_chunks})
        return FakeResponse({"success": self.finalize_success})

    def chunk_calls(self) -> list[dict[str, Any]]:
        return [c["json"]["operationData"] for c in self.calls if c["method"] == "PUT" and "chunkIndex" in c["json"]["operationData"]]

    def final_call(self) -> dict[str, Any] | None:
        finals = [c["json"]["operationData"] for c in self.calls if c["method"] == "PUT" and "status" in c["json"]["operationData"]]
        return finals[-1] if finals else None


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        monkeypatch.chdir(p)
        for var in ("SCHOOL_API_URL", "SCHOOL_API_TOKEN", "SCHOOL_API_TIMEOUT"):
            monkeypatch.delenv(var, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """api_base_url: https://school.example.test/api
api_token: secret-token
timeout_sec: 5
chunk_size: 50
entity_type: student
required_fields: [name]
preview_rows: 10
error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def students_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "students.csv"
    f.write_text("name,email\nAlice, alice@EXAMPLE.com \nBob,bob@example.com", encoding="utf-8")
    return f


@pytest.fixture()
def make_ledger_session() -> type[FakeLedgerSession]:
    """Factory for FakeLedgerSession; keyword arguments configure the endpoint."""
    return FakeLedgerSession


@pytest.fixture()
def make_response() -> type[FakeResponse]:
    return FakeResponse


@pytest.fixture()
def fake_session(make_ledger_session) -> FakeLedgerSession:
    return make_ledger_session()


@pytest.fixture(autouse=True)
def _clean_logging():
    reset_logging()
    yield
    reset_logging()
