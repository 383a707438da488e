from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import requests

from school_import.config.loader import ImportConfig
from school_import.models import BulkOperation, FieldMapping, Row

"""HTTP client for the school API bulk-operation resource.

    POST /workflows/bulk-operations        create the operation record
    PUT  /workflows/bulk-operations/{id}   append a chunk / close the record
    GET  /workflows/bulk-operations        list records

Every response is a JSON object carrying a ``success`` flag. Transport errors,
non-2xx statuses, undecodable bodies and a falsy ``success`` all surface as
LedgerError so callers have a single failure type to handle.
"""

logger = logging.getLogger(__name__)

OPERATIONS_PATH = "/workflows/bulk-operations"
OPERATION_TYPE_IMPORT = "import"


class LedgerError(Exception):
    """Any failed call against the operation ledger."""


class ChunkSubmissionError(LedgerError):
    """A chunk write was refused or did not reach the ledger."""


class LedgerClient:
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    @classmethod
    def from_config(cls, cfg: ImportConfig, session: requests.Session | None = None) -> LedgerClient:
        return cls(cfg.api_base_url, token=cfg.api_token, timeout=cfg.timeout_sec, session=session)

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        error_cls: type[LedgerError] = LedgerError,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(method, url, json=body, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise error_cls(f"{method} {path} failed: {e}") from e
        except ValueError as e:
            raise error_cls(f"{method} {path} returned a non-JSON body: {e}") from e

        if not isinstance(data, dict) or not data.get("success"):
            message = data.get("message") if isinstance(data, dict) else None
            raise error_cls(f"{method} {path} was not successful: {message or data!r}")
        return data

    def create_operation(
        self,
        entity_type: str,
        total_records: int,
        data_preview: Sequence[Row],
        mapping: Sequence[FieldMapping],
    ) -> BulkOperation:
        """Create the remote operation record and return it."""
        body = {
            "operationType": OPERATION_TYPE_IMPORT,
            "entityType": entity_type,
            "totalRecords": total_records,
            "operationData": {
                "dataPreview": list(data_preview),
                "mapping": [m.to_payload() for m in mapping],
            },
        }
        data = self._request("POST", OPERATIONS_PATH, body=body)
        operation = data.get("operation")
        if not isinstance(operation, dict) or operation.get("id") is None:
            raise LedgerError(f"POST {OPERATIONS_PATH} returned no operation id")
        return BulkOperation.from_payload(operation)

    def submit_chunk(
        self,
        operation_id: Any,
        chunk: Sequence[dict[str, Any]],
        chunk_index: int,
        total_chunks: int,
    ) -> None:
        body = {
            "operationData": {
                "chunk": list(chunk),
                "chunkIndex": chunk_index,
                "totalChunks": total_chunks,
            }
        }
        self._request(
            "PUT", f"{OPERATIONS_PATH}/{operation_id}", body=body, error_cls=ChunkSubmissionError
        )

    def finalize_operation(
        self,
        operation_id: Any,
        successful_records: int,
        failed_records: int,
        errors: Sequence[dict[str, Any]],
        status: str,
    ) -> None:
        body = {
            "operationData": {
                "successfulRecords": successful_records,
                "failedRecords": failed_records,
                "errors": list(errors),
                "status": status,
            }
        }
        self._request("PUT", f"{OPERATIONS_PATH}/{operation_id}", body=body)

    def list_operations(
        self,
        operation_type: str | None = None,
        status: str | None = None,
        limit: int | None = None,
    ) -> list[BulkOperation]:
        params: dict[str, Any] = {}
        if operation_type:
            params["operationType"] = operation_type
        if status:
            params["status"] = status
        if limit:
            params["limit"] = limit
        data = self._request("GET", OPERATIONS_PATH, params=params or None)
        return [BulkOperation.from_payload(op) for op in data.get("operations") or []]

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> LedgerClient:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
