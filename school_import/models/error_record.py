from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any

"""ErrorRecord model for the JSON Lines error log.

The key set is fixed; consumers of the log rely on it (see
``school_import/logging/error_log_schema.json``).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: Source file being imported
        operation_id: Remote bulk operation id (None before creation)
        row: First row index of the failing chunk. -1 when not row specific
        field: Field the error relates to ("chunk" for chunk failures)
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str
    file: str
    operation_id: Any
    row: int
    field: str
    error_type: str
    message: str

    @staticmethod
    def create(
        file: str,
        operation_id: Any,
        row: int,
        field: str,
        error_type: str,
        message: str,
    ) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            operation_id=operation_id,
            row=row,
            field=field,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
