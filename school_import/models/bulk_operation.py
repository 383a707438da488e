from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""BulkOperation: local view of the remote operation ledger record.

The record is owned by the school API. This package only creates it, appends
chunk results to it and closes it with a terminal status.

State transitions: pending -> (completed | cancelled)
"""

__all__ = [
    "OperationStatus",
    "BulkOperation",
]


class OperationStatus(Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class BulkOperation:
    id: Any
    operation_type: str
    entity_type: str
    total_records: int
    successful_records: int = 0
    failed_records: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)
    status: str = OperationStatus.PENDING.value
    created_by: str | None = None
    created_at: str | None = None
    completed_at: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> BulkOperation:
        """Build from the ledger JSON (camelCase keys, most of them optional)."""
        return cls(
            id=data["id"],
            operation_type=data.get("operationType", "import"),
            entity_type=data.get("entityType", ""),
            total_records=int(data.get("totalRecords") or 0),
            successful_records=int(data.get("successfulRecords") or 0),
            failed_records=int(data.get("failedRecords") or 0),
            errors=list(data.get("errors") or []),
            status=data.get("status") or OperationStatus.PENDING.value,
            created_by=data.get("createdBy"),
            created_at=data.get("createdAt"),
            completed_at=data.get("completedAt"),
        )
