from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .validation import ValidationIssue

"""Result models for a chunked import run.

BulkImportResult is the terminal summary handed back to the caller; it is
derived from the run and never persisted locally.
"""

__all__ = [
    "ChunkStat",
    "BulkImportResult",
]


@dataclass(frozen=True)
class ChunkStat:
    """Outcome of one chunk submission."""
    chunk_index: int
    row_count: int
    success: bool
    elapsed_seconds: float


@dataclass(frozen=True)
class BulkImportResult:
    total_records: int
    successful_records: int
    failed_records: int
    errors: list[ValidationIssue]
    operation_id: Any
    total_chunks: int = 0
    chunk_stats: list[ChunkStat] = field(default_factory=list)
    cancelled: bool = False
    next_chunk: int | None = None  # first unsent chunk index when cancelled
    elapsed_seconds: float = 0.0

    @property
    def all_succeeded(self) -> bool:
        return self.failed_records == 0 and not self.cancelled

    def to_payload(self) -> dict[str, Any]:
        return {
            "totalRecords": self.total_records,
            "successfulRecords": self.successful_records,
            "failedRecords": self.failed_records,
            "errors": [e.to_payload() for e in self.errors],
            "operationId": self.operation_id,
        }
