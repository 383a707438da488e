from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

"""Validation state shared by the ingest, mapping and submission steps.

A ValidationState is never patched: every action that may invalidate it
produces a brand new instance.
"""

__all__ = [
    "ValidationIssue",
    "ValidationState",
]


@dataclass(frozen=True)
class ValidationIssue:
    """A single problem tied to a row (0 when not row specific) and a field."""
    row: int
    field: str
    message: str

    def to_payload(self) -> dict[str, Any]:
        return {"row": self.row, "field": self.field, "message": self.message}


@dataclass(frozen=True)
class ValidationState:
    is_valid: bool = True
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def ok(cls, warnings: list[str] | tuple[str, ...] = ()) -> ValidationState:
        return cls(is_valid=True, errors=(), warnings=tuple(warnings))

    @classmethod
    def failed(cls, errors: list[ValidationIssue] | tuple[ValidationIssue, ...]) -> ValidationState:
        # warnings are cleared whenever the state turns invalid
        return cls(is_valid=False, errors=tuple(errors), warnings=())
