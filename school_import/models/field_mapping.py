from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

"""FieldMapping model: one source column routed onto one entity field.

A mapping is proposed by the column mapper (with a heuristic confidence) or
entered by the operator (confidence 1.0), and carries the value transformation
applied to every cell at submission time.
"""

__all__ = [
    "Transformation",
    "FieldMapping",
]


class Transformation(Enum):
    """Per-cell value transformation applied at submission time.

    - NONE: copy the raw string
    - TRIM: strip surrounding whitespace
    - LOWERCASE: case-fold to lowercase
    - NUMBER: parse as float (empty value on failure)
    - SPLIT: comma separated list, trimmed, empties dropped
    """
    NONE = "none"
    TRIM = "trim"
    LOWERCASE = "lowercase"
    NUMBER = "number"
    SPLIT = "split"


@dataclass(frozen=True)
class FieldMapping:
    """Source column -> entity target field, with confidence and transformation."""
    source_field: str
    target_field: str
    confidence: float
    transformation: Transformation = Transformation.NONE

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1]: {self.confidence}")

    def with_transformation(self, transformation: Transformation) -> FieldMapping:
        return replace(self, transformation=transformation)

    def to_payload(self) -> dict[str, Any]:
        """Wire shape used in the operation snapshot."""
        return {
            "sourceField": self.source_field,
            "targetField": self.target_field,
            "confidence": self.confidence,
            "transformation": self.transformation.value,
        }
