from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Any

from school_import.models import FieldMapping, Row, Transformation

"""Cell transformations applied while building the submitted records."""

__all__ = [
    "apply_transformation",
    "transform_row",
]


def _to_number(value: str) -> float | str:
    # unparseable, NaN or infinite -> empty value
    try:
        number = float(value.strip())
    except ValueError:
        return ""
    if not math.isfinite(number):
        return ""
    return number


def apply_transformation(value: str, transformation: Transformation) -> Any:
    if transformation is Transformation.TRIM:
        return value.strip()
    if transformation is Transformation.LOWERCASE:
        return value.lower()
    if transformation is Transformation.NUMBER:
        return _to_number(value)
    if transformation is Transformation.SPLIT:
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def transform_row(row: Row, mappings: Sequence[FieldMapping]) -> dict[str, Any]:
    """Build the record submitted for ``row``.

    The record starts as a copy of the source row. Each mapping with a
    non-empty source cell writes its transformed value under the target
    field; mappings whose source cell is empty or missing leave the record
    untouched.
    """
    out: dict[str, Any] = dict(row)
    for mapping in mappings:
        value = row.get(mapping.source_field)
        if value:
            out[mapping.target_field] = apply_transformation(value, mapping.transformation)
    return out
