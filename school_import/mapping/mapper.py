from __future__ import annotations

import re
from collections.abc import Sequence

from school_import.models import (
    ENTITY_FIELDS,
    TRANSFORMATION_HINTS,
    FieldMapping,
    Transformation,
    ValidationIssue,
    ValidationState,
)

"""Heuristic column -> entity field mapper.

Score of a (source column, target field) pair, compared case-insensitively:

    exact match                          1.0
    one name contains the other          0.8
    otherwise  common tokens / max(token counts) * 0.5

Tokens are split on ``_``, whitespace and ``-``. For every column the best
scoring field is proposed when its score exceeds MIN_CONFIDENCE; ties keep the
field declared first in the vocabulary.
"""

__all__ = [
    "MIN_CONFIDENCE",
    "MappingError",
    "UnknownEntityTypeError",
    "score_field_match",
    "suggest_transformation",
    "generate_mapping",
    "auto_map",
    "vocabulary_for",
]

MIN_CONFIDENCE = 0.3

_TOKEN_SPLIT = re.compile(r"[_\s-]")


class MappingError(Exception):
    """Raised for mapping edits that break the FieldMapping invariants."""


class UnknownEntityTypeError(MappingError):
    pass


def _tokens(name: str) -> list[str]:
    return [t for t in _TOKEN_SPLIT.split(name) if t]


def score_field_match(source_column: str, target_field: str) -> float:
    source = source_column.lower()
    target = target_field.lower()
    if not source or not target:
        return 0.0

    if source == target:
        return 1.0

    if target in source or source in target:
        return 0.8

    source_words = _tokens(source)
    target_words = _tokens(target)
    longest = max(len(source_words), len(target_words))
    if longest == 0:
        return 0.0
    common = [w for w in source_words if w in target_words]
    return len(common) / longest * 0.5


def suggest_transformation(target_field: str) -> Transformation:
    return TRANSFORMATION_HINTS.get(target_field.lower(), Transformation.NONE)


def vocabulary_for(entity_type: str) -> tuple[str, ...]:
    try:
        return ENTITY_FIELDS[entity_type]
    except KeyError:
        raise UnknownEntityTypeError(
            f"unknown entity type: {entity_type!r} (expected one of {', '.join(ENTITY_FIELDS)})"
        ) from None


def generate_mapping(columns: Sequence[str], entity_type: str) -> list[FieldMapping]:
    """Propose at most one mapping per source column.

    Args:
        columns: Detected source column names, in file order
        entity_type: One of the vocabulary entity types

    Returns:
        Proposals in column order; columns scoring MIN_CONFIDENCE or less are
        left out

    Raises:
        UnknownEntityTypeError: If ``entity_type`` has no vocabulary
    """
    fields = vocabulary_for(entity_type)
    mappings: list[FieldMapping] = []
    seen: set[str] = set()
    for column in columns:
        if column in seen:
            continue
        seen.add(column)

        best_match = ""
        best_score = 0.0
        for field in fields:
            score = score_field_match(column, field)
            # strict comparison keeps the first declared field on ties
            if score > best_score:
                best_score = score
                best_match = field

        if best_score > MIN_CONFIDENCE:
            mappings.append(
                FieldMapping(
                    source_field=column,
                    target_field=best_match,
                    confidence=best_score,
                    transformation=suggest_transformation(best_match),
                )
            )
    return mappings


def auto_map(columns: Sequence[str], entity_type: str) -> tuple[list[FieldMapping], ValidationState]:
    """Run ``generate_mapping`` and describe the outcome as a ValidationState."""
    mappings = generate_mapping(columns, entity_type)
    if mappings:
        return mappings, ValidationState.ok(
            [f"Generated {len(mappings)} intelligent field mappings"]
        )
    return mappings, ValidationState.failed([
        ValidationIssue(
            row=0,
            field="mapping",
            message="Could not generate intelligent mappings for detected columns",
        )
    ])
