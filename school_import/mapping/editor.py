from __future__ import annotations

from collections.abc import Iterable, Sequence

from school_import.models import (
    FieldMapping,
    Transformation,
    ValidationIssue,
    ValidationState,
)

from .mapper import MappingError, suggest_transformation, vocabulary_for

"""Operator review of the proposed mapping.

The editor keeps the working list of FieldMapping entries and refuses edits
that reference a column absent from the file or a field absent from the entity
vocabulary. Validation only checks that the required target fields are mapped;
cell values are checked at submission time.
"""

__all__ = [
    "DEFAULT_REQUIRED_FIELDS",
    "MappingEditor",
    "ValidationError",
    "parse_mapping_spec",
    "require_valid",
    "validate_mapping",
]

DEFAULT_REQUIRED_FIELDS: tuple[str, ...] = ("name",)


class ValidationError(Exception):
    """Raised when a ValidationState blocking submission is enforced."""

    def __init__(self, errors: Sequence[ValidationIssue]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(e.message for e in self.errors) or "validation failed")


def validate_mapping(
    mappings: Iterable[FieldMapping],
    required_fields: Iterable[str] = DEFAULT_REQUIRED_FIELDS,
) -> ValidationState:
    mapped = {m.target_field for m in mappings}
    missing = [f for f in required_fields if f not in mapped]
    if missing:
        return ValidationState.failed([
            ValidationIssue(row=0, field=f, message=f'Required field "{f}" is not mapped')
            for f in missing
        ])
    return ValidationState.ok()


def require_valid(state: ValidationState) -> None:
    if not state.is_valid:
        raise ValidationError(state.errors)


def parse_mapping_spec(spec: str, confidence: float = 1.0) -> FieldMapping:
    """Parse ``SOURCE=TARGET[:TRANSFORMATION]`` into a manual FieldMapping.

    The transformation defaults to the hint for the target field.

    Raises:
        MappingError: On malformed text or an unknown transformation
    """
    source, sep, rest = spec.partition("=")
    if not sep or not source.strip() or not rest.strip():
        raise MappingError(f"invalid mapping {spec!r}; expected SOURCE=TARGET[:TRANSFORMATION]")
    target, _, kind = rest.partition(":")
    target = target.strip()
    if kind.strip():
        try:
            transformation = Transformation(kind.strip().lower())
        except ValueError:
            choices = ", ".join(t.value for t in Transformation)
            raise MappingError(f"unknown transformation {kind!r} (expected one of {choices})") from None
    else:
        transformation = suggest_transformation(target)
    return FieldMapping(
        source_field=source.strip(),
        target_field=target,
        confidence=confidence,
        transformation=transformation,
    )


class MappingEditor:
    """Working copy of the mapping for one file and entity type."""

    def __init__(
        self,
        columns: Sequence[str],
        entity_type: str,
        mappings: Iterable[FieldMapping] = (),
    ) -> None:
        self.columns = list(columns)
        self.entity_type = entity_type
        self._fields = vocabulary_for(entity_type)
        self._mappings: list[FieldMapping] = []
        for m in mappings:
            self.add(m)

    @property
    def mappings(self) -> list[FieldMapping]:
        return list(self._mappings)

    def __len__(self) -> int:
        return len(self._mappings)

    def _check(self, mapping: FieldMapping) -> None:
        if mapping.source_field not in self.columns:
            raise MappingError(f"source column not present in file: {mapping.source_field!r}")
        if mapping.target_field not in self._fields:
            raise MappingError(
                f"target field {mapping.target_field!r} is not a {self.entity_type} field "
                f"(expected one of {', '.join(self._fields)})"
            )

    def _index(self, index: int) -> int:
        if not 0 <= index < len(self._mappings):
            raise MappingError(f"no mapping at index {index}")
        return index

    def add(self, mapping: FieldMapping) -> None:
        """Append a mapping, replacing any existing one for the same column."""
        self._check(mapping)
        self._mappings = [m for m in self._mappings if m.source_field != mapping.source_field]
        self._mappings.append(mapping)

    def update(self, index: int, mapping: FieldMapping) -> None:
        """Replace the entry at ``index``; other entries for the same column are dropped."""
        self._check(mapping)
        i = self._index(index)
        self._mappings[i] = mapping
        self._mappings = [
            m for j, m in enumerate(self._mappings)
            if j == i or m.source_field != mapping.source_field
        ]

    def set_transformation(self, index: int, transformation: Transformation) -> None:
        i = self._index(index)
        self._mappings[i] = self._mappings[i].with_transformation(transformation)

    def remove(self, index: int) -> FieldMapping:
        return self._mappings.pop(self._index(index))

    def validate(self, required_fields: Iterable[str] = DEFAULT_REQUIRED_FIELDS) -> ValidationState:
        return validate_mapping(self._mappings, required_fields)
