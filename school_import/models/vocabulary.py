from __future__ import annotations

from types import MappingProxyType

from .field_mapping import Transformation

"""Static target-field vocabulary per entity type.

Field order is significant: the column mapper resolves score ties in favour of
the field declared first.
"""

__all__ = [
    "ENTITY_TYPES",
    "ENTITY_FIELDS",
    "TRANSFORMATION_HINTS",
    "entity_fields",
]

ENTITY_FIELDS: MappingProxyType[str, tuple[str, ...]] = MappingProxyType({
    # email is appended last so it never wins a tie over the core student fields
    "student": ("name", "age", "grade", "classId", "parentId", "email"),
    "teacher": ("name", "subject", "email", "classIds"),
    "parent": ("name", "email", "childrenIds"),
    "class": ("name", "subjectIds", "maxCapacity", "roomNumber"),
})

ENTITY_TYPES: tuple[str, ...] = tuple(ENTITY_FIELDS.keys())

# Keyed on the lower-cased target field name
TRANSFORMATION_HINTS: MappingProxyType[str, Transformation] = MappingProxyType({
    "name": Transformation.TRIM,
    "email": Transformation.LOWERCASE,
    "age": Transformation.NUMBER,
    "grade": Transformation.NUMBER,
    "classid": Transformation.TRIM,
    "parentid": Transformation.TRIM,
    "subjectids": Transformation.SPLIT,
    "maxcapacity": Transformation.NUMBER,
})


def entity_fields(entity_type: str) -> tuple[str, ...]:
    """Return the ordered target fields for ``entity_type``.

    Raises:
        KeyError: If the entity type is not part of the vocabulary
    """
    return ENTITY_FIELDS[entity_type]
