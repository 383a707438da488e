"""Domain models for the school bulk importer.

This package contains the dataclasses shared by the ingest, mapping and
submission layers.
"""

from .bulk_operation import BulkOperation, OperationStatus
from .error_record import ErrorRecord
from .field_mapping import FieldMapping, Transformation
from .import_result import BulkImportResult, ChunkStat
from .validation import ValidationIssue, ValidationState
from .vocabulary import ENTITY_FIELDS, ENTITY_TYPES, TRANSFORMATION_HINTS, entity_fields

Row = dict[str, str]

__all__ = [
    # Mapping models
    "FieldMapping",
    "Transformation",
    "ENTITY_FIELDS",
    "ENTITY_TYPES",
    "TRANSFORMATION_HINTS",
    "entity_fields",
    # Processing models
    "Row",
    "ValidationIssue",
    "ValidationState",
    "BulkOperation",
    "OperationStatus",
    "BulkImportResult",
    "ChunkStat",
    "ErrorRecord",
]
