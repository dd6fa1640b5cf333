"""Schema models and comparison.

The normalizer (``kusto_sync.schema.normalizer``) and the sync service
(``kusto_sync.schema.sync``) are imported from their modules directly.

Usage:
    >>> from kusto_sync.schema import compare_schemas, DatabaseSchema
"""

from kusto_sync.schema.comparator import DictDifference, compare_schemas, diff_dicts
from kusto_sync.schema.models import (
    ColumnSchema,
    ComparisonResult,
    DatabaseSchema,
    Difference,
    FunctionSchema,
    InputParameter,
    LineEndingMode,
    RawDefinition,
    SchemaDifference,
    SchemaDifferenceResult,
    SchemaKind,
    SyncProgress,
    SyncProgressStage,
    SyncResult,
    TableSchema,
    ValidationResult,
)

__all__ = [
    "DictDifference",
    "compare_schemas",
    "diff_dicts",
    "ColumnSchema",
    "ComparisonResult",
    "DatabaseSchema",
    "Difference",
    "FunctionSchema",
    "InputParameter",
    "LineEndingMode",
    "RawDefinition",
    "SchemaDifference",
    "SchemaDifferenceResult",
    "SchemaKind",
    "SyncProgress",
    "SyncProgressStage",
    "SyncResult",
    "TableSchema",
    "ValidationResult",
]
