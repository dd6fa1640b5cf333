"""kusto-sync: compare and synchronize Kusto schemas.

Keeps tables and functions consistent between Kusto databases and folders
of CSL/KQL files.  File-backed schemas are validated through a temporary
Kusto database, so what is compared is exactly what a cluster accepts.

Usage:
    from kusto_sync import SchemaSyncService, SchemaSourceInfo, load_config
    from kusto_sync import compare_schemas, DatabaseSchema, TableSchema
    from kusto_sync import FileSystemSchemaRepository, KustoSchemaRepository
"""

__version__ = "0.1.0"

# Config
from kusto_sync.config.loader import load_config
from kusto_sync.config.models import (
    AuthenticationMode,
    KustoConnectionInfo,
    SchemaSourceInfo,
    SourceKind,
    SyncConfig,
    SyncSettings,
)

# Schema
from kusto_sync.schema.comparator import compare_schemas, diff_dicts
from kusto_sync.schema.models import (
    ColumnSchema,
    ComparisonResult,
    DatabaseSchema,
    Difference,
    FunctionSchema,
    LineEndingMode,
    SchemaDifference,
    SchemaDifferenceResult,
    SchemaKind,
    SyncProgress,
    SyncProgressStage,
    SyncResult,
    TableSchema,
)
from kusto_sync.schema.normalizer import SchemaNormalizer, ValidationEnvironment
from kusto_sync.schema.sync import SchemaSyncService

# Repositories
from kusto_sync.repositories import (
    FileSystemSchemaRepository,
    KustoSchemaRepository,
    SchemaRepository,
)

# Factory
from kusto_sync.factory import create_repository, resolve_source

# Errors
from kusto_sync.exceptions import (
    KustoSyncError,
    SchemaLoadError,
    SchemaParseError,
    SchemaSyncError,
    SchemaValidationError,
    describe_error,
)

__all__ = [
    # Config
    "load_config",
    "AuthenticationMode",
    "KustoConnectionInfo",
    "SchemaSourceInfo",
    "SourceKind",
    "SyncConfig",
    "SyncSettings",
    # Schema
    "compare_schemas",
    "diff_dicts",
    "ColumnSchema",
    "ComparisonResult",
    "DatabaseSchema",
    "Difference",
    "FunctionSchema",
    "LineEndingMode",
    "SchemaDifference",
    "SchemaDifferenceResult",
    "SchemaKind",
    "SyncProgress",
    "SyncProgressStage",
    "SyncResult",
    "TableSchema",
    "SchemaNormalizer",
    "ValidationEnvironment",
    "SchemaSyncService",
    # Repositories
    "FileSystemSchemaRepository",
    "KustoSchemaRepository",
    "SchemaRepository",
    # Factory
    "create_repository",
    "resolve_source",
    # Errors
    "KustoSyncError",
    "SchemaLoadError",
    "SchemaParseError",
    "SchemaSyncError",
    "SchemaValidationError",
    "describe_error",
]
