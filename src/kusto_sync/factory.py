"""Repository factory and source/settings validation.

Maps a ``SchemaSourceInfo`` descriptor onto the matching repository and
checks that a source/target pair can be compared with the given settings.

Usage:
    from kusto_sync.factory import create_repository, resolve_source

    info = resolve_source("prod", config)
    repository = create_repository(info, config.settings)
"""

from kusto_sync.config.models import SchemaSourceInfo, SourceKind, SyncConfig, SyncSettings
from kusto_sync.exceptions import SchemaValidationError
from kusto_sync.kusto.client import KustoQueryEngine
from kusto_sync.repositories.base import SchemaRepository
from kusto_sync.repositories.filesystem import FileSystemSchemaRepository
from kusto_sync.repositories.kusto import KustoSchemaRepository
from kusto_sync.schema.models import ValidationResult
from kusto_sync.schema.normalizer import EnvironmentFactory

TEMP_CLUSTER_REQUIRED = (
    "File system sources require temp cluster configuration. Please configure in Settings."
)


# ============================================================================
# Validation
# ============================================================================


def validate_source_info(info: SchemaSourceInfo) -> ValidationResult:
    """Check that a descriptor names a location.

    Example:
        >>> validate_source_info(SchemaSourceInfo(kind=SourceKind.FILE_PATH)).error_message
        'No folder path was specified.'
    """
    if info is None:
        raise ValueError("info is required")

    if info.kind == SourceKind.FILE_PATH:
        if not info.file_path or not info.file_path.strip():
            return ValidationResult.failure("No folder path was specified.")
        return ValidationResult.success()

    if info.kusto is None or not info.kusto.cluster.strip():
        return ValidationResult.failure("No Kusto cluster was specified.")
    if not info.kusto.database.strip():
        return ValidationResult.failure("No Kusto database was specified.")
    return ValidationResult.success()


def validate_settings(
    source: SchemaSourceInfo,
    target: SchemaSourceInfo,
    settings: SyncSettings,
) -> ValidationResult:
    """Check that ``settings`` support comparing ``source`` with ``target``.

    File-backed sides are loaded through the temporary database, so either
    one being file-backed requires a temporary cluster and database.
    """
    if source is None or target is None:
        raise ValueError("Both source and target are required")
    if settings is None:
        raise ValueError("settings is required")

    uses_files = SourceKind.FILE_PATH in (source.kind, target.kind)
    if uses_files and (not settings.temp_cluster.strip() or not settings.temp_database.strip()):
        return ValidationResult.failure(TEMP_CLUSTER_REQUIRED)
    return ValidationResult.success()


# ============================================================================
# Construction
# ============================================================================


def create_repository(
    info: SchemaSourceInfo,
    settings: SyncSettings,
    environment_factory: EnvironmentFactory | None = None,
) -> SchemaRepository:
    """Create the repository a descriptor points at.

    Args:
        info: File path or Kusto database.
        settings: Shared settings; Kusto repositories use its line ending
            policy, file repositories its extension and temporary database.
        environment_factory: Validation environment for file repositories
            (defaults to the temporary database).

    Raises:
        SchemaValidationError: If the descriptor is incomplete.
    """
    result = validate_source_info(info)
    if not result.is_valid:
        raise SchemaValidationError(result.error_message or "Invalid source", [result.error_message or ""])

    if info.kind == SourceKind.FILE_PATH:
        return FileSystemSchemaRepository(info.file_path, settings, environment_factory)

    return KustoSchemaRepository(KustoQueryEngine.connect(info.kusto), settings)


def resolve_source(value: str, config: SyncConfig) -> SchemaSourceInfo:
    """Resolve a CLI argument to a descriptor.

    A configured source name wins; anything else is treated as a folder path.

    Example:
        >>> resolve_source("./schema", SyncConfig()).file_path
        './schema'
    """
    if not value or not value.strip():
        raise ValueError("A source name or path is required")
    if value in config.sources:
        return config.sources[value]
    return SchemaSourceInfo(kind=SourceKind.FILE_PATH, file_path=value)
