"""Exception hierarchy for schema loading, validation and synchronization.

Every error raised on purpose by this package derives from ``KustoSyncError``
so callers can separate recognized failures from programming errors:

- ``SchemaLoadError``: a repository could not produce a schema.
  ``SchemaParseError`` narrows it to definitions the engine rejected.
- ``SchemaSyncError``: one or more objects could not be saved or deleted.
- ``CreateOrAlterError``: a single object could not be applied.
- ``SchemaValidationError``: settings or arguments are structurally invalid.

``describe_error()`` turns any exception into a message fit for the CLI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kusto_sync.schema.models import DatabaseSchema


class KustoSyncError(Exception):
    """Base class for all kusto-sync errors."""

    pass


# ============================================================================
# Load / parse
# ============================================================================


class SchemaLoadError(KustoSyncError):
    """Raised when a schema cannot be obtained from a repository."""

    pass


class SchemaParseError(SchemaLoadError):
    """Raised when some text definitions were rejected by the validating engine.

    Attributes:
        failed_objects: Names of the definitions that could not be applied.
        schema: The schema read back without the failed objects, if any.
    """

    def __init__(
        self,
        message: str,
        failed_objects: list[str],
        schema: DatabaseSchema | None = None,
    ) -> None:
        super().__init__(message)
        self.failed_objects = list(failed_objects)
        self.schema = schema


class FileSchemaError(KustoSyncError):
    """Raised when a schema file cannot be read, written or removed."""

    pass


# ============================================================================
# Apply / sync
# ============================================================================


class CreateOrAlterError(KustoSyncError):
    """Raised when a single table or function could not be applied."""

    def __init__(self, message: str, name: str) -> None:
        super().__init__(message)
        self.name = name


class SchemaSyncError(KustoSyncError):
    """Raised when objects could not be saved to or deleted from a target.

    Attributes:
        failures: One ``"<name>: <reason>"`` entry per affected object.
    """

    def __init__(self, message: str, failures: list[str] | None = None) -> None:
        super().__init__(message)
        self.failures = list(failures or [])

    def __str__(self) -> str:
        if not self.failures:
            return super().__str__()
        return f"{super().__str__()}: {'; '.join(self.failures)}"


# ============================================================================
# Validation
# ============================================================================


class SchemaValidationError(KustoSyncError):
    """Raised when settings or source descriptors are invalid."""

    def __init__(self, message: str, validation_errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.validation_errors = list(validation_errors or [])


class KustoSettingsError(SchemaValidationError):
    """Raised when a cluster or database setting is missing."""

    pass


class KustoDatabaseValidationError(SchemaValidationError):
    """Raised when a database expected to be empty still holds objects."""

    def __init__(
        self,
        cluster: str,
        database: str,
        function_count: int,
        table_count: int,
        message: str,
    ) -> None:
        super().__init__(
            message,
            [f"Functions: {function_count}", f"Tables: {table_count}"],
        )
        self.cluster = cluster
        self.database = database
        self.function_count = function_count
        self.table_count = table_count


# ============================================================================
# Kusto connectivity
# ============================================================================


class KustoPermissionError(SchemaLoadError):
    """Raised when the caller may not create objects in a database."""

    def __init__(self, cluster: str, database: str, message: str) -> None:
        super().__init__(message)
        self.cluster = cluster
        self.database = database


class KustoClusterError(KustoSyncError):
    """Raised when a cluster cannot be reached or behaves unexpectedly."""

    pass


class KustoAuthenticationError(KustoClusterError):
    """Raised when Microsoft Entra ID authentication fails."""

    pass


# ============================================================================
# User-facing messages
# ============================================================================


def _describe_file_error(exc: BaseException) -> str | None:
    if isinstance(exc, SchemaParseError):
        names = "\n".join(exc.failed_objects)
        return (
            f"Failed to parse the following schema objects:\n{names}\n\n"
            "These objects will be ignored."
        )
    if not isinstance(exc, FileSchemaError):
        return None

    cause = exc.__cause__
    if isinstance(cause, PermissionError):
        return f"Access denied to file system: {exc}"
    if isinstance(cause, FileNotFoundError):
        return f"File not found: {exc}"
    if isinstance(cause, NotADirectoryError):
        return f"Directory not found: {exc}"
    if isinstance(cause, OSError):
        return f"File system I/O error: {exc}"
    return f"File system error: {exc}"


def _describe_kusto_error(exc: BaseException) -> str | None:
    if isinstance(exc, KustoPermissionError):
        return (
            f"{exc}\n\nAsk an administrator of cluster '{exc.cluster}' for "
            f"'Database User' permissions on '{exc.database}'."
        )
    if isinstance(exc, KustoDatabaseValidationError):
        return (
            f"{exc}\n\nThe temporary database is reset on every load, so it "
            "must not hold anything you want to keep."
        )
    if isinstance(exc, (KustoClusterError, SchemaValidationError)):
        return str(exc)
    return None


_RESOLVERS = (_describe_file_error, _describe_kusto_error)


def describe_error(exc: BaseException) -> str:
    """Resolve the most helpful message for ``exc``.

    Exception groups are searched member by member, then the explicit cause
    chain is followed.  When no resolver recognizes anything the exception's
    own message is returned.

    Example:
        >>> describe_error(SchemaParseError("bad", ["T1"]))
        'Failed to parse the following schema objects:\\nT1\\n\\nThese objects will be ignored.'
    """
    message = _resolve(exc)
    return message if message is not None else str(exc)


def _resolve(exc: BaseException) -> str | None:
    if isinstance(exc, BaseExceptionGroup):
        for inner in exc.exceptions:
            message = _resolve(inner)
            if message is not None:
                return message
        return None

    for resolver in _RESOLVERS:
        message = resolver(exc)
        if message is not None:
            return message

    if exc.__cause__ is not None:
        return _resolve(exc.__cause__)
    return None
