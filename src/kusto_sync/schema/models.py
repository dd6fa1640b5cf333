"""Pydantic models for Kusto schemas, differences and sync outcomes.

This module contains schema-domain models:
- Schema objects: ColumnSchema, InputParameter, TableSchema, FunctionSchema,
  DatabaseSchema
- Comparison models: SchemaKind, Difference, SchemaDifference,
  SchemaDifferenceResult, ComparisonResult
- Sync models: SyncProgressStage, SyncProgress, SyncResult
- Text-backed input: RawDefinition, LineEndingMode
- ValidationResult

Schema object fields carry PascalCase aliases matching the output of
``.show database ['<db>'] schema as json``, so the engine's JSON validates
straight into these models while Python code uses snake_case names.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal


class LineEndingMode(str, Enum):
    """Line ending policy applied to function bodies read back from Kusto."""

    LEAVE_AS_IS = "leave_as_is"
    WINDOWS_STYLE = "windows_style"
    UNIX_STYLE = "unix_style"


# ============================================================================
# Schema Objects
# ============================================================================


class KustoObjectModel(BaseModel):
    """Base for models validated from Kusto's schema JSON.

    Two instances are equal when they have the same type and every field
    matches.
    """

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    def __eq__(self, other: Any) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self.model_dump() == other.model_dump()


class ColumnSchema(KustoObjectModel):
    """A table column or function output column.

    Example:
        >>> col = ColumnSchema(name="Timestamp", csl_type="datetime")
        >>> col.type is None
        True
    """

    name: str
    type: str | None = None
    csl_type: str | None = None
    doc_string: str | None = None


class InputParameter(KustoObjectModel):
    """A function parameter.  Tabular parameters carry ``columns``."""

    name: str
    type: str | None = None
    csl_type: str | None = None
    csl_default_value: str | None = None
    columns: list[ColumnSchema] | None = None


class TableSchema(KustoObjectModel):
    """Schema for a Kusto table."""

    name: str
    ordered_columns: list[ColumnSchema] = Field(default_factory=list)
    folder: str | None = None
    doc_string: str | None = None


class FunctionSchema(KustoObjectModel):
    """Schema for a stored function.  ``body`` includes the enclosing braces."""

    name: str
    input_parameters: list[InputParameter] = Field(default_factory=list)
    body: str = ""
    folder: str | None = None
    doc_string: str | None = None
    output_columns: list[ColumnSchema] = Field(default_factory=list)


SchemaObject = TableSchema | FunctionSchema


class DatabaseSchema(KustoObjectModel):
    """Complete database schema: tables and functions keyed by name.

    A table and a function may share a name; the two collections are
    independent.
    """

    name: str = ""
    tables: dict[str, TableSchema] = Field(default_factory=dict)
    functions: dict[str, FunctionSchema] = Field(default_factory=dict)


class SchemaKind(str, Enum):
    """The two kinds of schema object."""

    TABLE = "table"
    FUNCTION = "function"


class RawDefinition(BaseModel):
    """A text definition of one object, named after the file it came from."""

    kind: SchemaKind
    name: str
    text: str


# ============================================================================
# Comparison Models
# ============================================================================


class Difference(str, Enum):
    """How a named object differs between source and target."""

    MODIFIED = "modified"
    ONLY_IN_SOURCE = "only_in_source"
    ONLY_IN_TARGET = "only_in_target"


class SchemaDifference(BaseModel):
    """One differing object.

    ``schema_object`` is the source's version for ``MODIFIED`` and
    ``ONLY_IN_SOURCE`` and the target's version for ``ONLY_IN_TARGET``.
    """

    kind: SchemaKind
    name: str
    difference: Difference
    schema_object: TableSchema | FunctionSchema


class SchemaDifferenceResult(BaseModel):
    """Differences grouped by kind.

    Example:
        >>> result = SchemaDifferenceResult()
        >>> result.all_differences
        []
    """

    table_differences: list[SchemaDifference] = Field(default_factory=list)
    function_differences: list[SchemaDifference] = Field(default_factory=list)

    @property
    def all_differences(self) -> list[SchemaDifference]:
        """Table differences followed by function differences."""
        return [*self.table_differences, *self.function_differences]

    @property
    def is_empty(self) -> bool:
        """True when the two schemas are identical."""
        return not self.table_differences and not self.function_differences


class ComparisonResult(BaseModel):
    """Differences together with the two schemas that produced them."""

    differences: SchemaDifferenceResult
    source_schema: DatabaseSchema
    target_schema: DatabaseSchema


# ============================================================================
# Sync Models
# ============================================================================


class SyncProgressStage(str, Enum):
    """Stages of the compare and synchronize state machine."""

    UNKNOWN = "unknown"
    VALIDATING_SOURCE = "validating_source"
    VALIDATING_TARGET = "validating_target"
    LOADING_SOURCE_SCHEMA = "loading_source_schema"
    LOADING_TARGET_SCHEMA = "loading_target_schema"
    COMPARING_SCHEMAS = "comparing_schemas"
    SYNCHRONIZING_SCHEMAS = "synchronizing_schemas"
    COMPLETE = "complete"


class SyncProgress(BaseModel):
    """A progress notification.  Observational only."""

    model_config = ConfigDict(frozen=True)

    message: str
    percent: int | None = None
    stage: SyncProgressStage = SyncProgressStage.UNKNOWN


class SyncResult(BaseModel):
    """Outcome of applying a set of differences to a target.

    Example:
        >>> SyncResult.successful(3).items_synchronized
        3
        >>> SyncResult.failed(["boom"]).success
        False
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    items_synchronized: int = 0
    errors: tuple[str, ...] = ()

    @classmethod
    def successful(cls, items_synchronized: int) -> "SyncResult":
        """Build a successful result."""
        return cls(success=True, items_synchronized=items_synchronized)

    @classmethod
    def failed(cls, errors: list[str]) -> "SyncResult":
        """Build a failed result.  Nothing counts as synchronized."""
        return cls(success=False, items_synchronized=0, errors=tuple(errors))


class ValidationResult(BaseModel):
    """Result of validating source/target settings."""

    is_valid: bool
    error_message: str | None = None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(is_valid=True)

    @classmethod
    def failure(cls, error_message: str) -> "ValidationResult":
        return cls(is_valid=False, error_message=error_message)
