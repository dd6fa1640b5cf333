"""Schema repository backed by a live Kusto database."""

import logging
from collections.abc import Iterable

from kusto_sync.config.models import SyncSettings
from kusto_sync.exceptions import (
    CreateOrAlterError,
    KustoSyncError,
    SchemaLoadError,
    SchemaSyncError,
)
from kusto_sync.kusto.client import KustoQueryEngine
from kusto_sync.kusto.commands import function_command, table_create_command
from kusto_sync.repositories.base import failure_entry
from kusto_sync.schema.models import (
    DatabaseSchema,
    FunctionSchema,
    SchemaObject,
    TableSchema,
)
from kusto_sync.schema.normalizer import apply_function, apply_table, normalize_schema

logger = logging.getLogger(__name__)


class KustoSchemaRepository:
    """Loads, writes and drops tables and functions in one Kusto database.

    Args:
        engine: Engine bound to the database.  The repository owns it and
            closes it in ``close()``.
        settings: Line ending policy and table command layout.
    """

    def __init__(self, engine: KustoQueryEngine, settings: SyncSettings | None = None) -> None:
        if engine is None:
            raise ValueError("engine is required")
        self._engine = engine
        self._settings = settings or SyncSettings()

    @property
    def database(self) -> str:
        return self._engine.database

    async def load_schema(self) -> DatabaseSchema:
        try:
            schema = await self._engine.read_schema()
        except KustoSyncError:
            raise
        except Exception as e:
            raise SchemaLoadError(f"Failed to load schema from Kusto database '{self.database}'") from e
        return normalize_schema(schema, self._settings.line_ending_mode)

    async def save_schema(self, objects: Iterable[SchemaObject]) -> None:
        """Apply every object, tables via ALTER-then-CREATE and functions via CREATE-OR-ALTER."""
        if objects is None:
            raise ValueError("objects is required")

        failures = []
        for schema_object in objects:
            try:
                if isinstance(schema_object, TableSchema):
                    command = table_create_command(
                        schema_object,
                        create_merge=self._settings.create_merge_enabled,
                        fields_on_new_line=self._settings.table_fields_on_new_line,
                    )
                    await apply_table(self._engine, schema_object.name, command)
                elif isinstance(schema_object, FunctionSchema):
                    await apply_function(
                        self._engine, schema_object.name, function_command(schema_object)
                    )
                else:
                    failures.append(f"Unknown schema type: {type(schema_object).__name__}")
                    continue
                logger.debug(f"Saved {schema_object.name} to {self.database}")
            except (CreateOrAlterError, ValueError) as e:
                failures.append(failure_entry(schema_object.name, e))

        if failures:
            raise SchemaSyncError(f"Failed to save schemas to Kusto database '{self.database}'", failures)

    async def delete_schema(self, objects: Iterable[SchemaObject]) -> None:
        if objects is None:
            raise ValueError("objects is required")

        failures = []
        for schema_object in objects:
            try:
                if isinstance(schema_object, TableSchema):
                    await self._engine.drop_table(schema_object.name)
                elif isinstance(schema_object, FunctionSchema):
                    await self._engine.drop_function(schema_object.name)
                else:
                    failures.append(f"Unknown schema type: {type(schema_object).__name__}")
                    continue
                logger.debug(f"Dropped {schema_object.name} from {self.database}")
            except Exception as e:
                failures.append(failure_entry(schema_object.name, e))

        if failures:
            raise SchemaSyncError(
                f"Failed to delete schemas from Kusto database '{self.database}'", failures
            )

    async def close(self) -> None:
        await self._engine.close()
