"""Async Kusto engine client.

Provides ``KustoQueryEngine``, a thin async wrapper over the ``azure-kusto-data``
aio ``KustoClient`` bound to one database.  It issues management commands
and reads the database schema back as structured models.  When pointed at a
temporary database it can also wipe that database clean.  That makes it the
production implementation of the validation environment used by
``kusto_sync.schema.normalizer``.

Usage:
    from kusto_sync.kusto.client import KustoQueryEngine

    async with KustoQueryEngine.connect(info) as engine:
        schema = await engine.read_schema()
        await engine.execute(".create table T (a:string)")
"""

import json
import logging
from typing import Any

from azure.kusto.data import KustoConnectionStringBuilder
from azure.kusto.data.aio import KustoClient

from kusto_sync.config.models import KustoConnectionInfo
from kusto_sync.exceptions import SchemaLoadError
from kusto_sync.kusto.commands import (
    drop_function_command,
    drop_functions_command,
    drop_table_command,
    drop_tables_command,
)
from kusto_sync.kusto.connection import build_connection_string
from kusto_sync.schema.models import DatabaseSchema

logger = logging.getLogger(__name__)


def parse_database_schema(schema_json: str, database: str) -> DatabaseSchema:
    """Parse ``.show database schema as json`` output into a ``DatabaseSchema``.

    Args:
        schema_json: Cluster schema document with a ``Databases`` object.
        database: Database to pick; matched case-insensitively, falling back
            to the first database in the document.

    Raises:
        SchemaLoadError: If the document is not JSON or holds no database.
    """
    try:
        document: dict[str, Any] = json.loads(schema_json)
    except json.JSONDecodeError as e:
        raise SchemaLoadError(f"Schema for '{database}' is not valid JSON: {e}") from e

    databases: dict[str, Any] = document.get("Databases") or {}
    if not databases:
        raise SchemaLoadError(f"No databases found in schema for '{database}'")

    selected = next(
        (value for key, value in databases.items() if key.lower() == database.lower()),
        next(iter(databases.values())),
    )
    return DatabaseSchema.model_validate(selected)


class KustoQueryEngine:
    """Async management-command client for a single Kusto database.

    Args:
        connection_string: Authenticated connection string builder.
        database: Database every command runs against.
        temporary: ``True`` when the database is a scratch database that
            ``reset()`` may empty.
        client: Pre-built aio ``KustoClient`` (tests inject doubles here).

    Example:
        engine = KustoQueryEngine(kcsb, "Scratch", temporary=True)
        await engine.reset()
        await engine.close()
    """

    def __init__(
        self,
        connection_string: KustoConnectionStringBuilder | None,
        database: str,
        temporary: bool = False,
        client: Any | None = None,
    ) -> None:
        if not database or not database.strip():
            raise ValueError("A database name is required")

        self._database = database
        self._temporary = temporary
        self._client = client if client is not None else KustoClient(connection_string)

    @classmethod
    def connect(cls, info: KustoConnectionInfo, temporary: bool = False) -> "KustoQueryEngine":
        """Create an engine from connection info."""
        return cls(build_connection_string(info), info.database, temporary=temporary)

    @property
    def database(self) -> str:
        return self._database

    async def __aenter__(self) -> "KustoQueryEngine":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def execute(self, command: str) -> Any:
        """Run a management command and return the raw response."""
        logger.debug(f"[{self._database}] {command.splitlines()[0] if command else ''}")
        return await self._client.execute_mgmt(self._database, command)

    async def scalar(self, command: str) -> Any:
        """Run a command and return the first column of its first row."""
        response = await self.execute(command)
        rows = response.primary_results[0].rows
        if not rows:
            return None
        return rows[0][0]

    async def read_schema(self) -> DatabaseSchema:
        """Read the full database schema.

        The result is exactly what the engine reports; see
        ``kusto_sync.schema.normalizer.normalize_schema`` for the
        post-processing applied before comparison.

        Raises:
            SchemaLoadError: If the engine returns no schema document.
        """
        schema_json = await self.scalar(f".show database ['{self._database}'] schema as json")
        if schema_json is None:
            raise SchemaLoadError(f"Failed to retrieve schema JSON for '{self._database}'")
        return parse_database_schema(str(schema_json), self._database)

    async def reset(self) -> None:
        """Drop every function and table in the database.

        Raises:
            RuntimeError: If the engine does not target a temporary database.
        """
        if not self._temporary:
            raise RuntimeError(
                f"reset() called on '{self._database}', which is not a temporary database"
            )

        schema = await self.read_schema()
        if schema.functions:
            await self.execute(drop_functions_command(list(schema.functions)))
        if schema.tables:
            await self.execute(drop_tables_command(list(schema.tables)))
        logger.debug(
            f"Reset '{self._database}': dropped {len(schema.functions)} function(s) "
            f"and {len(schema.tables)} table(s)"
        )

    async def drop_table(self, name: str) -> None:
        if not name or not name.strip():
            raise ValueError("A table name is required")
        await self.execute(drop_table_command(name))

    async def drop_function(self, name: str) -> None:
        if not name or not name.strip():
            raise ValueError("A function name is required")
        await self.execute(drop_function_command(name))

    async def count_objects(self) -> tuple[int, int]:
        """Return ``(function_count, table_count)`` for the database."""
        function_count = await self.scalar(".show functions | count")
        table_count = await self.scalar(".show tables | count")
        return int(function_count or 0), int(table_count or 0)

    async def close(self) -> None:
        """Close the underlying client session."""
        if self._client is not None:
            await self._client.close()
