"""Schema repository protocol definition.

Defines the ``SchemaRepository`` Protocol implemented by the file-system and
Kusto repositories.  All methods are ``async def``.

Usage:
    from kusto_sync.repositories.base import SchemaRepository

    async def copy_all(source: SchemaRepository, target: SchemaRepository) -> None:
        schema = await source.load_schema()
        await target.save_schema([*schema.tables.values(), *schema.functions.values()])
"""

from collections.abc import Iterable
from typing import Protocol, runtime_checkable

from kusto_sync.schema.models import DatabaseSchema, SchemaObject


@runtime_checkable
class SchemaRepository(Protocol):
    """A place schemas are loaded from and written to.

    Cancellation is asyncio task cancellation: ``asyncio.CancelledError``
    propagates from every method unchanged.
    """

    async def load_schema(self) -> DatabaseSchema:
        """Load the complete schema.

        Raises:
            SchemaLoadError: On any underlying failure.
        """
        ...

    async def save_schema(self, objects: Iterable[SchemaObject]) -> None:
        """Create or update every object.

        Objects are applied independently; one failure does not stop the rest.

        Raises:
            SchemaSyncError: Naming every object that could not be written.
        """
        ...

    async def delete_schema(self, objects: Iterable[SchemaObject]) -> None:
        """Remove every object.

        Raises:
            SchemaSyncError: Naming every object that could not be removed.
        """
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


def failure_entry(name: str, error: BaseException) -> str:
    """Format one per-object failure as ``"<name>: <reason>"``.

    Example:
        >>> failure_entry("T", ValueError("bad column"))
        'T: bad column'
    """
    reason = str(error)
    if error.__cause__ is not None:
        reason = f"{reason} ({error.__cause__})"
    return f"{name}: {reason}"
