"""Turn raw CSL definitions into a canonical schema via a validating engine.

Instead of parsing CSL locally, definitions are applied to a disposable
database on a real engine and the resulting schema is read back.  Whatever
the engine accepts is, by construction, what a target cluster will accept.

Flow of ``SchemaNormalizer.normalize()``:
1. Reset the environment (drop everything it holds).
2. Apply every table concurrently (ALTER, falling back to CREATE).
3. Apply every function concurrently (CREATE-OR-ALTER, with the
   skip-validation marker injected where missing).
4. Read the schema back and post-process it.
5. Close the environment.

Objects the engine rejects are collected by name and reported together in a
``SchemaParseError`` that also carries the schema of everything else.

Usage:
    from kusto_sync.schema.normalizer import SchemaNormalizer

    normalizer = SchemaNormalizer(lambda: KustoQueryEngine.connect(info, temporary=True))
    schema = await normalizer.normalize(definitions)
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Protocol, runtime_checkable

from kusto_sync.exceptions import CreateOrAlterError, SchemaParseError
from kusto_sync.kusto.commands import (
    alter_command,
    ensure_skip_validation,
    normalize_line_endings,
)
from kusto_sync.schema.models import (
    DatabaseSchema,
    LineEndingMode,
    RawDefinition,
    SchemaKind,
)

logger = logging.getLogger(__name__)


@runtime_checkable
class ValidationEnvironment(Protocol):
    """A resettable engine database that accepts definitions and reports its schema.

    ``KustoQueryEngine`` bound to a temporary database is the production
    implementation; tests use an in-memory double.
    """

    async def reset(self) -> None:
        """Drop every table and function."""
        ...

    async def execute(self, command: str) -> Any:
        """Run one management command, raising on rejection."""
        ...

    async def read_schema(self) -> DatabaseSchema:
        """Return the schema currently held."""
        ...

    async def close(self) -> None:
        ...


EnvironmentFactory = Callable[[], ValidationEnvironment]


# ============================================================================
# Single-object apply
# ============================================================================


async def apply_table(environment: ValidationEnvironment, name: str, command: str) -> None:
    """Apply a ``.create table`` command, trying its ALTER form first.

    Raises:
        CreateOrAlterError: If both the ALTER and the CREATE were rejected.
    """
    try:
        await environment.execute(alter_command(command))
        return
    except Exception as e:
        logger.debug(f"ALTER of table {name} failed, trying CREATE: {e}")

    try:
        await environment.execute(command)
    except Exception as e:
        raise CreateOrAlterError("Failed to create or alter a table", name) from e


async def apply_function(environment: ValidationEnvironment, name: str, command: str) -> None:
    """Apply a ``.create-or-alter function`` command.

    Raises:
        CreateOrAlterError: If the engine rejected the function.
    """
    try:
        await environment.execute(ensure_skip_validation(command))
    except Exception as e:
        raise CreateOrAlterError("Failed to create or alter a function", name) from e


# ============================================================================
# Post-processing
# ============================================================================


def normalize_schema(schema: DatabaseSchema, line_ending_mode: LineEndingMode) -> DatabaseSchema:
    """Fill absent folders/doc strings with ``""`` and fix function line endings.

    Returns a new schema; ``schema`` is not modified.

    Example:
        >>> raw = DatabaseSchema(functions={"F": FunctionSchema(name="F", body="{\\r\\n1}")})
        >>> normalize_schema(raw, LineEndingMode.UNIX_STYLE).functions["F"].body
        '{\\n1}'
    """
    tables = {
        name: table.model_copy(
            update={"folder": table.folder or "", "doc_string": table.doc_string or ""}
        )
        for name, table in schema.tables.items()
    }
    functions = {
        name: function.model_copy(
            update={
                "folder": function.folder or "",
                "doc_string": function.doc_string or "",
                "body": normalize_line_endings(function.body, line_ending_mode),
            }
        )
        for name, function in schema.functions.items()
    }
    return schema.model_copy(update={"tables": tables, "functions": functions})


# ============================================================================
# Normalizer
# ============================================================================


ApplyFunc = Callable[[ValidationEnvironment, str, str], Awaitable[None]]


async def _apply_batch(
    environment: ValidationEnvironment,
    definitions: list[RawDefinition],
    apply: ApplyFunc,
) -> list[str]:
    """Apply definitions concurrently and return the names that failed."""

    async def worker(definition: RawDefinition) -> tuple[str, Exception | None]:
        try:
            await apply(environment, definition.name, definition.text)
        except Exception as e:
            return definition.name, e
        return definition.name, None

    outcomes = await asyncio.gather(*(worker(d) for d in definitions))

    failed = []
    for name, error in outcomes:
        if error is None:
            continue
        reason = error.__cause__ or error
        logger.debug(f"{name} rejected: {reason}")
        failed.append(name)
    return failed


class SchemaNormalizer:
    """Loads raw definitions into a canonical ``DatabaseSchema``.

    Args:
        environment_factory: Returns a fresh validation environment.  One
            environment is created per ``normalize()`` call and closed before
            the call returns.
        line_ending_mode: Line ending policy for function bodies read back.
    """

    def __init__(
        self,
        environment_factory: EnvironmentFactory,
        line_ending_mode: LineEndingMode = LineEndingMode.LEAVE_AS_IS,
    ) -> None:
        self._environment_factory = environment_factory
        self._line_ending_mode = line_ending_mode

    async def normalize(self, definitions: Iterable[RawDefinition]) -> DatabaseSchema:
        """Validate ``definitions`` and return the canonical schema.

        Raises:
            SchemaParseError: If any definition was rejected.  ``schema`` on
                the error holds everything that was accepted.
            Exception: Whatever the environment raises when it cannot be
                reset or read back.
        """
        definitions = list(definitions)
        tables = [d for d in definitions if d.kind == SchemaKind.TABLE]
        functions = [d for d in definitions if d.kind == SchemaKind.FUNCTION]

        environment = self._environment_factory()
        try:
            await environment.reset()

            # Functions may reference tables, so tables go first
            failed = await _apply_batch(environment, tables, apply_table)
            failed += await _apply_batch(environment, functions, apply_function)

            schema = normalize_schema(await environment.read_schema(), self._line_ending_mode)
        finally:
            await environment.close()

        logger.debug(
            f"Normalized {len(schema.tables)} table(s) and {len(schema.functions)} "
            f"function(s); {len(failed)} rejected"
        )

        if failed:
            raise SchemaParseError(
                f"Failed to parse {len(failed)} schema object(s): {', '.join(failed)}",
                failed,
                schema=schema,
            )
        return schema
