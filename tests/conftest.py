"""Shared fixtures: an in-memory stand-in for a Kusto database.

``InMemoryKustoEngine`` understands the management commands kusto-sync
issues (table create/alter, function create-or-alter, drops) and rejects
malformed ones, so the normalizer and repositories can be exercised without
a cluster.
"""

import re

import pytest

from kusto_sync.config.models import SyncSettings
from kusto_sync.kusto.commands import SKIP_VALIDATION_PATTERN
from kusto_sync.schema.models import (
    ColumnSchema,
    DatabaseSchema,
    Difference,
    FunctionSchema,
    InputParameter,
    SchemaDifference,
    SchemaKind,
    TableSchema,
)

KNOWN_TYPES = {
    "string", "long", "int", "real", "double", "datetime", "timespan",
    "bool", "boolean", "guid", "dynamic", "decimal",
}

_NAME = r"(?:\[\s*'[^']+'\s*\]|\[\s*\"[^\"]+\"\s*\]|[A-Za-z_][A-Za-z0-9_]*)"

_TABLE_COMMAND = re.compile(
    rf"^\.(?P<verb>create|alter|create-merge|alter-merge) table\s+(?P<name>{_NAME})\s*"
    r"\((?P<columns>[^)]*)\)\s*(?:with\s*\((?P<props>.*)\))?\s*$",
    re.DOTALL,
)
_FUNCTION_COMMAND = re.compile(
    r"^\.create-or-alter function\s+(?:with\s*\((?P<props>[^)]*)\))?\s*"
    rf"(?P<name>{_NAME})\s*\((?P<params>[^)]*)\)\s*(?P<body>\{{.*\}})\s*$",
    re.DOTALL,
)
_DROP_MANY = re.compile(r"^\.drop (?P<kind>tables|functions) \((?P<names>.*)\) ifexists$")
_DROP_ONE = re.compile(rf"^\.drop (?P<kind>table|function) (?P<name>{_NAME})$")
_PROPERTY = re.compile(r"(\w+)\s*=\s*@'((?:[^']|'')*)'")


def unquote(name: str) -> str:
    name = name.strip()
    if name.startswith("[") and name.endswith("]"):
        name = name[1:-1].strip()[1:-1]
    return name


def _properties(text: str | None) -> dict[str, str]:
    if not text:
        return {}
    return {key.lower(): value.replace("''", "'") for key, value in _PROPERTY.findall(text)}


def _columns(text: str) -> list[ColumnSchema]:
    columns = []
    for part in [p.strip() for p in text.split(",") if p.strip()]:
        if ":" not in part:
            raise ValueError(f"Syntax error: column '{part}' has no type")
        name, csl_type = (s.strip() for s in part.rsplit(":", 1))
        if csl_type not in KNOWN_TYPES:
            raise ValueError(f"Syntax error: unknown type '{csl_type}'")
        columns.append(ColumnSchema(name=unquote(name), csl_type=csl_type))
    return columns


def _parameters(text: str) -> list[InputParameter]:
    parameters = []
    for part in [p.strip() for p in text.split(",") if p.strip()]:
        if part.startswith("skipvalidation"):
            continue
        declaration, _, default = part.partition("=")
        name, _, csl_type = declaration.partition(":")
        if csl_type.strip() not in KNOWN_TYPES:
            raise ValueError(f"Syntax error: unknown parameter type in '{part}'")
        parameters.append(
            InputParameter(
                name=unquote(name),
                csl_type=csl_type.strip(),
                csl_default_value=default.strip() or None,
            )
        )
    return parameters


class InMemoryKustoEngine:
    """Dict-backed database accepting kusto-sync's management commands.

    Attributes:
        tables / functions: Current contents.
        commands: Every command received, in order.
        reset_calls: Number of ``reset()`` calls.
        closed: Set by ``close()``.
        fail_on: Object names whose commands are always rejected.
    """

    def __init__(self, database: str = "Scratch", schema: DatabaseSchema | None = None) -> None:
        self.database = database
        self.tables: dict[str, TableSchema] = dict(schema.tables) if schema else {}
        self.functions: dict[str, FunctionSchema] = dict(schema.functions) if schema else {}
        self.commands: list[str] = []
        self.reset_calls = 0
        self.closed = False
        self.fail_on: set[str] = set()

    async def reset(self) -> None:
        self.reset_calls += 1
        self.tables.clear()
        self.functions.clear()

    async def execute(self, command: str) -> None:
        self.commands.append(command)
        command = command.strip()

        match = _TABLE_COMMAND.match(command)
        if match:
            return self._apply_table(match)
        match = _FUNCTION_COMMAND.match(command)
        if match:
            return self._apply_function(command, match)
        match = _DROP_MANY.match(command)
        if match:
            target = self.tables if match["kind"] == "tables" else self.functions
            for name in match["names"].split(","):
                target.pop(unquote(name), None)
            return None
        match = _DROP_ONE.match(command)
        if match:
            target = self.tables if match["kind"] == "table" else self.functions
            name = unquote(match["name"])
            if name not in target:
                raise LookupError(f"Entity '{name}' was not found")
            del target[name]
            return None
        raise ValueError(f"Syntax error: {command[:40]}")

    def _apply_table(self, match: re.Match) -> None:
        name = unquote(match["name"])
        if name in self.fail_on:
            raise RuntimeError(f"Table '{name}' rejected")
        exists = name in self.tables
        if match["verb"].startswith("alter") and not exists:
            raise LookupError(f"Table '{name}' was not found")
        if match["verb"] == "create" and exists:
            raise RuntimeError(f"Table '{name}' already exists")

        properties = _properties(match["props"])
        self.tables[name] = TableSchema(
            name=name,
            ordered_columns=_columns(match["columns"]),
            folder=properties.get("folder"),
            doc_string=properties.get("docstring"),
        )

    def _apply_function(self, command: str, match: re.Match) -> None:
        name = unquote(match["name"])
        if name in self.fail_on:
            raise RuntimeError(f"Function '{name}' rejected")
        if not SKIP_VALIDATION_PATTERN.search(command):
            raise RuntimeError(f"Semantic error in '{name}': unresolved reference")

        properties = _properties(match["props"])
        self.functions[name] = FunctionSchema(
            name=name,
            input_parameters=_parameters(match["params"]),
            body=match["body"],
            folder=properties.get("folder"),
            doc_string=properties.get("docstring"),
        )

    async def read_schema(self) -> DatabaseSchema:
        return DatabaseSchema(
            name=self.database,
            tables=dict(self.tables),
            functions=dict(self.functions),
        )

    async def drop_table(self, name: str) -> None:
        await self.execute(f".drop table ['{name}']")

    async def drop_function(self, name: str) -> None:
        await self.execute(f".drop function ['{name}']")

    async def close(self) -> None:
        self.closed = True


# ------------------------------------------------------------------
# Builders
# ------------------------------------------------------------------


def make_table(name: str, *columns: str, folder: str = "", doc_string: str = "") -> TableSchema:
    """Build a table from ``"name:type"`` column specs."""
    return TableSchema(
        name=name,
        ordered_columns=[
            ColumnSchema(name=column.split(":")[0], csl_type=column.split(":")[1]) for column in columns
        ],
        folder=folder,
        doc_string=doc_string,
    )


def make_function(name: str, body: str = "{ print 1 }", folder: str = "", doc_string: str = "") -> FunctionSchema:
    return FunctionSchema(name=name, body=body, folder=folder, doc_string=doc_string)


# ------------------------------------------------------------------
# Fixtures
# ------------------------------------------------------------------


@pytest.fixture
def engine() -> InMemoryKustoEngine:
    return InMemoryKustoEngine()


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(temp_cluster="scratch.westus", temp_database="Scratch")


# ------------------------------------------------------------------
# Repository doubles
# ------------------------------------------------------------------


class FakeRepository:
    """Records every call; optionally fails loads, saves or deletes."""

    def __init__(self, schema: DatabaseSchema | None = None, name: str = "repo") -> None:
        self.schema = schema or DatabaseSchema()
        self.name = name
        self.load_error: BaseException | None = None
        self.save_error: BaseException | None = None
        self.delete_error: BaseException | None = None
        self.calls: list[tuple[str, list[str]]] = []
        self.closed = False

    async def load_schema(self) -> DatabaseSchema:
        self.calls.append(("load", []))
        if self.load_error is not None:
            raise self.load_error
        return self.schema

    async def save_schema(self, objects) -> None:
        self.calls.append(("save", [o.name for o in objects]))
        if self.save_error is not None:
            raise self.save_error

    async def delete_schema(self, objects) -> None:
        self.calls.append(("delete", [o.name for o in objects]))
        if self.delete_error is not None:
            raise self.delete_error

    async def close(self) -> None:
        self.closed = True


def make_difference(name: str, difference: Difference) -> SchemaDifference:
    return SchemaDifference(
        kind=SchemaKind.TABLE,
        name=name,
        difference=difference,
        schema_object=make_table(name, "a:long"),
    )


# Modified X, source-only Y, target-only Z
SELECTION = [
    make_difference("X", Difference.MODIFIED),
    make_difference("Y", Difference.ONLY_IN_SOURCE),
    make_difference("Z", Difference.ONLY_IN_TARGET),
]
