"""CSL management command text for tables and functions.

Turns structured ``TableSchema``/``FunctionSchema`` objects into the
definition text written to disk or sent to a cluster, and provides the small
text transforms the loaders rely on (compatibility marker injection, line
ending normalization, ALTER variants of CREATE commands).

Usage:
    from kusto_sync.kusto.commands import function_command, table_create_command

    text = table_create_command(table, fields_on_new_line=True)
    text = function_command(function)
"""

import re

from kusto_sync.schema.models import (
    ColumnSchema,
    FunctionSchema,
    InputParameter,
    LineEndingMode,
    TableSchema,
)

# Function definitions written before the marker existed are rejected by the
# engine when they reference objects it cannot resolve yet.
SKIP_VALIDATION_PATTERN = re.compile(r"skipvalidation[\s]*[=]+[\s\"@']*true", re.IGNORECASE)
SKIP_VALIDATION_PROPERTY = "skipvalidation = @'true'"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")
_PLAIN_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# CLR type names reported by the engine when no CSL type is available
_CLR_TO_CSL = {
    "System.String": "string",
    "System.Int64": "long",
    "System.Int32": "int",
    "System.Double": "real",
    "System.Single": "real",
    "System.DateTime": "datetime",
    "System.TimeSpan": "timespan",
    "System.Boolean": "bool",
    "System.SByte": "bool",
    "System.Guid": "guid",
    "System.Object": "dynamic",
    "System.Data.SqlTypes.SqlDecimal": "decimal",
    "Newtonsoft.Json.Linq.JToken": "dynamic",
}


# ============================================================================
# Quoting
# ============================================================================


def quote_name(name: str, force: bool = False) -> str:
    """Bracket-quote an entity name when required (or always with ``force``).

    Examples:
        >>> quote_name("Events")
        'Events'
        >>> quote_name("my column")
        "['my column']"
        >>> quote_name("Events", force=True)
        "['Events']"
    """
    if not force and _PLAIN_IDENTIFIER.match(name):
        return name
    if "'" in name:
        return f'["{name}"]'
    return f"['{name}']"


def verbatim_literal(value: str) -> str:
    """Render ``value`` as a verbatim string literal (``@'...'``)."""
    return "@'" + value.replace("'", "''") + "'"


def csl_type_of(column: ColumnSchema | InputParameter) -> str:
    """Return the CSL type of a column, mapping CLR names when needed.

    Raises:
        ValueError: If neither a CSL type nor a known CLR type is present.
    """
    if column.csl_type:
        return column.csl_type
    if column.type and column.type in _CLR_TO_CSL:
        return _CLR_TO_CSL[column.type]
    raise ValueError(f"Cannot determine the CSL type of '{column.name}'")


def _with_properties(properties: list[tuple[str, str]]) -> str:
    if not properties:
        return ""
    rendered = ", ".join(f"{key} = {value}" for key, value in properties)
    return f"with ({rendered})"


def _line_ending(mode: LineEndingMode) -> str:
    return "\n" if mode == LineEndingMode.UNIX_STYLE else "\r\n"


# ============================================================================
# Tables
# ============================================================================


def table_create_command(
    table: TableSchema,
    force_normalize_column_names: bool = False,
    create_merge: bool = False,
    fields_on_new_line: bool = False,
    line_ending_mode: LineEndingMode = LineEndingMode.WINDOWS_STYLE,
) -> str:
    """Generate a ``.create table`` (or ``.create-merge table``) command.

    Args:
        table: Table to render.
        force_normalize_column_names: Bracket-quote every column name.
        create_merge: Emit ``.create-merge`` instead of ``.create``.
        fields_on_new_line: Put each column on its own indented line.
        line_ending_mode: Line ending used by ``fields_on_new_line``.
            ``LEAVE_AS_IS`` and ``WINDOWS_STYLE`` both use CRLF.

    Example:
        >>> table_create_command(TableSchema(
        ...     name="Events",
        ...     ordered_columns=[ColumnSchema(name="Id", csl_type="long")],
        ... ))
        ".create table ['Events'] (Id:long)"
    """
    columns = [
        f"{quote_name(column.name, force_normalize_column_names)}:{csl_type_of(column)}"
        for column in table.ordered_columns
    ]

    if fields_on_new_line and columns:
        eol = _line_ending(line_ending_mode)
        column_text = f"{eol}    " + f",{eol}    ".join(columns)
    else:
        column_text = ", ".join(columns)

    verb = ".create-merge table" if create_merge else ".create table"
    command = f"{verb} {quote_name(table.name, force=True)} ({column_text})"

    properties: list[tuple[str, str]] = []
    if table.folder:
        properties.append(("folder", verbatim_literal(table.folder)))
    if table.doc_string:
        properties.append(("docstring", verbatim_literal(table.doc_string)))
    suffix = _with_properties(properties)

    return f"{command} {suffix}" if suffix else command


def alter_command(create_command: str) -> str:
    """Turn a ``.create``/``.create-merge`` table command into its ALTER form.

    Example:
        >>> alter_command(".create table T (a:string)")
        '.alter table T (a:string)'
    """
    return create_command.replace(".create", ".alter", 1)


# ============================================================================
# Functions
# ============================================================================


def _render_parameter(parameter: InputParameter) -> str:
    name = quote_name(parameter.name)
    if parameter.columns is not None:
        columns = ", ".join(
            f"{quote_name(column.name)}:{csl_type_of(column)}" for column in parameter.columns
        )
        # An empty column list is the wildcard tabular parameter
        return f"{name}:({columns or '*'})"

    rendered = f"{name}:{csl_type_of(parameter)}"
    if parameter.csl_default_value is not None:
        rendered += f" = {parameter.csl_default_value}"
    return rendered


def function_command(function: FunctionSchema) -> str:
    """Generate a ``.create-or-alter function`` command.

    The command always carries the skip-validation property so that
    functions referencing objects deployed later still apply.

    Example:
        >>> function_command(FunctionSchema(name="F", body="{ print 1 }"))
        ".create-or-alter function with (skipvalidation = @'true') F() { print 1 }"
    """
    properties: list[tuple[str, str]] = []
    if function.folder:
        properties.append(("folder", verbatim_literal(function.folder)))
    if function.doc_string:
        properties.append(("docstring", verbatim_literal(function.doc_string)))
    properties.append(("skipvalidation", "@'true'"))

    parameters = ", ".join(_render_parameter(p) for p in function.input_parameters)
    return (
        f".create-or-alter function {_with_properties(properties)} "
        f"{quote_name(function.name)}({parameters}) {function.body}"
    )


def ensure_skip_validation(command: str) -> str:
    """Insert the skip-validation marker after the first ``(`` if missing.

    Text that already carries the marker (any case or spacing matching
    ``SKIP_VALIDATION_PATTERN``) is returned unchanged, as is text without
    any ``(``.

    Example:
        >>> ensure_skip_validation(".create-or-alter function with (folder = 'x') F() {1}")
        ".create-or-alter function with (skipvalidation = @'true',folder = 'x') F() {1}"
    """
    if SKIP_VALIDATION_PATTERN.search(command):
        return command

    index = command.find("(")
    if index < 0:
        return command
    return f"{command[: index + 1]}{SKIP_VALIDATION_PROPERTY},{command[index + 1:]}"


# ============================================================================
# Drops
# ============================================================================


def drop_tables_command(names: list[str]) -> str:
    """Bulk, idempotent table drop."""
    return f".drop tables ({', '.join(quote_name(n, force=True) for n in names)}) ifexists"


def drop_functions_command(names: list[str]) -> str:
    """Bulk, idempotent function drop."""
    return f".drop functions ({', '.join(quote_name(n, force=True) for n in names)}) ifexists"


def drop_table_command(name: str) -> str:
    return f".drop table {quote_name(name, force=True)}"


def drop_function_command(name: str) -> str:
    return f".drop function {quote_name(name, force=True)}"


# ============================================================================
# Line endings
# ============================================================================


def normalize_line_endings(text: str, mode: LineEndingMode) -> str:
    """Apply a line ending policy to ``text``.

    Examples:
        >>> normalize_line_endings("a\\r\\nb\\nc", LineEndingMode.UNIX_STYLE)
        'a\\nb\\nc'
        >>> normalize_line_endings("a\\nb", LineEndingMode.WINDOWS_STYLE)
        'a\\r\\nb'
    """
    if mode == LineEndingMode.WINDOWS_STYLE:
        return _LINE_BREAK.sub("\r\n", text)
    if mode == LineEndingMode.UNIX_STYLE:
        return _LINE_BREAK.sub("\n", text)
    return text
