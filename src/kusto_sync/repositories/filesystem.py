"""Schema repository backed by a folder of CSL/KQL files.

Layout under the root folder::

    <root>/<Table>.<ext>                          tables without a folder
    <root>/Tables/<folder>/<Table>.<ext>          tables with a folder
    <root>/Functions/<folder>/<Function>.<ext>    functions

Every file outside ``Functions`` is a table definition.  Objects are named
after the file they live in.

Loading hands the file contents to ``SchemaNormalizer``, which validates
them against a temporary Kusto database; see ``kusto_sync.schema.normalizer``.
"""

import functools
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from kusto_sync.config.models import SyncSettings
from kusto_sync.exceptions import (
    FileSchemaError,
    KustoSettingsError,
    KustoSyncError,
    SchemaLoadError,
    SchemaParseError,
    SchemaSyncError,
)
from kusto_sync.kusto.client import KustoQueryEngine
from kusto_sync.kusto.commands import function_command, table_create_command
from kusto_sync.repositories.base import failure_entry
from kusto_sync.schema.models import (
    DatabaseSchema,
    FunctionSchema,
    LineEndingMode,
    RawDefinition,
    SchemaKind,
    SchemaObject,
    TableSchema,
)
from kusto_sync.schema.normalizer import EnvironmentFactory, SchemaNormalizer

logger = logging.getLogger(__name__)

FUNCTIONS_FOLDER = "Functions"
TABLES_FOLDER = "Tables"

_INVALID_FOLDER_CHARS = re.compile(r'[<>:"|?*\x00-\x1f]')


def clean_folder(folder: str | None) -> str:
    """Make a Kusto folder usable as a relative path.

    Characters invalid in paths are dropped, backslashes become ``/`` and
    leading or trailing separators are removed.

    Example:
        >>> clean_folder("Reports\\\\Daily<1>")
        'Reports/Daily1'
    """
    if not folder:
        return ""
    cleaned = _INVALID_FOLDER_CHARS.sub("", folder).replace("\\", "/")
    parts = [part for part in cleaned.split("/") if part and part not in (".", "..")]
    return "/".join(parts)


class FileSystemSchemaRepository:
    """Reads and writes schema definition files under ``root``.

    Args:
        root: Root folder of the schema files.
        settings: File extension, table layout and parse-error policy.
        environment_factory: Builds the validation environment used to load
            files.  Defaults to a ``KustoQueryEngine`` on the settings'
            temporary database.

    Raises:
        ValueError: If ``root`` is blank.
        KustoSettingsError: If no environment factory is given and the
            settings have no temporary cluster or database.
    """

    def __init__(
        self,
        root: str | Path,
        settings: SyncSettings,
        environment_factory: EnvironmentFactory | None = None,
    ) -> None:
        if not str(root).strip():
            raise ValueError("A root folder is required")

        if environment_factory is None:
            if not settings.temp_cluster.strip() or not settings.temp_database.strip():
                raise KustoSettingsError(
                    "File system sources require temp cluster configuration. "
                    "Please configure in Settings."
                )
            environment_factory = functools.partial(
                KustoQueryEngine.connect, settings.temp_connection_info(), temporary=True
            )

        self._root = Path(root)
        self._settings = settings
        self._extension = settings.file_extension
        self._normalizer = SchemaNormalizer(environment_factory, settings.line_ending_mode)

    @property
    def root(self) -> Path:
        return self._root

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _file_name(self, name: str) -> str:
        return f"{name}.{self._extension}"

    def table_path(self, table: TableSchema) -> Path:
        folder = clean_folder(table.folder)
        if not folder:
            return self._root / self._file_name(table.name)
        return self._root / TABLES_FOLDER / folder / self._file_name(table.name)

    def function_path(self, function: FunctionSchema) -> Path:
        folder = clean_folder(function.folder)
        base = self._root / FUNCTIONS_FOLDER
        if folder:
            base = base / folder
        return base / self._file_name(function.name)

    def _is_function_file(self, path: Path) -> bool:
        relative = path.relative_to(self._root)
        return relative.parts[0] == FUNCTIONS_FOLDER

    def _function_files(self) -> list[Path]:
        return sorted((self._root / FUNCTIONS_FOLDER).rglob(f"*.{self._extension}"))

    def _table_files(self) -> list[Path]:
        return sorted(
            path
            for path in self._root.rglob(f"*.{self._extension}")
            if path.is_file() and not self._is_function_file(path)
        )

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    def read_definitions(self) -> list[RawDefinition]:
        """Read every definition file below the root.

        Missing root or ``Functions`` folders are created.

        Raises:
            FileSchemaError: If a file could not be read.
        """
        (self._root / FUNCTIONS_FOLDER).mkdir(parents=True, exist_ok=True)

        files = [(SchemaKind.TABLE, path) for path in self._table_files()]
        files += [(SchemaKind.FUNCTION, path) for path in self._function_files()]

        definitions = []
        for kind, path in files:
            try:
                text = path.read_text(encoding="utf-8-sig")
            except OSError as e:
                raise FileSchemaError(f"Failed to read {kind.value} file '{path}'") from e
            definitions.append(RawDefinition(kind=kind, name=path.stem, text=text))
        return definitions

    async def load_schema(self) -> DatabaseSchema:
        """Load all files through the validating engine.

        Raises:
            SchemaParseError: If some files were rejected and
                ``ignore_parse_errors`` is off.
            SchemaLoadError: On any other failure.
        """
        try:
            definitions = self.read_definitions()
            logger.debug(f"Read {len(definitions)} definition(s) from {self._root}")
            return await self._normalizer.normalize(definitions)
        except SchemaParseError as e:
            if not self._settings.ignore_parse_errors or e.schema is None:
                raise
            logger.warning(
                f"Ignoring {len(e.failed_objects)} unparseable object(s) in "
                f"{self._root}: {', '.join(e.failed_objects)}"
            )
            return e.schema
        except KustoSyncError:
            raise
        except Exception as e:
            raise SchemaLoadError(
                f"Failed to load schema from file system at '{self._root}'"
            ) from e

    # ------------------------------------------------------------------
    # Save / delete
    # ------------------------------------------------------------------

    def _remove_stale_copies(self, destination: Path, candidates: Iterable[Path]) -> None:
        for path in candidates:
            if path == destination:
                continue
            try:
                path.unlink()
                logger.debug(f"Removed stale copy {path}")
            except OSError as e:
                logger.warning(f"Could not remove stale copy {path}: {e}")

    def _write(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8", newline="")

    def write_table(self, table: TableSchema) -> Path:
        """Write one table file, removing copies of it in other folders."""
        destination = self.table_path(table)
        try:
            file_name = self._file_name(table.name)
            stale = [path for path in self._table_files() if path.name == file_name]
            self._remove_stale_copies(destination, stale)

            line_ending_mode = self._settings.line_ending_mode
            if line_ending_mode == LineEndingMode.LEAVE_AS_IS:
                line_ending_mode = LineEndingMode.WINDOWS_STYLE

            self._write(
                destination,
                table_create_command(
                    table,
                    force_normalize_column_names=True,
                    create_merge=self._settings.create_merge_enabled,
                    fields_on_new_line=self._settings.table_fields_on_new_line,
                    line_ending_mode=line_ending_mode,
                ),
            )
        except (OSError, ValueError) as e:
            raise FileSchemaError(f"Failed to write table '{table.name}' to file system") from e
        return destination

    def write_function(self, function: FunctionSchema) -> Path:
        """Write one function file, removing copies of it in other folders."""
        destination = self.function_path(function)
        try:
            file_name = self._file_name(function.name)
            stale = [path for path in self._function_files() if path.name == file_name]
            self._remove_stale_copies(destination, stale)
            self._write(destination, function_command(function))
        except (OSError, ValueError) as e:
            raise FileSchemaError(
                f"Failed to write function '{function.name}' to file system"
            ) from e
        return destination

    def remove(self, schema_object: SchemaObject) -> None:
        """Delete every file of one object within its kind's tree.

        The file is found by name, so a file whose declared folder does not
        match its location is still removed.

        Raises:
            FileSchemaError: If no file was found or one could not be deleted.
        """
        if isinstance(schema_object, TableSchema):
            candidates = self._table_files()
        else:
            candidates = self._function_files()

        file_name = self._file_name(schema_object.name)
        matches = [path for path in candidates if path.name == file_name]
        if not matches:
            raise FileSchemaError(
                f"No file for '{schema_object.name}' found under '{self._root}'"
            )

        for path in matches:
            try:
                path.unlink()
            except OSError as e:
                raise FileSchemaError(
                    f"Failed to delete '{schema_object.name}' from file system"
                ) from e
            logger.debug(f"Removed {path}")

    async def save_schema(self, objects: Iterable[SchemaObject]) -> None:
        if objects is None:
            raise ValueError("objects is required")

        failures = []
        for schema_object in objects:
            try:
                if isinstance(schema_object, TableSchema):
                    self.write_table(schema_object)
                elif isinstance(schema_object, FunctionSchema):
                    self.write_function(schema_object)
                else:
                    failures.append(f"Unknown schema type: {type(schema_object).__name__}")
            except FileSchemaError as e:
                failures.append(failure_entry(schema_object.name, e))

        if failures:
            raise SchemaSyncError(
                f"Failed to save schemas to file system at '{self._root}'", failures
            )

    async def delete_schema(self, objects: Iterable[SchemaObject]) -> None:
        if objects is None:
            raise ValueError("objects is required")

        failures = []
        for schema_object in objects:
            if not isinstance(schema_object, (TableSchema, FunctionSchema)):
                failures.append(f"Unknown schema type: {type(schema_object).__name__}")
                continue
            try:
                self.remove(schema_object)
            except FileSchemaError as e:
                failures.append(failure_entry(schema_object.name, e))

        if failures:
            raise SchemaSyncError(
                f"Failed to delete schemas from file system at '{self._root}'", failures
            )

    async def close(self) -> None:
        """Nothing to release; environments are closed after every load."""
        pass
