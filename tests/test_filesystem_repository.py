"""Tests for the CSL file repository."""

from pathlib import Path

import pytest

from kusto_sync.config.models import SyncSettings
from kusto_sync.exceptions import (
    KustoSettingsError,
    SchemaLoadError,
    SchemaParseError,
    SchemaSyncError,
)
from kusto_sync.kusto.client import KustoQueryEngine
from kusto_sync.repositories.base import SchemaRepository
from kusto_sync.repositories.filesystem import FileSystemSchemaRepository, clean_folder
from kusto_sync.schema.models import ColumnSchema, LineEndingMode, TableSchema

from conftest import InMemoryKustoEngine, make_function, make_table


@pytest.fixture
def repository(tmp_path: Path, settings: SyncSettings) -> FileSystemSchemaRepository:
    return FileSystemSchemaRepository(tmp_path, settings, InMemoryKustoEngine)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


class TestConstruction:
    def test_satisfies_protocol(self, repository) -> None:
        assert isinstance(repository, SchemaRepository)

    def test_requires_temp_database_without_factory(self, tmp_path: Path) -> None:
        with pytest.raises(KustoSettingsError, match="temp cluster"):
            FileSystemSchemaRepository(tmp_path, SyncSettings())

    def test_default_factory_uses_temp_database(self, tmp_path: Path, settings) -> None:
        repository = FileSystemSchemaRepository(tmp_path, settings)

        factory = repository._normalizer._environment_factory
        assert factory.func == KustoQueryEngine.connect
        assert factory.args == (settings.temp_connection_info(),)
        assert factory.keywords == {"temporary": True}

    def test_blank_root_rejected(self, settings) -> None:
        with pytest.raises(ValueError):
            FileSystemSchemaRepository("  ", settings, InMemoryKustoEngine)


class TestPaths:
    """Verify where objects are written."""

    def test_table_without_folder_at_root(self, repository, tmp_path: Path) -> None:
        assert repository.table_path(make_table("T", "a:long")) == tmp_path / "T.csl"

    def test_table_with_folder_under_tables(self, repository, tmp_path: Path) -> None:
        path = repository.table_path(make_table("T", "a:long", folder="Raw/Events"))
        assert path == tmp_path / "Tables" / "Raw" / "Events" / "T.csl"

    def test_function_under_functions(self, repository, tmp_path: Path) -> None:
        assert repository.function_path(make_function("F")) == tmp_path / "Functions" / "F.csl"
        assert (
            repository.function_path(make_function("F", folder="Reports"))
            == tmp_path / "Functions" / "Reports" / "F.csl"
        )

    def test_kql_extension(self, tmp_path: Path, settings) -> None:
        settings = settings.model_copy(update={"use_legacy_csl_extension": False})
        repository = FileSystemSchemaRepository(tmp_path, settings, InMemoryKustoEngine)
        assert repository.table_path(make_table("T", "a:long")).suffix == ".kql"

    @pytest.mark.parametrize(
        "folder,expected",
        [
            ("", ""),
            (None, ""),
            ("Reports", "Reports"),
            ("Reports\\Daily", "Reports/Daily"),
            ("/abs/path/", "abs/path"),
            ("a<b>:c", "abc"),
            ("../escape", "escape"),
        ],
    )
    def test_clean_folder(self, folder, expected) -> None:
        assert clean_folder(folder) == expected


class TestLoadSchema:
    """Verify load_schema() reads files through the validating engine."""

    async def test_loads_tables_and_functions(self, repository, tmp_path: Path) -> None:
        _write(tmp_path / "Events.csl", ".create table ['Events'] (Id:long)")
        _write(tmp_path / "Tables" / "Raw" / "Logs.csl", ".create table ['Logs'] (Line:string) with (folder = @'Raw')")
        _write(
            tmp_path / "Functions" / "Reports" / "Recent.csl",
            ".create-or-alter function with (folder = @'Reports') Recent() { Events | take 10 }",
        )

        schema = await repository.load_schema()

        assert set(schema.tables) == {"Events", "Logs"}
        assert set(schema.functions) == {"Recent"}
        assert schema.tables["Logs"].folder == "Raw"

    async def test_empty_root_is_created(self, tmp_path: Path, settings) -> None:
        root = tmp_path / "new"
        repository = FileSystemSchemaRepository(root, settings, InMemoryKustoEngine)

        schema = await repository.load_schema()

        assert schema.tables == {} and schema.functions == {}
        assert (root / "Functions").is_dir()

    async def test_other_extensions_ignored(self, repository, tmp_path: Path) -> None:
        _write(tmp_path / "README.md", "not a table")
        _write(tmp_path / "Events.csl", ".create table ['Events'] (Id:long)")

        schema = await repository.load_schema()
        assert set(schema.tables) == {"Events"}

    async def test_byte_order_mark_stripped(self, repository, tmp_path: Path) -> None:
        (tmp_path / "Events.csl").write_bytes(b"\xef\xbb\xbf.create table ['Events'] (Id:long)")
        schema = await repository.load_schema()
        assert "Events" in schema.tables

    async def test_parse_errors_raised_by_default(self, repository, tmp_path: Path) -> None:
        _write(tmp_path / "Events.csl", ".create table ['Events'] (Id:long)")
        _write(tmp_path / "Broken.csl", ".create table ['Broken'] (Id)")

        with pytest.raises(SchemaParseError) as exc_info:
            await repository.load_schema()

        assert exc_info.value.failed_objects == ["Broken"]
        assert set(exc_info.value.schema.tables) == {"Events"}

    async def test_parse_errors_ignored_when_configured(self, tmp_path: Path, settings, caplog) -> None:
        settings = settings.model_copy(update={"ignore_parse_errors": True})
        repository = FileSystemSchemaRepository(tmp_path, settings, InMemoryKustoEngine)
        _write(tmp_path / "Events.csl", ".create table ['Events'] (Id:long)")
        _write(tmp_path / "Broken.csl", ".create table ['Broken'] (Id)")

        schema = await repository.load_schema()

        assert set(schema.tables) == {"Events"}
        assert "Broken" in caplog.text

    async def test_environment_failure_becomes_load_error(self, tmp_path: Path, settings) -> None:
        class Unreachable(InMemoryKustoEngine):
            async def reset(self) -> None:
                raise ConnectionError("no route")

        repository = FileSystemSchemaRepository(tmp_path, settings, Unreachable)

        with pytest.raises(SchemaLoadError, match="file system") as exc_info:
            await repository.load_schema()
        assert isinstance(exc_info.value.__cause__, ConnectionError)


class TestSaveSchema:
    """Verify save_schema() writes files the loader reads back."""

    async def test_round_trip(self, repository) -> None:
        table = make_table("Events", "Id:long", "Message:string", folder="Raw", doc_string="All events")
        function = make_function("Recent", body="{ Events | take 10 }", folder="Reports")

        await repository.save_schema([table, function])
        schema = await repository.load_schema()

        assert schema.tables["Events"] == table
        assert schema.functions["Recent"] == function

    async def test_table_file_contents(self, repository, tmp_path: Path) -> None:
        await repository.save_schema([make_table("T", "a:long")])
        assert (tmp_path / "T.csl").read_text() == ".create table ['T'] (['a']:long)"

    async def test_fields_on_new_line_written_with_crlf(self, tmp_path: Path, settings) -> None:
        settings = settings.model_copy(update={"table_fields_on_new_line": True})
        repository = FileSystemSchemaRepository(tmp_path, settings, InMemoryKustoEngine)

        await repository.save_schema([make_table("T", "a:long", "b:string")])

        raw = (tmp_path / "T.csl").read_bytes()
        assert b"(\r\n    ['a']:long,\r\n    ['b']:string)" in raw

    async def test_fields_on_new_line_unix(self, tmp_path: Path, settings) -> None:
        settings = settings.model_copy(
            update={"table_fields_on_new_line": True, "line_ending_mode": LineEndingMode.UNIX_STYLE}
        )
        repository = FileSystemSchemaRepository(tmp_path, settings, InMemoryKustoEngine)

        await repository.save_schema([make_table("T", "a:long")])

        assert b"\r" not in (tmp_path / "T.csl").read_bytes()

    async def test_moved_function_leaves_no_stale_copy(self, repository, tmp_path: Path) -> None:
        await repository.save_schema([make_function("F", folder="Old")])
        await repository.save_schema([make_function("F", folder="New")])

        assert not (tmp_path / "Functions" / "Old" / "F.csl").exists()
        assert (tmp_path / "Functions" / "New" / "F.csl").exists()

    async def test_moved_table_leaves_no_stale_copy(self, repository, tmp_path: Path) -> None:
        await repository.save_schema([make_table("T", "a:long")])
        await repository.save_schema([make_table("T", "a:long", folder="Raw")])

        assert not (tmp_path / "T.csl").exists()
        assert (tmp_path / "Tables" / "Raw" / "T.csl").exists()

    async def test_table_and_function_sharing_a_name_coexist(self, repository, tmp_path: Path) -> None:
        await repository.save_schema([make_table("Shared", "a:long"), make_function("Shared")])

        assert (tmp_path / "Shared.csl").exists()
        assert (tmp_path / "Functions" / "Shared.csl").exists()

    async def test_failures_collected_per_object(self, repository, tmp_path: Path) -> None:
        """One unwritable object does not stop the others."""
        bad = TableSchema(name="Bad", ordered_columns=[ColumnSchema(name="a")])

        with pytest.raises(SchemaSyncError) as exc_info:
            await repository.save_schema([bad, make_table("Good", "a:long")])

        assert len(exc_info.value.failures) == 1
        assert exc_info.value.failures[0].startswith("Bad:")
        assert (tmp_path / "Good.csl").exists()

    async def test_none_rejected(self, repository) -> None:
        with pytest.raises(ValueError):
            await repository.save_schema(None)


class TestDeleteSchema:
    async def test_deletes_files(self, repository, tmp_path: Path) -> None:
        table = make_table("T", "a:long", folder="Raw")
        function = make_function("F", folder="Reports")
        await repository.save_schema([table, function])

        await repository.delete_schema([table, function])

        assert not (tmp_path / "Tables" / "Raw" / "T.csl").exists()
        assert not (tmp_path / "Functions" / "Reports" / "F.csl").exists()

    async def test_missing_file_is_reported(self, repository) -> None:
        with pytest.raises(SchemaSyncError) as exc_info:
            await repository.delete_schema([make_table("Nope", "a:long"), make_function("Gone")])

        failures = exc_info.value.failures
        assert len(failures) == 2
        assert failures[0].startswith("Nope: No file for 'Nope'")
        assert failures[1].startswith("Gone: No file for 'Gone'")

    async def test_file_with_hand_edited_folder(self, repository, tmp_path: Path) -> None:
        """A file whose declared folder does not match its location is still found."""
        path = tmp_path / "T.csl"
        _write(path, ".create table ['T'] (a:long) with (folder = @'Reports')")
        schema = await repository.load_schema()
        assert schema.tables["T"].folder == "Reports"

        await repository.delete_schema([schema.tables["T"]])

        assert not path.exists()
        assert "T" not in (await repository.load_schema()).tables

    async def test_table_delete_leaves_function_of_same_name(self, repository, tmp_path: Path) -> None:
        await repository.save_schema([make_table("Same", "a:long"), make_function("Same")])

        await repository.delete_schema([make_table("Same", "a:long")])

        assert not (tmp_path / "Same.csl").exists()
        assert (tmp_path / "Functions" / "Same.csl").exists()

    async def test_none_rejected(self, repository) -> None:
        with pytest.raises(ValueError):
            await repository.delete_schema(None)
