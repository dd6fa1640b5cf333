"""Tests for cluster permission and temporary database checks."""

from unittest.mock import AsyncMock

import pytest

from kusto_sync.config.models import KustoConnectionInfo
from kusto_sync.exceptions import (
    KustoAuthenticationError,
    KustoClusterError,
    KustoDatabaseValidationError,
    KustoPermissionError,
    KustoSettingsError,
)
from kusto_sync.kusto.validation import (
    PERMISSION_CHECK_PREFIX,
    check_database_empty,
    validate_kusto_settings,
)

INFO = KustoConnectionInfo(cluster="scratch.westus", database="Scratch")


def _factory(engine: AsyncMock):
    return lambda info: engine


class TestValidateKustoSettings:
    """Verify the permission check function create/drop and error classification."""

    async def test_check_function_created_and_dropped(self) -> None:
        engine = AsyncMock()

        cluster = await validate_kusto_settings(INFO, _factory(engine))

        assert cluster == "https://scratch.westus.kusto.windows.net"
        create, drop = (call.args[0] for call in engine.execute.await_args_list)
        assert create.startswith(".create-or-alter function with (skipvalidation = @'true') ")
        assert f" {PERMISSION_CHECK_PREFIX}" in create
        assert create.endswith("() {print now()}")
        assert drop.startswith(f".drop function ['{PERMISSION_CHECK_PREFIX}")
        engine.close.assert_awaited_once()

    async def test_check_function_name_is_unique(self) -> None:
        first, second = AsyncMock(), AsyncMock()
        await validate_kusto_settings(INFO, _factory(first))
        await validate_kusto_settings(INFO, _factory(second))

        assert first.execute.await_args_list[0] != second.execute.await_args_list[0]

    @pytest.mark.parametrize(
        "cluster,database,match",
        [
            ("", "Scratch", "No Kusto cluster"),
            ("   ", "Scratch", "No Kusto cluster"),
            ("scratch.westus", "", "No Kusto database"),
        ],
    )
    async def test_blank_settings(self, cluster, database, match) -> None:
        engine = AsyncMock()
        with pytest.raises(KustoSettingsError, match=match):
            await validate_kusto_settings(
                KustoConnectionInfo(cluster=cluster, database=database), _factory(engine)
            )
        engine.execute.assert_not_awaited()

    @pytest.mark.parametrize(
        "message,error_type,expected",
        [
            ("Request failed: 403-Forbidden", KustoPermissionError, "does not have permission"),
            ("Connection error: failed to resolve the service name", KustoClusterError, "could not be found"),
            ("Kusto client failed to perform authentication", KustoAuthenticationError, "Microsoft Entra ID"),
            ("socket closed", KustoClusterError, "Unknown error validating cluster: socket closed"),
        ],
    )
    async def test_failure_classification(self, message, error_type, expected) -> None:
        engine = AsyncMock()
        engine.execute.side_effect = RuntimeError(message)

        with pytest.raises(error_type, match=expected) as exc_info:
            await validate_kusto_settings(INFO, _factory(engine))

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        engine.close.assert_awaited_once()

    async def test_permission_error_names_location(self) -> None:
        engine = AsyncMock()
        engine.execute.side_effect = RuntimeError("403-Forbidden")

        with pytest.raises(KustoPermissionError) as exc_info:
            await validate_kusto_settings(INFO, _factory(engine))

        assert exc_info.value.database == "Scratch"
        assert "cluster('https://scratch.westus.kusto.windows.net')" in str(exc_info.value)


class TestCheckDatabaseEmpty:
    async def test_empty_database(self) -> None:
        engine = AsyncMock()
        engine.count_objects.return_value = (0, 0)

        assert await check_database_empty(INFO, _factory(engine)) == (0, 0)
        engine.close.assert_awaited_once()

    @pytest.mark.parametrize("counts", [(1, 0), (0, 3), (2, 4)])
    async def test_non_empty_database(self, counts) -> None:
        engine = AsyncMock()
        engine.count_objects.return_value = counts

        with pytest.raises(KustoDatabaseValidationError, match="is not empty") as exc_info:
            await check_database_empty(INFO, _factory(engine))

        assert (exc_info.value.function_count, exc_info.value.table_count) == counts

    async def test_count_failure_wrapped(self) -> None:
        engine = AsyncMock()
        engine.count_objects.side_effect = ConnectionError("timeout")

        with pytest.raises(KustoClusterError, match="Error validating database: timeout"):
            await check_database_empty(INFO, _factory(engine))
        engine.close.assert_awaited_once()
