"""Cluster reachability, permission and emptiness checks.

Usage:
    from kusto_sync.kusto.validation import check_database_empty, validate_kusto_settings

    cluster = await validate_kusto_settings(info)
    await check_database_empty(settings.temp_connection_info())
"""

import logging
import uuid
from collections.abc import Callable

from kusto_sync.config.models import KustoConnectionInfo
from kusto_sync.exceptions import (
    KustoAuthenticationError,
    KustoClusterError,
    KustoDatabaseValidationError,
    KustoPermissionError,
    KustoSettingsError,
)
from kusto_sync.kusto.client import KustoQueryEngine
from kusto_sync.kusto.commands import drop_function_command, function_command
from kusto_sync.kusto.connection import normalize_cluster_name
from kusto_sync.schema.models import FunctionSchema

logger = logging.getLogger(__name__)

PERMISSION_CHECK_PREFIX = "SyncKustoPermissionsTest"

EngineFactory = Callable[[KustoConnectionInfo], KustoQueryEngine]


def _classify_permission_failure(error: Exception, cluster: str, database: str) -> Exception:
    message = str(error)
    if "403-Forbidden" in message:
        return KustoPermissionError(
            cluster,
            database,
            f"The current user does not have permission to create a function on "
            f"cluster('{cluster}').database('{database}')",
        )
    if "failed to resolve the service name" in message:
        return KustoClusterError(f"Cluster {cluster} could not be found.")
    if "Kusto client failed to perform authentication" in message:
        return KustoAuthenticationError(
            "Could not authenticate with Microsoft Entra ID. Please verify that the "
            "Microsoft Entra ID Authority is specified correctly."
        )
    return KustoClusterError(f"Unknown error validating cluster: {message}")


async def validate_kusto_settings(
    info: KustoConnectionInfo,
    engine_factory: EngineFactory = KustoQueryEngine.connect,
) -> str:
    """Verify a cluster is reachable and the caller can create functions.

    A uniquely named function is created and dropped again.

    Args:
        info: Cluster, database and credentials to check.
        engine_factory: Builds the engine used for the check.

    Returns:
        The normalized cluster URL.

    Raises:
        KustoSettingsError: If the cluster or database is blank.
        KustoPermissionError: If the caller may not create functions.
        KustoAuthenticationError: If sign-in failed.
        KustoClusterError: If the cluster could not be found, or anything else failed.
    """
    if not info.cluster or not info.cluster.strip():
        raise KustoSettingsError("No Kusto cluster was specified.")
    cluster = normalize_cluster_name(info.cluster)
    if not info.database or not info.database.strip():
        raise KustoSettingsError("No Kusto database was specified.")

    check_function = FunctionSchema(
        name=f"{PERMISSION_CHECK_PREFIX}{uuid.uuid4().hex}", body="{print now()}"
    )

    engine = engine_factory(info)
    try:
        await engine.execute(function_command(check_function))
        await engine.execute(drop_function_command(check_function.name))
    except Exception as e:
        raise _classify_permission_failure(e, cluster, info.database) from e
    finally:
        await engine.close()

    logger.debug(f"Validated {cluster}/{info.database}")
    return cluster


async def check_database_empty(
    info: KustoConnectionInfo,
    engine_factory: EngineFactory = KustoQueryEngine.connect,
) -> tuple[int, int]:
    """Ensure a database holds no functions and no tables.

    Returns:
        ``(function_count, table_count)``, both zero.

    Raises:
        KustoDatabaseValidationError: If the database is not empty.
        KustoClusterError: If the counts could not be read.
    """
    cluster = normalize_cluster_name(info.cluster)

    engine = engine_factory(info)
    try:
        function_count, table_count = await engine.count_objects()
    except Exception as e:
        raise KustoClusterError(f"Error validating database: {e}") from e
    finally:
        await engine.close()

    if function_count != 0 or table_count != 0:
        raise KustoDatabaseValidationError(
            cluster,
            info.database,
            function_count,
            table_count,
            f"Database '{info.database}' on cluster '{cluster}' is not empty. "
            f"It contains {function_count} function(s) and {table_count} table(s).",
        )
    return function_count, table_count
