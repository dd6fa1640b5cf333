"""Kusto engine access: connections, command text, the async client and checks.

Usage:
    >>> from kusto_sync.kusto import KustoQueryEngine, normalize_cluster_name
"""

from kusto_sync.kusto.client import KustoQueryEngine, parse_database_schema
from kusto_sync.kusto.connection import build_connection_string, normalize_cluster_name
from kusto_sync.kusto.validation import check_database_empty, validate_kusto_settings

__all__ = [
    "KustoQueryEngine",
    "parse_database_schema",
    "build_connection_string",
    "normalize_cluster_name",
    "check_database_empty",
    "validate_kusto_settings",
]
