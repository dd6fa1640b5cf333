"""Configuration management: settings, source descriptors, and TOML loading.

Usage:
    >>> from kusto_sync.config import load_config, SyncSettings, SchemaSourceInfo
"""

from kusto_sync.config.loader import load_config
from kusto_sync.config.models import (
    AuthenticationMode,
    KustoConnectionInfo,
    SchemaSourceInfo,
    SourceKind,
    SyncConfig,
    SyncSettings,
)

__all__ = [
    "load_config",
    "AuthenticationMode",
    "KustoConnectionInfo",
    "SchemaSourceInfo",
    "SourceKind",
    "SyncConfig",
    "SyncSettings",
]
