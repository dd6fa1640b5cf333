"""TOML configuration loader.

File layout::

    [settings]
    temp_cluster = "mycluster.westus"
    temp_database = "SyncScratch"
    line_ending_mode = "unix_style"

    [sources.prod]
    type = "kusto"
    cluster = "prodcluster.westus"
    database = "Telemetry"
    auth_mode = "az_cli"

    [sources.repo]
    type = "file"
    path = "./schema"
"""

import os
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError

from kusto_sync.config.models import (
    AuthenticationMode,
    KustoConnectionInfo,
    SchemaSourceInfo,
    SourceKind,
    SyncConfig,
    SyncSettings,
)
from kusto_sync.schema.models import LineEndingMode

CONFIG_ENV_VAR = "KUSTO_SYNC_CONFIG"
DEFAULT_CONFIG_FILE = "kusto-sync.toml"

E = TypeVar("E", bound=Enum)


def default_config_path() -> Path:
    """``$KUSTO_SYNC_CONFIG`` if set, else ``./kusto-sync.toml``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.cwd() / DEFAULT_CONFIG_FILE


def parse_enum(enum_type: type[E], value: Any, default: E) -> E:
    """Parse an enum by value or member name, case-insensitively.

    Blank or unknown values fall back to ``default``.

    Examples:
        >>> parse_enum(LineEndingMode, "UnixStyle", LineEndingMode.LEAVE_AS_IS)
        <LineEndingMode.UNIX_STYLE: 'unix_style'>
        >>> parse_enum(LineEndingMode, "bogus", LineEndingMode.LEAVE_AS_IS)
        <LineEndingMode.LEAVE_AS_IS: 'leave_as_is'>
    """
    if isinstance(value, enum_type):
        return value
    if value is None or not str(value).strip():
        return default

    wanted = str(value).strip().lower().replace("-", "_")
    for member in enum_type:
        candidates = {str(member.value).lower(), member.name.lower(), member.name.lower().replace("_", "")}
        if wanted in candidates or wanted.replace("_", "") in candidates:
            return member
    return default


def _parse_settings(data: dict[str, Any]) -> SyncSettings:
    values = dict(data)
    values["line_ending_mode"] = parse_enum(
        LineEndingMode, values.get("line_ending_mode"), LineEndingMode.LEAVE_AS_IS
    )
    values["temp_auth_mode"] = parse_enum(
        AuthenticationMode, values.get("temp_auth_mode"), AuthenticationMode.AAD_FEDERATED
    )
    return SyncSettings(**values)


def _parse_source(data: dict[str, Any]) -> SchemaSourceInfo:
    kind = parse_enum(SourceKind, data.get("type"), SourceKind.KUSTO)
    description = data.get("description", "")

    if kind == SourceKind.FILE_PATH:
        return SchemaSourceInfo(kind=kind, file_path=data.get("path"), description=description)

    connection = {
        key: value
        for key, value in data.items()
        if key not in ("type", "description", "path")
    }
    connection["auth_mode"] = parse_enum(
        AuthenticationMode, connection.get("auth_mode"), AuthenticationMode.AAD_FEDERATED
    )
    return SchemaSourceInfo(
        kind=kind,
        kusto=KustoConnectionInfo(**connection),
        description=description,
    )


def load_config(config_path: Path | None = None) -> SyncConfig:
    """Load kusto-sync configuration from a TOML file.

    Args:
        config_path: Path to the TOML file.  Defaults to
            ``default_config_path()``.

    Returns:
        SyncConfig with settings and named sources

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config format is invalid
    """
    if config_path is None:
        config_path = default_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"kusto-sync config not found: {config_path}\n"
            f"Create {DEFAULT_CONFIG_FILE} with [settings] and [sources.<name>] tables."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

    try:
        settings = _parse_settings(data.get("settings", {}))
        sources = {
            name: _parse_source(source_data)
            for name, source_data in data.get("sources", {}).items()
        }
    except (ValidationError, TypeError) as e:
        raise ValueError(f"Invalid configuration in {config_path}: {e}") from e

    return SyncConfig(settings=settings, sources=sources)
