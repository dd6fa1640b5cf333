"""Cluster name normalization and connection string construction.

Usage:
    from kusto_sync.kusto.connection import build_connection_string

    kcsb = build_connection_string(KustoConnectionInfo(
        cluster="mycluster.westus",
        database="Telemetry",
        auth_mode=AuthenticationMode.AZ_CLI,
    ))
"""

import re
from pathlib import Path

from azure.kusto.data import KustoConnectionStringBuilder

from kusto_sync.config.models import AuthenticationMode, KustoConnectionInfo
from kusto_sync.exceptions import KustoSettingsError

_CERTIFICATE_BLOCK = re.compile(
    r"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----", re.DOTALL
)


def normalize_cluster_name(cluster: str) -> str:
    """Normalize a cluster name to a full HTTPS URL.

    Accepts ``cluster.eastus2``, ``cluster.eastus2.kusto.windows.net`` or
    ``https://cluster.eastus2.kusto.windows.net``.

    Examples:
        >>> normalize_cluster_name("mycluster.eastus2")
        'https://mycluster.eastus2.kusto.windows.net'
        >>> normalize_cluster_name("mycluster.eastus2.kusto.windows.net/")
        'https://mycluster.eastus2.kusto.windows.net'
        >>> normalize_cluster_name("https://help.kusto.windows.net")
        'https://help.kusto.windows.net'
    """
    if cluster.lower().startswith("https://"):
        return cluster

    cluster = cluster.rstrip("/").strip()

    lowered = cluster.lower()
    if not lowered.endswith(".com") and not lowered.endswith(".net"):
        return f"https://{cluster}.kusto.windows.net"
    return f"https://{cluster}"


def _require(value: str | None, message: str) -> str:
    if value is None or not value.strip():
        raise KustoSettingsError(message)
    return value


def _read_certificate(path: str) -> tuple[str, str]:
    """Return ``(private_pem, public_certificate_pem)`` from a PEM bundle."""
    pem = Path(path).read_text()
    match = _CERTIFICATE_BLOCK.search(pem)
    if match is None:
        raise KustoSettingsError(f"No certificate found in {path}")
    return pem, match.group(0)


def build_connection_string(info: KustoConnectionInfo) -> KustoConnectionStringBuilder:
    """Build a ``KustoConnectionStringBuilder`` for ``info``.

    Args:
        info: Cluster, database and credentials.  The database is not part of
            the builder; it is passed with every command.

    Returns:
        Builder authenticated according to ``info.auth_mode``.

    Raises:
        KustoSettingsError: If the cluster or the credentials required by
            the authentication mode are missing.
    """
    cluster = normalize_cluster_name(_require(info.cluster, "No Kusto cluster was specified."))
    authority = info.authority or "organizations"

    if info.auth_mode == AuthenticationMode.AZ_CLI:
        return KustoConnectionStringBuilder.with_az_cli_authentication(cluster)

    if info.auth_mode == AuthenticationMode.AAD_FEDERATED:
        return KustoConnectionStringBuilder.with_aad_device_authentication(
            cluster, authority_id=authority
        )

    if info.auth_mode == AuthenticationMode.AAD_APPLICATION:
        return KustoConnectionStringBuilder.with_aad_application_key_authentication(
            cluster,
            _require(info.app_id, "Application authentication requires an app id."),
            _require(info.app_key, "Application authentication requires an app key."),
            authority,
        )

    if info.auth_mode == AuthenticationMode.AAD_APPLICATION_SNI:
        app_id = _require(info.app_id, "Certificate authentication requires an app id.")
        thumbprint = _require(
            info.certificate_thumbprint,
            "Certificate authentication requires a certificate thumbprint.",
        )
        private_pem, public_pem = _read_certificate(
            _require(info.certificate_path, "Certificate authentication requires a certificate path.")
        )
        return KustoConnectionStringBuilder.with_aad_application_certificate_sni_authentication(
            cluster, app_id, private_pem, public_pem, thumbprint, authority
        )

    raise KustoSettingsError(f"Unknown authentication mode: {info.auth_mode}")
