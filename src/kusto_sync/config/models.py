"""Pydantic models for kusto-sync configuration and source descriptors."""

from enum import Enum

from pydantic import BaseModel, Field

from kusto_sync.schema.models import LineEndingMode


class AuthenticationMode(str, Enum):
    """How to authenticate against a Kusto cluster."""

    AAD_FEDERATED = "aad_federated"  # user sign-in (device code) against an authority
    AZ_CLI = "az_cli"
    AAD_APPLICATION = "aad_application"  # app id + key
    AAD_APPLICATION_SNI = "aad_application_sni"  # app id + certificate (subject name / issuer)


class SourceKind(str, Enum):
    """Where a schema lives."""

    FILE_PATH = "file"
    KUSTO = "kusto"


# ============================================================================
# Source Descriptors
# ============================================================================


class KustoConnectionInfo(BaseModel):
    """Connection information for a Kusto database."""

    cluster: str
    database: str
    auth_mode: AuthenticationMode = AuthenticationMode.AAD_FEDERATED
    authority: str = ""
    app_id: str | None = None
    app_key: str | None = None
    certificate_path: str | None = None  # PEM private key + certificate
    certificate_thumbprint: str | None = None


class SchemaSourceInfo(BaseModel):
    """A schema source or target: a folder of CSL files or a Kusto database.

    Example:
        >>> info = SchemaSourceInfo(kind=SourceKind.FILE_PATH, file_path="./schema")
        >>> info.display_name
        './schema'
    """

    kind: SourceKind
    file_path: str | None = None
    kusto: KustoConnectionInfo | None = None
    description: str = ""

    @property
    def display_name(self) -> str:
        """Short human-readable location."""
        if self.kind == SourceKind.FILE_PATH:
            return self.file_path or ""
        if self.kusto is None:
            return ""
        return f"{self.kusto.cluster}/{self.kusto.database}"


# ============================================================================
# Settings
# ============================================================================


class SyncSettings(BaseModel):
    """Settings shared by every compare and sync run.

    Passed explicitly to the sync service and the repository factory.
    """

    temp_cluster: str = ""
    temp_database: str = ""
    temp_auth_mode: AuthenticationMode = AuthenticationMode.AAD_FEDERATED
    aad_authority: str = ""
    kusto_object_drop_warning: bool = True
    table_fields_on_new_line: bool = False
    create_merge_enabled: bool = False
    use_legacy_csl_extension: bool = True
    line_ending_mode: LineEndingMode = LineEndingMode.LEAVE_AS_IS
    ignore_parse_errors: bool = False

    @property
    def file_extension(self) -> str:
        """Extension of schema files: ``csl`` (legacy) or ``kql``."""
        return "csl" if self.use_legacy_csl_extension else "kql"

    def temp_connection_info(self) -> KustoConnectionInfo:
        """Connection info for the temporary validation database."""
        return KustoConnectionInfo(
            cluster=self.temp_cluster,
            database=self.temp_database,
            auth_mode=self.temp_auth_mode,
            authority=self.aad_authority,
        )


class SyncConfig(BaseModel):
    """Complete configuration from kusto-sync.toml."""

    settings: SyncSettings = Field(default_factory=SyncSettings)
    sources: dict[str, SchemaSourceInfo] = Field(default_factory=dict)
