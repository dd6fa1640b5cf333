"""Schema repositories: CSL files on disk and live Kusto databases.

Usage:
    >>> from kusto_sync.repositories import FileSystemSchemaRepository, SchemaRepository
"""

from kusto_sync.repositories.base import SchemaRepository
from kusto_sync.repositories.filesystem import FileSystemSchemaRepository
from kusto_sync.repositories.kusto import KustoSchemaRepository

__all__ = [
    "SchemaRepository",
    "FileSystemSchemaRepository",
    "KustoSchemaRepository",
]
