"""Engine-independent database provider interface.

The chat tools only ever talk to a :class:`DatabaseProvider`; dialect quirks of
each engine stay inside its concrete provider.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any

from database.metadata import (
    ConnectionConfig,
    ForeignKeyMetadata,
    QueryResult,
    TableMetadata,
)


class ProviderError(RuntimeError):
    """Raised when a provider cannot connect, introspect, or run a query."""


class DatabaseProvider(ABC):
    """Uniform capability interface over one database connection."""

    @abstractmethod
    def connect(self, config: ConnectionConfig) -> None:
        """Open the connection described by ``config``.

        Raises:
            ProviderError: If the connection cannot be established.
        """

    @abstractmethod
    def disconnect(self) -> None:
        """Close the connection. Safe to call when not connected."""

    @abstractmethod
    def list_databases(self) -> list[str]:
        """Return the databases visible through this connection."""

    @abstractmethod
    def list_schemas(self) -> list[str]:
        """Return the user schemas of the current database."""

    @abstractmethod
    def list_tables(self, schema: str | None = None) -> list[str]:
        """Return table names, optionally restricted to ``schema``."""

    @abstractmethod
    def describe_table(self, table_name: str, schema: str | None = None) -> TableMetadata:
        """Return columns, keys and row count of a table."""

    @abstractmethod
    def get_foreign_keys(
        self, table_name: str, schema: str | None = None
    ) -> list[ForeignKeyMetadata]:
        """Return the outgoing foreign keys of a table."""

    @abstractmethod
    def run_query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        """Execute ``sql`` and return its rows.

        Statements that return no rows report the affected row count instead.

        Raises:
            ProviderError: If the database rejects the statement.
        """

    @abstractmethod
    def test_connection(self) -> bool:
        """Return True if the connection answers a trivial query."""
