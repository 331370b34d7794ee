"""SQLite provider built on the standard library driver."""

import logging
import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from database.DatabaseProvider import DatabaseProvider, ProviderError
from database.metadata import (
    ColumnMetadata,
    ConnectionConfig,
    ForeignKeyMetadata,
    QueryResult,
    TableMetadata,
)

logger = logging.getLogger(__name__)

# SQLite has exactly one schema per attached file.
_SCHEMA = "main"


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class SQLiteProvider(DatabaseProvider):
    """Provider for a single SQLite database file.

    Pass ``options={"read_only": True}`` to open the file in URI mode with
    ``?mode=ro`` so the driver itself rejects writes.
    """

    def __init__(self) -> None:
        self._connection: sqlite3.Connection | None = None
        self._filename = ""

    def connect(self, config: ConnectionConfig) -> None:
        if not config.filename:
            raise ProviderError("SQLite requires filename parameter")

        read_only = bool(config.options.get("read_only", False))
        try:
            if read_only:
                resolved = Path(config.filename).resolve(strict=True)
                target, uri = f"file:{resolved}?mode=ro", True
            else:
                resolved = Path(config.filename).resolve()
                target, uri = str(resolved), False
        except OSError as e:
            raise ProviderError(
                f"Could not resolve database path '{config.filename}': {e}"
            ) from e

        try:
            # Sessions are served from a threadpool; calls within one session are sequential.
            connection = sqlite3.connect(
                target,
                uri=uri,
                timeout=float(config.options.get("timeout", 5.0)),
                check_same_thread=False,
            )
            connection.row_factory = sqlite3.Row
            connection.execute("PRAGMA foreign_keys = ON")
            connection.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise ProviderError(f"Failed to connect to SQLite at '{resolved}': {e}") from e

        self._connection = connection
        self._filename = str(resolved)
        logger.info("Connected to SQLite database %s (read_only=%s)", resolved, read_only)

    def disconnect(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def list_databases(self) -> list[str]:
        return [self._filename]

    def list_schemas(self) -> list[str]:
        return [_SCHEMA]

    def list_tables(self, schema: str | None = None) -> list[str]:
        rows = self._fetch(
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name"
        )
        return [row["name"] for row in rows]

    def describe_table(self, table_name: str, schema: str | None = None) -> TableMetadata:
        columns = self._fetch(f"PRAGMA table_info({_quote(table_name)})")
        if not columns:
            raise ProviderError(f"Table not found: {table_name}")

        foreign_keys = self.get_foreign_keys(table_name, schema)
        fk_columns = {fk.column for fk in foreign_keys}

        column_metadata = [
            ColumnMetadata(
                name=col["name"],
                type=col["type"],
                nullable=col["notnull"] == 0,
                default_value=col["dflt_value"],
                # pk holds the 1-based position within a composite key
                is_primary_key=col["pk"] > 0,
                is_foreign_key=col["name"] in fk_columns,
            )
            for col in columns
        ]

        count = self._fetch(f"SELECT COUNT(*) AS count FROM {_quote(table_name)}")

        return TableMetadata(
            name=table_name,
            schema=_SCHEMA,
            columns=column_metadata,
            foreign_keys=foreign_keys,
            primary_key=[c.name for c in column_metadata if c.is_primary_key],
            row_count=count[0]["count"],
        )

    def get_foreign_keys(
        self, table_name: str, schema: str | None = None
    ) -> list[ForeignKeyMetadata]:
        rows = self._fetch(f"PRAGMA foreign_key_list({_quote(table_name)})")
        return [
            ForeignKeyMetadata(
                name=f"fk_{table_name}_{fk['from']}",
                column=fk["from"],
                referenced_table=fk["table"],
                referenced_column=fk["to"],
                on_update=fk["on_update"],
                on_delete=fk["on_delete"],
            )
            for fk in rows
        ]

    def run_query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        connection = self._require_connection()
        cursor = connection.cursor()
        try:
            cursor.execute(sql, tuple(params or ()))
            if cursor.description is None:
                connection.commit()
                return QueryResult(rows=[], row_count=cursor.rowcount)

            rows = [dict(row) for row in cursor.fetchall()]
            fields = [{"name": col[0], "type": "unknown"} for col in cursor.description]
            return QueryResult(rows=rows, row_count=len(rows), fields=fields)
        except sqlite3.Error as e:
            raise ProviderError(f"Query execution failed: {e}") from e
        finally:
            cursor.close()

    def test_connection(self) -> bool:
        if self._connection is None:
            return False
        try:
            self._connection.execute("SELECT 1").fetchone()
            return True
        except sqlite3.Error:
            return False

    def _require_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise ProviderError("Not connected")
        return self._connection

    def _fetch(self, sql: str) -> list[sqlite3.Row]:
        connection = self._require_connection()
        try:
            return connection.execute(sql).fetchall()
        except sqlite3.Error as e:
            raise ProviderError(f"Query execution failed: {e}") from e
