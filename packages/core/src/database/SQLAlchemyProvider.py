"""PostgreSQL, MySQL and MSSQL provider built on SQLAlchemy reflection."""

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError

from database.DatabaseProvider import DatabaseProvider, ProviderError
from database.metadata import (
    ColumnMetadata,
    ConnectionConfig,
    ForeignKeyMetadata,
    QueryResult,
    TableMetadata,
)

logger = logging.getLogger(__name__)

_DRIVERS = {
    "postgresql": "postgresql+psycopg2",
    "mysql": "mysql+pymysql",
    "mssql": "mssql+pymssql",
}

_DEFAULT_PORTS = {"postgresql": 5432, "mysql": 3306, "mssql": 1433}

_DEFAULT_SCHEMAS = {"postgresql": "public", "mssql": "dbo"}

_LIST_DATABASES_SQL = {
    "postgresql": "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname",
    "mysql": "SHOW DATABASES",
    "mssql": "SELECT name FROM sys.databases ORDER BY name",
}

_SYSTEM_SCHEMAS = {
    "postgresql": {"information_schema", "pg_catalog"},
    "mysql": {"information_schema", "mysql", "performance_schema", "sys"},
    "mssql": {"sys", "INFORMATION_SCHEMA", "guest"},
}


def build_url(config: ConnectionConfig) -> URL:
    """Build the SQLAlchemy URL for a network engine."""
    if config.type not in _DRIVERS:
        raise ProviderError(f"Unsupported database type: {config.type}")
    return URL.create(
        _DRIVERS[config.type],
        username=config.username,
        password=config.password,
        host=config.host or "localhost",
        port=config.port or _DEFAULT_PORTS[config.type],
        database=config.database,
    )


class SQLAlchemyProvider(DatabaseProvider):
    """Provider for the network engines, one instance per connection."""

    def __init__(self, db_type: str) -> None:
        if db_type not in _DRIVERS:
            raise ProviderError(f"Unsupported database type: {db_type}")
        self._db_type = db_type
        self._engine: Engine | None = None

    def connect(self, config: ConnectionConfig) -> None:
        url = build_url(config)
        try:
            engine = create_engine(url, pool_pre_ping=True, **config.options)
        except (SQLAlchemyError, TypeError) as e:
            raise ProviderError(f"Invalid {self._db_type} connection options: {e}") from e
        # Validate the connection immediately
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            engine.dispose()
            raise ProviderError(f"Could not connect to {self._db_type}: {e}") from e

        self._engine = engine
        logger.info("Connected to %s at %s", self._db_type, url.render_as_string(hide_password=True))

    def disconnect(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def list_databases(self) -> list[str]:
        result = self.run_query(_LIST_DATABASES_SQL[self._db_type])
        return [next(iter(row.values())) for row in result.rows]

    def list_schemas(self) -> list[str]:
        system = _SYSTEM_SCHEMAS[self._db_type]
        names = self._inspect(lambda insp: insp.get_schema_names())
        return [
            name
            for name in names
            if name not in system and not name.startswith(("pg_", "db_"))
        ]

    def list_tables(self, schema: str | None = None) -> list[str]:
        schema = schema or _DEFAULT_SCHEMAS.get(self._db_type)
        return self._inspect(lambda insp: insp.get_table_names(schema=schema))

    def describe_table(self, table_name: str, schema: str | None = None) -> TableMetadata:
        schema = schema or _DEFAULT_SCHEMAS.get(self._db_type)

        def reflect(insp):
            return (
                insp.get_columns(table_name, schema=schema),
                insp.get_pk_constraint(table_name, schema=schema),
            )

        raw_columns, pk = self._inspect(reflect)
        pk_columns = list(pk.get("constrained_columns") or [])
        foreign_keys = self.get_foreign_keys(table_name, schema)
        fk_columns = {fk.column for fk in foreign_keys}

        columns = []
        for col in raw_columns:
            col_type = col["type"]
            default = col.get("default")
            columns.append(
                ColumnMetadata(
                    name=col["name"],
                    type=str(col_type).upper(),
                    nullable=col.get("nullable", True),
                    default_value=str(default) if default is not None else None,
                    is_primary_key=col["name"] in pk_columns,
                    is_foreign_key=col["name"] in fk_columns,
                    max_length=getattr(col_type, "length", None),
                    precision=getattr(col_type, "precision", None),
                    scale=getattr(col_type, "scale", None),
                )
            )

        return TableMetadata(
            name=table_name,
            schema=schema,
            columns=columns,
            foreign_keys=foreign_keys,
            primary_key=pk_columns,
            row_count=self._row_count(table_name, schema),
        )

    def get_foreign_keys(
        self, table_name: str, schema: str | None = None
    ) -> list[ForeignKeyMetadata]:
        schema = schema or _DEFAULT_SCHEMAS.get(self._db_type)
        raw = self._inspect(lambda insp: insp.get_foreign_keys(table_name, schema=schema))

        foreign_keys = []
        for fk in raw:
            options = fk.get("options") or {}
            for local, remote in zip(fk["constrained_columns"], fk["referred_columns"]):
                foreign_keys.append(
                    ForeignKeyMetadata(
                        name=fk.get("name") or f"fk_{table_name}_{local}",
                        column=local,
                        referenced_table=fk["referred_table"],
                        referenced_column=remote,
                        on_delete=options.get("ondelete"),
                        on_update=options.get("onupdate"),
                    )
                )
        return foreign_keys

    def run_query(self, sql: str, params: Sequence[Any] | None = None) -> QueryResult:
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                if params:
                    result = conn.exec_driver_sql(sql, tuple(params))
                else:
                    result = conn.exec_driver_sql(sql)

                if not result.returns_rows:
                    return QueryResult(rows=[], row_count=result.rowcount)

                keys = list(result.keys())
                rows = [dict(row._mapping) for row in result]
        except SQLAlchemyError as e:
            raise ProviderError(f"Query execution failed: {e}") from e

        fields = [{"name": key, "type": "unknown"} for key in keys]
        return QueryResult(rows=rows, row_count=len(rows), fields=fields)

    def test_connection(self) -> bool:
        if self._engine is None:
            return False
        try:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            return False

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise ProviderError("Not connected")
        return self._engine

    def _inspect(self, fn):
        engine = self._require_engine()
        try:
            return fn(inspect(engine))
        except SQLAlchemyError as e:
            raise ProviderError(f"Schema reflection failed: {e}") from e

    def _row_count(self, table_name: str, schema: str | None) -> int:
        """Fetch row count for a single table using a pushdown COUNT query."""
        preparer = self._require_engine().dialect.identifier_preparer
        qualified = preparer.quote(table_name)
        if schema:
            qualified = f"{preparer.quote_schema(schema)}.{qualified}"
        result = self.run_query(f"SELECT COUNT(*) AS row_count FROM {qualified}")
        return int(result.rows[0]["row_count"]) if result.rows else 0
