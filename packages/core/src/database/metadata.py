"""Normalized schema metadata shared by providers, the scanner and the tools.

Every engine provider translates its catalog into these dataclasses so the
rest of the application never deals with engine-specific shapes.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Literal

DatabaseType = Literal["postgresql", "mysql", "mssql", "sqlite"]


@dataclass
class ColumnMetadata:
    """A single column of a table."""

    name: str
    type: str
    nullable: bool = True
    is_primary_key: bool = False
    is_foreign_key: bool = False
    default_value: str | None = None
    max_length: int | None = None
    precision: int | None = None
    scale: int | None = None


@dataclass
class ForeignKeyMetadata:
    """A foreign key from one column to a column of another table."""

    name: str
    column: str
    referenced_table: str
    referenced_column: str
    on_delete: str | None = None
    on_update: str | None = None


@dataclass
class TableMetadata:
    """Columns, keys and size of a table.

    Attributes:
        name: Bare table name.
        schema: Owning schema, or None for engines without schemas.
        columns: Columns in ordinal order.
        foreign_keys: Outgoing foreign keys.
        primary_key: Primary key column names.
        row_count: Approximate number of rows, when known.
    """

    name: str
    schema: str | None = None
    columns: list[ColumnMetadata] = field(default_factory=list)
    foreign_keys: list[ForeignKeyMetadata] = field(default_factory=list)
    primary_key: list[str] | None = None
    row_count: int | None = None

    @property
    def qualified_name(self) -> str:
        """``schema.name`` when a schema is present, else the bare name."""
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class DatabaseMetadata:
    """Everything the scanner learned about one database."""

    name: str
    tables: list[TableMetadata] = field(default_factory=list)
    schemas: list[str] | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class QueryResult:
    """Rows returned by a provider, keyed by column name."""

    rows: list[dict[str, Any]]
    row_count: int
    fields: list[dict[str, str]] | None = None


@dataclass
class ConnectionConfig:
    """Connection parameters for any supported engine.

    ``filename`` is only used by SQLite; the network fields are ignored there.
    """

    type: DatabaseType
    host: str | None = None
    port: int | None = None
    username: str | None = None
    password: str | None = field(default=None, repr=False)
    database: str | None = None
    filename: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
