"""Render schema metadata as text for the model.

The compact form is embedded verbatim in the system prompt, so its output must
be stable for a given metadata object: same tables, same order, same text.
"""

from database.metadata import ColumnMetadata, DatabaseMetadata, TableMetadata


def generate_compact_schema(metadata: DatabaseMetadata) -> str:
    """Return one ``table (col TYPE [PK] [FK] [NOT NULL], ...)`` line per table."""
    lines = []
    for table in metadata.tables:
        columns = []
        for column in table.columns:
            parts = [column.name, column.type]
            if column.is_primary_key:
                parts.append("PK")
            if column.is_foreign_key:
                parts.append("FK")
            if not column.nullable:
                parts.append("NOT NULL")
            columns.append(" ".join(parts))
        lines.append(f"{table.qualified_name} ({', '.join(columns)})")
    return "\n".join(lines)


def generate_schema_summary(metadata: DatabaseMetadata) -> str:
    """Return a Markdown report of every schema, table, column and relationship."""
    lines = [
        "# Database Schema Summary",
        "",
        f"Database: {metadata.name}",
        f"Total Tables: {len(metadata.tables)}",
        "",
    ]

    for schema, tables in _group_tables_by_schema(metadata.tables).items():
        lines.append(f"## Schema: {schema}")
        lines.append("")
        for table in tables:
            lines.append(_table_summary(table))
            lines.append("")

    lines.append("## Relationships")
    lines.append("")
    lines.append(_relationship_summary(metadata.tables))
    return "\n".join(lines)


def generate_tables_list(metadata: DatabaseMetadata) -> list[str]:
    """Return the qualified name of every table, in metadata order."""
    return [table.qualified_name for table in metadata.tables]


def find_table(metadata: DatabaseMetadata, table_name: str) -> TableMetadata | None:
    """Find a table by bare name, ``schema.name``, or any name ending in ``.name``.

    The first table in metadata order that matches wins.
    """
    for table in metadata.tables:
        if (
            table.name == table_name
            or (table.schema and table.qualified_name == table_name)
            or table_name.endswith(f".{table.name}")
        ):
            return table
    return None


def _table_summary(table: TableMetadata) -> str:
    lines = [
        f"### Table: {table.qualified_name}",
        f"Rows: ~{table.row_count or 0}",
        "",
        "**Columns:**",
    ]
    lines.extend(_column_description(column) for column in table.columns)

    if table.foreign_keys:
        lines.append("")
        lines.append("**Foreign Keys:**")
        for fk in table.foreign_keys:
            lines.append(
                f"- {fk.column} → {fk.referenced_table}.{fk.referenced_column} ({fk.name})"
            )
    return "\n".join(lines)


def _column_description(column: ColumnMetadata) -> str:
    parts = [f"- **{column.name}**", f"({column.type})"]

    tags = []
    if column.is_primary_key:
        tags.append("PK")
    if column.is_foreign_key:
        tags.append("FK")
    if not column.nullable:
        tags.append("NOT NULL")
    if column.default_value:
        tags.append(f"DEFAULT: {column.default_value}")
    if tags:
        parts.append(f"[{', '.join(tags)}]")

    return " ".join(parts)


def _relationship_summary(tables: list[TableMetadata]) -> str:
    relationships = [
        f"{table.qualified_name} → {fk.referenced_table} (via {fk.column})"
        for table in tables
        for fk in table.foreign_keys
    ]
    if not relationships:
        return "No foreign key relationships found."
    return "\n".join(relationships)


def _group_tables_by_schema(tables: list[TableMetadata]) -> dict[str, list[TableMetadata]]:
    grouped: dict[str, list[TableMetadata]] = {}
    for table in tables:
        grouped.setdefault(table.schema or "default", []).append(table)
    return grouped
