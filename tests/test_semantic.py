from database.metadata import DatabaseMetadata, TableMetadata
from database.semantic import (
    find_table,
    generate_compact_schema,
    generate_schema_summary,
    generate_tables_list,
)


def test_compact_schema_one_line_per_table(metadata):
    compact = generate_compact_schema(metadata)
    assert compact.splitlines() == [
        "customers (id INTEGER PK NOT NULL, email TEXT NOT NULL)",
        "orders (id INTEGER PK NOT NULL, customer_id INTEGER FK NOT NULL)",
    ]


def test_compact_schema_is_stable(metadata):
    assert generate_compact_schema(metadata) == generate_compact_schema(metadata)


def test_compact_schema_uses_qualified_names():
    metadata = DatabaseMetadata(name="db", tables=[TableMetadata(name="users", schema="public")])
    assert generate_compact_schema(metadata) == "public.users ()"


def test_schema_summary_sections(metadata):
    summary = generate_schema_summary(metadata)

    assert summary.startswith("# Database Schema Summary")
    assert "Database: shop" in summary
    assert "Total Tables: 2" in summary
    assert "## Schema: default" in summary
    assert "### Table: customers" in summary
    assert "- **email** (TEXT) [NOT NULL]" in summary
    assert "**Foreign Keys:**" in summary
    assert "orders → customers (via customer_id)" in summary


def test_schema_summary_without_relationships():
    metadata = DatabaseMetadata(name="empty", tables=[TableMetadata(name="logs")])
    assert "No foreign key relationships found." in generate_schema_summary(metadata)


def test_tables_list(metadata):
    assert generate_tables_list(metadata) == ["customers", "orders"]


def test_find_table_by_bare_and_qualified_name():
    users = TableMetadata(name="users", schema="public")
    metadata = DatabaseMetadata(name="db", tables=[users])

    assert find_table(metadata, "users") is users
    assert find_table(metadata, "public.users") is users
    assert find_table(metadata, "other.users") is users
    assert find_table(metadata, "accounts") is None
