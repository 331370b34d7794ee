"""Walk a provider's catalog and build normalized schema metadata."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from database.DatabaseProvider import DatabaseProvider, ProviderError
from database.metadata import DatabaseMetadata, TableMetadata

logger = logging.getLogger(__name__)


@dataclass
class ScanProgress:
    """A progress notification emitted while scanning.

    Attributes:
        stage: One of "schemas", "tables", or "complete".
        current: Items processed so far in this stage.
        total: Items in this stage.
        message: Human-readable status line.
    """

    stage: str
    current: int
    total: int
    message: str


ProgressCallback = Callable[[ScanProgress], None]


class SchemaScanner:
    """Builds :class:`DatabaseMetadata` from a connected provider."""

    def __init__(self, provider: DatabaseProvider) -> None:
        self._provider = provider

    def scan_database(
        self,
        database_name: str | None = None,
        schema_name: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DatabaseMetadata:
        """Describe every table of the selected schemas.

        A table that cannot be described is logged and skipped so one broken
        view does not abort the whole scan.

        Args:
            database_name: Name recorded in the metadata; defaults to "current".
            schema_name: Restrict the scan to one schema. All schemas are
                scanned when omitted.
            on_progress: Optional callback receiving ScanProgress updates.

        Returns:
            The collected metadata, tables in scan order.
        """
        notify = on_progress or (lambda progress: None)

        if schema_name:
            schemas = [schema_name]
        else:
            notify(ScanProgress("schemas", 0, 1, "Fetching schemas..."))
            schemas = self._provider.list_schemas()

        tables: list[TableMetadata] = []
        for i, schema in enumerate(schemas, start=1):
            notify(ScanProgress("schemas", i, len(schemas), f"Scanning schema: {schema}"))

            table_names = self._provider.list_tables(schema)
            for j, table_name in enumerate(table_names, start=1):
                notify(
                    ScanProgress(
                        "tables",
                        j,
                        len(table_names),
                        f"Analyzing table: {schema}.{table_name}",
                    )
                )
                try:
                    tables.append(self._provider.describe_table(table_name, schema))
                except ProviderError as e:
                    logger.error("Failed to describe table %s.%s: %s", schema, table_name, e)

        notify(ScanProgress("complete", len(tables), len(tables), "Schema scan complete"))
        logger.info("Scanned %d tables across %d schemas", len(tables), len(schemas))

        return DatabaseMetadata(
            name=database_name or "current",
            schemas=schemas,
            tables=tables,
        )

    @staticmethod
    def build_relationship_graph(metadata: DatabaseMetadata) -> dict[str, set[str]]:
        """Map each qualified table name to the tables its foreign keys reference.

        Referenced tables are qualified with the referencing table's schema.
        """
        graph: dict[str, set[str]] = {}
        for table in metadata.tables:
            edges = graph.setdefault(table.qualified_name, set())
            for fk in table.foreign_keys:
                referenced = (
                    f"{table.schema}.{fk.referenced_table}"
                    if table.schema
                    else fk.referenced_table
                )
                edges.add(referenced)
                graph.setdefault(referenced, set())
        return graph
