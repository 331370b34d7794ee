"""Provider construction keyed by engine type."""

from database.DatabaseProvider import DatabaseProvider, ProviderError
from database.SQLAlchemyProvider import SQLAlchemyProvider
from database.SQLiteProvider import SQLiteProvider

SUPPORTED_TYPES = ("postgresql", "mysql", "mssql", "sqlite")


def create_provider(db_type: str) -> DatabaseProvider:
    """Return an unconnected provider for ``db_type``.

    Raises:
        ProviderError: If the engine type is not supported.
    """
    if db_type == "sqlite":
        return SQLiteProvider()
    if db_type in SUPPORTED_TYPES:
        return SQLAlchemyProvider(db_type)
    raise ProviderError(f"Unsupported database type: {db_type}")
