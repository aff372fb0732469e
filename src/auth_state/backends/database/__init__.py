"""Durable database backends."""

from auth_state.backends.database.sqlite import SQLiteDatabase
from auth_state.config import DatabaseConfig
from auth_state.exceptions import ConfigError
from auth_state.protocols.database import Database


def create_database(config: DatabaseConfig) -> Database:
    """Create a database backend from configuration.

    Raises:
        ConfigError: If the backend is unknown
    """
    if config.backend == "sqlite":
        return SQLiteDatabase(path=config.path)

    raise ConfigError(f"Unknown database backend: {config.backend}. Use 'sqlite'.")


__all__ = ["SQLiteDatabase", "create_database"]
