"""Public port exports for concrete adapter implementations."""

from .db_api import (
    Database,
    DatabaseTransaction,
    Dialect,
    DialectRegistry,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    default_registry,
)

__all__ = [
    "Database",
    "DatabaseTransaction",
    "Dialect",
    "DialectRegistry",
    "SQLiteDialect",
    "PostgresDialect",
    "MySQLDialect",
    "default_registry",
]
