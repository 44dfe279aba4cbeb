"""DB-API adapter, dialect and registry exports."""

from .database import Database, DatabaseTransaction
from .dialects import Dialect, MySQLDialect, PostgresDialect, SQLiteDialect
from .registry import DialectRegistry, default_registry

__all__ = [
    "Database",
    "DatabaseTransaction",
    "Dialect",
    "DialectRegistry",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "default_registry",
]
