"""Dataclass ORM driven by per-field tags, with portable SQL dialects."""

import logging

from .config import Settings, load_settings, open_engine
from .core import *  # noqa: F401,F403
from .core import __all__ as _core_all
from .ports import (
    Database,
    DatabaseTransaction,
    Dialect,
    DialectRegistry,
    MySQLDialect,
    PostgresDialect,
    SQLiteDialect,
    default_registry,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    *_core_all,
    "Database",
    "DatabaseTransaction",
    "Dialect",
    "DialectRegistry",
    "MySQLDialect",
    "PostgresDialect",
    "SQLiteDialect",
    "Settings",
    "default_registry",
    "load_settings",
    "open_engine",
]
