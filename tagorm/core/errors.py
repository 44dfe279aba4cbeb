"""Exception types raised by the ORM engine."""

from __future__ import annotations

from typing import Optional


class OrmError(Exception):
    """Base class for every error raised by tagorm."""


class SchemaError(OrmError, ValueError):
    """Record type cannot be mapped (bad tag value, duplicate column, ...)."""


class UsageError(OrmError, ValueError):
    """Operation called with arguments it cannot work with."""


class RecordNotFoundError(OrmError, LookupError):
    """Single-row lookup matched no rows."""

    def __init__(self, model: str, message: Optional[str] = None) -> None:
        self.model = model
        super().__init__(message or f"record not found for {model}")


class ExecutionError(OrmError):
    """Database collaborator failed while running a statement.

    The driver exception is available as `__cause__`.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: Optional[str] = None,
        model: Optional[str] = None,
        sql: Optional[str] = None,
    ) -> None:
        self.operation = operation
        self.model = model
        self.sql = sql
        prefix = ""
        if operation and model:
            prefix = f"{operation} {model}: "
        elif operation:
            prefix = f"{operation}: "
        super().__init__(f"{prefix}{message}")


class OperationCancelledError(OrmError):
    """Query context was cancelled or its deadline passed."""


class RegistryError(OrmError):
    """Dialect registry misuse (duplicate or unknown name)."""


class TransactionClosedError(UsageError):
    """Transaction used after commit or rollback."""
