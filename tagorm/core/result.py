"""Outcome of write operations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Result:
    """Rows affected and generated key of a create/update/delete call.

    Attributes:
        rows_affected: Rows the statement changed; `0` for an update or
            delete means nothing matched and is not an error.
        last_insert_id: Key generated by the database on create, when the
            model has a single auto-increment primary key.
    """

    rows_affected: int = 0
    last_insert_id: Optional[Any] = None
