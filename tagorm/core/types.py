"""Shared core type aliases used across contracts, engine, and ports."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence

PositionalParams = List[Any]
QueryParams = Optional[Sequence[Any]]

RowMapping = Mapping[str, Any]
Rows = List[RowMapping]
MaybeRow = Optional[RowMapping]
