"""Table and column naming conventions."""

from __future__ import annotations

import re
from typing import Protocol

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class NamingStrategy(Protocol):
    """Maps class and attribute names to SQL identifiers."""

    def table_name(self, type_name: str) -> str: ...

    def column_name(self, field_name: str) -> str: ...


class DefaultNamingStrategy:
    """snake_case columns and pluralized snake_case tables.

    `UserProfile` maps to table `user_profiles`; `CreatedAt` or `created_at`
    both map to column `created_at`.
    """

    def table_name(self, type_name: str) -> str:
        return pluralize(to_snake_case(type_name))

    def column_name(self, field_name: str) -> str:
        return to_snake_case(field_name)


def to_snake_case(name: str) -> str:
    """Convert CamelCase (acronym aware) to snake_case."""

    return _WORD_BOUNDARY.sub("_", name).lower()


def pluralize(name: str) -> str:
    if name.endswith("y") and len(name) > 1 and name[-2] not in "aeiou":
        return f"{name[:-1]}ies"
    if name.endswith(("s", "x", "z", "ch", "sh")):
        return f"{name}es"
    return f"{name}s"
