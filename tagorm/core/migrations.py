"""Migration scripts and the applied-migrations history table."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Optional, Tuple

from .codecs import deserialize_value
from .context import QueryContext
from .errors import UsageError
from .schema import Field

logger = logging.getLogger(__name__)

UP_MARKER = "-- +migrate Up"
DOWN_MARKER = "-- +migrate Down"
DEFAULT_TABLE = "schema_migrations"

_MARKER = re.compile(r"^\s*--\s*\+migrate\s+(up|down)\b.*$", re.IGNORECASE | re.MULTILINE)

_APPLIED_AT = Field(name="applied_at", annotation=datetime, value_type=datetime, column="applied_at")


@dataclass(frozen=True)
class MigrationScript:
    """The up and down SQL sections of one migration file."""

    up: str
    down: str = ""


def parse_migration(text: str) -> MigrationScript:
    """Split migration text on its `-- +migrate Up` / `-- +migrate Down` markers.

    Raises:
        UsageError: If the up marker is missing or a marker repeats.
    """

    sections = {}
    matches = list(_MARKER.finditer(text))
    for i, match in enumerate(matches):
        kind = match.group(1).lower()
        if kind in sections:
            raise UsageError(f"migration contains more than one '-- +migrate {kind}' marker")
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        sections[kind] = text[match.end() : end].strip()

    if "up" not in sections:
        raise UsageError(f"migration is missing the '{UP_MARKER}' marker")
    return MigrationScript(up=sections["up"], down=sections.get("down", ""))


class MigrationHistory:
    """Tracks applied migration ids in a history table.

    Args:
        engine: Engine whose dialect renders the history statements.
        table: History table name.
    """

    def __init__(self, engine: Any, table: str = DEFAULT_TABLE) -> None:
        self.engine = engine
        self.table = table

    def ensure_table(self, *, ctx: Optional[QueryContext] = None) -> None:
        sql = self.engine.dialect.create_migrations_table_sql(self.table)
        self.engine.executor.execute(sql, ctx=ctx)

    def applied(self, *, ctx: Optional[QueryContext] = None) -> List[Tuple[str, datetime]]:
        """Return `(id, applied_at)` pairs ordered by id."""

        sql = self.engine.dialect.applied_migrations_sql(self.table)
        rows = self.engine.executor.fetchall(sql, ctx=ctx)
        return [(row["id"], deserialize_value(_APPLIED_AT, row["applied_at"])) for row in rows]

    def record(
        self, migration_id: str, *, scope: Any = None, ctx: Optional[QueryContext] = None
    ) -> None:
        target = scope or self.engine
        applied_at = datetime.now(timezone.utc).replace(tzinfo=None)
        sql = target.dialect.insert_migration_sql(self.table)
        target.executor.execute(
            sql, [migration_id, target.dialect.adapt_value(applied_at)], ctx=ctx
        )

    def remove(
        self, migration_id: str, *, scope: Any = None, ctx: Optional[QueryContext] = None
    ) -> None:
        target = scope or self.engine
        sql = target.dialect.delete_migration_sql(self.table)
        target.executor.execute(sql, [migration_id], ctx=ctx)

    def apply(
        self, migration_id: str, script: MigrationScript, *, ctx: Optional[QueryContext] = None
    ) -> None:
        """Run the up section and record the id in one transaction."""

        with self.engine.transaction(ctx) as tx:
            for statement in split_statements(script.up):
                tx.executor.execute(statement, ctx=ctx)
            self.record(migration_id, scope=tx, ctx=ctx)
        logger.info("applied migration %s", migration_id)

    def revert(
        self, migration_id: str, script: MigrationScript, *, ctx: Optional[QueryContext] = None
    ) -> None:
        """Run the down section and forget the id in one transaction."""

        with self.engine.transaction(ctx) as tx:
            for statement in split_statements(script.down):
                tx.executor.execute(statement, ctx=ctx)
            self.remove(migration_id, scope=tx, ctx=ctx)
        logger.info("reverted migration %s", migration_id)


def split_statements(sql: str) -> List[str]:
    """Split a section on `;` line endings, dropping empty statements."""

    statements = []
    current: List[str] = []
    for line in sql.splitlines():
        current.append(line)
        if line.rstrip().endswith(";"):
            statement = "\n".join(current).strip().rstrip(";").strip()
            if statement:
                statements.append(statement)
            current = []
    tail = "\n".join(current).strip()
    if tail:
        statements.append(tail)
    return statements
