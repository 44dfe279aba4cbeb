from __future__ import annotations

import sqlite3
import unittest
from datetime import datetime

from tagorm import Database, Engine, ExecutionError, SQLiteDialect, UsageError
from tagorm.core.migrations import (
    MigrationHistory,
    MigrationScript,
    parse_migration,
    split_statements,
)

CREATE_WIDGETS = """
-- +migrate Up
CREATE TABLE widgets (
  id INTEGER PRIMARY KEY,
  name TEXT NOT NULL
);
CREATE INDEX idx_widgets_name ON widgets (name);

-- +migrate Down
DROP TABLE widgets;
"""


class ParseMigrationTests(unittest.TestCase):
    def test_splits_up_and_down(self) -> None:
        script = parse_migration(CREATE_WIDGETS)

        self.assertTrue(script.up.startswith("CREATE TABLE widgets"))
        self.assertTrue(script.up.endswith("ON widgets (name);"))
        self.assertEqual(script.down, "DROP TABLE widgets;")

    def test_down_is_optional_and_markers_are_case_insensitive(self) -> None:
        script = parse_migration("--  +MIGRATE up\nSELECT 1;\n")
        self.assertEqual(script, MigrationScript(up="SELECT 1;", down=""))

    def test_missing_or_repeated_markers(self) -> None:
        with self.assertRaisesRegex(UsageError, "missing"):
            parse_migration("CREATE TABLE t (id INTEGER);")
        with self.assertRaisesRegex(UsageError, "more than one"):
            parse_migration("-- +migrate Up\nSELECT 1;\n-- +migrate Up\nSELECT 2;")

    def test_split_statements(self) -> None:
        self.assertEqual(
            split_statements(parse_migration(CREATE_WIDGETS).up),
            [
                "CREATE TABLE widgets (\n  id INTEGER PRIMARY KEY,\n  name TEXT NOT NULL\n)",
                "CREATE INDEX idx_widgets_name ON widgets (name)",
            ],
        )
        self.assertEqual(split_statements("SELECT 1;\n;\nSELECT 2"), ["SELECT 1", "SELECT 2"])
        self.assertEqual(split_statements(""), [])


class MigrationHistoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = Engine(Database(sqlite3.connect(":memory:"), SQLiteDialect()))
        self.history = MigrationHistory(self.engine)
        self.history.ensure_table()

    def tearDown(self) -> None:
        self.engine.close()

    def _tables(self) -> set[str]:
        rows = self.engine.database.fetchall("SELECT name FROM sqlite_master WHERE type = 'table'")
        return {row["name"] for row in rows}

    def test_ensure_table_is_idempotent(self) -> None:
        self.history.ensure_table()
        self.assertIn("schema_migrations", self._tables())
        self.assertEqual(self.history.applied(), [])

    def test_apply_and_revert(self) -> None:
        script = parse_migration(CREATE_WIDGETS)

        self.history.apply("20240101000000_widgets", script)
        self.assertIn("widgets", self._tables())
        applied = self.history.applied()
        self.assertEqual([migration_id for migration_id, _ in applied], ["20240101000000_widgets"])
        self.assertIsInstance(applied[0][1], datetime)

        self.history.revert("20240101000000_widgets", script)
        self.assertNotIn("widgets", self._tables())
        self.assertEqual(self.history.applied(), [])

    def test_failed_apply_leaves_no_trace(self) -> None:
        broken = MigrationScript(up="CREATE TABLE gadgets (id INTEGER);\nNOT VALID SQL;")

        with self.assertRaises(ExecutionError):
            self.history.apply("002_broken", broken)
        self.assertNotIn("gadgets", self._tables())
        self.assertEqual(self.history.applied(), [])

    def test_applied_is_ordered_by_id(self) -> None:
        self.history.record("b")
        self.history.record("a")
        self.assertEqual([m for m, _ in self.history.applied()], ["a", "b"])
        self.history.remove("a")
        self.assertEqual([m for m, _ in self.history.applied()], ["b"])

    def test_custom_table_name(self) -> None:
        history = MigrationHistory(self.engine, table="app_migrations")
        history.ensure_table()
        history.record("001")
        self.assertIn("app_migrations", self._tables())
        self.assertEqual(self.history.applied(), [])


if __name__ == "__main__":
    unittest.main()
