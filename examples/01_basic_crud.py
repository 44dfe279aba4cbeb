"""Basic CRUD walkthrough against an in-memory SQLite database."""

from __future__ import annotations

import sqlite3
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

# Allow running this script directly from repository root.
PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "tagorm").exists()),
    None,
)
if PROJECT_ROOT and str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tagorm import Database, Engine, RecordNotFoundError, SQLiteDialect, column


@dataclass
class User:
    # Assigned by the database on create.
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    name: str = column("size:100;not null;index", default="")
    email: Optional[str] = column("unique", default=None)
    age: int = 0
    created_at: Optional[datetime] = None


def main() -> None:
    # 1) Wrap a DB-API connection and build the engine.
    engine = Engine(Database(sqlite3.connect(":memory:"), SQLiteDialect()))

    with engine:
        # 2) Create the table and its indexes.
        engine.auto_migrate(User)

        # 3) Insert rows; ids and created_at are loaded back.
        alice = User(name="Alice", email="alice@example.com", age=25)
        bob = User(name="Bob", email="bob@example.com", age=30)
        engine.create(alice)
        engine.create(bob)
        print("Created:", alice, bob)

        # 4) Load by primary key.
        print("By id:", engine.find_by_id(User, alice.id))

        # 5) Update selected columns.
        result = engine.updates(bob, {"age": 31})
        print("Updated rows:", result.rows_affected, "->", bob)

        # 6) List every row.
        print("All users:", engine.find(User, order="id"))

        # 7) Delete by primary key.
        print("Deleted rows:", engine.delete(alice).rows_affected)
        try:
            engine.find_by_id(User, alice.id)
        except RecordNotFoundError as exc:
            print("After delete:", exc)


if __name__ == "__main__":
    main()
