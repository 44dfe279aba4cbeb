"""Filter inputs accepted by `find`: condition maps, C helpers and example records."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Allow running this script directly from repository root.
PROJECT_ROOT = next(
    (parent for parent in Path(__file__).resolve().parents if (parent / "tagorm").exists()),
    None,
)
if PROJECT_ROOT and str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tagorm import C, OrderBy, Settings, column, open_engine
from tagorm.config import DatabaseSettings
from tagorm.log import configure_logging


@dataclass
class Employee:
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    name: str = column("size:100;not null", default="")
    team: str = column("size:40;index", default="")
    email: Optional[str] = None
    age: int = 0


def main() -> None:
    configure_logging("info")
    settings = Settings(database=DatabaseSettings(dialect="sqlite", dsn=":memory:"))

    with open_engine(settings) as engine:
        engine.auto_migrate(Employee)
        with engine.transaction() as tx:
            for name, team, email, age in (
                ("Alice", "core", "alice@example.com", 30),
                ("Bob", "core", "bob@example.com", 35),
                ("Carol", "web", "carol@example.com", 40),
                ("David", "web", None, 45),
            ):
                tx.create(Employee(name=name, team=team, email=email, age=age))

        # "<column> <operator>" keys; several keys are joined with AND.
        print("age >= 35:", engine.find(Employee, {"age >=": 35}, order="age"))
        print("name IN:", engine.find(Employee, {"name IN": ["Alice", "Carol"]}))
        print("no email:", engine.find(Employee, {"email IS NULL": True}))

        # Condition objects built with C.
        print("30 < age < 45:", engine.find(Employee, [C.gt("age", 30), C.lt("age", 45)]))

        # Non-default attributes of an example record become equality tests.
        print("web team:", engine.find(Employee, Employee(team="web")))

        # Ordering, paging and counting.
        print(
            "second page:",
            engine.find(Employee, order=[OrderBy("age", desc=True)], limit=2, offset=2),
        )
        print("count core:", engine.count(Employee, {"team": "core"}))


if __name__ == "__main__":
    main()
