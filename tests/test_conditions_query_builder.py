from __future__ import annotations

import unittest
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from tagorm.core.conditions import (
    C,
    Condition,
    OrderBy,
    condition_from_item,
    conditions_from_example,
    conditions_from_mapping,
    parse_condition_key,
    to_conditions,
)
from tagorm.core.errors import UsageError
from tagorm.core.parser import SchemaParser
from tagorm.core.query_builder import (
    UNBOUNDED_LIMIT,
    append_limit_offset,
    compile_order_by,
    compile_where,
)
from tagorm.core.tags import column
from tagorm.ports.db_api.dialects import MySQLDialect, PostgresDialect, SQLiteDialect


class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"


@dataclass
class Customer:
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    full_name: str = column("column:name", default="")
    email: Optional[str] = None
    age: int = 0
    tier: Tier = Tier.FREE


class _NumericDialect(SQLiteDialect):
    paramstyle = "numeric"


class ConditionKeyTests(unittest.TestCase):
    def test_operator_suffixes(self) -> None:
        samples = {
            "age": ("age", "="),
            "age =": ("age", "="),
            "age >=": ("age", ">="),
            "age<=": ("age<=", "="),
            "name like": ("name", "LIKE"),
            "name  NOT   IN": ("name", "NOT IN"),
            "name in": ("name", "IN"),
            "email is null": ("email", "IS NULL"),
            "email IS NOT NULL": ("email", "IS NOT NULL"),
            "age <>": ("age", "<>"),
            "age !=": ("age", "!="),
        }
        for key, expected in samples.items():
            with self.subTest(key=key):
                self.assertEqual(parse_condition_key(key), expected)

    def test_key_without_column_is_rejected(self) -> None:
        for key in ("", "   ", "IN", ">="):
            with self.subTest(key=key):
                with self.assertRaises(UsageError):
                    parse_condition_key(key)

    def test_null_operator_values(self) -> None:
        self.assertEqual(condition_from_item("email IS NULL", True).op, "IS NULL")
        self.assertEqual(condition_from_item("email IS NULL", False).op, "IS NOT NULL")
        self.assertEqual(condition_from_item("email IS NOT NULL", False).op, "IS NULL")
        self.assertEqual(condition_from_item("email IS NULL", None).op, "IS NULL")
        self.assertEqual(condition_from_item("email IS NOT NULL", None).op, "IS NOT NULL")
        self.assertEqual(condition_from_item("email IS NULL", 0).op, "IS NULL")
        self.assertTrue(condition_from_item("email IS NULL", True).is_unary)

    def test_set_operator_requires_sequence(self) -> None:
        self.assertEqual(condition_from_item("age IN", (1, 2)).values, [1, 2])
        with self.assertRaises(UsageError):
            condition_from_item("name IN", "Alice")
        with self.assertRaises(UsageError):
            C.in_("age", 5)  # type: ignore[arg-type]

    def test_mapping_keeps_insertion_order(self) -> None:
        conditions = conditions_from_mapping({"age >=": 35, "name IN": ["Bob"], "email": "b@x"})
        self.assertEqual([c.op for c in conditions], [">=", "IN", "="])
        with self.assertRaises(UsageError):
            conditions_from_mapping({1: "x"})  # type: ignore[dict-item]

    def test_example_record_uses_non_default_attributes(self) -> None:
        model = SchemaParser().parse(Customer)
        conditions = conditions_from_example(model, Customer(full_name="Ann", tier=Tier.PRO))

        self.assertEqual(
            conditions,
            [Condition(col="name", op="=", value="Ann"), Condition(col="tier", op="=", value=Tier.PRO)],
        )
        self.assertEqual(conditions_from_example(model, Customer()), [])

    def test_to_conditions_dispatch(self) -> None:
        model = SchemaParser().parse(Customer)

        self.assertEqual(to_conditions(model, None), [])
        self.assertEqual(to_conditions(model, C.eq("age", 1)), [C.eq("age", 1)])
        self.assertEqual(len(to_conditions(model, [C.eq("age", 1), C.gt("id", 2)])), 2)
        self.assertEqual(to_conditions(model, {"age >": 3}), [Condition(col="age", op=">", value=3)])
        with self.assertRaises(UsageError):
            to_conditions(model, "age > 3")
        with self.assertRaises(UsageError):
            to_conditions(model, [C.eq("age", 1), ("age", 2)])
        with self.assertRaises(UsageError):
            to_conditions(model, 42)


class QueryBuilderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.model = SchemaParser().parse(Customer)

    def test_compile_where_joins_with_and(self) -> None:
        fragment = compile_where(
            [C.ge("age", 35), C.like("full_name", "A%"), C.is_null("email")],
            self.model,
            SQLiteDialect(),
        )
        self.assertEqual(
            fragment.sql, ' WHERE "age" >= ? AND "name" LIKE ? AND "email" IS NULL'
        )
        self.assertEqual(fragment.params, [35, "A%"])

    def test_empty_conditions_produce_no_clause(self) -> None:
        fragment = compile_where([], self.model, SQLiteDialect())
        self.assertEqual(fragment.sql, "")
        self.assertEqual(fragment.params, [])

    def test_empty_in_and_not_in(self) -> None:
        d = SQLiteDialect()
        self.assertEqual(compile_where([C.in_("age", [])], self.model, d).sql, " WHERE 1 = 0")
        self.assertEqual(compile_where([C.not_in("age", [])], self.model, d).sql, " WHERE 1 = 1")

    def test_placeholder_numbering_runs_across_conditions(self) -> None:
        conditions = [C.in_("age", [1, 2, 3]), C.eq("name", "x")]

        numeric = compile_where(conditions, self.model, _NumericDialect(), start=2)
        self.assertEqual(numeric.sql, ' WHERE "age" IN (:2, :3, :4) AND "name" = :5')

        pg = compile_where(conditions, self.model, PostgresDialect())
        self.assertEqual(pg.sql, ' WHERE "age" IN (%s, %s, %s) AND "name" = %s')

        mysql = compile_where(conditions, self.model, MySQLDialect())
        self.assertEqual(mysql.sql, " WHERE `age` IN (%s, %s, %s) AND `name` = %s")
        self.assertEqual(mysql.params, [1, 2, 3, "x"])

    def test_enum_values_are_bound_by_value(self) -> None:
        fragment = compile_where([C.eq("tier", Tier.PRO)], self.model, SQLiteDialect())
        self.assertEqual(fragment.params, ["pro"])

    def test_unknown_column_and_operator(self) -> None:
        with self.assertRaisesRegex(UsageError, "unknown column 'nope'"):
            compile_where([C.eq("nope", 1)], self.model, SQLiteDialect())
        with self.assertRaisesRegex(UsageError, "unsupported filter operator"):
            compile_where([Condition(col="age", op="BETWEEN", value=1)], self.model, SQLiteDialect())

    def test_order_by(self) -> None:
        d = SQLiteDialect()
        self.assertEqual(compile_order_by(None, self.model, d), "")
        self.assertEqual(compile_order_by("age DESC", self.model, d), " ORDER BY age DESC")
        self.assertEqual(
            compile_order_by([OrderBy("age", desc=True), OrderBy("full_name")], self.model, d),
            ' ORDER BY "age" DESC, "name" ASC',
        )
        with self.assertRaises(UsageError):
            compile_order_by([OrderBy("missing")], self.model, d)

    def test_limit_and_offset(self) -> None:
        d = SQLiteDialect()

        self.assertEqual(
            append_limit_offset("SELECT", [1], limit=10, offset=5, dialect=d),
            ("SELECT LIMIT ? OFFSET ?", [1, 10, 5]),
        )
        self.assertEqual(append_limit_offset("SELECT", [], limit=None, offset=None, dialect=d), ("SELECT", []))
        self.assertEqual(append_limit_offset("SELECT", [], limit=0, offset=0, dialect=d), ("SELECT LIMIT ?", [0]))
        self.assertEqual(
            append_limit_offset("SELECT", [], limit=None, offset=3, dialect=d),
            ("SELECT LIMIT ? OFFSET ?", [UNBOUNDED_LIMIT, 3]),
        )
        self.assertEqual(
            append_limit_offset("SELECT", ["a"], limit=2, offset=None, dialect=_NumericDialect()),
            ("SELECT LIMIT :2", ["a", 2]),
        )
        with self.assertRaises(UsageError):
            append_limit_offset("SELECT", [], limit=-1, offset=None, dialect=d)
        with self.assertRaises(UsageError):
            append_limit_offset("SELECT", [], limit=1, offset=-1, dialect=d)


if __name__ == "__main__":
    unittest.main()
