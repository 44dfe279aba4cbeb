from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from tagorm import C, ExecutionError, OrderBy, RecordNotFoundError, UsageError, column


class ServerTicketStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class ServerUser:
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    name: str = column("size:100;not null;index", default="")
    email: Optional[str] = column("size:190;unique", default=None)
    age: int = 0
    active: bool = True
    created_at: Optional[datetime] = None


@dataclass
class ServerTicket:
    id: Optional[int] = column("primaryKey;autoIncrement", default=None)
    status: ServerTicketStatus = column("size:20", default=ServerTicketStatus.OPEN)
    ref: Optional[uuid.UUID] = None
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass
class ServerMembership:
    group_id: int = column("primaryKey", default=0)
    user_id: int = column("primaryKey", default=0)
    role: str = column("size:40", default="")


SERVER_RECORDS = (ServerUser, ServerTicket, ServerMembership)


class EngineScenariosMixin:
    """Engine behavior shared by every server-backed dialect test case."""

    engine: Any

    def _seed(self) -> None:
        for name, email, age in (
            ("Alice", "alice@example.com", 30),
            ("Bob", "bob@example.com", 35),
            ("Carol", "carol@example.com", 40),
            ("David", None, 45),
        ):
            self.engine.create(ServerUser(name=name, email=email, age=age))

    def test_create_and_find(self) -> None:
        user = ServerUser(name="Alice", email="alice@example.com", age=30)
        result = self.engine.create(user)

        self.assertEqual(result.rows_affected, 1)
        self.assertIsNotNone(user.id)
        self.assertEqual(result.last_insert_id, user.id)
        self.assertIsInstance(user.created_at, datetime)

        loaded = self.engine.find_by_id(ServerUser, user.id)
        self.assertEqual((loaded.name, loaded.email, loaded.age), ("Alice", "alice@example.com", 30))
        self.assertIs(loaded.active, True)

        with self.assertRaises(RecordNotFoundError):
            self.engine.find_by_id(ServerUser, user.id + 1000)

    def test_operator_filters(self) -> None:
        self._seed()

        def names(rows: list[ServerUser]) -> list[str]:
            return [row.name for row in rows]

        self.assertEqual(
            names(self.engine.find(ServerUser, {"age >=": 35}, order=[OrderBy("age")])),
            ["Bob", "Carol", "David"],
        )
        self.assertEqual(
            names(self.engine.find(ServerUser, {"name IN": ["Alice", "Carol"]}, order=[OrderBy("id")])),
            ["Alice", "Carol"],
        )
        self.assertEqual(names(self.engine.find(ServerUser, {"email IS NULL": True})), ["David"])
        self.assertEqual(self.engine.find(ServerUser, [C.in_("name", [])]), [])
        self.assertEqual(len(self.engine.find(ServerUser, [C.not_in("name", [])])), 4)
        self.assertEqual(
            names(self.engine.find(ServerUser, order=[OrderBy("age", desc=True)], limit=2, offset=1)),
            ["Carol", "Bob"],
        )
        self.assertEqual(self.engine.count(ServerUser, {"age >": 30}), 3)
        self.assertEqual(
            self.engine.find_first(ServerUser, ServerUser(name="Bob")).email, "bob@example.com"
        )

    def test_updates_and_delete(self) -> None:
        user = ServerUser(name="Eve", email="eve@example.com", age=20)
        self.engine.create(user)

        result = self.engine.updates(user, {"age": 21, "name": "Eve B"})
        self.assertEqual(result.rows_affected, 1)
        self.assertEqual(self.engine.find_by_id(ServerUser, user.id).name, "Eve B")

        with self.assertRaises(UsageError):
            self.engine.updates(ServerUser(), {"age": 1})

        self.assertEqual(self.engine.delete(user).rows_affected, 1)
        self.assertEqual(self.engine.count(ServerUser), 0)

    def test_codec_round_trip(self) -> None:
        ref = uuid.uuid4()
        ticket = ServerTicket(status=ServerTicketStatus.CLOSED, ref=ref, payload={"p": [1, "x"]})
        self.engine.create(ticket)

        loaded = self.engine.find_by_id(ServerTicket, ticket.id)
        self.assertIs(loaded.status, ServerTicketStatus.CLOSED)
        self.assertEqual(loaded.ref, ref)
        self.assertEqual(loaded.payload, {"p": [1, "x"]})

    def test_composite_key(self) -> None:
        member = ServerMembership(group_id=1, user_id=2, role="admin")
        self.engine.create(member)

        self.assertEqual(self.engine.updates(member, {"role": "owner"}).rows_affected, 1)
        self.assertEqual(self.engine.find_first(ServerMembership, {"user_id": 2}).role, "owner")
        self.assertEqual(self.engine.delete(member).rows_affected, 1)

    def test_transaction_rollback_and_commit(self) -> None:
        with self.assertRaises(RuntimeError):
            with self.engine.transaction() as tx:
                tx.create(ServerUser(name="Ghost", age=1))
                raise RuntimeError("abort")
        self.assertEqual(self.engine.count(ServerUser), 0)

        with self.engine.transaction() as tx:
            tx.create(ServerUser(name="Kept", age=1))
        self.assertEqual(self.engine.count(ServerUser), 1)

    def test_auto_migrate_twice(self) -> None:
        self.engine.auto_migrate(*SERVER_RECORDS)
        self.engine.auto_migrate(*SERVER_RECORDS)
        self.assertEqual(self.engine.count(ServerTicket), 0)

    def _reset_tables(self) -> None:
        with self.engine.transaction() as tx:
            for record in SERVER_RECORDS:
                table = self.engine.model(record).table
                tx.exec_raw(f"DROP TABLE IF EXISTS {tx.dialect.q(table)}")
        self.engine.auto_migrate(*SERVER_RECORDS)

    def test_read_only_transaction_rejects_writes(self) -> None:
        with self.assertRaises(ExecutionError):
            with self.engine.transaction(read_only=True) as tx:
                tx.create(ServerUser(name="Nope", age=1))
        self.assertEqual(self.engine.count(ServerUser), 0)
