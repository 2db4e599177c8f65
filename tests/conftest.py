"""
Shared fixtures: an in-memory ride store that behaves like the Supabase
tables the roster reads and writes.

FakeDatabase holds the rows; FakeStore is one client's view of it. A store
built with ``user_id`` acts as that user and is subject to the same row
policies the real tables enforce:
  - rides: anyone reads, only the creator inserts or deletes (a delete by
    anyone else silently matches zero rows)
  - ride_participants: anyone reads, users upsert/delete only their own
    row, one row per (ride_id, user_id), rows cascade with their ride
A store built with ``user_id=None`` is the service role and bypasses them.

Failure injection: ``db.fail_next(op, error)`` makes the next call of
``op`` raise; ``db.hold(op)`` blocks every call of ``op`` until
``db.release(op)``. Subscriptions are the ops ``subscribe:<table>``.
"""

import asyncio
import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import pytest

from groupride.roster import ChangeEvent, Forbidden, NotFound, RequestIdentity, RosterSyncEngine

ALICE = "11111111-1111-1111-1111-111111111111"
BOB = "22222222-2222-2222-2222-222222222222"
CAROL = "33333333-3333-3333-3333-333333333333"


def hours_from_now(hours: float) -> str:
    return (datetime.now(timezone.utc) + timedelta(hours=hours)).isoformat()


class _Subscription:
    def __init__(self, db: "FakeDatabase", entry: tuple):
        self.db = db
        self.entry = entry

    async def unsubscribe(self) -> None:
        if self.entry in self.db.subscribers:
            self.db.subscribers.remove(self.entry)


class FakeDatabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            "rides": [],
            "ride_participants": [],
            "users": [],
            "groups": [],
        }
        self.subscribers: List[tuple] = []
        self.calls: List[str] = []
        self._failures: Dict[str, List[Exception]] = {}
        self._gates: Dict[str, asyncio.Event] = {}

    # Seeding helpers

    def add_user(self, user_id: str, full_name: str) -> Dict[str, Any]:
        row = {"id": user_id, "name": full_name.split()[0].lower(), "full_name": full_name, "avatar_url": None}
        self.tables["users"].append(row)
        return row

    def add_group(self, group_id: str, name: str) -> Dict[str, Any]:
        row = {"id": group_id, "name": name}
        self.tables["groups"].append(row)
        return row

    def add_ride(self, ride_id: str, created_by: str, hours: float = 24, **fields) -> Dict[str, Any]:
        row = {
            "id": ride_id,
            "title": fields.pop("title", f"Ride {ride_id}"),
            "start_location": fields.pop("start_location", "Town square"),
            "ride_time": hours_from_now(hours),
            "created_by": created_by,
            **fields,
        }
        self.tables["rides"].append(row)
        return row

    def add_participant(self, ride_id: str, user_id: str, status: Optional[str] = "accepted") -> Dict[str, Any]:
        row = {"ride_id": ride_id, "user_id": user_id}
        if status is not None:
            row["status"] = status
        self.tables["ride_participants"].append(row)
        return row

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables[table]

    # Failure injection

    def fail_next(self, op: str, error: Exception) -> None:
        self._failures.setdefault(op, []).append(error)

    def hold(self, op: str) -> None:
        self._gates[op] = asyncio.Event()

    def release(self, op: str) -> None:
        gate = self._gates.pop(op, None)
        if gate is not None:
            gate.set()

    async def enter(self, op: str) -> None:
        self.calls.append(op)
        gate = self._gates.get(op)
        if gate is not None:
            await gate.wait()
        pending = self._failures.get(op)
        if pending:
            raise pending.pop(0)

    def emit(self, table: str, event_type: str, record: Optional[dict] = None, old: Optional[dict] = None) -> None:
        payload = {"data": {"table": table, "type": event_type, "record": record, "old_record": old}}
        for sub_table, callback in list(self.subscribers):
            if sub_table == table:
                callback(ChangeEvent.from_payload(table, payload))


class FakeStore:
    def __init__(self, db: FakeDatabase, user_id: Optional[str] = None):
        self.db = db
        self.user_id = user_id

    @property
    def is_service(self) -> bool:
        return self.user_id is None

    def _user(self, user_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return next((copy.deepcopy(u) for u in self.db.rows("users") if u["id"] == user_id), None)

    def _group(self, group_id: Optional[str]) -> Optional[Dict[str, Any]]:
        return next(({"name": g["name"]} for g in self.db.rows("groups") if g["id"] == group_id), None)

    async def select(self, table, columns="*", filters=None, order=None):
        await self.db.enter("select")
        rows = [
            copy.deepcopy(row) for row in self.db.rows(table)
            if all(row.get(k) == v for k, v in (filters or {}).items())
        ]
        if table == "rides" and "creator:" in columns:
            for row in rows:
                row["creator"] = self._user(row.get("created_by"))
                row["groups"] = self._group(row.get("group_id"))
        if table == "ride_participants" and "users(" in columns:
            for row in rows:
                row["users"] = self._user(row.get("user_id"))
        if order:
            column, desc = order
            rows.sort(key=lambda r: r.get(column) or "", reverse=desc)
        return rows

    async def insert(self, table, row):
        await self.db.enter("insert")
        if table == "rides" and not self.is_service and row.get("created_by") != self.user_id:
            raise Forbidden("insert rides: new row violates row-level security policy")
        stored = copy.deepcopy(row)
        self.db.rows(table).append(stored)
        self.db.emit(table, "INSERT", record=stored)
        return copy.deepcopy(stored)

    async def upsert(self, table, row, on_conflict):
        await self.db.enter("upsert")
        if table == "ride_participants":
            if not self.is_service and row["user_id"] != self.user_id:
                raise Forbidden("upsert ride_participants: new row violates row-level security policy")
            if not any(r["id"] == row["ride_id"] for r in self.db.rows("rides")):
                raise NotFound("upsert ride_participants: referenced ride does not exist")
        keys = [k.strip() for k in on_conflict.split(",")]
        rows = self.db.rows(table)
        for existing in rows:
            if all(existing.get(k) == row.get(k) for k in keys):
                existing.update(copy.deepcopy(row))
                self.db.emit(table, "UPDATE", record=existing)
                return copy.deepcopy(existing)
        stored = copy.deepcopy(row)
        rows.append(stored)
        self.db.emit(table, "INSERT", record=stored)
        return copy.deepcopy(stored)

    def _deletable(self, table: str, row: Dict[str, Any]) -> bool:
        if self.is_service:
            return True
        owner = row.get("created_by") if table == "rides" else row.get("user_id")
        return owner == self.user_id

    async def delete(self, table, filters):
        await self.db.enter("delete")
        if not filters:
            raise ValueError("Refusing to delete without filters")
        rows = self.db.rows(table)
        deleted = [
            row for row in rows
            if all(row.get(k) == v for k, v in filters.items()) and self._deletable(table, row)
        ]
        self.db.tables[table] = [row for row in rows if row not in deleted]
        if table == "rides":
            ride_ids = {row["id"] for row in deleted}
            self.db.tables["ride_participants"] = [
                p for p in self.db.rows("ride_participants") if p["ride_id"] not in ride_ids
            ]
        for row in deleted:
            self.db.emit(table, "DELETE", old=row)
        return copy.deepcopy(deleted)

    async def subscribe(self, table: str, callback: Callable[[ChangeEvent], None], filter: Optional[str] = None):
        await self.db.enter(f"subscribe:{table}")
        entry = (table, callback)
        self.db.subscribers.append(entry)
        return _Subscription(self.db, entry)


@pytest.fixture
def db():
    database = FakeDatabase()
    database.add_user(ALICE, "Alice Smith")
    database.add_user(BOB, "Bob Jones")
    database.add_user(CAROL, "Carol White")
    return database


@pytest.fixture
def engine_for(db):
    """Build an engine acting as a user; engines built together share nothing unless asked."""

    def build(user_id: Optional[str], projection=None, **kwargs) -> RosterSyncEngine:
        kwargs.setdefault("fetch_timeout", 2.0)
        return RosterSyncEngine(FakeStore(db, user_id), RequestIdentity(user_id), projection, **kwargs)

    return build
