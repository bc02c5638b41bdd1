"""
Shared test fixtures
====================
An in-memory stand-in for the Supabase client. It supports the chained
query patterns the services use:

  - .select(cols, count="exact").eq(...).in_(...).gte(...).lte(...)
      .contains(...).overlaps(...).or_(...).order(...).range(...).limit(...).execute()
  - .insert(row | rows).execute()
  - .update(changes).eq(...).execute()
  - .delete().eq(...).execute()
  - embedded selects such as "*, users(first_name, last_name)"

``auth`` and ``storage`` are MagicMocks; ``auth.get_user`` resolves the
tokens registered through ``FakeSupabase.login``.

Run: pytest -v
"""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.services.analysis import AnalysisService

_ROUTER_MODULES = (
    "app.routers.auth",
    "app.routers.users",
    "app.routers.admin",
    "app.routers.doctors",
    "app.routers.emotions",
    "app.routers.streaks",
)

_EMBED_RE = re.compile(r"(\w+)\(([^)]*)\)")


def _comparable(value: Any) -> Any:
    if isinstance(value, str) and len(value) >= 10 and value[4:5] == "-":
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class FakeResult:
    def __init__(self, data: list[dict], count: Optional[int] = None) -> None:
        self.data = data
        self.count = count


class FakeQuery:

    def __init__(self, db: FakeSupabase, table: str) -> None:
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._count: Optional[str] = None
        self._payload: Any = None
        self._filters: list = []
        self._order: list[tuple[str, bool]] = []
        self._range: Optional[tuple[int, int]] = None
        self._limit: Optional[int] = None

    # --- operations ---

    def select(self, columns: str = "*", count: Optional[str] = None) -> FakeQuery:
        self._op, self._columns, self._count = "select", columns, count
        return self

    def insert(self, payload) -> FakeQuery:
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload: dict) -> FakeQuery:
        self._op, self._payload = "update", payload
        return self

    def delete(self) -> FakeQuery:
        self._op = "delete"
        return self

    # --- filters ---

    def _where(self, predicate) -> FakeQuery:
        self._filters.append(predicate)
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        return self._where(lambda r: r.get(column) == value)

    def neq(self, column: str, value: Any) -> FakeQuery:
        return self._where(lambda r: r.get(column) != value)

    def in_(self, column: str, values: list) -> FakeQuery:
        return self._where(lambda r: r.get(column) in values)

    def gte(self, column: str, value: Any) -> FakeQuery:
        return self._where(
            lambda r: r.get(column) is not None and _comparable(r[column]) >= _comparable(value)
        )

    def lte(self, column: str, value: Any) -> FakeQuery:
        return self._where(
            lambda r: r.get(column) is not None and _comparable(r[column]) <= _comparable(value)
        )

    def contains(self, column: str, values: list) -> FakeQuery:
        return self._where(lambda r: set(values) <= set(r.get(column) or []))

    def overlaps(self, column: str, values: list) -> FakeQuery:
        return self._where(lambda r: bool(set(values) & set(r.get(column) or [])))

    def or_(self, expression: str) -> FakeQuery:
        clauses = []
        for clause in expression.split(","):
            column, op, pattern = clause.split(".", 2)
            assert op == "ilike", f"unsupported or_ operator {op}"
            clauses.append((column, pattern.strip("%").lower()))
        return self._where(
            lambda r: any(term in str(r.get(col) or "").lower() for col, term in clauses)
        )

    # --- shaping ---

    def order(self, column: str, desc: bool = False) -> FakeQuery:
        self._order.append((column, desc))
        return self

    def range(self, start: int, end: int) -> FakeQuery:
        self._range = (start, end)
        return self

    def limit(self, n: int) -> FakeQuery:
        self._limit = n
        return self

    # --- execution ---

    def _matches(self, row: dict) -> bool:
        return all(predicate(row) for predicate in self._filters)

    def execute(self) -> FakeResult:
        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "insert":
            payload = self._payload if isinstance(self._payload, list) else [self._payload]
            now = datetime.now(timezone.utc).isoformat()
            inserted = []
            for item in payload:
                row = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now, **item}
                rows.append(row)
                inserted.append(dict(row))
            return FakeResult(inserted)

        matched = [r for r in rows if self._matches(r)]

        if self._op == "update":
            for row in matched:
                row.update(self._payload)
            return FakeResult([dict(r) for r in matched])

        if self._op == "delete":
            self._db.tables[self._table] = [r for r in rows if not self._matches(r)]
            return FakeResult([dict(r) for r in matched])

        result = [self._embed(dict(r)) for r in matched]
        for column, desc in reversed(self._order):
            result.sort(
                key=lambda r: (r.get(column) is None, _comparable(r.get(column))),
                reverse=desc,
            )
        total = len(result)
        if self._range:
            result = result[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            result = result[:self._limit]
        return FakeResult(result, total if self._count else None)

    def _embed(self, row: dict) -> dict:
        for table, columns in _EMBED_RE.findall(self._columns):
            key = row.get("user_id") or row.get("id")
            match = next((r for r in self._db.tables.get(table, []) if r.get("id") == key), None)
            wanted = [c.strip() for c in columns.split(",") if c.strip()]
            row[table] = {c: match.get(c) for c in wanted} if match else None
        return row


class FakeSupabase:
    """In-memory Supabase client: tables are lists of dicts."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {}
        self._tokens: dict[str, str] = {}
        self.auth = MagicMock()
        self.auth.get_user.side_effect = self._get_user
        self.storage = MagicMock()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def _get_user(self, token: str):
        if token not in self._tokens:
            raise Exception("Invalid token")
        response = MagicMock()
        response.user.id = self._tokens[token]
        return response

    def seed(self, table: str, *rows: dict) -> None:
        now = datetime.now(timezone.utc).isoformat()
        for row in rows:
            self.tables.setdefault(table, []).append(
                {"created_at": now, "updated_at": now, **row}
            )

    def add_user(self, role: str = "patient", **fields) -> dict:
        user_id = fields.pop("id", str(uuid.uuid4()))
        row = {
            "id": user_id,
            "email": f"{user_id[:8]}@example.com",
            "first_name": "Test",
            "last_name": "User",
            "avatar": None,
            "role": role,
            **fields,
        }
        self.seed("users", row)
        return row

    def login(self, user: dict) -> dict:
        token = f"token-{user['id']}"
        self._tokens[token] = user["id"]
        return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def db() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def auth_client() -> MagicMock:
    """The throwaway anon-key client used for password sign-in and refresh."""
    return MagicMock()


@pytest.fixture
def rule_based_analysis() -> AnalysisService:
    return AnalysisService(settings=Settings(anthropic_api_key="", enable_ai_analysis=False))


@pytest.fixture
def client(db, auth_client, rule_based_analysis, monkeypatch) -> TestClient:
    for module in _ROUTER_MODULES:
        monkeypatch.setattr(f"{module}.get_supabase_client", lambda: db)
    monkeypatch.setattr("app.routers.auth.create_auth_client", lambda: auth_client)
    monkeypatch.setattr("app.routers.users.create_auth_client", lambda: auth_client)
    monkeypatch.setattr("app.routers.emotions.get_analysis_service", lambda: rule_based_analysis)

    from app.main import app
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def patient(db) -> dict:
    return db.add_user("patient", first_name="Olena", last_name="Koval")


@pytest.fixture
def doctor(db) -> dict:
    user = db.add_user("doctor", first_name="Ivan", last_name="Petrenko")
    db.seed("doctors", {
        "id": user["id"],
        "specialization": ["psychology"],
        "license_number": "LIC-001",
        "years_of_experience": 7,
        "is_verified": True,
        "patients": [],
        "rating": 4.5,
        "total_consultations": 0,
    })
    return user


@pytest.fixture
def admin(db) -> dict:
    return db.add_user("admin", first_name="Ada", last_name="Admin")
