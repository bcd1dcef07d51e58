import os
from typing import Any, Dict, List, Optional

import pytest

os.environ.setdefault("JWT_SECRET", "test_secret_key")

from src.models import Viewer, ViewerRole  # noqa: E402
from src.utils import InMemoryVisibilityStore, NotificationHandler  # noqa: E402


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Just enough of the postgrest builder for the notification queries."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.patch: Optional[Dict[str, Any]] = None
        self.predicates = []
        self.order_column: Optional[str] = None
        self.descending = False
        self.row_limit: Optional[int] = None
        self.row_id = None

    def select(self, *columns):
        self.action = "select"
        return self

    def update(self, patch):
        self.action = "update"
        self.patch = patch
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        if column == "id":
            self.row_id = value
        self.predicates.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.predicates.append(lambda row: row.get(column) in values)
        return self

    def or_(self, filters):
        patterns = []
        for clause in filters.split(","):
            column, _, pattern = clause.split(".", 2)
            patterns.append((column, pattern.replace("%", "").lower()))
        self.predicates.append(
            lambda row: any(p in str(row.get(c) or "").lower() for c, p in patterns)
        )
        return self

    def order(self, column, desc=False):
        self.order_column = column
        self.descending = desc
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row):
        return all(predicate(row) for predicate in self.predicates)

    async def execute(self):
        self.db.calls.append((self.action, self.table))
        failure = self.db.failures.get((self.action, self.table))
        if failure is not None:
            error, only_id = failure
            if only_id is None or only_id == self.row_id:
                raise error
        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "update":
            matched = [row for row in rows if self._matches(row)]
            for row in matched:
                row.update(self.patch)
            return FakeResponse(matched)
        if self.action == "delete":
            matched = [row for row in rows if self._matches(row)]
            self.db.tables[self.table] = [row for row in rows if not self._matches(row)]
            return FakeResponse(matched)
        result = [dict(row) for row in rows if self._matches(row)]
        if self.order_column:
            result.sort(key=lambda r: str(r.get(self.order_column) or ""), reverse=self.descending)
        if self.row_limit is not None:
            result = result[: self.row_limit]
        return FakeResponse(result)


class FakeSupabase:
    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.failures: Dict[tuple, tuple] = {}
        self.calls: List[tuple] = []

    def table(self, name):
        return FakeQuery(self, name)

    def seed(self, table, rows):
        self.tables.setdefault(table, []).extend(dict(r) for r in rows)
        return self

    def fail(self, table, action="select", error=None, row_id=None):
        self.failures[(action, table)] = (error or RuntimeError(f"{table} unavailable"), row_id)


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def store():
    return InMemoryVisibilityStore()


@pytest.fixture
def make_handler(store):
    def _make(supabase, **kwargs):
        return NotificationHandler(supabase, store, **kwargs)
    return _make


@pytest.fixture
def admin():
    return Viewer(id="admin-1", role=ViewerRole.ADMIN)


@pytest.fixture
def staff():
    return Viewer(id="staff-1", role=ViewerRole.ADMIN_STAFF)
