import itertools
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from postgrest.exceptions import APIError

from ttrac.core import database

UNIQUE_KEYS = {
    "notifications": [("user_id", "source_event_id")],
    "quiz_question_grades": [("attempt_id", "question_id")],
    "enrollments": [("student_id", "course_id")],
}

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeResult:
    def __init__(self, data, count=None):
        self.data = data
        self.count = count


class FakeQuery:
    """Enough of the postgrest request builder for the code under test."""

    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.mode = "select"
        self.filters = []
        self.orders = []
        self._limit = None
        self._range = None
        self.single = False
        self.payload = None
        self.count = None
        self.on_conflict = ""
        self.ignore_duplicates = False

    # ---- verbs ----
    def select(self, columns="*", count=None):
        self.mode = "select"
        self.count = count
        return self

    def insert(self, rows):
        self.mode, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict="", ignore_duplicates=False):
        self.mode, self.payload = "upsert", rows
        self.on_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def update(self, values):
        self.mode, self.payload = "update", values
        return self

    def delete(self):
        self.mode = "delete"
        return self

    # ---- modifiers ----
    def eq(self, column, value):
        self.filters.append(lambda r: r.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda r: r.get(column) != value)
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda r: r.get(column) in values)
        return self

    def gte(self, column, value):
        self.filters.append(lambda r: r.get(column) is not None and r.get(column) >= value)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, n):
        self._limit = n
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def maybe_single(self):
        self.single = True
        return self

    # ---- execution ----
    def _matches(self, row):
        return all(f(row) for f in self.filters)

    def execute(self):
        self.db.calls.append((self.table, self.mode))
        if self.db.fail_tables.get(self.table):
            raise APIError({"message": "boom", "code": "500", "hint": None, "details": None})
        rows = self.db.tables.setdefault(self.table, [])
        handler = getattr(self, f"_execute_{self.mode}")
        return handler(rows)

    def _execute_select(self, rows):
        matched = [dict(r) for r in rows if self._matches(r)]
        for column, desc in reversed(self.orders):
            matched.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        total = len(matched)
        if self._range is not None:
            start, end = self._range
            matched = matched[start : end + 1]
        if self._limit is not None:
            matched = matched[: self._limit]
        if self.db.max_rows is not None:
            matched = matched[: self.db.max_rows]
        if self.single:
            return FakeResult(matched[0] if matched else None)
        return FakeResult(matched, count=total if self.count else None)

    def _prepare(self, row):
        row = dict(row)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", self.db.next_timestamp())
        return row

    def _conflict(self, rows, row, columns):
        for existing in rows:
            if all(existing.get(c) == row.get(c) for c in columns) and all(row.get(c) is not None for c in columns):
                return existing
        return None

    def _execute_insert(self, rows):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for raw in payload:
            row = self._prepare(raw)
            for columns in UNIQUE_KEYS.get(self.table, []):
                if self._conflict(rows, row, columns):
                    raise APIError({"message": "duplicate key value", "code": "23505", "hint": None, "details": None})
            rows.append(row)
            inserted.append(dict(row))
        return FakeResult(inserted)

    def _execute_upsert(self, rows):
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        columns = [c.strip() for c in self.on_conflict.split(",") if c.strip()] or ["id"]
        written = []
        for raw in payload:
            existing = self._conflict(rows, raw, columns)
            if existing is not None:
                if self.ignore_duplicates:
                    continue
                existing.update(raw)
                written.append(dict(existing))
            else:
                row = self._prepare(raw)
                rows.append(row)
                written.append(dict(row))
        return FakeResult(written)

    def _execute_update(self, rows):
        updated = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                updated.append(dict(row))
        return FakeResult(updated)

    def _execute_delete(self, rows):
        removed = [r for r in rows if self._matches(r)]
        self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
        return FakeResult([dict(r) for r in removed])


class FakeSupabase:
    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_tables: dict[str, bool] = {}
        # server-side cap on rows per response, like PostgREST max-rows
        self.max_rows: int | None = None
        self._clock = itertools.count(1)

    def table(self, name):
        return FakeQuery(self, name)

    def next_timestamp(self):
        return (BASE_TIME + timedelta(seconds=next(self._clock))).isoformat()

    def seed(self, table, *rows):
        for row in rows:
            self.tables.setdefault(table, []).append(dict(row))

    def rows(self, table, **where):
        return [r for r in self.tables.get(table, []) if all(r.get(k) == v for k, v in where.items())]


@pytest.fixture
def db(monkeypatch):
    fake = FakeSupabase()
    monkeypatch.setattr(database, "_supabase_client", fake)
    return fake


@pytest.fixture
def people(db):
    """A faculty member teaching one course, an approved student and a pending one."""
    db.seed(
        "profiles",
        {"id": "fac-1", "email": "faculty@ttrac.edu", "role": "faculty", "full_name": "Dr. Grace Hopper"},
        {"id": "stu-1", "email": "ada@ttrac.edu", "role": "student", "full_name": "Ada Lovelace"},
        {"id": "stu-2", "email": "alan@ttrac.edu", "role": "student", "full_name": "Alan Turing"},
        {"id": "adm-1", "email": "admin@ttrac.edu", "role": "admin", "full_name": "Registrar"},
    )
    db.seed("courses", {"id": "course-1", "title": "Computer Science 101", "instructor_id": "fac-1"})
    db.seed(
        "enrollments",
        {"id": "enr-1", "student_id": "stu-1", "course_id": "course-1", "status": "approved",
         "created_at": "2026-01-01T08:00:00+00:00", "updated_at": "2026-01-01T09:00:00+00:00"},
        {"id": "enr-2", "student_id": "stu-2", "course_id": "course-1", "status": "pending",
         "created_at": "2026-01-02T08:00:00+00:00", "updated_at": "2026-01-02T08:00:00+00:00"},
    )
    return db


def auth(email):
    return {"Authorization": f"Bearer mock-{email}"}


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from ttrac.main import app

    return TestClient(app)
