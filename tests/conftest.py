"""
Shared test fixtures and helpers for the Tabula test suite.
"""

import pytest
from typing import Any, Dict, List, Optional, Sequence

from tabula.config import DatabaseProfile
from tabula.db.backends.base import AdapterCapabilities, DatabaseAdapter
from tabula.db.engine import Database, reset_databases, set_database


# ============================================================================
# Recording adapter
# ============================================================================


class RecordingCursor:
    """DB-API-like cursor over canned dict rows."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, lastrowid: Any = None):
        self._rows = list(rows or [])
        self.lastrowid = lastrowid
        self.description = None

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class RecordingConnection:

    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class RecordingAdapter(DatabaseAdapter):
    """
    In-memory adapter that records every statement.

    SELECT statements consume ``responses`` in order; any statement
    containing a ``fail_on`` fragment raises like a driver would.
    """

    capabilities = AdapterCapabilities(name="recording")

    def __init__(self):
        self.statements: List[tuple] = []
        self.responses: List[List[Dict[str, Any]]] = []
        self.fail_on: Optional[str] = None
        self.next_id = 1
        self.profile: Optional[DatabaseProfile] = None
        super().__init__()

    def respond(self, *rows: Dict[str, Any]) -> "RecordingAdapter":
        self.responses.append([dict(r) for r in rows])
        return self

    def _open(self, profile: DatabaseProfile) -> "RecordingConnection":
        self.profile = profile
        return RecordingConnection()

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        params = list(params or [])
        self.statements.append((sql, params))
        if self.fail_on and self.fail_on in sql:
            raise RuntimeError(f"constraint failed near {self.fail_on!r}")
        if sql.startswith("SELECT"):
            rows = self.responses.pop(0) if self.responses else []
            return RecordingCursor(rows)
        if sql.startswith("INSERT"):
            cursor = RecordingCursor(lastrowid=self.next_id)
            self.next_id += 1
            return cursor
        return RecordingCursor()

    def begin(self) -> None:
        self.statements.append(("BEGIN", []))

    def commit(self) -> None:
        self.statements.append(("COMMIT", []))

    def rollback(self) -> None:
        self.statements.append(("ROLLBACK", []))

    @property
    def sql(self) -> List[str]:
        return [sql for sql, _ in self.statements]


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _isolated_databases():
    """Every test starts without registered database handles."""
    reset_databases()
    yield
    reset_databases()


@pytest.fixture
def adapter() -> RecordingAdapter:
    return RecordingAdapter()


@pytest.fixture
def fake_db(adapter) -> Database:
    """Recording database registered as the process default."""
    db = Database("sqlite:///:memory:", adapter=adapter)
    db.connect()
    set_database(db)
    return db


@pytest.fixture
def sqlite_db() -> Database:
    """Real in-memory SQLite database registered as the process default."""
    db = Database("sqlite:///:memory:")
    db.connect()
    set_database(db)
    yield db
    db.close()
