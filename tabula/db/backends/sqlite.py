"""
Tabula DB Backend - SQLite through the standard library ``sqlite3``.

SQLite accepts the backtick identifiers and ``LIMIT offset, count``
the builder emits, so it doubles as the local and test backend. The
connection runs in autocommit mode; ``begin`` opens an explicit
transaction.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Optional, Sequence, TYPE_CHECKING

from .base import DatabaseAdapter, AdapterCapabilities

if TYPE_CHECKING:
    from ...config import DatabaseProfile

__all__ = ["SQLiteAdapter"]


class SQLiteAdapter(DatabaseAdapter):

    capabilities = AdapterCapabilities(name="sqlite")

    def _open(self, profile: DatabaseProfile) -> sqlite3.Connection:
        options = {"check_same_thread": False, **profile.options}
        connection = sqlite3.connect(
            profile.database or ":memory:", isolation_level=None, **options
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys=ON")
        return connection

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> sqlite3.Cursor:
        return self.connection.execute(sql, list(params or ()))

    def begin(self) -> None:
        self.connection.execute("BEGIN")
        self._in_transaction = True

    def commit(self) -> None:
        if self._in_transaction:
            self.connection.execute("COMMIT")
        self._in_transaction = False

    def rollback(self) -> None:
        if self._in_transaction:
            self.connection.execute("ROLLBACK")
        self._in_transaction = False
