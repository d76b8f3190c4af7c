"""
Tabula DB Backend - adapter contract.

An adapter owns one DB-API connection. It opens it from a
``DatabaseProfile``, runs qmark (``?``) SQL through it, and hands back
the raw cursor; ``Database`` reads rows off that cursor one at a time
through ``fetch_next``. Driver exceptions are not translated here.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from ...config import DatabaseProfile

__all__ = [
    "DatabaseAdapter",
    "AdapterCapabilities",
]


@dataclass(frozen=True)
class AdapterCapabilities:
    name: str = "base"
    placeholder: str = "?"
    savepoints: bool = True


class DatabaseAdapter(ABC):
    """
    One connection, one dialect.

    Subclasses provide ``_open`` and the statement/transaction
    primitives; connection bookkeeping lives here.
    """

    capabilities: ClassVar[AdapterCapabilities] = AdapterCapabilities()

    def __init__(self) -> None:
        self._connection: Any = None
        self._in_transaction = False

    # ── Connection ───────────────────────────────────────────────────

    @abstractmethod
    def _open(self, profile: DatabaseProfile) -> Any:
        """Return a live DB-API connection for *profile*."""

    def connect(self, profile: DatabaseProfile) -> None:
        if self._connection is not None:
            return
        self._connection = self._open(profile)
        self.logger.info(f"{self.dialect} adapter connected to {profile.display_url}")

    def disconnect(self) -> None:
        connection, self._connection = self._connection, None
        self._in_transaction = False
        if connection is not None:
            connection.close()
            self.logger.info(f"{self.dialect} adapter disconnected")

    @property
    def logger(self) -> logging.Logger:
        return logging.getLogger(type(self).__module__)

    @property
    def connection(self) -> Any:
        if self._connection is None:
            raise RuntimeError(f"{self.dialect} adapter is not connected")
        return self._connection

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction

    @property
    def dialect(self) -> str:
        return self.capabilities.name

    # ── Statements ───────────────────────────────────────────────────

    @abstractmethod
    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Run *sql* with *params* bound; return the driver cursor."""

    def adapt_sql(self, sql: str) -> str:
        """Rewrite qmark placeholders into ``capabilities.placeholder``."""
        if self.capabilities.placeholder == "?":
            return sql
        return sql.replace("%", "%%").replace("?", self.capabilities.placeholder)

    def last_insert_id(self, cursor: Any) -> Optional[int]:
        return getattr(cursor, "lastrowid", None)

    def fetch_next(self, cursor: Any) -> Optional[Dict[str, Any]]:
        """Next row of *cursor* as a column-keyed dict; None when drained."""
        row = cursor.fetchone()
        if row is None:
            return None
        converted = self.rows_from_cursor(cursor, [row])
        return converted[0] if converted else None

    @staticmethod
    def rows_from_cursor(cursor: Any, rows: Sequence[Any]) -> List[Dict[str, Any]]:
        if not rows:
            return []
        if hasattr(rows[0], "keys"):
            return [dict(row) for row in rows]
        if not cursor.description:
            return []
        columns = [column[0] for column in cursor.description]
        return [dict(zip(columns, row)) for row in rows]

    # ── Transactions ─────────────────────────────────────────────────

    @abstractmethod
    def begin(self) -> None:
        ...

    @abstractmethod
    def commit(self) -> None:
        ...

    @abstractmethod
    def rollback(self) -> None:
        ...
