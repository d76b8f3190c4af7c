"""
Tabula DB Backend - MySQL / MariaDB through PyMySQL.

PyMySQL is an optional extra (``pip install tabula[mysql]``). This
module imports without it; ``connect`` raises ``ImportError`` instead.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, TYPE_CHECKING

from .base import DatabaseAdapter, AdapterCapabilities

if TYPE_CHECKING:
    from ...config import DatabaseProfile

__all__ = ["MySQLAdapter"]

try:
    import pymysql
    import pymysql.cursors
except ImportError:
    pymysql = None  # type: ignore


class MySQLAdapter(DatabaseAdapter):
    """Dict-cursor connection with autocommit on; ``?`` becomes ``%s``."""

    capabilities = AdapterCapabilities(name="mysql", placeholder="%s")

    def _open(self, profile: DatabaseProfile) -> Any:
        if pymysql is None:
            raise ImportError("The MySQL backend needs PyMySQL: pip install tabula[mysql]")
        settings: Dict[str, Any] = {
            "host": profile.host or "localhost",
            "port": profile.port or 3306,
            "user": profile.user,
            "password": profile.password,
            "database": profile.database,
            "charset": "utf8mb4",
            "cursorclass": pymysql.cursors.DictCursor,
            "autocommit": True,
            **profile.options,
        }
        return pymysql.connect(**settings)

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        cursor = self.connection.cursor()
        cursor.execute(self.adapt_sql(sql), tuple(params or ()))
        return cursor

    def begin(self) -> None:
        self.connection.begin()
        self._in_transaction = True

    def commit(self) -> None:
        self.connection.commit()
        self._in_transaction = False

    def rollback(self) -> None:
        self.connection.rollback()
        self._in_transaction = False
