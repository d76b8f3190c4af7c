"""
Tabula Database Engine - synchronous, multi-backend execution façade.

Provides:
- Database: composes one backend adapter and one ``QueryBuilder``
- Builder delegation through an explicit, fixed set of operations
- Fault wrapping (``QueryFault`` / ``DatabaseConnectionFault``)
- Named profile registry with a process-wide default

Two ways to run SQL:

- ``execute()`` runs the composed builder statement and returns a bool;
  store failures are logged, kept in ``last_error`` and the builder is
  reset.
- ``run_query()`` / ``query()`` run raw SQL and raise faults.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..config import ConfigLoader, DatabaseProfile
from ..faults.domains import (
    DatabaseConnectionFault,
    DriverNotFoundFault,
    ProfileNotFoundFault,
    QueryFault,
    UnknownOperationFault,
)
from ..models.sql_builder import QueryBuilder
from .backends.base import DatabaseAdapter, AdapterCapabilities

logger = logging.getLogger("tabula.db")


def create_adapter(driver: str) -> DatabaseAdapter:
    """Factory - instantiate the correct backend adapter."""
    driver = driver.lower().split("/")[-1]
    if driver in ("sqlite", "sqlite3"):
        from .backends.sqlite import SQLiteAdapter
        return SQLiteAdapter()
    elif driver in ("mysql", "mariadb", "pymysql"):
        from .backends.mysql import MySQLAdapter
        return MySQLAdapter()
    else:
        raise DriverNotFoundFault(driver)


# Builder operations reachable through a Database; each returns the Database.
BUILDER_OPERATIONS = (
    "select",
    "select_as",
    "select_with",
    "select_all",
    "from_",
    "insert",
    "update",
    "delete",
    "where",
    "or_where",
    "add_where",
    "where_group",
    "and_where_group",
    "or_where_group",
    "where_in",
    "append_where",
    "inner_join",
    "left_join",
    "right_join",
    "cross_join",
    "on",
    "using",
    "group_by",
    "having",
    "order_by",
    "limit",
    "set_query",
    "append_bind_values",
    "set_bind_values",
)


class Database:
    """
    Synchronous database handle.

    Usage:
        db = Database("sqlite:///app.db")
        ok = db.insert("users", {"name": "Ann"}).execute()
        user_id = db.insert_id()

        row = db.select_all().from_("users").where("id", "=", user_id).get_one()
        rows = db.query("SELECT * FROM `users` WHERE `age` > ?", [18])
    """

    __slots__ = (
        "_profile",
        "_adapter",
        "_builder",
        "_connected",
        "_cursor",
        "_last_error",
        "_executed_query",
        "_executed_params",
        "_in_transaction",
    )

    def __init__(
        self,
        profile: Union[DatabaseProfile, str] = "sqlite:///:memory:",
        *,
        adapter: Optional[DatabaseAdapter] = None,
        builder: Optional[QueryBuilder] = None,
    ):
        if isinstance(profile, str):
            profile = DatabaseProfile.from_url(profile)
        self._profile = profile
        self._adapter: DatabaseAdapter = adapter or create_adapter(profile.driver)
        self._builder = builder or QueryBuilder()
        self._connected = False
        self._cursor: Any = None
        self._last_error: Optional[Exception] = None
        self._executed_query = ""
        self._executed_params: List[Any] = []
        self._in_transaction = False

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        raise UnknownOperationFault(type(self).__name__, name)

    def __repr__(self) -> str:
        return f"<Database {self._profile.display_url}>"

    # ── Connection management ────────────────────────────────────────

    def connect(self) -> Database:
        """Open the adapter connection."""
        if self._connected:
            return self
        try:
            self._adapter.connect(self._profile)
        except (DatabaseConnectionFault, ImportError):
            raise
        except Exception as exc:
            raise DatabaseConnectionFault(
                url=self._profile.display_url,
                reason=str(exc),
            ) from exc
        self._connected = True
        logger.info(f"Database connected ({self._profile.driver})")
        return self

    def ensure_connected(self) -> None:
        if not self._connected or not self._adapter.is_connected:
            self._connected = False
            self.connect()

    def close(self) -> None:
        """Close database connection."""
        if not self._connected:
            return
        try:
            self._adapter.disconnect()
        except Exception as exc:
            raise DatabaseConnectionFault(
                url=self._profile.display_url,
                reason=f"Disconnect failed: {exc}",
            ) from exc
        finally:
            self._connected = False
            self._cursor = None
        logger.info("Database disconnected")

    # ── Builder composition ──────────────────────────────────────────

    @property
    def builder(self) -> QueryBuilder:
        return self._builder

    def set_builder(self, builder: QueryBuilder) -> Database:
        """Execute ``builder``'s statement on the next ``execute``."""
        self._builder = builder
        return self

    def reset(self) -> Database:
        self._builder.reset()
        return self

    def get_query(self) -> str:
        return self._builder.get_query()

    def get_sql(self) -> str:
        return self._builder.get_sql()

    def get_bind_values(self) -> List[Any]:
        return self._builder.get_bind_values()

    def get_where(self) -> str:
        return self._builder.get_where()

    # ── Raw execution (raises) ───────────────────────────────────────

    def run_query(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """
        Execute raw SQL.

        Returns:
            The adapter cursor (also kept for ``fetch`` and ``insert_id``)

        Raises:
            DatabaseConnectionFault: When the connection cannot be opened
            QueryFault: When statement execution fails
        """
        self.ensure_connected()
        params = list(params or [])
        self._executed_query = sql
        self._executed_params = params
        logger.debug(f"SQL: {sql} | params={params}")
        try:
            self._cursor = self._adapter.execute(sql, params)
        except (DatabaseConnectionFault, QueryFault):
            raise
        except Exception as exc:
            self._cursor = None
            raise QueryFault(
                operation="execute",
                reason=str(exc),
                sql=sql,
                params=params,
            ) from exc
        return self._cursor

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Execute raw SQL and return every row as a dict."""
        self.run_query(sql, params)
        return self.fetch_all()

    # ── Builder execution (returns bool) ─────────────────────────────

    def _execute_quietly(self, sql: str, params: Sequence[Any]) -> bool:
        try:
            self.run_query(sql, params)
        except (DatabaseConnectionFault, QueryFault) as fault:
            self._last_error = fault
            logger.warning(f"Statement failed [{fault.code}]: {fault.message} | sql={sql}")
            return False
        self._last_error = None
        return True

    def execute(self) -> bool:
        """
        Run the composed builder statement.

        The builder is reset afterwards whether or not the statement
        succeeded. On failure the fault is available as ``last_error``.
        """
        sql, params = self._builder.build()
        try:
            return self._execute_quietly(sql, params)
        finally:
            self._builder.reset()

    def fetch(self) -> Optional[Dict[str, Any]]:
        """Next row of the last executed statement, or None."""
        if self._cursor is None:
            return None
        try:
            return self._adapter.fetch_next(self._cursor)
        except Exception as exc:
            raise QueryFault(
                operation="fetch",
                reason=str(exc),
                sql=self._executed_query,
                params=self._executed_params,
            ) from exc

    def fetch_all(self) -> List[Dict[str, Any]]:
        return list(iter(self.fetch, None))

    def get_one(self) -> Optional[Dict[str, Any]]:
        """Run the builder statement with ``LIMIT 1`` (keeping any offset) and return its row."""
        self._builder.limit(1, self._builder.offset)
        if not self.execute():
            return None
        return self.fetch()

    def get_all(self) -> List[Dict[str, Any]]:
        if not self.execute():
            return []
        return self.fetch_all()

    def insert_id(self) -> Any:
        """Identifier generated by the last INSERT."""
        if self._cursor is None:
            return None
        return self._adapter.last_insert_id(self._cursor)

    def set_variable(self, name: str, value: Any) -> bool:
        """Run ``SET name = value`` (session variables, MySQL)."""
        return self._execute_quietly(f"SET {name} = {value}", [])

    # ── Transactions ─────────────────────────────────────────────────

    def begin(self) -> None:
        self.ensure_connected()
        self._adapter.begin()
        self._in_transaction = True

    def commit(self) -> None:
        self._adapter.commit()
        self._in_transaction = False

    def rollback(self) -> None:
        self._adapter.rollback()
        self._in_transaction = False

    @contextmanager
    def transaction(self) -> Iterator[Database]:
        """
        Context manager for transactions.

        Usage:
            with db.transaction():
                db.insert("users", {"name": "Ann"}).execute()
                db.update("teams", {"size": 3}, {"id": 1}).execute()
        """
        self.begin()
        try:
            yield self
            self.commit()
        except Exception:
            self.rollback()
            raise

    # ── Properties ───────────────────────────────────────────────────

    @property
    def executed_query(self) -> str:
        return self._executed_query

    @property
    def executed_params(self) -> List[Any]:
        return list(self._executed_params)

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    @property
    def profile(self) -> DatabaseProfile:
        return self._profile

    @property
    def adapter(self) -> DatabaseAdapter:
        """Direct access to the underlying adapter (advanced use)."""
        return self._adapter

    @property
    def capabilities(self) -> AdapterCapabilities:
        return self._adapter.capabilities

    @property
    def dialect(self) -> str:
        return self._adapter.dialect

    @property
    def is_connected(self) -> bool:
        return self._connected and self._adapter.is_connected

    @property
    def in_transaction(self) -> bool:
        return self._in_transaction


def _delegate(name: str):
    def operation(self: Database, *args: Any, **kwargs: Any) -> Database:
        getattr(self._builder, name)(*args, **kwargs)
        return self

    operation.__name__ = name
    operation.__qualname__ = f"Database.{name}"
    operation.__doc__ = getattr(QueryBuilder, name).__doc__
    return operation


for _name in BUILDER_OPERATIONS:
    setattr(Database, _name, _delegate(_name))
del _name


# ── Named profiles ──────────────────────────────────────────────────────────

_profiles: Dict[str, DatabaseProfile] = {}
_database_registry: Dict[str, Database] = {}


def setup_config(
    profiles: Union[ConfigLoader, Mapping[str, Union[DatabaseProfile, Mapping[str, Any], str]]],
) -> None:
    """
    Register named connection profiles.

    Accepts a ``ConfigLoader`` (its ``databases`` section) or a mapping
    of name to profile, settings mapping or URL. Without a ``default``
    entry the first profile becomes the default.
    """
    if isinstance(profiles, ConfigLoader):
        profiles = profiles.database_profiles()
    for name, entry in profiles.items():
        if isinstance(entry, DatabaseProfile):
            _profiles[name] = entry
        elif isinstance(entry, str):
            _profiles[name] = DatabaseProfile.from_url(entry)
        else:
            _profiles[name] = DatabaseProfile.from_mapping(entry, name=name)
    if "default" not in _profiles and _profiles:
        _profiles["default"] = next(iter(_profiles.values()))


def get_database(name: Optional[str] = None) -> Database:
    """
    Get a database by profile name, or the default.

    The handle is created and connected on first request and cached.

    Raises:
        ProfileNotFoundFault: If no database or profile has that name.
        DatabaseConnectionFault: If the connection cannot be opened.
    """
    name = name or "default"
    db = _database_registry.get(name)
    if db is not None:
        return db
    profile = _profiles.get(name)
    if profile is None:
        raise ProfileNotFoundFault(
            name,
            metadata={"available": sorted(set(_profiles) | set(_database_registry))},
        )
    db = Database(profile)
    db.connect()
    _database_registry[name] = db
    return db


def configure_database(
    profile: Union[DatabaseProfile, str] = "sqlite:///:memory:",
    *,
    alias: str = "default",
    adapter: Optional[DatabaseAdapter] = None,
) -> Database:
    """Create a database for ``profile`` and register it under ``alias``."""
    db = Database(profile, adapter=adapter)
    _profiles[alias] = db.profile
    _database_registry[alias] = db
    return db


def set_database(db: Database, *, alias: str = "default") -> None:
    """Register an externally-created database as the default or by alias."""
    _database_registry[alias] = db


def get_all_databases() -> Dict[str, Database]:
    """Return all instantiated database handles."""
    return dict(_database_registry)


def reset_databases() -> None:
    """Close every registered database and forget all profiles."""
    for db in _database_registry.values():
        try:
            db.close()
        except DatabaseConnectionFault as fault:
            logger.warning(f"Closing database failed: {fault}")
    _database_registry.clear()
    _profiles.clear()
