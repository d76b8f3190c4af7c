"""
Tabula DB - database handles, backends and named profiles.

Usage:
    from tabula.db import configure_database, get_database

    configure_database("sqlite:///app.db")
    db = get_database()
    rows = db.select_all().from_("users").get_all()
"""

from .engine import (
    Database,
    create_adapter,
    setup_config,
    get_database,
    configure_database,
    set_database,
    get_all_databases,
    reset_databases,
)
from .backends import DatabaseAdapter, AdapterCapabilities, SQLiteAdapter, MySQLAdapter

__all__ = [
    "Database",
    "create_adapter",
    "setup_config",
    "get_database",
    "configure_database",
    "set_database",
    "get_all_databases",
    "reset_databases",
    "DatabaseAdapter",
    "AdapterCapabilities",
    "SQLiteAdapter",
    "MySQLAdapter",
]
