"""
Tabula - fluent SQL building and Active-Record persistence

Complete integration of:
- Query builder: parameterized SELECT/INSERT/UPDATE/DELETE composition
- Database: backend adapters (SQLite, MySQL) with named profiles
- Records: declared fields, dirty tracking, events, soft delete
- Relations: HasOne/HasMany with cached and eager loading
- Faults: Structured error handling with fault domains
"""

__version__ = "0.1.0"

# ============================================================================
# Configuration
# ============================================================================

from .config import ConfigLoader, DatabaseProfile, ConfigError

# ============================================================================
# Database
# ============================================================================

from .db import (
    Database,
    setup_config,
    get_database,
    configure_database,
    set_database,
    reset_databases,
)

# ============================================================================
# Records
# ============================================================================

from .models import (
    Record,
    Field,
    QueryBuilder,
    RecordQuery,
    has_one,
    has_many,
    Event,
    EventHandler,
    HardDelete,
    SoftDelete,
)

# ============================================================================
# Faults
# ============================================================================

from .faults import (
    Fault,
    FaultDomain,
    Severity,
    QueryFault,
    QueryBuildFault,
    InvalidConditionFault,
    UnknownOperationFault,
    RelationFault,
)

__all__ = [
    "__version__",
    # Config
    "ConfigLoader",
    "DatabaseProfile",
    "ConfigError",
    # Database
    "Database",
    "setup_config",
    "get_database",
    "configure_database",
    "set_database",
    "reset_databases",
    # Records
    "Record",
    "Field",
    "QueryBuilder",
    "RecordQuery",
    "has_one",
    "has_many",
    "Event",
    "EventHandler",
    "HardDelete",
    "SoftDelete",
    # Faults
    "Fault",
    "FaultDomain",
    "Severity",
    "QueryFault",
    "QueryBuildFault",
    "InvalidConditionFault",
    "UnknownOperationFault",
    "RelationFault",
]
