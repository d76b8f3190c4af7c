"""
Tabula faults - typed fault signals.

Every failure raised by tabula is a Fault: a structured exception with a
stable code, a domain, a severity and metadata.

Core exports:
- Fault: Base fault class
- FaultDomain: Domain enumeration
- Severity: Severity levels
- Domain faults for config, query construction and the record store
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
)

from .domains import (
    # Config
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
    ProfileNotFoundFault,
    DriverNotFoundFault,
    # Model
    ModelFault,
    QueryFault,
    DatabaseConnectionFault,
    UnknownOperationFault,
    RelationFault,
    RecordStateFault,
    ValidationFault,
    # Query
    QueryBuildFault,
    InvalidConditionFault,
)

__all__ = [
    # Core types
    "Fault",
    "FaultDomain",
    "Severity",
    # Config faults
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
    "ProfileNotFoundFault",
    "DriverNotFoundFault",
    # Model faults
    "ModelFault",
    "QueryFault",
    "DatabaseConnectionFault",
    "UnknownOperationFault",
    "RelationFault",
    "RecordStateFault",
    "ValidationFault",
    # Query faults
    "QueryBuildFault",
    "InvalidConditionFault",
]
