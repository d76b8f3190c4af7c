"""
Tabula faults - concrete fault families.

Each family pins its domain, each leaf pins its stable ``code``; the
constructors only take what is needed to phrase the message. Extra
``metadata=`` passed by a caller is merged after the fault's own keys.
"""

from typing import Any, Dict, List, Sequence

from .core import Fault, FaultDomain, Severity


# ============================================================================
# Configuration
# ============================================================================

class ConfigFault(Fault):
    """Settings or database profiles cannot be used as given."""

    domain = FaultDomain.CONFIG


class ConfigMissingFault(ConfigFault):
    code = "CONFIG_MISSING"

    def __init__(self, key: str, **kwargs):
        super().__init__(
            message=f"Required configuration key '{key}' is missing",
            metadata={"key": key, **kwargs.get("metadata", {})},
        )


class ConfigInvalidFault(ConfigFault):
    code = "CONFIG_INVALID"

    def __init__(self, key: str, reason: str, **kwargs):
        super().__init__(
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason, **kwargs.get("metadata", {})},
        )


class ProfileNotFoundFault(ConfigFault):
    """No database and no profile registered under the requested name."""

    code = "DB_PROFILE_NOT_FOUND"

    def __init__(self, name: str, **kwargs):
        super().__init__(
            message=f"Database profile '{name}' is not configured",
            metadata={"profile": name, **kwargs.get("metadata", {})},
        )


class DriverNotFoundFault(ConfigFault):
    code = "DB_DRIVER_NOT_FOUND"

    def __init__(self, driver: str, **kwargs):
        super().__init__(
            message=f"No database adapter for driver '{driver}'",
            metadata={"driver": driver, **kwargs.get("metadata", {})},
        )


# ============================================================================
# Records and the store
# ============================================================================

class ModelFault(Fault):
    """Records, relations and statement execution."""

    domain = FaultDomain.MODEL


class QueryFault(ModelFault):
    """
    The store rejected a statement.

    ``sql`` keeps the first 200 characters of the statement text and
    ``params`` the bound values, for log lines and ``Database.last_error``.
    """

    code = "QUERY_FAILED"

    def __init__(
        self,
        operation: str,
        reason: str,
        *,
        sql: str = "",
        params: Sequence[Any] = (),
        model: str = "<raw>",
        **kwargs,
    ):
        super().__init__(
            message=f"{operation} on '{model}' failed: {reason}",
            retryable=True,
            metadata={
                "model": model,
                "operation": operation,
                "reason": reason,
                "sql": sql[:200],
                "params": list(params),
                **kwargs.get("metadata", {}),
            },
        )

    @property
    def sql(self) -> str:
        return self.metadata.get("sql", "")

    @property
    def params(self) -> list:
        return self.metadata.get("params", [])


class DatabaseConnectionFault(ModelFault):
    code = "DB_CONNECTION_FAILED"

    def __init__(self, url: str, reason: str, **kwargs):
        super().__init__(
            message=f"Could not reach {url}: {reason}",
            severity=Severity.FATAL,
            retryable=True,
            metadata={"url": url, "reason": reason, **kwargs.get("metadata", {})},
        )


class UnknownOperationFault(ModelFault, AttributeError):
    """
    Attribute lookup for an operation that neither the database handle
    nor a record query provides. Subclasses ``AttributeError`` so that
    ``getattr(obj, name, default)`` and ``hasattr`` keep working.
    """

    code = "UNKNOWN_OPERATION"

    def __init__(self, owner: str, operation: str, **kwargs):
        super().__init__(
            message=f"'{owner}' has no operation '{operation}'",
            metadata={"owner": owner, "operation": operation, **kwargs.get("metadata", {})},
        )

    @property
    def operation(self) -> str:
        return self.metadata["operation"]


class RelationFault(ModelFault):
    code = "RELATION_FAULT"

    def __init__(self, model: str, relation: str, reason: str, **kwargs):
        super().__init__(
            message=f"{model}.{relation}: {reason}",
            metadata={"model": model, "relation": relation, "reason": reason, **kwargs.get("metadata", {})},
        )


class RecordStateFault(ModelFault):
    """The record has no unique key value yet."""

    code = "RECORD_NOT_PERSISTED"

    def __init__(self, model: str, operation: str, **kwargs):
        super().__init__(
            message=f"Cannot {operation} '{model}' without a unique key value",
            metadata={"model": model, "operation": operation, **kwargs.get("metadata", {})},
        )


class ValidationFault(ModelFault):
    """
    A record failed its field rules.

    ``errors`` maps each failing field to its messages.
    """

    code = "VALIDATION_FAILED"

    def __init__(self, model: str, errors: Dict[str, List[str]], **kwargs):
        self.errors = errors
        super().__init__(
            message=f"'{model}' failed validation on {', '.join(errors)}",
            severity=Severity.WARN,
            public=True,
            metadata={"model": model, "errors": errors, **kwargs.get("metadata", {})},
        )


# ============================================================================
# Query construction
# ============================================================================

class QueryBuildFault(ModelFault):
    """A builder call that cannot produce valid SQL."""

    code = "QUERY_BUILD_INVALID"
    domain = FaultDomain.QUERY

    def __init__(self, reason: str, **kwargs):
        super().__init__(
            message=reason,
            metadata={"reason": reason, **kwargs.get("metadata", {})},
        )


class InvalidConditionFault(QueryBuildFault, ValueError):
    """Condition arguments of an unsupported arity or shape."""

    code = "INVALID_ARGUMENT"

    def __init__(self, reason: str, args: Sequence[Any] = (), **kwargs):
        super().__init__(
            reason,
            metadata={"args": repr(tuple(args)), **kwargs.get("metadata", {})},
        )
