"""
Tabula faults - the fault value itself.

A fault is an exception that also reads as a record: a stable code, a
message, the domain it came from, how severe it is, whether retrying
can help, and whatever metadata the raiser attached (SQL text, bound
values, the offending configuration key).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar, Dict, Optional


class Severity(str, Enum):
    """How serious a fault is, from ``INFO`` up to ``FATAL``."""

    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    FATAL = "fatal"


class FaultDomain:
    """
    Functional area a fault belongs to.

    A domain compares equal to its name, so ``fault.domain == "query"``
    works. Domains registered through :meth:`register` also supply the
    default severity and retry flag for faults raised in them.
    """

    CONFIG: ClassVar["FaultDomain"]
    QUERY: ClassVar["FaultDomain"]
    MODEL: ClassVar["FaultDomain"]

    _registered: ClassVar[Dict[str, "FaultDomain"]] = {}

    __slots__ = ("name", "description", "severity", "retryable")

    def __init__(
        self,
        name: str,
        description: str = "",
        *,
        severity: Severity = Severity.ERROR,
        retryable: bool = False,
    ):
        self.name = name
        self.description = description
        self.severity = severity
        self.retryable = retryable

    @classmethod
    def register(cls, name: str, description: str, **defaults: Any) -> "FaultDomain":
        domain = cls(name, description, **defaults)
        cls._registered[name] = domain
        return domain

    @classmethod
    def lookup(cls, domain: "FaultDomain | str") -> "FaultDomain":
        """Registered domain with the same name, else *domain* itself."""
        key = domain.name if isinstance(domain, FaultDomain) else str(domain)
        if key in cls._registered:
            return cls._registered[key]
        return domain if isinstance(domain, FaultDomain) else cls(key)

    @property
    def value(self) -> str:
        return self.name

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<FaultDomain {self.name}>"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return other.name == self.name
        return isinstance(other, str) and other == self.name

    def __hash__(self) -> int:
        return hash(self.name)


FaultDomain.CONFIG = FaultDomain.register(
    "config", "settings and database profiles", severity=Severity.FATAL,
)
FaultDomain.QUERY = FaultDomain.register("query", "query construction")
FaultDomain.MODEL = FaultDomain.register("model", "records and the store")


class Fault(Exception):
    """
    Structured failure raised by tabula.

    ``code``, ``message`` and ``domain`` may be passed or declared on a
    subclass; the remaining attributes fall back to the domain's
    defaults::

        raise Fault(
            code="RECORD_NOT_PERSISTED",
            message="User has no unique key value",
            domain=FaultDomain.MODEL,
        )
    """

    code: Optional[str] = None
    message: Optional[str] = None
    domain: Optional[FaultDomain] = None

    def __init__(
        self,
        code: Optional[str] = None,
        message: Optional[str] = None,
        *,
        domain: Optional[FaultDomain] = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public: bool = False,
        metadata: Optional[Dict[str, Any]] = None,
    ):
        code = code or type(self).code
        message = message or type(self).message
        domain = domain or type(self).domain
        missing = [
            label
            for label, given in (("code", code), ("message", message), ("domain", domain))
            if given is None
        ]
        if missing:
            raise TypeError(f"{type(self).__name__} needs {', '.join(missing)}")

        super().__init__(message)
        resolved = FaultDomain.lookup(domain)
        self.code = code
        self.message = message
        self.domain = resolved
        self.severity = severity or resolved.severity
        self.retryable = resolved.retryable if retryable is None else retryable
        self.public = public
        self.metadata: Dict[str, Any] = dict(metadata or {})

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.code} {self.domain}/{self.severity.value}>"

    def to_dict(self) -> Dict[str, Any]:
        """Plain-data view, suitable for structured log records."""
        return {
            "code": self.code,
            "message": self.message,
            "domain": self.domain.name,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "public": self.public,
            "metadata": self.metadata,
        }
