"""
Tabula record events - lifecycle hooks.

A record holds at most one handler per event. A handler is one of a
closed set of variants:

- ``NoHandler``      nothing registered
- ``ClosureHandler`` wraps a plain callable ``fn(record)``
- ``ObjectHandler``  wraps an ``EventHandler`` instance (``handle(record)``)

``as_handler`` turns whatever the caller registered into one of these,
and ``dispatch`` is the single place a handler is invoked.

Usage:
    class AuditTrail(EventHandler):
        def handle(self, record):
            log.append(record.to_dict())

    class User(Record):
        class Meta:
            trigger_events = True
            events = {Event.AFTER_INSERT: AuditTrail()}
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, TYPE_CHECKING, Union

if TYPE_CHECKING:
    from .base import Record

__all__ = [
    "Event",
    "EventHandler",
    "NoHandler",
    "ClosureHandler",
    "ObjectHandler",
    "Handler",
    "as_handler",
    "dispatch",
]


class Event(str, Enum):
    BEFORE_SAVE = "before_save"
    AFTER_SAVE = "after_save"
    BEFORE_INSERT = "before_insert"
    AFTER_INSERT = "after_insert"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    BEFORE_LOAD = "before_load"
    AFTER_LOAD = "after_load"


class EventHandler(ABC):
    """Delegate object receiving a record lifecycle event."""

    @abstractmethod
    def handle(self, record: Record) -> None:
        ...


@dataclass(frozen=True)
class NoHandler:
    pass


@dataclass(frozen=True)
class ClosureHandler:
    fn: Callable[[Any], Any]


@dataclass(frozen=True)
class ObjectHandler:
    target: EventHandler


Handler = Union[NoHandler, ClosureHandler, ObjectHandler]


def as_handler(value: Any) -> Handler:
    """
    Normalize a registration value into a handler variant.

    Raises:
        TypeError: value is neither None, a handler variant, an
            ``EventHandler`` nor a callable
    """
    if value is None:
        return NoHandler()
    if isinstance(value, (NoHandler, ClosureHandler, ObjectHandler)):
        return value
    if isinstance(value, EventHandler):
        return ObjectHandler(value)
    if callable(value):
        return ClosureHandler(value)
    raise TypeError(
        f"Event handler must be a callable or an EventHandler, got {type(value).__name__}"
    )


def dispatch(handler: Handler, record: Record) -> None:
    if isinstance(handler, ClosureHandler):
        handler.fn(record)
    elif isinstance(handler, ObjectHandler):
        handler.target.handle(record)
