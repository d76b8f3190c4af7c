"""
Tabula record validators - field rules checked by ``Record.validate()``.

A validator is a callable ``(value) -> None`` raising ``ValueError``
with a human-readable message. Rules may also be named by string:

    class User(Record):
        ...

        class Meta:
            rules = {
                "id": ["required", "numeric"],
                "email": ["required", "email", "max_length:120"],
            }
            messages = {"id": {"required": "value not found"}}

``name:arg`` passes ``arg`` to the validator factory registered under
``name``. ``Meta.messages`` replaces the message of a named rule.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..faults import ConfigInvalidFault

__all__ = [
    "Validator",
    "RequiredValidator",
    "NumericValidator",
    "EmailValidator",
    "MinLengthValidator",
    "MaxLengthValidator",
    "RegexValidator",
    "register_rule",
    "resolve_rule",
    "run_rules",
]

Validator = Callable[[Any], None]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, tuple, dict)) and len(value) == 0)


class RequiredValidator:
    """Reject None and empty strings or collections."""

    __slots__ = ("message",)

    def __init__(self, message: str | None = None):
        self.message = message or "This field is required."

    def __call__(self, value: Any) -> None:
        if _blank(value):
            raise ValueError(self.message)


class NumericValidator:
    __slots__ = ("message",)

    def __init__(self, message: str | None = None):
        self.message = message or "Enter a number."

    def __call__(self, value: Any) -> None:
        if value is None or value == "":
            return
        if isinstance(value, bool):
            raise ValueError(self.message)
        if isinstance(value, (int, float)):
            return
        try:
            float(str(value))
        except ValueError:
            raise ValueError(self.message) from None


class RegexValidator:
    """Reject strings that do not match *pattern*; blank values pass."""

    __slots__ = ("regex", "message")

    def __init__(self, pattern: str, message: str | None = None):
        self.regex = re.compile(pattern)
        self.message = message or f"Value does not match pattern '{pattern}'."

    def __call__(self, value: Any) -> None:
        if _blank(value):
            return
        if not self.regex.search(str(value)):
            raise ValueError(self.message)


class EmailValidator(RegexValidator):
    __slots__ = ()

    def __init__(self, message: str | None = None):
        super().__init__(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", message or "Enter a valid email address.")


class MaxLengthValidator:
    __slots__ = ("limit", "message")

    def __init__(self, limit: int, message: str | None = None):
        self.limit = int(limit)
        self.message = message or f"Ensure this value has at most {self.limit} characters."

    def __call__(self, value: Any) -> None:
        if hasattr(value, "__len__") and len(value) > self.limit:
            raise ValueError(self.message)


class MinLengthValidator:
    __slots__ = ("limit", "message")

    def __init__(self, limit: int, message: str | None = None):
        self.limit = int(limit)
        self.message = message or f"Ensure this value has at least {self.limit} characters."

    def __call__(self, value: Any) -> None:
        if _blank(value):
            return
        if hasattr(value, "__len__") and len(value) < self.limit:
            raise ValueError(self.message)


# ── Named rules ──────────────────────────────────────────────────────

_RULES: Dict[str, Callable[..., Validator]] = {
    "required": RequiredValidator,
    "numeric": NumericValidator,
    "email": EmailValidator,
    "regex": RegexValidator,
    "max_length": MaxLengthValidator,
    "min_length": MinLengthValidator,
}


def register_rule(name: str):
    """Decorator registering a validator factory under a rule name."""
    def decorator(factory: Callable[..., Validator]) -> Callable[..., Validator]:
        _RULES[name] = factory
        return factory
    return decorator


def resolve_rule(rule: Any, messages: Optional[Mapping[str, str]] = None) -> Validator:
    """Validator for a rule string (``"max_length:20"``) or a validator callable."""
    if callable(rule):
        return rule
    if not isinstance(rule, str):
        raise ConfigInvalidFault("rules", f"unsupported validation rule {rule!r}")
    name, _, arg = rule.partition(":")
    factory = _RULES.get(name)
    if factory is None:
        raise ConfigInvalidFault("rules", f"unknown validation rule {name!r}")
    args = (arg,) if arg else ()
    return factory(*args, message=(messages or {}).get(name))


def run_rules(
    values: Mapping[str, Any],
    rules: Mapping[str, Sequence[Any]],
    messages: Optional[Mapping[str, Mapping[str, str]]] = None,
) -> Dict[str, List[str]]:
    """Check every field's rules; ``{field: [messages]}`` for the failures."""
    errors: Dict[str, List[str]] = {}
    for field, field_rules in rules.items():
        custom = (messages or {}).get(field)
        for rule in field_rules:
            try:
                resolve_rule(rule, custom)(values.get(field))
            except ValueError as exc:
                errors.setdefault(field, []).append(str(exc))
    return errors
