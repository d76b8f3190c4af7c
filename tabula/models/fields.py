"""
Tabula fields - declared record attributes.

The persisted columns of a record are exactly the ``Field`` attributes
declared on its class::

    class User(Record):
        id = Field()
        name = Field(default="")
        email = Field(db_column="email_address")

Instance attributes that are not fields never reach the store.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .base import Record

__all__ = ["UNSET", "Field"]


class _Sentinel(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "<UNSET>"

    def __bool__(self) -> bool:
        return False


#: Marks "no value given", where None is itself a legitimate value.
UNSET = _Sentinel.UNSET


class Field:
    """
    One column of a record.

    ``default`` seeds new instances; a callable is invoked per instance,
    anything else is deep-copied so mutable defaults are never shared.
    ``db_column`` names the column when it differs from the attribute.
    """

    __slots__ = ("default", "db_column", "attr_name", "model")

    def __init__(self, *, default: Any = UNSET, db_column: Optional[str] = None):
        self.default = default
        self.db_column = db_column
        self.attr_name = ""
        self.model: Optional[type[Record]] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.attr_name = name

    @property
    def name(self) -> str:
        return self.column_name

    @property
    def column_name(self) -> str:
        return self.db_column or self.attr_name

    def __repr__(self) -> str:
        return f"<Field {self.attr_name} -> {self.column_name}>"

    def get_default(self) -> Any:
        if self.default is UNSET:
            return None
        if callable(self.default):
            return self.default()
        return copy.deepcopy(self.default)
