"""
Tabula deletion policies - what ``Record.delete()`` does to the row.

- ``HardDelete``          physical ``DELETE FROM ... WHERE key = ?``
- ``SoftDelete(fields)``  ``UPDATE ... SET <fields> WHERE key = ?``

Usage:
    from tabula.models.deletion import SoftDelete

    class Post(Record):
        class Meta:
            soft_delete = SoftDelete({"deleted": 1})
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

__all__ = [
    "HardDelete",
    "SoftDelete",
    "DeletePolicy",
    "normalize_delete_policy",
]


@dataclass(frozen=True)
class HardDelete:
    pass


@dataclass(frozen=True)
class SoftDelete:
    """
    Mark a row deleted with an UPDATE.

    Field values may be callables, resolved each time a record is
    deleted (e.g. ``{"deleted_at": lambda: datetime.now(timezone.utc)}``). An empty
    mapping is still a soft delete: the row is kept and nothing is set.
    """

    fields: Mapping[str, Any] = field(default_factory=dict)

    def resolve(self) -> Dict[str, Any]:
        return {
            key: value() if callable(value) else value
            for key, value in self.fields.items()
        }


DeletePolicy = Union[HardDelete, SoftDelete]


def normalize_delete_policy(policy: Any) -> DeletePolicy:
    """
    Normalize a ``Meta.soft_delete`` value to a policy.

    ``None``/``False`` mean hard delete, a mapping means soft delete
    with those fields, policies are returned unchanged.
    """
    if policy is None or policy is False:
        return HardDelete()
    if isinstance(policy, (HardDelete, SoftDelete)):
        return policy
    if isinstance(policy, Mapping):
        return SoftDelete(dict(policy))
    raise TypeError(f"Unsupported delete policy: {policy!r}")
