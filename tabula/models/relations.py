"""
Tabula relations - HasOne / HasMany associations between records.

A relation is declared on the owner class and bound per instance:

    class User(Record):
        id = Field()
        profile = has_one("Profile", foreign_key="user_id")
        posts = has_many("Post", foreign_key="user_id")

    user.posts                      # resolved once, then cached
    user.relation("posts").reload() # forget the cached result

Both variants match ``related.<foreign_key> = owner.<owner_key>``.
Eager loading (``select().with_("posts")``) fetches the related rows of
a whole batch of owners with one ``IN (...)`` query per relation name.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, ClassVar, Dict, List, Optional, Sequence, TYPE_CHECKING, Type, Union

from ..faults import RelationFault
from .fields import UNSET
from .sql_builder import QueryBuilder

if TYPE_CHECKING:
    from .base import Record

logger = logging.getLogger("tabula.models.relations")

__all__ = [
    "Relation",
    "HasOne",
    "HasMany",
    "RelationDescriptor",
    "has_one",
    "has_many",
    "eager_load",
]


def _is_empty(value: Any) -> bool:
    return value is None or value is UNSET or value == ""


class Relation:
    """
    One owner record's view of a declared association.

    ``resolve()`` runs ``handle()`` on first use and caches the result
    until ``reload()`` or ``resolve(force_reload=True)``.
    """

    many: ClassVar[bool] = False

    def __init__(
        self,
        owner: Record,
        related: Union[str, Type[Record]],
        foreign_key: str,
        owner_key: str = "id",
        query: Optional[QueryBuilder] = None,
        with_: Sequence[str] = (),
        name: str = "",
    ):
        self.owner = owner
        self.related = related
        self.foreign_key = foreign_key
        self.owner_key = owner_key
        self.query = query
        self.with_ = list(with_)
        self.name = name
        self._result: Any = UNSET

    def __repr__(self) -> str:
        return (
            f"<{self.__class__.__name__} {type(self.owner).__name__}.{self.name} "
            f"-> {self.related_model.__name__}>"
        )

    @property
    def related_model(self) -> Type[Record]:
        return resolve_related(self.related, type(self.owner).__name__, self.name)

    @property
    def owner_value(self) -> Any:
        return self.owner.get_column_value(self.owner_key)

    def build_query(self) -> QueryBuilder:
        """Copy of the base query restricted to this owner."""
        query = self.query.copy() if self.query is not None else QueryBuilder()
        return query.where(self.foreign_key, "=", self.owner_value)

    def handle(self) -> Any:
        raise NotImplementedError

    def resolve(self, force_reload: bool = False) -> Any:
        if self._result is UNSET or force_reload:
            self._result = self.handle()
        return self._result

    def reload(self) -> None:
        self._result = UNSET

    def set_result(self, value: Any) -> None:
        self._result = value

    @property
    def is_resolved(self) -> bool:
        return self._result is not UNSET


class HasOne(Relation):
    """Resolves to the first related record, or None."""

    def handle(self) -> Optional[Record]:
        if _is_empty(self.owner_value):
            return None
        return (
            self.related_model.select(self.build_query(), db=self.owner.bound_database)
            .with_(*self.with_)
            .one()
        )


class HasMany(Relation):
    """Resolves to a list of related records, possibly empty."""

    many = True

    def handle(self) -> List[Record]:
        if _is_empty(self.owner_value):
            return []
        return (
            self.related_model.select(self.build_query(), db=self.owner.bound_database)
            .with_(*self.with_)
            .all()
        )


class RelationDescriptor:
    """
    Class-level relation declaration.

    Reading the attribute on an instance resolves the relation; assigning
    it stores a result (used by eager loading).
    """

    def __init__(
        self,
        relation_class: Type[Relation],
        related: Union[str, Type[Record]],
        foreign_key: str,
        owner_key: str = "id",
        query: Optional[QueryBuilder] = None,
        with_: Sequence[str] = (),
    ):
        self.relation_class = relation_class
        self.related = related
        self.foreign_key = foreign_key
        self.owner_key = owner_key
        self.query = query
        self.with_ = tuple(with_)
        self.name = ""
        self.model: Optional[Type[Record]] = None

    def __set_name__(self, owner: type, name: str) -> None:
        self.name = name

    def __repr__(self) -> str:
        return f"<{self.relation_class.__name__} descriptor: {self.name}>"

    @property
    def many(self) -> bool:
        return self.relation_class.many

    def bind(self, record: Record) -> Relation:
        return self.relation_class(
            record,
            self.related,
            self.foreign_key,
            self.owner_key,
            query=self.query,
            with_=self.with_,
            name=self.name,
        )

    def base_query(self) -> QueryBuilder:
        return self.query.copy() if self.query is not None else QueryBuilder()

    def __get__(self, instance: Optional[Record], owner: type) -> Any:
        if instance is None:
            return self
        return instance.relation(self.name).resolve()

    def __set__(self, instance: Record, value: Any) -> None:
        instance.relation(self.name).set_result(value)


def has_one(
    related: Union[str, Type[Record]],
    foreign_key: str,
    owner_key: str = "id",
    *,
    query: Optional[QueryBuilder] = None,
    with_: Sequence[str] = (),
) -> RelationDescriptor:
    return RelationDescriptor(HasOne, related, foreign_key, owner_key, query, with_)


def has_many(
    related: Union[str, Type[Record]],
    foreign_key: str,
    owner_key: str = "id",
    *,
    query: Optional[QueryBuilder] = None,
    with_: Sequence[str] = (),
) -> RelationDescriptor:
    return RelationDescriptor(HasMany, related, foreign_key, owner_key, query, with_)


def resolve_related(related: Union[str, Type[Record]], owner: str, relation: str) -> Type[Record]:
    """Resolve a related model given as a class or a registered name."""
    if not isinstance(related, str):
        return related
    from .base import ModelRegistry

    model = ModelRegistry.get(related)
    if model is None:
        raise RelationFault(owner, relation, f"model '{related}' is not registered")
    return model


# ── Eager loading ───────────────────────────────────────────────────────────


def _split_names(names: Sequence[str]) -> Dict[str, List[str]]:
    """``["posts.comments", "profile"]`` -> ``{"posts": ["comments"], "profile": []}``."""
    tree: Dict[str, List[str]] = {}
    for name in names:
        head, _, rest = name.partition(".")
        nested = tree.setdefault(head, [])
        if rest:
            nested.append(rest)
    return tree


def eager_load(records: Sequence[Record], names: Sequence[str], db: Any = None) -> Sequence[Record]:
    """
    Resolve ``names`` for every record in ``records`` with one query per name.

    Raises:
        RelationFault: when a name is not a relation of the records' model
    """
    if not records or not names:
        return records
    model = type(records[0])
    for name, nested in _split_names(names).items():
        descriptor = model._relations.get(name)
        if descriptor is None:
            raise RelationFault(model.__name__, name, "no such relation")
        _load_relation(model, descriptor, records, nested, db)
    return records


def _load_relation(
    model: Type[Record],
    descriptor: RelationDescriptor,
    records: Sequence[Record],
    nested: List[str],
    db: Any,
) -> None:
    related = resolve_related(descriptor.related, model.__name__, descriptor.name)

    keys: List[Any] = []
    for record in records:
        value = record.get_column_value(descriptor.owner_key)
        if not _is_empty(value) and value not in keys:
            keys.append(value)

    groups: Dict[Any, List[Record]] = defaultdict(list)
    if keys:
        query = descriptor.base_query().where_in(descriptor.foreign_key, keys)
        logger.debug(f"Eager loading {model.__name__}.{descriptor.name} for {len(keys)} owner(s)")
        children = related.select(query, db=db).with_(*descriptor.with_, *nested).all()
        for child in children:
            groups[child.get_column_value(descriptor.foreign_key)].append(child)

    for record in records:
        matched = groups.get(record.get_column_value(descriptor.owner_key), [])
        if descriptor.many:
            record.relation(descriptor.name).set_result(list(matched))
        else:
            record.relation(descriptor.name).set_result(matched[0] if matched else None)
