"""
Tabula Record Base - metaclass-driven Active-Record layer.

Usage:
    from tabula.models import Record, Field, has_many
    from tabula.models.deletion import SoftDelete

    class User(Record):
        id = Field()
        name = Field(default="")
        email = Field()
        posts = has_many("Post", foreign_key="user_id")

        class Meta:
            table = "users"
            skip_insert_on = ["created"]
            soft_delete = SoftDelete({"deleted": 1})

    user = User(name="Ann", email="ann@example.com")
    user.save()            # INSERT, id read back
    user.name = "Anne"
    user.save()            # UPDATE `users`  SET `name` = ? WHERE `id` = ?
    User.find(user.id)
"""

from __future__ import annotations

import copy
import logging
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Type,
    TYPE_CHECKING,
)

from ..faults import RecordStateFault, RelationFault, ValidationFault
from .deletion import DeletePolicy, SoftDelete, normalize_delete_policy
from .events import Event, Handler, NoHandler, as_handler, dispatch
from .fields import Field, UNSET
from .query import RecordQuery
from .relations import Relation, RelationDescriptor, eager_load
from .sql_builder import QueryBuilder
from .validators import run_rules

if TYPE_CHECKING:
    from ..db.engine import Database

logger = logging.getLogger("tabula.models")


def _is_empty(value: Any) -> bool:
    return value is None or value is UNSET or value == ""


# ── Record Options (parsed from Meta class) ──────────────────────────────────


class Options:
    """
    Parsed record options from inner Meta class.

    Attributes:
        table_name: Database table name (default: lowercased class name)
        unique_key: Column identifying a row (default ``"id"``)
        skip_insert_on: Columns never sent by INSERT
        delete_policy: ``HardDelete`` or ``SoftDelete(fields)``
        database: Profile alias or ``Database`` used by this record class
        trigger_events: Whether new instances dispatch lifecycle events
        events: Initial ``{event: handler}`` registrations
        eager: Relations eager-loaded by every finder
        rules: ``{attr: [rule, ...]}`` checked by ``validate()``
        messages: ``{attr: {rule_name: message}}`` overriding rule messages
        abstract: Whether the class only contributes fields
    """

    __slots__ = (
        "table_name",
        "unique_key",
        "skip_insert_on",
        "delete_policy",
        "database",
        "trigger_events",
        "events",
        "eager",
        "rules",
        "messages",
        "abstract",
    )

    def __init__(self, model_name: str, meta: Optional[type] = None):
        self.table_name: str = getattr(meta, "table", None) or model_name.lower()
        self.unique_key: str = getattr(meta, "unique_key", "id")
        self.skip_insert_on: Tuple[str, ...] = tuple(getattr(meta, "skip_insert_on", ()))
        self.delete_policy: DeletePolicy = normalize_delete_policy(getattr(meta, "soft_delete", None))
        self.database: Any = getattr(meta, "database", None)
        self.trigger_events: bool = bool(getattr(meta, "trigger_events", False))
        self.events: Dict[Event, Any] = {
            Event(name): handler for name, handler in dict(getattr(meta, "events", {})).items()
        }
        self.eager: Tuple[str, ...] = tuple(getattr(meta, "eager", ()))
        self.rules: Dict[str, List[Any]] = {
            name: list(rules) for name, rules in dict(getattr(meta, "rules", {})).items()
        }
        self.messages: Dict[str, Dict[str, str]] = dict(getattr(meta, "messages", {}))
        self.abstract: bool = bool(getattr(meta, "abstract", False))


# ── Model Registry ───────────────────────────────────────────────────────────


class ModelRegistry:
    """
    Global registry of concrete Record subclasses.

    Lets relations name their related class as a string.
    """

    _models: Dict[str, Type[Record]] = {}

    @classmethod
    def register(cls, model_cls: Type[Record]) -> None:
        name = model_cls.__name__
        if name in cls._models and cls._models[name] is not model_cls:
            logger.debug(f"Replacing registered record class {name}")
        cls._models[name] = model_cls

    @classmethod
    def get(cls, name: str) -> Optional[Type[Record]]:
        return cls._models.get(name)

    @classmethod
    def all_models(cls) -> Dict[str, Type[Record]]:
        return dict(cls._models)

    @classmethod
    def reset(cls) -> None:
        """Clear registry (for testing)."""
        cls._models.clear()


# ── Record Metaclass ─────────────────────────────────────────────────────────


class ModelMeta(type):
    """
    Metaclass for records.

    Handles:
    - Field and relation collection (inherited ones first)
    - Meta class parsing
    - Registration
    """

    def __new__(
        mcs,
        name: str,
        bases: Tuple[type, ...],
        namespace: Dict[str, Any],
        **kwargs,
    ) -> ModelMeta:
        parents = [b for b in bases if isinstance(b, ModelMeta)]
        if not parents:
            return super().__new__(mcs, name, bases, namespace)

        meta_class = namespace.pop("Meta", None)

        fields: Dict[str, Field] = {}
        relations: Dict[str, RelationDescriptor] = {}
        for parent in bases:
            fields.update(getattr(parent, "_fields", {}))
            relations.update(getattr(parent, "_relations", {}))

        new_fields: Dict[str, Field] = {}
        for key, value in list(namespace.items()):
            if isinstance(value, Field):
                fields[key] = value
                new_fields[key] = value
            elif isinstance(value, RelationDescriptor):
                relations[key] = value

        cls = super().__new__(mcs, name, bases, namespace)

        opts = Options(name, meta_class)
        cls._fields = fields
        cls._relations = relations
        cls._meta = opts
        cls._db = None
        cls._column_attrs = {f.column_name: attr for attr, f in fields.items()}

        for field in new_fields.values():
            field.model = cls
        for descriptor in relations.values():
            if descriptor.model is None:
                descriptor.model = cls

        clash = set(fields) & set(relations)
        if clash:
            raise RelationFault(name, ", ".join(sorted(clash)), "name is both a field and a relation")

        if not opts.abstract:
            ModelRegistry.register(cls)
        return cls


# ── Record Base ──────────────────────────────────────────────────────────────


class Record(metaclass=ModelMeta):
    """
    Base class for persisted entities.

    Instance state:
        declared fields   plain attributes, one per ``Field``
        original state    column snapshot of the last successful load/save
        relations         per-instance ``Relation`` objects with cached results
        events            one handler per ``Event``; dispatched only when
                          trigger events are enabled

    Store failures during ``save``/``delete`` return False; the fault is
    on the database's ``last_error``.
    """

    _fields: ClassVar[Dict[str, Field]] = {}
    _relations: ClassVar[Dict[str, RelationDescriptor]] = {}
    _meta: ClassVar[Options] = Options("record")
    _db: ClassVar[Optional[Database]] = None
    _column_attrs: ClassVar[Dict[str, str]] = {}

    def __init__(self, **kwargs: Any):
        """Create a record instance (in-memory, not persisted)."""
        self._original_state: Dict[str, Any] = {}
        self._loaded_from_store = False
        self._bound_db: Optional[Database] = None
        self._relation_objects: Dict[str, Relation] = {}
        self._extra: Dict[str, Any] = {}
        self._errors: Dict[str, List[str]] = {}
        self._trigger_events = self._meta.trigger_events
        self._events: Dict[Event, Handler] = {
            event: as_handler(handler) for event, handler in self._meta.events.items()
        }
        for attr_name, field in self._fields.items():
            if attr_name in kwargs:
                value = kwargs.pop(attr_name)
            elif field.column_name in kwargs:
                value = kwargs.pop(field.column_name)
            else:
                value = field.get_default()
            setattr(self, attr_name, value)
        for key, value in kwargs.items():
            self._assign(key, value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        extra = self.__dict__.get("_extra", {})
        if name in extra:
            return extra[name]
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __repr__(self) -> str:
        key, value = self.get_unique_id()
        return f"<{self.__class__.__name__} {key}={value!r}>"

    # ── Class-level configuration ────────────────────────────────────

    @classmethod
    def get_table_name(cls) -> str:
        return cls._meta.table_name

    @classmethod
    def get_unique_key(cls) -> str:
        return cls._meta.unique_key

    @classmethod
    def bind(cls, db: Optional[Database]) -> None:
        """Use ``db`` for this class (None restores the configured default)."""
        cls._db = db

    @classmethod
    def _get_db(cls, db: Optional[Database] = None) -> Database:
        """Explicit handle first, then the class binding, then the registry."""
        if db is not None:
            return db
        if cls._db is not None:
            return cls._db
        from ..db.engine import Database, get_database

        if isinstance(cls._meta.database, Database):
            return cls._meta.database
        return get_database(cls._meta.database)

    @property
    def bound_database(self) -> Optional[Database]:
        """Handle this instance was loaded with, if one was given explicitly."""
        return self._bound_db

    def _database(self) -> Database:
        return type(self)._get_db(self._bound_db)

    # ── Attribute mapping ────────────────────────────────────────────

    def _assign(self, key: str, value: Any) -> None:
        if key in self._relations:
            self.relation(key).set_result(value)
        elif key in self._fields:
            setattr(self, key, value)
        elif key in self._column_attrs:
            setattr(self, self._column_attrs[key], value)
        else:
            self._extra[key] = value

    def get_column_value(self, column: str) -> Any:
        """Value of a column (declared field or extra row column)."""
        attr = self._column_attrs.get(column)
        if attr is not None:
            return getattr(self, attr)
        if column in self._fields:
            return getattr(self, column)
        return self._extra.get(column)

    def to_row(self) -> Dict[str, Any]:
        """Declared fields as ``{column: value}``."""
        return {
            field.column_name: getattr(self, attr)
            for attr, field in self._fields.items()
        }

    def from_row(self, row: Mapping[str, Any]) -> Record:
        """Assign every row column to the matching attribute."""
        for key, value in row.items():
            self._assign(key, value)
        return self

    def set_values(self, values: Mapping[str, Any]) -> Record:
        for key, value in values.items():
            self._assign(key, value)
        return self

    def get_values(self) -> Dict[str, Any]:
        return self.to_row()

    def to_dict(self, include_relations: bool = True) -> Dict[str, Any]:
        """
        Plain-dict view of the record.

        Only relations already resolved (or eager-loaded) are included;
        this never queries the store.
        """
        data = {attr: getattr(self, attr) for attr in self._fields}
        data.update(self._extra)
        if include_relations:
            for name, relation in self._relation_objects.items():
                if not relation.is_resolved:
                    continue
                value = relation.resolve()
                if isinstance(value, list):
                    data[name] = [item.to_dict() for item in value]
                elif value is not None:
                    data[name] = value.to_dict()
                else:
                    data[name] = None
        return data

    # ── State ────────────────────────────────────────────────────────

    def _snapshot(self, sent: Optional[Mapping[str, Any]] = None) -> None:
        """Record what the store now holds: every column, or only the *sent* ones."""
        if sent is None:
            self._original_state = copy.deepcopy(self.to_row())
        else:
            self._original_state.update(copy.deepcopy(dict(sent)))

    @property
    def original_state(self) -> Dict[str, Any]:
        return dict(self._original_state)

    @property
    def is_loaded_from_store(self) -> bool:
        return self._loaded_from_store

    def mark_loaded(self, loaded: bool = True) -> None:
        self._loaded_from_store = loaded

    def get_unique_id(self) -> Tuple[str, Any]:
        key = self.get_unique_key()
        return key, self.get_column_value(key)

    def dirty_fields(self) -> Dict[str, Any]:
        """Columns whose value differs from the last load/save."""
        return {
            column: value
            for column, value in self.to_row().items()
            if column not in self._original_state or self._original_state[column] != value
        }

    def is_dirty(self) -> bool:
        return bool(self.dirty_fields())

    def skip_insert_on(self) -> List[str]:
        return list(self._meta.skip_insert_on)

    def skip_update_on(self) -> List[str]:
        return [self.get_unique_key()]

    def filter_update_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        skip = set(self.skip_update_on())
        return {key: value for key, value in fields.items() if key not in skip}

    # ── Validation ───────────────────────────────────────────────────

    def get_rules(self) -> Dict[str, List[Any]]:
        """Rules per attribute, from ``Meta.rules``; override to compute them."""
        return {name: list(rules) for name, rules in self._meta.rules.items()}

    def get_messages(self) -> Dict[str, Dict[str, str]]:
        return {name: dict(messages) for name, messages in self._meta.messages.items()}

    def validate(self, raise_fault: bool = False) -> bool:
        """
        Check current values against ``get_rules()``.

        Failures are kept in ``errors`` until the next call. ``save()``
        does not validate on its own.

        Raises:
            ValidationFault: With ``raise_fault`` when a rule fails.
        """
        rules = self.get_rules()
        values = {name: getattr(self, name, None) for name in rules}
        self._errors = run_rules(values, rules, self.get_messages())
        if self._errors and raise_fault:
            raise ValidationFault(type(self).__name__, self.errors)
        return not self._errors

    @property
    def errors(self) -> Dict[str, List[str]]:
        return {name: list(messages) for name, messages in self._errors.items()}

    def get_error(self) -> Optional[str]:
        """First failure message of the last ``validate()``, or None."""
        for messages in self._errors.values():
            if messages:
                return messages[0]
        return None

    # ── Persistence ──────────────────────────────────────────────────

    def save(self, dirty_update: bool = True) -> bool:
        """
        Insert or update the backing row.

        Without a unique key value the record is inserted and the
        generated identifier assigned. Otherwise it is updated: with
        ``dirty_update`` only changed columns are sent, and an unchanged
        record returns True without touching the store.

        Returns:
            True on success, False when the store rejected the statement
        """
        key, value = self.get_unique_id()
        if _is_empty(value):
            return self._insert()
        if dirty_update:
            if not self.dirty_fields():
                return True
            return self._update(dirty_only=True)
        return self._update(dirty_only=False)

    def _key_condition(self) -> Dict[str, Any]:
        key, value = self.get_unique_id()
        return {key: self._original_state.get(key, value)}

    def _insert(self) -> bool:
        self.trigger_event(Event.BEFORE_SAVE)
        self.trigger_event(Event.BEFORE_INSERT)

        key = self.get_unique_key()
        skip = set(self.skip_insert_on())
        fields = {
            column: value
            for column, value in self.to_row().items()
            if column not in skip and not (column == key and _is_empty(value))
        }
        db = self._database()
        ok = db.set_builder(QueryBuilder().insert(self.get_table_name(), fields)).execute()
        if not ok:
            return False

        generated = db.insert_id()
        if not _is_empty(generated):
            self._assign(key, generated)
        self._snapshot()
        self.trigger_event(Event.AFTER_INSERT)
        self.trigger_event(Event.AFTER_SAVE)
        return True

    def _update(self, dirty_only: bool) -> bool:
        self.trigger_event(Event.BEFORE_SAVE)
        self.trigger_event(Event.BEFORE_UPDATE)

        fields = self.dirty_fields() if dirty_only else self.to_row()
        fields = self.filter_update_fields(fields)
        if fields:
            query = QueryBuilder().update(self.get_table_name(), fields, self._key_condition())
            if not self._database().set_builder(query).execute():
                return False
            self._snapshot({**self._key_condition(), **fields})

        self.trigger_event(Event.AFTER_UPDATE)
        self.trigger_event(Event.AFTER_SAVE)
        return True

    def delete(self) -> bool:
        """
        Delete the backing row, or mark it deleted under a soft-delete policy.

        The in-memory instance is left as it was apart from soft-delete
        field values.

        Returns:
            False when the record has no unique key value or the store
            rejected the statement
        """
        key, value = self.get_unique_id()
        if _is_empty(value):
            return False

        self.trigger_event(Event.BEFORE_DELETE)
        policy = self._meta.delete_policy
        db = self._database()
        if isinstance(policy, SoftDelete):
            fields = policy.resolve()
            if fields:
                query = QueryBuilder().update(self.get_table_name(), fields, self._key_condition())
                if not db.set_builder(query).execute():
                    return False
                self.set_values(fields)
                self._snapshot(fields)
        else:
            query = QueryBuilder().delete(self.get_table_name(), self._key_condition())
            if not db.set_builder(query).execute():
                return False

        self.trigger_event(Event.AFTER_DELETE)
        return True

    # ── Finders ──────────────────────────────────────────────────────

    @classmethod
    def select(cls, query: Optional[QueryBuilder] = None, db: Optional[Database] = None) -> RecordQuery:
        """Chainable query over this record's table."""
        return RecordQuery(cls, query, db=db)

    @classmethod
    def find(
        cls,
        identifier: Any,
        *,
        with_: Sequence[str] = (),
        db: Optional[Database] = None,
    ) -> Optional[Record]:
        """
        Record whose unique key equals ``identifier``, or None.

        ``identifier`` may also be a prepared ``QueryBuilder``.
        """
        if isinstance(identifier, QueryBuilder):
            query = identifier
        else:
            query = QueryBuilder().where(cls.get_unique_key(), "=", identifier)
        return cls.select(query, db=db).with_(*with_).one()

    @classmethod
    def find_all(
        cls,
        query: Optional[QueryBuilder] = None,
        *,
        with_: Sequence[str] = (),
        db: Optional[Database] = None,
    ) -> List[Record]:
        return cls.select(query, db=db).with_(*with_).all()

    @classmethod
    def all(cls, *, with_: Sequence[str] = (), db: Optional[Database] = None) -> List[Record]:
        return cls.find_all(with_=with_, db=db)

    @classmethod
    def update_all(
        cls,
        fields: Mapping[str, Any],
        where: Any = None,
        join: Optional[str] = None,
        *,
        db: Optional[Database] = None,
    ) -> bool:
        query = QueryBuilder().update(cls.get_table_name(), fields, where, join)
        return cls._get_db(db).set_builder(query).execute()

    @classmethod
    def delete_all(cls, where: Any = None, *, db: Optional[Database] = None) -> bool:
        query = QueryBuilder().delete(cls.get_table_name(), where)
        return cls._get_db(db).set_builder(query).execute()

    @classmethod
    def load_from_row(cls, row: Mapping[str, Any], db: Optional[Database] = None) -> Record:
        """
        Hydrate a record from a result row.

        The original state is captured after assignment, so the new
        instance starts clean.
        """
        record = cls()
        record._bound_db = db
        record.trigger_event(Event.BEFORE_LOAD)
        record.from_row(row)
        record._snapshot()
        record.trigger_event(Event.AFTER_LOAD)
        return record

    def reload(self) -> Optional[Record]:
        """Fresh instance read from the store, or None if the row is gone."""
        key, value = self.get_unique_id()
        if _is_empty(value):
            raise RecordStateFault(type(self).__name__, "reload")
        return type(self).find(value, db=self._bound_db)

    def refresh(self) -> bool:
        """
        Re-read this instance's row in place.

        Cached relation results are dropped. Returns False if the row no
        longer exists.
        """
        key, value = self.get_unique_id()
        if _is_empty(value):
            raise RecordStateFault(type(self).__name__, "refresh")
        query = QueryBuilder().select_all().from_(self.get_table_name()).where(key, "=", value)
        row = self._database().set_builder(query).get_one()
        if row is None:
            return False
        self.from_row(row)
        self._snapshot()
        for relation in self._relation_objects.values():
            relation.reload()
        return True

    # ── Relations ────────────────────────────────────────────────────

    def relation(self, name: str) -> Relation:
        """The instance's ``Relation`` object for a declared relation."""
        relation = self._relation_objects.get(name)
        if relation is None:
            descriptor = self._relations.get(name)
            if descriptor is None:
                raise RelationFault(type(self).__name__, name, "no such relation")
            relation = descriptor.bind(self)
            self._relation_objects[name] = relation
        return relation

    def load_relations(self, *names: str) -> Record:
        """Resolve relations for this instance as one eager batch."""
        eager_load([self], list(names), db=self._bound_db)
        return self

    # ── Events ───────────────────────────────────────────────────────

    def set_trigger_event(self, enabled: bool) -> None:
        self._trigger_events = enabled

    def is_trigger_event(self) -> bool:
        return self._trigger_events

    def register_event(self, event: Any, handler: Any) -> None:
        """Register ``handler`` for ``event``, replacing any previous one."""
        self._events[Event(event)] = as_handler(handler)

    def set_events(self, events: Mapping[Any, Any]) -> None:
        self._events = {Event(name): as_handler(handler) for name, handler in events.items()}

    def get_event(self, event: Any) -> Handler:
        return self._events.get(Event(event), NoHandler())

    def trigger_event(self, event: Any) -> None:
        if not self._trigger_events:
            return
        dispatch(self.get_event(event), self)
