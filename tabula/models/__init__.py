"""
Tabula Model System - fluent SQL builder and Active-Record layer.

Usage:
    from tabula.models import Record, Field, has_many

    class User(Record):
        id = Field()
        name = Field(default="")
        posts = has_many("Post", foreign_key="user_id")

        class Meta:
            table = "users"

    User.select().where("name", "LIKE", "A%").with_("posts").all()

Public API:
    - Record: Base class for persisted entities
    - Field: Declared column
    - QueryBuilder: Parameterized SQL builder
    - RecordQuery: Chainable SELECT hydrating records
    - Relations: has_one, has_many, HasOne, HasMany
    - Events: Event, EventHandler and handler variants
    - Deletion policies: HardDelete, SoftDelete
"""

from .base import (
    Record,
    ModelMeta,
    ModelRegistry,
    Options,
)

from .fields import Field, UNSET

from .sql_builder import (
    QueryBuilder,
    StatementKind,
    JoinClause,
    build_condition,
    frame_where,
    quote_identifier,
    quote_table,
)

from .query import RecordQuery

from .relations import (
    Relation,
    HasOne,
    HasMany,
    RelationDescriptor,
    has_one,
    has_many,
    eager_load,
)

from .events import (
    Event,
    EventHandler,
    NoHandler,
    ClosureHandler,
    ObjectHandler,
    as_handler,
)

from .deletion import HardDelete, SoftDelete

from .validators import (
    RequiredValidator,
    NumericValidator,
    EmailValidator,
    MinLengthValidator,
    MaxLengthValidator,
    RegexValidator,
    register_rule,
)

__all__ = [
    # Records
    "Record",
    "ModelMeta",
    "ModelRegistry",
    "Options",
    "Field",
    "UNSET",
    # SQL
    "QueryBuilder",
    "StatementKind",
    "JoinClause",
    "build_condition",
    "frame_where",
    "quote_identifier",
    "quote_table",
    "RecordQuery",
    # Relations
    "Relation",
    "HasOne",
    "HasMany",
    "RelationDescriptor",
    "has_one",
    "has_many",
    "eager_load",
    # Events
    "Event",
    "EventHandler",
    "NoHandler",
    "ClosureHandler",
    "ObjectHandler",
    "as_handler",
    # Validation
    "RequiredValidator",
    "NumericValidator",
    "EmailValidator",
    "MinLengthValidator",
    "MaxLengthValidator",
    "RegexValidator",
    "register_rule",
    # Deletion
    "HardDelete",
    "SoftDelete",
]
