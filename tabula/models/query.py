"""
Tabula record query - a chainable SELECT bound to one record class.

Usage:
    adults = (
        User.select()
        .where("age", ">=", 18)
        .order_by("name")
        .with_("posts")
        .all()
    )
    first = User.select().where({"email": "ann@example.com"}).one()
"""

from __future__ import annotations

from typing import Any, Iterator, List, Optional, TYPE_CHECKING, Type

from ..faults import UnknownOperationFault
from .relations import eager_load
from .sql_builder import QueryBuilder

if TYPE_CHECKING:
    from ..db.engine import Database
    from .base import Record

__all__ = ["RecordQuery", "QUERY_OPERATIONS"]


# Builder operations a RecordQuery exposes; each returns the RecordQuery.
QUERY_OPERATIONS = (
    "select_as",
    "select_with",
    "where",
    "or_where",
    "add_where",
    "where_group",
    "and_where_group",
    "or_where_group",
    "where_in",
    "append_where",
    "append_bind_values",
    "inner_join",
    "left_join",
    "right_join",
    "cross_join",
    "on",
    "using",
    "group_by",
    "having",
    "order_by",
    "limit",
)


class RecordQuery:
    """
    SELECT over a record class's table that hydrates records.

    The underlying builder selects ``*`` unless columns were already
    chosen, and targets the record table unless a table was set.
    """

    def __init__(
        self,
        model: Type[Record],
        query: Optional[QueryBuilder] = None,
        db: Optional[Database] = None,
    ):
        self._model = model
        self._query = query if query is not None else QueryBuilder()
        if not self._query.columns:
            self._query.select_all(reset=False)
        if not self._query.table:
            self._query.from_(model.get_table_name())
        self._db = db
        self._with: List[str] = list(model._meta.eager)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        raise UnknownOperationFault(type(self).__name__, name)

    def __repr__(self) -> str:
        return f"<RecordQuery {self._model.__name__}: {self._query.get_query()!r}>"

    @property
    def query(self) -> QueryBuilder:
        return self._query

    def get_sql(self) -> str:
        return self._query.get_query()

    def with_(self, *names: Any) -> RecordQuery:
        """Eager-load relations (``"posts"``, ``"posts.comments"``)."""
        for name in names:
            if isinstance(name, (list, tuple)):
                self._with.extend(name)
            else:
                self._with.append(name)
        return self

    def get_with(self) -> List[str]:
        return list(self._with)

    def one(self) -> Optional[Record]:
        """First matching record, or None."""
        db = self._model._get_db(self._db)
        row = db.set_builder(self._query).get_one()
        if row is None:
            return None
        record = self._model.load_from_row(row, db=self._db)
        record.mark_loaded()
        eager_load([record], self._with, db=self._db)
        return record

    def all(self) -> List[Record]:
        db = self._model._get_db(self._db)
        records = []
        for row in db.set_builder(self._query).get_all():
            record = self._model.load_from_row(row, db=self._db)
            record.mark_loaded()
            records.append(record)
        eager_load(records, self._with, db=self._db)
        return records

    def __iter__(self) -> Iterator[Record]:
        return iter(self.all())


def _chain(name: str):
    def operation(self: RecordQuery, *args: Any, **kwargs: Any) -> RecordQuery:
        getattr(self._query, name)(*args, **kwargs)
        return self

    operation.__name__ = name
    operation.__qualname__ = f"RecordQuery.{name}"
    operation.__doc__ = getattr(QueryBuilder, name).__doc__
    return operation


for _name in QUERY_OPERATIONS:
    setattr(RecordQuery, _name, _chain(_name))
del _name
