"""
Tabula SQL Builder - fluent, parameterized SQL generation.

Provides a fluent builder that accumulates statement fragments and
bound values, then emits a ``(sql, params)`` pair. Identifiers are
backtick-quoted and every value travels as a positional ``?``
placeholder, so the Nth ``?`` in the emitted text always matches the
Nth entry of ``get_bind_values()``.

Usage:
    from tabula.models.sql_builder import QueryBuilder

    sql, params = (
        QueryBuilder()
        .select("id", "name", "users.email mail")
        .from_("users")
        .where("age", ">=", 18)
        .or_where({"role": "admin"})
        .order_by("name")
        .limit(10)
        .build()
    )
    # sql = 'SELECT `id`, `name`, `users`.`email` AS mail FROM `users`
    #        WHERE `age` >= ? OR `role` = ? ORDER BY name ASC LIMIT 10'
    # params = [18, 'admin']
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..faults import InvalidConditionFault, QueryBuildFault

logger = logging.getLogger("tabula.models")


__all__ = [
    "StatementKind",
    "JoinClause",
    "QueryBuilder",
    "quote_identifier",
    "quote_table",
    "build_condition",
    "frame_where",
]


# ============================================================================
# Identifier formatting
# ============================================================================

def _quote_dotted(name: str) -> str:
    return ".".join(part if part == "*" else f"`{part}`" for part in name.split("."))


def _split_alias(ref: str) -> Tuple[str, Optional[str]]:
    parts = ref.split(None, 1)
    if len(parts) == 1:
        return parts[0], None
    alias = parts[1].strip()
    if alias[:3].upper() == "AS ":
        alias = alias[3:].strip()
    return parts[0], alias or None


def quote_identifier(ref: str) -> str:
    """
    Quote a column reference.

    ``col`` -> ```col```, ``t.col`` -> ```t`.`col```,
    ``col alias`` -> ```col` AS alias``. Backticks already present are
    stripped first. Function calls and ``*`` pass through untouched.
    """
    ref = ref.replace("`", "").strip()
    if not ref or _is_raw(ref):
        return ref
    name, alias = _split_alias(ref)
    quoted = _quote_dotted(name)
    return f"{quoted} AS {alias}" if alias else quoted


def quote_table(ref: str) -> str:
    """Quote a table reference; an alias follows the table without ``AS``."""
    ref = ref.replace("`", "").strip()
    if not ref:
        return ref
    name, alias = _split_alias(ref)
    quoted = _quote_dotted(name)
    return f"{quoted} {alias}" if alias else quoted


# ============================================================================
# Condition grammar
# ============================================================================

def _normalize_glue(glue: str) -> str:
    normalized = (glue or "").strip().upper()
    if normalized not in ("AND", "OR"):
        raise InvalidConditionFault(f"Condition glue must be AND or OR, got {glue!r}", (glue,))
    return normalized


def frame_where(data: Mapping[str, Any], glue: str = "AND") -> Tuple[str, List[Any]]:
    """Expand ``{field: value}`` into ```field` = ? AND ...`` plus values."""
    glue = _normalize_glue(glue)
    if not data:
        raise InvalidConditionFault("Equality mapping must not be empty", (data,))
    fragments = [f"{quote_identifier(str(key))} = ?" for key in data]
    return f" {glue} ".join(fragments), list(data.values())


def _condition_from_parts(parts: Sequence[Any]) -> Tuple[str, List[Any]]:
    count = len(parts)
    if count == 1 and isinstance(parts[0], str):
        return parts[0], []
    if count == 2 and isinstance(parts[0], str):
        text, value = parts
        if "?" in text:
            return text, [value]
        return f"{quote_identifier(text)} = ?", [value]
    if count == 3 and isinstance(parts[0], str) and isinstance(parts[1], str):
        field, operator, value = parts
        operator = operator.strip()
        if operator.upper() in ("IN", "NOT IN") and isinstance(value, (list, tuple, set)):
            values = list(value)
            if not values:
                return ("1 = 0" if operator.upper() == "IN" else "1 = 1"), []
            placeholders = ", ".join("?" for _ in values)
            return f"{quote_identifier(field)} {operator.upper()} ({placeholders})", values
        return f"{quote_identifier(field)} {operator} ?", [value]
    raise InvalidConditionFault(
        f"A condition takes 1, 2 or 3 arguments, got {count}",
        tuple(parts),
    )


def build_condition(args: Sequence[Any], glue: str = "AND") -> Tuple[str, List[Any]]:
    """
    Normalize a condition call into ``(fragment, values)``.

    Accepted shapes:
        ``("raw sql",)``                      raw text, no values
        ``("name = ?", value)``               text kept, one value
        ``("field", value)``                  ```field` = ?``
        ``("field", ">=", value)``            ```field` >= ?``
        ``({"a": 1, "b": 2},)``               equality mapping joined by ``glue``
        ``([("a", 1), ("b", ">", 2)],)``      condition tuples joined by ``glue``

    Anything else raises ``InvalidConditionFault``.
    """
    glue = _normalize_glue(glue)
    if len(args) == 1:
        arg = args[0]
        if isinstance(arg, Mapping):
            return frame_where(arg, glue)
        if isinstance(arg, str):
            return arg, []
        if isinstance(arg, (list, tuple)):
            if not arg:
                raise InvalidConditionFault("Condition list must not be empty", tuple(args))
            fragments: List[str] = []
            values: List[Any] = []
            for item in arg:
                if isinstance(item, str):
                    item = (item,)
                if not isinstance(item, (list, tuple)):
                    raise InvalidConditionFault(
                        f"Condition list entries must be tuples, got {type(item).__name__}",
                        tuple(args),
                    )
                text, item_values = _condition_from_parts(item)
                fragments.append(text)
                values.extend(item_values)
            return f" {glue} ".join(fragments), values
        raise InvalidConditionFault(
            f"Unsupported condition argument of type {type(arg).__name__}",
            tuple(args),
        )
    return _condition_from_parts(args)


# ============================================================================
# Query builder
# ============================================================================

class StatementKind(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    RAW = "RAW"


@dataclass
class JoinClause:
    """One ``<kind> JOIN <table>`` entry with its optional ON/USING constraint."""

    kind: str
    table: str
    constraint: str = ""

    def render(self) -> str:
        return f" {self.kind} JOIN {self.table}{self.constraint}"


class QueryBuilder:
    """
    Statement builder with positional parameter binding.

    A builder holds one statement at a time. Statement-defining calls
    (``select``, ``insert``, ``update``, ``delete``) start from a clean
    state; clause calls accumulate on top of it.
    """

    def __init__(self):
        self.reset()

    # ── lifecycle ────────────────────────────────────────────────────

    def reset(self) -> QueryBuilder:
        """Clear every fragment and bound value."""
        self._kind: StatementKind = StatementKind.SELECT
        self._sql: str = ""
        self._query: str = ""
        self._table: str = ""
        self._columns: List[str] = []
        self._joins: List[JoinClause] = []
        self._where: str = ""
        self._group_by: str = ""
        self._having: str = ""
        self._order_by: List[str] = []
        self._limit: str = ""
        self._offset: Optional[int] = None
        self._params: List[Any] = []
        self._where_params: List[Any] = []
        self._having_params: List[Any] = []
        return self

    @property
    def statement_kind(self) -> StatementKind:
        return self._kind

    @property
    def offset(self) -> Optional[int]:
        """Row offset given to the last ``limit`` call, if any."""
        return self._offset

    @property
    def table(self) -> str:
        """Formatted FROM table, empty until ``from_``."""
        return self._table

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(self._columns)

    # ── statements ───────────────────────────────────────────────────

    def select(self, *columns: str) -> QueryBuilder:
        """Start a SELECT; no columns means ``*``."""
        self.reset()
        self._columns = [quote_identifier(c) for c in columns]
        return self

    def select_as(self, *items: Any) -> QueryBuilder:
        """
        Append aliased columns.

        Mappings are ``{alias: column}``; plain strings are formatted
        like ``select`` columns.
        """
        for item in items:
            if isinstance(item, Mapping):
                for alias, column in item.items():
                    self._columns.append(f"{quote_identifier(column)} AS {alias}")
            else:
                self._columns.append(quote_identifier(item))
        return self

    def select_with(self, *expressions: str) -> QueryBuilder:
        """Append raw select expressions such as ``COUNT(id) AS n``."""
        self._columns.extend(expressions)
        return self

    def select_all(self, reset: bool = True) -> QueryBuilder:
        if reset:
            self.reset()
        self._kind = StatementKind.SELECT
        self._columns = ["*"]
        return self

    def from_(self, table: str) -> QueryBuilder:
        self._table = quote_table(table)
        return self

    def insert(
        self,
        table: str,
        fields: Mapping[str, Any],
        func_fields: Optional[Mapping[str, str]] = None,
    ) -> QueryBuilder:
        """
        Start an INSERT.

        ``fields`` are bound as ``?``; ``func_fields`` are raw SQL
        expressions placed after them, e.g. ``{"created": "CURDATE()"}``.
        """
        self.reset()
        func_fields = func_fields or {}
        self._kind = StatementKind.INSERT
        columns = [quote_identifier(c) for c in fields]
        columns += [quote_identifier(c) for c in func_fields]
        values = ["?"] * len(fields)
        values += [f"({expr})" for expr in func_fields.values()]
        self._params = list(fields.values())
        self._sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({', '.join(values)})"
        return self

    def update(
        self,
        table: str,
        fields: Mapping[str, Any],
        where: Any = None,
        join: Optional[str] = None,
    ) -> QueryBuilder:
        """Start an UPDATE; ``where`` is raw text, a mapping or a tuple list."""
        self.reset()
        self._kind = StatementKind.UPDATE
        assignments = ", ".join(f"{quote_identifier(c)} = ?" for c in fields)
        self._params = list(fields.values())
        self._sql = f"UPDATE {quote_table(table)} {join or ''} SET {assignments}"
        if where is not None:
            self._add_where("AND", build_condition((where,)))
        return self

    def delete(self, table: str, where: Any = None) -> QueryBuilder:
        self.reset()
        self._kind = StatementKind.DELETE
        self._sql = f"DELETE FROM {quote_table(table)}"
        if where is not None:
            self._add_where("AND", build_condition((where,)))
        return self

    def set_query(self, sql: str) -> QueryBuilder:
        """Use ``sql`` verbatim as the statement text."""
        self._kind = StatementKind.RAW
        self._query = sql
        return self

    # ── where ────────────────────────────────────────────────────────

    def _add_where(self, glue: str, condition: Tuple[str, List[Any]]) -> None:
        text, values = condition
        self._where += " WHERE " if not self._where else f" {glue} "
        self._where += text
        self._where_params.extend(values)

    def add_where(self, glue: str, *args: Any) -> QueryBuilder:
        """Append a condition joined to the existing clause with ``glue``."""
        glue = _normalize_glue(glue)
        self._add_where(glue, build_condition(args, glue))
        return self

    def where(self, *args: Any) -> QueryBuilder:
        return self.add_where("AND", *args)

    def or_where(self, *args: Any) -> QueryBuilder:
        return self.add_where("OR", *args)

    def where_group(self, outer: str, inner: str, *args: Any) -> QueryBuilder:
        """Append ``(cond inner cond ...)`` joined to the clause with ``outer``."""
        outer = _normalize_glue(outer)
        text, values = build_condition(args, inner)
        self._add_where(outer, (f"({text})", values))
        return self

    def and_where_group(self, inner: str, *args: Any) -> QueryBuilder:
        return self.where_group("AND", inner, *args)

    def or_where_group(self, inner: str, *args: Any) -> QueryBuilder:
        return self.where_group("OR", inner, *args)

    def where_in(self, field: str, values: Sequence[Any], glue: str = "AND") -> QueryBuilder:
        """Add ```field` IN (?, ...)``; an empty sequence matches nothing."""
        glue = _normalize_glue(glue)
        values = list(values)
        if not values:
            self._add_where(glue, ("1 = 0", []))
            return self
        placeholders = ", ".join("?" for _ in values)
        self._add_where(glue, (f"{quote_identifier(field)} IN ({placeholders})", values))
        return self

    def append_where(self, text: str) -> QueryBuilder:
        """Append raw text to the where clause; pair with ``append_bind_values``."""
        self._add_where("AND", (text, []))
        return self

    def get_where(self) -> str:
        return self._where

    # ── joins ────────────────────────────────────────────────────────

    def _join(self, kind: str, table: str, on: Optional[str]) -> QueryBuilder:
        clause = JoinClause(kind, quote_table(table))
        if on:
            clause.constraint = f" ON {on}"
        self._joins.append(clause)
        return self

    def inner_join(self, table: str, on: Optional[str] = None) -> QueryBuilder:
        return self._join("INNER", table, on)

    def left_join(self, table: str, on: Optional[str] = None) -> QueryBuilder:
        return self._join("LEFT", table, on)

    def right_join(self, table: str, on: Optional[str] = None) -> QueryBuilder:
        return self._join("RIGHT", table, on)

    def cross_join(self, table: str, on: Optional[str] = None) -> QueryBuilder:
        return self._join("CROSS", table, on)

    def _last_join(self, operation: str) -> JoinClause:
        if not self._joins:
            raise QueryBuildFault(f"{operation}() requires a preceding join")
        return self._joins[-1]

    def on(self, condition: str) -> QueryBuilder:
        self._last_join("on").constraint = f" ON {condition}"
        return self

    def using(self, field: str) -> QueryBuilder:
        self._last_join("using").constraint = f" USING({quote_identifier(field)})"
        return self

    # ── grouping, ordering, paging ───────────────────────────────────

    def group_by(self, *fields: str) -> QueryBuilder:
        columns = ", ".join(quote_identifier(f) for f in fields)
        self._group_by = f" GROUP BY ({columns})"
        return self

    def having(self, condition: str, values: Optional[Sequence[Any]] = None) -> QueryBuilder:
        self._having = f" HAVING {condition}"
        self._having_params = list(values or [])
        return self

    def order_by(self, field: str, direction: str = "ASC") -> QueryBuilder:
        """
        Add an ORDER BY term.

        An empty field or a direction other than ASC/DESC leaves the
        builder unchanged.
        """
        field = (field or "").strip()
        direction = (direction or "").strip().upper()
        if not field or direction not in ("ASC", "DESC"):
            logger.debug(f"Ignoring order_by({field!r}, {direction!r})")
            return self
        self._order_by.append(f"{field} {direction}")
        return self

    def limit(self, count: int, offset: Optional[int] = None) -> QueryBuilder:
        self._offset = int(offset) if offset else None
        if offset:
            self._limit = f" LIMIT {int(offset)}, {int(count)}"
        else:
            self._limit = f" LIMIT {int(count)}"
        return self

    # ── bound values ─────────────────────────────────────────────────

    def get_bind_values(self) -> List[Any]:
        return self._params + self._where_params + self._having_params

    def append_bind_values(self, values: Any) -> QueryBuilder:
        if isinstance(values, Mapping):
            values = values.values()
        self._where_params.extend(values)
        return self

    def set_bind_values(self, values: Sequence[Any]) -> QueryBuilder:
        self._params = list(values)
        self._where_params = []
        self._having_params = []
        return self

    # ── emission ─────────────────────────────────────────────────────

    def get_query(self) -> str:
        """Assemble the statement text; safe to call repeatedly."""
        if self._kind is StatementKind.RAW:
            return self._query
        if self._kind is not StatementKind.SELECT:
            return self._sql + self._where
        columns = ", ".join(self._columns) or "*"
        order = f" ORDER BY {', '.join(self._order_by)}" if self._order_by else ""
        return (
            f"SELECT {columns} FROM {self._table}"
            + "".join(join.render() for join in self._joins)
            + self._where
            + self._group_by
            + self._having
            + order
            + self._limit
        )

    def get_sql(self) -> str:
        """Like ``get_query`` but cached until ``reset``."""
        if not self._query:
            self._query = self.get_query()
        return self._query

    def get_executed_query(self) -> str:
        """The text last emitted by ``get_sql`` (empty before that)."""
        return self._query

    def build(self) -> Tuple[str, List[Any]]:
        """Emit ``(sql, params)``, re-assembling text cached by ``get_sql``."""
        if self._kind is not StatementKind.RAW:
            self._query = ""
        return self.get_sql(), self.get_bind_values()

    def copy(self) -> QueryBuilder:
        clone = copy.copy(self)
        clone._columns = list(self._columns)
        clone._joins = [replace(join) for join in self._joins]
        clone._order_by = list(self._order_by)
        clone._params = list(self._params)
        clone._where_params = list(self._where_params)
        clone._having_params = list(self._having_params)
        if clone._kind is not StatementKind.RAW:
            clone._query = ""
        return clone

    def __str__(self) -> str:
        return self.get_query()

    def __repr__(self) -> str:
        return f"<QueryBuilder {self._kind.value} {self.get_query()!r}>"


def _is_raw(col: str) -> bool:
    """Check if a column reference is a raw SQL expression."""
    return "(" in col or col == "*"
