"""Query primitives shared by every store implementation.

A query is a table name plus a tuple of :class:`Filter` predicates, an
optional :class:`Order` and a limit. The same filters scope live channels:
:meth:`Filter.matches` evaluates a predicate against an inserted row, and
:meth:`Filter.to_param` renders it as a PostgREST query parameter.

Example:
    >>> from climasync.query import eq, in_, Order
    >>> filters = (eq("is_public", True),)
    >>> [f.to_param() for f in filters]
    [('is_public', 'eq.true')]
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class Op(StrEnum):
    """Supported comparison operators (PostgREST names)."""

    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    IS = "is"
    ILIKE = "ilike"


def _encode(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class Filter:
    """Column predicate.

    Attributes:
        column: Column name
        op: Comparison operator
        value: Right-hand side (a sequence for ``Op.IN``)
    """

    column: str
    op: Op
    value: Any

    def to_param(self) -> tuple[str, str]:
        """Render as a PostgREST ``(column, "op.value")`` query pair."""
        if self.op is Op.IN:
            inner = ",".join(f'"{_encode(v)}"' for v in self.value)
            return self.column, f"in.({inner})"
        if self.op is Op.ILIKE:
            return self.column, f"ilike.*{self.value}*"
        return self.column, f"{self.op.value}.{_encode(self.value)}"

    def matches(self, row: dict[str, Any]) -> bool:
        """Evaluate the predicate against a row dictionary."""
        actual = row.get(self.column)
        if self.op is Op.EQ:
            return actual == self.value
        if self.op is Op.NEQ:
            return actual != self.value
        if self.op is Op.IS:
            return actual is self.value
        if self.op is Op.IN:
            return actual in set(self.value)
        if self.op is Op.ILIKE:
            return actual is not None and str(self.value).lower() in str(actual).lower()
        if actual is None:
            return False
        if self.op is Op.GT:
            return actual > self.value
        if self.op is Op.GTE:
            return actual >= self.value
        if self.op is Op.LT:
            return actual < self.value
        return actual <= self.value


@dataclass(frozen=True)
class Order:
    """Sort specification (one or more columns, applied left to right)."""

    column: str
    ascending: bool = False

    def to_param(self) -> str:
        return f"{self.column}.{'asc' if self.ascending else 'desc'}"


Filters = Sequence[Filter]
Ordering = Order | Sequence[Order] | None


def eq(column: str, value: Any) -> Filter:
    return Filter(column, Op.EQ, value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, Op.NEQ, value)


def gt(column: str, value: Any) -> Filter:
    return Filter(column, Op.GT, value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, Op.GTE, value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, Op.IN, tuple(values))


def ilike(column: str, term: str) -> Filter:
    return Filter(column, Op.ILIKE, term)


def desc(column: str) -> Order:
    return Order(column, ascending=False)


def asc(column: str) -> Order:
    return Order(column, ascending=True)


def orders(ordering: Ordering) -> list[Order]:
    """Normalize an ordering argument into a list."""
    if ordering is None:
        return []
    if isinstance(ordering, Order):
        return [ordering]
    return list(ordering)


def matches_all(filters: Filters, row: dict[str, Any]) -> bool:
    """True when every filter accepts ``row``."""
    return all(f.matches(row) for f in filters)


# Tables whose primary key is not ``id``
PRIMARY_KEYS: dict[str, str] = {
    "user_stats": "user_id",
}

# Natural keys enforced as unique constraints by the store
UNIQUE_KEYS: dict[str, tuple[str, ...]] = {
    "reactions": ("user_id", "parent_type", "parent_id"),
    "user_challenge_completions": ("user_id", "challenge_id"),
    "team_members": ("team_id", "user_id"),
    "bookmarks": ("user_id", "post_id"),
    "post_tags": ("post_id", "tag_id"),
}


def primary_key(entity_type: str) -> str:
    """Primary key column for ``entity_type``."""
    return PRIMARY_KEYS.get(entity_type, "id")


__all__ = [
    "Op",
    "Filter",
    "Order",
    "Filters",
    "Ordering",
    "eq",
    "neq",
    "gt",
    "gte",
    "in_",
    "ilike",
    "asc",
    "desc",
    "orders",
    "matches_all",
    "primary_key",
    "PRIMARY_KEYS",
    "UNIQUE_KEYS",
]
