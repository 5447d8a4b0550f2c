"""
Query composition for repositories.

Everything here is pure statement building: no session, no I/O. The blocking
and async repository methods share these builders so both execution modes
select, order and page rows identically.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import reduce
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import ColumnElement, Select

# A relation-inclusion modifier, e.g. ``lambda q: q.options(selectinload(Item.tags))``.
Include = Callable[[Select], Select]

# A sort modifier, e.g. ``lambda q: q.order_by(Item.name.desc())``.
Sort = Callable[[Select], Select]

# A boolean SQL expression, e.g. ``Item.name == "a"``.
Predicate = ColumnElement[bool]


@dataclass(frozen=True)
class QueryOptions:
    """
    Optional modifiers for a listing query.

    Attributes:
        predicate: Rows to keep. ``None`` selects every row.
        sort: Ordering applied after filtering. ``None`` keeps the store's default order.
        skip: Rows to discard from the start of the ordered result. ``None`` discards nothing.
        take: Maximum rows to return after skipping. ``None`` is unbounded.

    Raises:
        ValueError: If skip or take is negative.
    """

    predicate: Optional[Predicate] = None
    sort: Optional[Sort] = None
    skip: Optional[int] = None
    take: Optional[int] = None

    def __post_init__(self) -> None:
        if self.skip is not None and self.skip < 0:
            raise ValueError(f"skip must be >= 0, got {self.skip}")
        if self.take is not None and self.take < 0:
            raise ValueError(f"take must be >= 0, got {self.take}")


# PUBLIC_INTERFACE
def aggregate_includes(query: Select, includes: Iterable[Include] = ()) -> Select:
    """
    Fold include modifiers over a base statement, left to right.

    Each include receives the statement produced by the previous one, so the
    caller's order is preserved. No includes returns ``query`` unchanged.
    """
    return reduce(lambda current, include: include(current), includes, query)


# PUBLIC_INTERFACE
def aggregate_query(
    query: Select,
    options: Optional[QueryOptions] = None,
    includes: Iterable[Include] = (),
) -> Select:
    """
    Build the final listing statement.

    Applies includes, then filter, sort, skip and take in that order. Each step
    is skipped when its option is absent.
    """
    options = options or QueryOptions()
    items = aggregate_includes(query, includes)

    if options.predicate is not None:
        items = items.where(options.predicate)

    if options.sort is not None:
        items = options.sort(items)

    if options.skip is not None:
        items = items.offset(options.skip)

    if options.take is not None:
        items = items.limit(options.take)

    return items


# PUBLIC_INTERFACE
def include(*loader_options: Any) -> Include:
    """
    Build an include modifier from ORM loader options.

    Example:
        repo.all(include(selectinload(Order.lines)))
    """
    return lambda query: query.options(*loader_options)


# PUBLIC_INTERFACE
def order_by(*clauses: Any) -> Sort:
    """
    Build a sort modifier from ORDER BY clauses.

    Example:
        repo.all(sort=order_by(Item.name.desc()))
    """
    return lambda query: query.order_by(*clauses)
