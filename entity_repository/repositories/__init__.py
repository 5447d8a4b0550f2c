"""
Repository layer for data access.

A Repository exposes uniform CRUD and query operations for one mapped entity
class. Each call runs against its own DataContext (one Session or AsyncSession)
that is closed before the call returns.
"""
from .base import Repository
from .context import AsyncDataContext, DataContext
from .interface import AbstractRepository
from .query import (
    Include,
    Predicate,
    QueryOptions,
    Sort,
    aggregate_includes,
    aggregate_query,
    include,
    order_by,
)

__all__ = [
    "AbstractRepository",
    "AsyncDataContext",
    "DataContext",
    "Include",
    "Predicate",
    "QueryOptions",
    "Repository",
    "Sort",
    "aggregate_includes",
    "aggregate_query",
    "include",
    "order_by",
]
