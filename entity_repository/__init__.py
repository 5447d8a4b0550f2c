"""
Generic SQLAlchemy repository with blocking and async CRUD/query operations.
"""
from .core.logging import configure_logging
from .repositories import (
    AbstractRepository,
    AsyncDataContext,
    DataContext,
    QueryOptions,
    Repository,
    include,
    order_by,
)

__all__ = [
    "AbstractRepository",
    "AsyncDataContext",
    "DataContext",
    "QueryOptions",
    "Repository",
    "configure_logging",
    "include",
    "order_by",
]
