from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Optional, Sequence, Union

from sqlalchemy import Select, select

from entity_repository.core.logging import operation_context

from .context import AsyncDataContext, DataContext
from .interface import AbstractRepository, EntityT
from .query import (
    Include,
    Predicate,
    QueryOptions,
    Sort,
    aggregate_includes,
    aggregate_query,
)

logger = logging.getLogger(__name__)


class Repository(AbstractRepository[EntityT]):
    """
    Generic SQLAlchemy repository for one mapped entity class.

    Every call provisions its own data context, builds a statement from the
    shared query builders, executes it, materializes the result and closes the
    context, whether the call succeeds or raises. Store errors propagate
    unchanged.

    Usage:
        class ItemRepository(Repository[Item]):
            entity_type = Item

        items = ItemRepository().all(sort=order_by(Item.name), take=10)

    Note:
      Override get_data_context()/get_async_data_context() (or the
      context_class/async_context_class attributes) to bind a specific
      session factory instead of the one configured from the environment.
    """

    entity_type: type[EntityT]
    context_class: type[DataContext] = DataContext
    async_context_class: type[AsyncDataContext] = AsyncDataContext

    def __init__(self, entity_type: Optional[type[EntityT]] = None) -> None:
        if entity_type is not None:
            self.entity_type = entity_type
        if getattr(self, "entity_type", None) is None:
            raise TypeError(
                f"{type(self).__name__} needs an entity_type, either as a class "
                "attribute or a constructor argument."
            )

    def get_data_context(self) -> DataContext:
        """
        Create a new blocking data context.

        The caller owns the context and must close it; repository methods do so
        with a ``with`` block.
        """
        return self.context_class()

    def get_async_data_context(self) -> AsyncDataContext:
        """Create a new async data context. Closed with ``async with``."""
        return self.async_context_class()

    # Statement builders shared by the blocking and async paths

    def _query_statement(
        self, context: Union[DataContext, AsyncDataContext], options: QueryOptions, includes: Sequence[Include]
    ) -> Select:
        return aggregate_query(context.query(self.entity_type), options, includes)

    def _exists_statement(
        self, context: Union[DataContext, AsyncDataContext], predicate: Optional[Predicate], includes: Sequence[Include]
    ) -> Select:
        items = aggregate_includes(context.query(self.entity_type), includes)
        if predicate is not None:
            items = items.where(predicate)
        return select(items.exists())

    def _get_statement(
        self, context: Union[DataContext, AsyncDataContext], predicate: Predicate, includes: Sequence[Include]
    ) -> Select:
        return aggregate_includes(context.query(self.entity_type), includes).where(predicate).limit(1)

    def _operation(self, name: str) -> AbstractContextManager[None]:
        return operation_context(name, self.entity_type.__name__)

    @staticmethod
    def _succeeded(persisted: int, requested: Sequence[EntityT]) -> bool:
        # Cascades may write more rows than requested; fewer means something was not written.
        if not requested:
            logger.debug("No entities supplied; nothing to persist")
        else:
            logger.debug("Persisted %d row(s) for %d entities", persisted, len(requested))
        return persisted >= len(requested)

    # Reads

    def all(
        self,
        *includes: Include,
        predicate: Optional[Predicate] = None,
        sort: Optional[Sort] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
    ) -> list[EntityT]:
        options = QueryOptions(predicate=predicate, sort=sort, skip=skip, take=take)
        with self._operation("all"), self.get_data_context() as context:
            statement = self._query_statement(context, options, includes)
            rows = context.scalars(statement).unique().all()
            logger.debug("Loaded %d row(s)", len(rows))
            return list(rows)

    async def all_async(
        self,
        *includes: Include,
        predicate: Optional[Predicate] = None,
        sort: Optional[Sort] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
    ) -> list[EntityT]:
        options = QueryOptions(predicate=predicate, sort=sort, skip=skip, take=take)
        with self._operation("all_async"):
            async with self.get_async_data_context() as context:
                statement = self._query_statement(context, options, includes)
                rows = (await context.scalars(statement)).unique().all()
                logger.debug("Loaded %d row(s)", len(rows))
                return list(rows)

    def any(self, *includes: Include, predicate: Optional[Predicate] = None) -> bool:
        with self._operation("any"), self.get_data_context() as context:
            return bool(context.scalar(self._exists_statement(context, predicate, includes)))

    async def any_async(
        self, *includes: Include, predicate: Optional[Predicate] = None
    ) -> bool:
        with self._operation("any_async"):
            async with self.get_async_data_context() as context:
                statement = self._exists_statement(context, predicate, includes)
                return bool(await context.scalar(statement))

    def get(self, predicate: Predicate, *includes: Include) -> Optional[EntityT]:
        with self._operation("get"), self.get_data_context() as context:
            return context.scalars(self._get_statement(context, predicate, includes)).unique().first()

    async def get_async(self, predicate: Predicate, *includes: Include) -> Optional[EntityT]:
        with self._operation("get_async"):
            async with self.get_async_data_context() as context:
                statement = self._get_statement(context, predicate, includes)
                return (await context.scalars(statement)).unique().first()

    # Mutations

    def create(self, *entities: EntityT) -> bool:
        with self._operation("create"), self.get_data_context() as context:
            context.add_range(entities)
            return self._succeeded(context.save_changes(), entities)

    async def create_async(self, *entities: EntityT) -> bool:
        with self._operation("create_async"):
            async with self.get_async_data_context() as context:
                context.add_range(entities)
                return self._succeeded(await context.save_changes(), entities)

    def update(self, *entities: EntityT) -> bool:
        with self._operation("update"), self.get_data_context() as context:
            context.update_range(entities)
            return self._succeeded(context.save_changes(), entities)

    async def update_async(self, *entities: EntityT) -> bool:
        with self._operation("update_async"):
            async with self.get_async_data_context() as context:
                context.update_range(entities)
                return self._succeeded(await context.save_changes(), entities)

    def delete(self, *entities: EntityT) -> bool:
        with self._operation("delete"), self.get_data_context() as context:
            context.remove_range(entities)
            return self._succeeded(context.save_changes(), entities)

    async def delete_async(self, *entities: EntityT) -> bool:
        with self._operation("delete_async"):
            async with self.get_async_data_context() as context:
                await context.remove_range(entities)
                return self._succeeded(await context.save_changes(), entities)
