"""Abstract repository contract: the operation set every repository exposes."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Generic, Optional, TypeVar

from .query import Include, Predicate, Sort

EntityT = TypeVar("EntityT")


class AbstractRepository(ABC, Generic[EntityT]):
    """
    CRUD and query operations over one entity type.

    Every operation has a blocking and an ``_async`` form with the same
    selection, ordering and success semantics.
    """

    @abstractmethod
    def all(
        self,
        *includes: Include,
        predicate: Optional[Predicate] = None,
        sort: Optional[Sort] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
    ) -> list[EntityT]:
        """Entities matching ``predicate``, ordered by ``sort``, paged by ``skip``/``take``."""

    @abstractmethod
    async def all_async(
        self,
        *includes: Include,
        predicate: Optional[Predicate] = None,
        sort: Optional[Sort] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
    ) -> list[EntityT]:
        ...

    @abstractmethod
    def any(self, *includes: Include, predicate: Optional[Predicate] = None) -> bool:
        """Whether at least one entity (matching ``predicate`` when given) exists."""

    @abstractmethod
    async def any_async(
        self, *includes: Include, predicate: Optional[Predicate] = None
    ) -> bool:
        ...

    @abstractmethod
    def get(self, predicate: Predicate, *includes: Include) -> Optional[EntityT]:
        """First entity matching ``predicate``, or None."""

    @abstractmethod
    async def get_async(self, predicate: Predicate, *includes: Include) -> Optional[EntityT]:
        ...

    @abstractmethod
    def create(self, *entities: EntityT) -> bool:
        """Insert entities. True when at least as many rows as entities were written."""

    @abstractmethod
    async def create_async(self, *entities: EntityT) -> bool:
        ...

    @abstractmethod
    def update(self, *entities: EntityT) -> bool:
        """Replace the stored records of entities. Same success rule as create."""

    @abstractmethod
    async def update_async(self, *entities: EntityT) -> bool:
        ...

    @abstractmethod
    def delete(self, *entities: EntityT) -> bool:
        """Remove entities. Same success rule as create."""

    @abstractmethod
    async def delete_async(self, *entities: EntityT) -> bool:
        ...
