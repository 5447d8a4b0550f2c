"""
Pytest configuration and shared fixtures.

This module provides:
- A file-backed SQLite database per test, reachable from both the blocking
  (sqlite://) and async (sqlite+aiosqlite://) drivers
- Session factories and repositories bound to that database
- Seed data
"""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.orm import sessionmaker

from entity_repository.db.base import Base
from entity_repository.repositories import AsyncDataContext, DataContext, Repository
from tests.models import Category, Item


class ItemRepository(Repository[Item]):
    """Repository bound to explicit session factories instead of the environment."""

    entity_type = Item

    def __init__(self, session_factory, async_session_factory=None):
        super().__init__()
        self.session_factory = session_factory
        self.async_session_factory = async_session_factory

    def get_data_context(self) -> DataContext:
        return DataContext(session_factory=self.session_factory)

    def get_async_data_context(self) -> AsyncDataContext:
        return AsyncDataContext(session_factory=self.async_session_factory)


@pytest.fixture
def anyio_backend():
    """
    Configure anyio backend for async tests.

    Returns:
        str: Backend name ("asyncio")
    """
    return "asyncio"


@pytest.fixture
def database_path(tmp_path):
    """Path of the SQLite file backing the current test."""
    return tmp_path / "repository.db"


@pytest.fixture
def engine(database_path):
    """
    Blocking engine with all tables created.

    Disposed after the test.
    """
    engine = create_engine(
        f"sqlite:///{database_path}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def async_session_factory(database_path, engine):
    """
    Async session factory over the same SQLite file as `engine`.

    Depends on `engine` so the schema exists before the first async query.
    """
    async_engine = create_async_engine(f"sqlite+aiosqlite:///{database_path}")
    yield async_sessionmaker(async_engine, expire_on_commit=False, autoflush=False)
    await async_engine.dispose()


@pytest.fixture
def repo(session_factory):
    """Blocking ItemRepository."""
    return ItemRepository(session_factory)


@pytest.fixture
def async_repo(session_factory, async_session_factory):
    """ItemRepository with both blocking and async contexts."""
    return ItemRepository(session_factory, async_session_factory)


@pytest.fixture
def seeded(session_factory):
    """
    Seed two categories and five items.

    Returns:
        dict: {"categories": [...], "items": [...]} as persisted (detached) instances
    """
    tools = Category(id=1, name="tools")
    toys = Category(id=2, name="toys")
    items = [
        Item(id=1, name="a", price=5, category=tools),
        Item(id=2, name="b", price=20, category=toys),
        Item(id=3, name="c", price=15, category=tools),
        Item(id=4, name="d", price=30, category=None),
        Item(id=5, name="e", price=10, category=toys),
    ]
    with session_factory() as session:
        session.add_all([tools, toys, *items])
        session.commit()
    return {"categories": [tools, toys], "items": items}
