from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

_ENGINE: Engine | None = None
_SESSION_MAKER: sessionmaker[Session] | None = None
_ASYNC_ENGINE: AsyncEngine | None = None
_ASYNC_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _engine_kwargs(settings: Settings, url: str) -> dict[str, Any]:
    """
    Engine options shared by the sync and async engines.

    SQLite needs check_same_thread=False for async/threaded use, and an
    in-memory database must stay on a single connection (StaticPool).
    """
    kwargs: dict[str, Any] = {"echo": settings.SQL_ECHO}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url.rstrip("/").endswith(":"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = settings.POOL_PRE_PING
    return kwargs


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the blocking Engine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        url = settings.sync_database_url
        _ENGINE = create_engine(url, **_engine_kwargs(settings, url))
        logger.debug("Created sync engine for %s", _ENGINE.url.render_as_string())
    if _SESSION_MAKER is None:
        _SESSION_MAKER = sessionmaker(
            bind=_ENGINE, expire_on_commit=False, autoflush=False
        )


def _ensure_async_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ASYNC_ENGINE, _ASYNC_SESSION_MAKER
    if _ASYNC_ENGINE is None:
        settings = get_settings()
        url = settings.async_database_url
        _ASYNC_ENGINE = create_async_engine(url, **_engine_kwargs(settings, url))
        logger.debug("Created async engine for %s", _ASYNC_ENGINE.url.render_as_string())
    if _ASYNC_SESSION_MAKER is None:
        _ASYNC_SESSION_MAKER = async_sessionmaker(
            bind=_ASYNC_ENGINE, expire_on_commit=False, autoflush=False
        )


# PUBLIC_INTERFACE
def get_engine() -> Engine:
    """Return the global blocking Engine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
def get_async_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_async_engine_initialized()
    assert _ASYNC_ENGINE is not None
    return _ASYNC_ENGINE


# PUBLIC_INTERFACE
def get_session_factory() -> sessionmaker[Session]:
    """
    Return the global session maker used by parameterless DataContext instances.

    Sessions keep their attributes after commit (expire_on_commit=False) so
    entities stay readable once the session is closed.
    """
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    return _SESSION_MAKER


# PUBLIC_INTERFACE
def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the global async session maker used by parameterless AsyncDataContext instances."""
    _ensure_async_engine_initialized()
    assert _ASYNC_SESSION_MAKER is not None
    return _ASYNC_SESSION_MAKER


# PUBLIC_INTERFACE
def dispose_engines() -> None:
    """
    Dispose the blocking engine and forget the session maker.

    The next call to get_engine()/get_session_factory() re-reads settings.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None


# PUBLIC_INTERFACE
async def dispose_async_engines() -> None:
    """Async counterpart of dispose_engines() for the AsyncEngine."""
    global _ASYNC_ENGINE, _ASYNC_SESSION_MAKER
    if _ASYNC_ENGINE is not None:
        await _ASYNC_ENGINE.dispose()
    _ASYNC_ENGINE = None
    _ASYNC_SESSION_MAKER = None
