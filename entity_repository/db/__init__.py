"""
Database package initializer exposing key public interfaces for configuration,
declarative models and engine/session management.
"""

from .base import Base, IntPkMixin, TimestampMixin
from .config import get_settings, Settings
from .session import (
    dispose_async_engines,
    dispose_engines,
    get_async_engine,
    get_async_session_factory,
    get_engine,
    get_session_factory,
)

__all__ = [
    "Base",
    "IntPkMixin",
    "TimestampMixin",
    "Settings",
    "get_settings",
    "get_engine",
    "get_async_engine",
    "get_session_factory",
    "get_async_session_factory",
    "dispose_engines",
    "dispose_async_engines",
]
