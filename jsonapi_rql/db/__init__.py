"""
Database package initializer exposing key public interfaces for configuration
and engine/session management.
"""

from .base import Base, TimestampMixin
from .config import get_settings, Settings
from .session import (
    dispose_engine,
    get_engine,
    get_async_session,
    make_session_factory,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "Settings",
    "get_settings",
    "dispose_engine",
    "get_engine",
    "get_async_session",
    "make_session_factory",
]
