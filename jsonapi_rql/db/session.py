from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import get_settings


_ENGINE: AsyncEngine | None = None
_SESSION_MAKER: async_sessionmaker[AsyncSession] | None = None


def _ensure_engine_initialized() -> None:
    """
    Lazily initialize the AsyncEngine and session maker.
    """
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is None:
        settings = get_settings()
        _ENGINE = create_async_engine(
            settings.async_database_url,
            echo=settings.SQL_ECHO,
            pool_pre_ping=True,
        )
    if _SESSION_MAKER is None:
        _SESSION_MAKER = make_session_factory(_ENGINE)


# PUBLIC_INTERFACE
def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory with the options every session in this package uses."""
    return async_sessionmaker(
        bind=engine, expire_on_commit=False, autoflush=False, autocommit=False
    )


# PUBLIC_INTERFACE
def get_engine() -> AsyncEngine:
    """Return the global AsyncEngine instance."""
    _ensure_engine_initialized()
    assert _ENGINE is not None
    return _ENGINE


# PUBLIC_INTERFACE
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession suitable for FastAPI dependency injection.
    Ensures engine/session factory is initialized.
    """
    _ensure_engine_initialized()
    assert _SESSION_MAKER is not None
    async with _SESSION_MAKER() as session:
        yield session


# PUBLIC_INTERFACE
async def dispose_engine() -> None:
    """Dispose the global engine, if one was created, and forget it."""
    global _ENGINE, _SESSION_MAKER
    if _ENGINE is not None:
        await _ENGINE.dispose()
    _ENGINE = None
    _SESSION_MAKER = None
