"""
Repository layer for data access.

Repositories own the SQLAlchemy statements for one mapped class; callers
provide the AsyncSession (e.g. via the jsonapi_rql.db.get_async_session
dependency) and decide when failed writes are rolled back.
"""
from __future__ import annotations

from typing import Any, Generic, Optional, Type, TypeVar

from sqlalchemy import Executable, Result
from sqlalchemy.ext.asyncio import AsyncSession

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    """Statement helpers bound to a session and a mapped class."""

    def __init__(self, session: AsyncSession, model: Type[ModelT]) -> None:
        self.session = session
        self.model = model

    async def execute(self, statement: Executable) -> Result[Any]:
        return await self.session.execute(statement)

    async def scalars(self, statement: Executable) -> list[ModelT]:
        """Execute and return every scalar row (unique, for eager-loaded collections)."""
        result = await self.execute(statement)
        return list(result.scalars().unique())

    async def scalar_one_or_none(self, statement: Executable) -> Optional[ModelT]:
        result = await self.execute(statement)
        return result.scalar_one_or_none()

    async def add(self, entity: ModelT) -> None:
        self.session.add(entity)

    async def delete(self, entity: ModelT) -> None:
        await self.session.delete(entity)

    async def commit(self) -> None:
        await self.session.commit()

    def expire(self, entity: ModelT) -> None:
        """Mark loaded state stale so the next select repopulates it."""
        self.session.expire(entity)
