from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_rql.rql.exceptions import RejectedInputError

logger = logging.getLogger(__name__)


class BaseService:
    """
    Base class for services. Holds the request session shared by repositories.

    Services orchestrate a request and translate failures; data access stays
    in repositories.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def write(self, action: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """
        Run a repository write, rolling the session back if it fails.

        The original exception is re-raised for the caller to translate.
        """
        try:
            return await action(*args)
        except (RejectedInputError, SQLAlchemyError):
            logger.debug("Rolling back after failed write")
            await self.session.rollback()
            raise
