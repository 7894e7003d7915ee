from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from jsonapi_rql.jsonapi.resource import ResourceDefinition
from jsonapi_rql.query.builder import ClauseBuilder, coerce_to_column
from jsonapi_rql.query.visitor import SqlAlchemyNodeVisitor
from jsonapi_rql.rql.nodes import AbstractQueryNode, Query
from .base import BaseRepository

logger = logging.getLogger(__name__)

FilterQuery = Union[Query, AbstractQueryNode, None]


class ResourceRepository(BaseRepository):
    """
    Generic repository for the mapped class behind a ResourceDefinition.

    Filters are RQL trees translated through ClauseBuilder. Every declared
    relationship is eager-loaded, together with the relationships of the
    related objects, so serialization never triggers lazy loads.
    """

    def __init__(self, session, definition: ResourceDefinition) -> None:
        super().__init__(session, definition.model)
        self.definition = definition
        self.visitor = SqlAlchemyNodeVisitor()

    def _select(self):
        stmt = select(self.model)
        for name in self.definition.relationships:
            attribute = getattr(self.model, name)
            target = self.definition.relationship(name).mapper
            stmt = stmt.options(selectinload(attribute))
            # related objects render their own linkage when included
            for nested in target.relationships:
                stmt = stmt.options(selectinload(attribute).selectinload(nested.class_attribute))
        return stmt

    def build_filter(self, query: FilterQuery) -> ClauseBuilder:
        """Translate an RQL query into a ClauseBuilder over the filterable columns."""
        builder = ClauseBuilder(self.definition.columns)
        self.visitor.visit(query, builder)
        return builder

    async def list(
        self,
        *,
        query: FilterQuery = None,
        sort: Optional[Mapping[str, int]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[Any]:
        stmt = self.build_filter(query).apply(self._select())
        for field, direction in (sort or {}).items():
            column = getattr(self.model, field)
            stmt = stmt.order_by(column.desc() if direction < 0 else column.asc())
        # stable paging
        stmt = stmt.order_by(getattr(self.model, self.definition.id_attribute).asc())
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return await self.scalars(stmt)

    async def count(self, query: FilterQuery = None) -> int:
        stmt = self.build_filter(query).apply(select(func.count()).select_from(self.model))
        result = await self.execute(stmt)
        return int(result.scalar_one())

    def coerce_key(self, key: str, value: Any) -> Optional[Any]:
        """Convert a textual key to the Python type of column `key`; None if impossible."""
        column = self.definition.column(key)
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return value
        if isinstance(value, python_type):
            return value
        try:
            return python_type(value)
        except (TypeError, ValueError):
            return None

    def coerce_id(self, resource_id: Any) -> Optional[Any]:
        return self.coerce_key(self.definition.id_attribute, resource_id)

    async def get(self, resource_id: Any) -> Optional[Any]:
        key = self.coerce_id(resource_id)
        if key is None:
            return None
        stmt = self._select().where(getattr(self.model, self.definition.id_attribute) == key)
        return await self.scalar_one_or_none(stmt)

    def _coerce_values(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            key: coerce_to_column(self.definition.column(key), value)
            for key, value in values.items()
        }

    async def create(self, values: Mapping[str, Any]) -> Any:
        row = self.model(**self._coerce_values(values))
        await self.add(row)
        await self.commit()
        resource_id = getattr(row, self.definition.id_attribute)
        logger.info("Created %s %s", self.definition.type, resource_id)
        # the reselect loads relationships only for expired state
        self.expire(row)
        return await self.get(resource_id)

    async def update(self, row: Any, values: Mapping[str, Any]) -> Any:
        for key, value in self._coerce_values(values).items():
            setattr(row, key, value)
        resource_id = getattr(row, self.definition.id_attribute)
        await self.commit()
        logger.info("Updated %s %s", self.definition.type, resource_id)
        self.expire(row)
        return await self.get(resource_id)

    async def remove(self, row: Any) -> None:
        resource_id = getattr(row, self.definition.id_attribute)
        await self.delete(row)
        await self.commit()
        logger.info("Deleted %s %s", self.definition.type, resource_id)
