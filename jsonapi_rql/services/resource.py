from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from jsonapi_rql.jsonapi.errors import (
    BadRequest,
    ConflictError,
    ResourceNotFound,
    UnprocessableEntity,
)
from jsonapi_rql.jsonapi.request import JsonApiRequest
from jsonapi_rql.jsonapi.resource import ResourceDefinition
from jsonapi_rql.jsonapi.serializer import JSONAPI_VERSION, JsonApiSerializer, LinkResolver
from jsonapi_rql.repositories.resource import ResourceRepository
from jsonapi_rql.rql.exceptions import RejectedInputError
from jsonapi_rql.schemas.document import ResourceDocumentIn, ResourceObjectIn
from jsonapi_rql.services.base import BaseService

logger = logging.getLogger(__name__)


class ResourceService(BaseService):
    """
    Orchestrates the JSON:API actions for one resource type.

    Validates request parameters and documents against the ResourceDefinition,
    delegates persistence to ResourceRepository and renders documents with
    JsonApiSerializer. Failures are raised as JsonApiError subclasses.
    """

    def __init__(
        self,
        session: AsyncSession,
        definition: ResourceDefinition,
        serializer: JsonApiSerializer,
    ) -> None:
        super().__init__(session)
        self.definition = definition
        self.serializer = serializer
        self.repo = ResourceRepository(session, definition)

    # validation helpers

    def _check_include(self, include: List[str]) -> None:
        for name in include:
            if name not in self.definition.relationships:
                raise BadRequest(
                    f"Cannot include {name!r}: not a relationship of {self.definition.type!r}",
                    parameter="include",
                )

    def _check_sort(self, sort: Dict[str, int]) -> None:
        for name in sort:
            if name not in (self.definition.sortable or ()):
                raise BadRequest(f"Cannot sort {self.definition.type!r} by {name!r}", parameter="sort")

    def _fields(self, request: JsonApiRequest) -> Dict[str, List[str]]:
        fields = dict(request.fields)
        select = request.filter.select
        if select is not None and self.definition.type not in fields:
            fields[self.definition.type] = list(select.fields)
        own = fields.get(self.definition.type)
        if own is not None:
            known = set(self.definition.attributes or ()) | set(self.definition.relationships)
            unknown = [name for name in own if name not in known]
            if unknown:
                raise BadRequest(
                    f"Unknown fields for {self.definition.type!r}: {', '.join(unknown)}",
                    parameter=f"fields[{self.definition.type}]",
                )
        return fields

    # PUBLIC_INTERFACE
    async def list_resources(
        self,
        request: JsonApiRequest,
        *,
        url: Any = None,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """
        Render a page of the collection.

        Parameters:
            request: parsed query parameters
            url: request URL used to build pagination links
            links: resolver for resource links
        Returns:
            collection document with meta.total and pagination links.
        """
        self._check_include(request.include)
        self._check_sort(request.sort)
        fields = self._fields(request)

        try:
            total = await self.repo.count(request.filter)
            rows = await self.repo.list(
                query=request.filter,
                sort=request.sort,
                offset=request.page.offset,
                limit=request.page.size,
            )
        except RejectedInputError as exc:
            raise BadRequest(str(exc), parameter="filter") from exc

        pagination = request.page.links(url, total) if url is not None else None
        return self.serializer.collection_document(
            self.definition,
            rows,
            total=total,
            include=request.include,
            fields=fields,
            links=links,
            pagination=pagination,
        )

    async def _get_or_404(self, resource_id: str) -> Any:
        row = await self.repo.get(resource_id)
        if row is None:
            raise ResourceNotFound(f"{self.definition.type} {resource_id!r} was not found")
        return row

    # PUBLIC_INTERFACE
    async def get_resource(
        self,
        resource_id: str,
        request: JsonApiRequest,
        *,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """Render a single resource, or raise ResourceNotFound."""
        self._check_include(request.include)
        fields = self._fields(request)
        row = await self._get_or_404(resource_id)
        return self.serializer.document(
            self.definition, row, include=request.include, fields=fields, links=links
        )

    # PUBLIC_INTERFACE
    async def get_related(
        self,
        resource_id: str,
        name: str,
        request: JsonApiRequest,
        *,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """
        Render the resource(s) a relationship points to.

        Raises:
            ResourceNotFound: unknown resource, unknown relationship or
                a related type that is not registered.
        """
        if name not in self.definition.relationships:
            raise ResourceNotFound(f"{self.definition.type!r} has no relationship {name!r}")
        related_definition = self.serializer.registry.get(self.definition.relationships[name])
        if related_definition is None:
            raise ResourceNotFound(f"Relationship {name!r} is not exposed")
        row = await self._get_or_404(resource_id)
        related = getattr(row, name)
        if self.definition.is_to_many(name):
            items = list(related or ())
            return self.serializer.collection_document(
                related_definition, items, total=len(items), fields=request.fields, links=links
            )
        if related is None:
            return {"jsonapi": {"version": JSONAPI_VERSION}, "data": None}
        return self.serializer.document(related_definition, related, fields=request.fields, links=links)

    def _parse_document(self, body: Any) -> ResourceObjectIn:
        try:
            document = ResourceDocumentIn.model_validate(body)
        except ValidationError as exc:
            first = exc.errors()[0]
            pointer = "/" + "/".join(str(part) for part in first["loc"])
            raise BadRequest(f"Invalid document: {first['msg']}", pointer=pointer) from exc
        resource = document.data
        if resource.type != self.definition.type:
            raise ConflictError(
                f"Resource type {resource.type!r} does not match endpoint type {self.definition.type!r}",
                pointer="/data/type",
            )
        return resource

    def _values(self, resource: ResourceObjectIn, *, require_all: bool) -> Dict[str, Any]:
        attributes = set(self.definition.attributes or ())
        unknown = [name for name in resource.attributes if name not in attributes]
        if unknown:
            raise UnprocessableEntity(
                f"Unknown attributes for {self.definition.type!r}: {', '.join(sorted(unknown))}",
                pointer=f"/data/attributes/{sorted(unknown)[0]}",
            )
        if require_all:
            missing = [name for name in self.definition.attributes or () if name not in resource.attributes]
            if missing:
                raise UnprocessableEntity(
                    f"Missing attributes for a full replacement: {', '.join(missing)}",
                    pointer="/data/attributes",
                )

        values = dict(resource.attributes)
        for name, relationship in resource.relationships.items():
            if name not in self.definition.relationships:
                raise UnprocessableEntity(
                    f"Unknown relationship {name!r} for {self.definition.type!r}",
                    pointer=f"/data/relationships/{name}",
                )
            attribute = self.definition.foreign_key_attribute(name)
            if attribute is None or isinstance(relationship.data, list):
                raise UnprocessableEntity(
                    f"Relationship {name!r} cannot be set through this resource",
                    pointer=f"/data/relationships/{name}",
                )
            linkage = relationship.data
            if linkage is None:
                values[attribute] = None
                continue
            if linkage.type != self.definition.relationships[name]:
                raise ConflictError(
                    f"Relationship {name!r} expects type {self.definition.relationships[name]!r}",
                    pointer=f"/data/relationships/{name}/data/type",
                )
            key = self.repo.coerce_key(attribute, linkage.id)
            if key is None:
                raise UnprocessableEntity(
                    f"Invalid identifier {linkage.id!r} for relationship {name!r}",
                    pointer=f"/data/relationships/{name}/data/id",
                )
            values[attribute] = key
        return values

    async def _persist(self, action, *args) -> Any:
        try:
            return await self.write(action, *args)
        except RejectedInputError as exc:
            raise UnprocessableEntity(str(exc), pointer="/data/attributes") from exc
        except IntegrityError as exc:
            logger.warning("Integrity error on %s: %s", self.definition.type, exc.orig)
            raise ConflictError("The resource conflicts with existing data") from exc

    # PUBLIC_INTERFACE
    async def create_resource(
        self, body: Any, *, links: Optional[LinkResolver] = None
    ) -> Tuple[Dict[str, Any], Optional[str]]:
        """
        Create a resource from a request document.

        Returns:
            (document, location) where location is the new resource's URL, if routable.
        """
        resource = self._parse_document(body)
        values = self._values(resource, require_all=False)
        if resource.id is not None:
            if await self.repo.get(resource.id) is not None:
                raise ConflictError(
                    f"{self.definition.type} {resource.id!r} already exists", pointer="/data/id"
                )
            key = self.repo.coerce_id(resource.id)
            if key is None:
                raise UnprocessableEntity(f"Invalid identifier {resource.id!r}", pointer="/data/id")
            values[self.definition.id_attribute] = key
        row = await self._persist(self.repo.create, values)
        document = self.serializer.document(self.definition, row, links=links)
        location = links.resource(self.definition.type, document["data"]["id"]) if links else None
        return document, location

    # PUBLIC_INTERFACE
    async def update_resource(
        self,
        resource_id: str,
        body: Any,
        *,
        partial: bool,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """
        Update a resource. PATCH (partial=True) accepts a subset of attributes;
        PUT requires every attribute.
        """
        resource = self._parse_document(body)
        if resource.id is not None and resource.id != str(resource_id):
            raise ConflictError(
                f"Document id {resource.id!r} does not match {resource_id!r}", pointer="/data/id"
            )
        row = await self._get_or_404(resource_id)
        values = self._values(resource, require_all=not partial)
        row = await self._persist(self.repo.update, row, values)
        return self.serializer.document(self.definition, row, links=links)

    # PUBLIC_INTERFACE
    async def delete_resource(self, resource_id: str) -> None:
        """Delete a resource, or raise ResourceNotFound."""
        row = await self._get_or_404(resource_id)
        await self._persist(self.repo.remove, row)
