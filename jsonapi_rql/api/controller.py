"""
FastAPI routes exposing one ResourceDefinition as a JSON:API endpoint.

Routes are named "<type>.<action>" so links are produced through
request.url_for instead of string concatenation.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.routing import NoMatchFound

from jsonapi_rql.core.logging import bound, resource_type_var
from jsonapi_rql.core.settings import AppSettings, get_app_settings
from jsonapi_rql.db.session import get_async_session
from jsonapi_rql.jsonapi.errors import BadRequest, ResourceNotFound, UnsupportedMediaType
from jsonapi_rql.jsonapi.request import JsonApiRequest
from jsonapi_rql.jsonapi.resource import ResourceDefinition
from jsonapi_rql.jsonapi.responses import JSONAPI_MEDIA_TYPE, JsonApiResponse, no_content
from jsonapi_rql.jsonapi.serializer import JsonApiSerializer
from jsonapi_rql.services.resource import ResourceService

logger = logging.getLogger(__name__)

ACCEPTED_CONTENT_TYPES = (JSONAPI_MEDIA_TYPE, "application/json")


class RouteLinks:
    """LinkResolver backed by the application's named routes."""

    def __init__(self, request: Request) -> None:
        self.request = request

    def _url_for(self, name: str, **params: str) -> Optional[str]:
        try:
            return str(self.request.url_for(name, **params))
        except NoMatchFound:
            return None

    def resource(self, resource_type: str, resource_id: str) -> Optional[str]:
        return self._url_for(f"{resource_type}.show", resource_id=resource_id)

    def relationship(self, resource_type: str, resource_id: str, name: str) -> Optional[str]:
        return self._url_for(f"{resource_type}.related", resource_id=resource_id, relationship=name)


async def read_document(request: Request) -> Any:
    """
    Read a JSON:API request body.

    Raises:
        UnsupportedMediaType: Content-Type is not the JSON:API media type
            (media type parameters are not allowed) or application/json.
        BadRequest: body is not valid JSON.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.strip() not in ACCEPTED_CONTENT_TYPES:
        raise UnsupportedMediaType(f"Content-Type must be {JSONAPI_MEDIA_TYPE}")
    raw = await request.body()
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise BadRequest(f"Request body is not valid JSON: {exc}") from exc


class JsonApiController:
    """
    Registers the JSON:API actions of one resource type on a router.

    Actions: index, show, related, store, update (PUT/PATCH) and destroy.
    create and edit exist only to answer 404 since an API has no HTML forms.
    """

    def __init__(
        self,
        definition: ResourceDefinition,
        serializer: JsonApiSerializer,
        settings: Optional[AppSettings] = None,
    ) -> None:
        self.definition = definition
        self.serializer = serializer
        self.settings = settings or get_app_settings()

    def _route_name(self, action: str) -> str:
        return f"{self.definition.type}.{action}"

    def _path(self, suffix: str = "") -> str:
        return f"/{self.definition.type}{suffix}"

    # PUBLIC_INTERFACE
    def add_headers(self, response: Response, headers: Optional[Mapping[str, str]] = None) -> Response:
        """Decorate a response with configured extra headers plus ``headers``."""
        for key, value in {**self.settings.JSONAPI_EXTRA_HEADERS, **(headers or {})}.items():
            response.headers[key] = value
        return response

    def _document(self, content: Dict[str, Any], status_code: int = 200, **headers: str) -> Response:
        return self.add_headers(JsonApiResponse(content=content, status_code=status_code), headers)

    def _query(self, request: Request) -> JsonApiRequest:
        return JsonApiRequest.from_query_params(
            request.query_params,
            default_page_size=self.settings.JSONAPI_PAGE_SIZE,
            max_page_size=self.settings.JSONAPI_MAX_PAGE_SIZE,
        )

    # PUBLIC_INTERFACE
    def register(self, router: APIRouter) -> APIRouter:
        """
        Add this resource's routes to ``router``.

        Parameters:
            router: router the routes are added to
        Returns:
            the same router, for chaining.
        """
        definition = self.definition
        tags = [definition.type]

        async def bind_resource_type():
            with bound(resource_type_var, definition.type) as resource_type:
                yield resource_type

        def service_for(session: AsyncSession) -> ResourceService:
            return ResourceService(session, definition, self.serializer)

        dependencies = [Depends(bind_resource_type)]

        @router.get(
            self._path(),
            name=self._route_name("index"),
            summary=f"List {definition.type}",
            description="Paginated collection. Accepts filter (RQL), filter[field], sort, include, fields and page.",
            tags=tags,
            dependencies=dependencies,
        )
        async def index(request: Request, session: AsyncSession = Depends(get_async_session)) -> Response:
            query = self._query(request)
            document = await service_for(session).list_resources(
                query, url=request.url, links=RouteLinks(request)
            )
            return self._document(document)

        @router.post(
            self._path(),
            name=self._route_name("store"),
            summary=f"Create a {definition.type} resource",
            status_code=201,
            tags=tags,
            dependencies=dependencies,
        )
        async def store(request: Request, session: AsyncSession = Depends(get_async_session)) -> Response:
            body = await read_document(request)
            document, location = await service_for(session).create_resource(body, links=RouteLinks(request))
            headers = {"Location": location} if location else {}
            return self._document(document, status_code=201, **headers)

        # registered ahead of /{resource_id} so "create" is not read as an id
        @router.get(
            self._path("/create"),
            name=self._route_name("create"),
            include_in_schema=False,
            dependencies=dependencies,
        )
        async def create() -> Response:
            raise ResourceNotFound()

        @router.get(
            self._path("/{resource_id}"),
            name=self._route_name("show"),
            summary=f"Get a {definition.type} resource",
            tags=tags,
            dependencies=dependencies,
        )
        async def show(
            resource_id: str, request: Request, session: AsyncSession = Depends(get_async_session)
        ) -> Response:
            query = self._query(request)
            document = await service_for(session).get_resource(resource_id, query, links=RouteLinks(request))
            return self._document(document)

        @router.get(
            self._path("/{resource_id}/edit"),
            name=self._route_name("edit"),
            include_in_schema=False,
            dependencies=dependencies,
        )
        async def edit(resource_id: str) -> Response:
            raise ResourceNotFound()

        @router.get(
            self._path("/{resource_id}/{relationship}"),
            name=self._route_name("related"),
            summary=f"Get resources related to a {definition.type} resource",
            tags=tags,
            dependencies=dependencies,
        )
        async def related(
            resource_id: str,
            relationship: str,
            request: Request,
            session: AsyncSession = Depends(get_async_session),
        ) -> Response:
            query = self._query(request)
            document = await service_for(session).get_related(
                resource_id, relationship, query, links=RouteLinks(request)
            )
            return self._document(document)

        @router.api_route(
            self._path("/{resource_id}"),
            methods=["PUT", "PATCH"],
            name=self._route_name("update"),
            summary=f"Replace (PUT) or modify (PATCH) a {definition.type} resource",
            tags=tags,
            dependencies=dependencies,
        )
        async def update(
            resource_id: str, request: Request, session: AsyncSession = Depends(get_async_session)
        ) -> Response:
            body = await read_document(request)
            document = await service_for(session).update_resource(
                resource_id,
                body,
                partial=request.method.upper() == "PATCH",
                links=RouteLinks(request),
            )
            return self._document(document)

        @router.delete(
            self._path("/{resource_id}"),
            name=self._route_name("destroy"),
            summary=f"Delete a {definition.type} resource",
            status_code=204,
            tags=tags,
            dependencies=dependencies,
        )
        async def destroy(resource_id: str, session: AsyncSession = Depends(get_async_session)) -> Response:
            await service_for(session).delete_resource(resource_id)
            return self.add_headers(no_content())

        logger.info("Registered JSON:API routes for %s", definition.type)
        return router
