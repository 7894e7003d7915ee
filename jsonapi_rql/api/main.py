from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional
from uuid import uuid4

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from jsonapi_rql.api.controller import JsonApiController
from jsonapi_rql.core.logging import bound, configure_logging, correlation_id_var
from jsonapi_rql.core.settings import AppSettings, get_app_settings
from jsonapi_rql.jsonapi.errors import JsonApiError
from jsonapi_rql.jsonapi.resource import ResourceDefinition, ResourceRegistry
from jsonapi_rql.jsonapi.responses import JsonApiResponse
from jsonapi_rql.jsonapi.serializer import JsonApiSerializer
from jsonapi_rql.rql.exceptions import RejectedInputError
from jsonapi_rql.schemas.common import ErrorDocument, ErrorObject, ErrorSource

logger = logging.getLogger(__name__)


def _error_response(request: Request, status_code: int, errors: List[ErrorObject]) -> JsonApiResponse:
    """
    Build a JSON:API error document response carrying the correlation id.

    Error responses get the same configured extra headers as successful ones.
    """
    corr = getattr(request.state, "correlation_id", None)
    document = ErrorDocument(errors=errors, meta={"correlation_id": corr} if corr else None)
    settings = getattr(request.app.state, "settings", None)
    headers = dict(settings.JSONAPI_EXTRA_HEADERS) if settings is not None else {}
    if corr:
        headers["X-Correlation-ID"] = corr
    return JsonApiResponse(
        status_code=status_code,
        content=document.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def jsonapi_error_handler(request: Request, exc: JsonApiError):
    """Render JsonApiError subclasses with their own status and title."""
    return _error_response(request, exc.status_code, [exc.to_error_object()])


async def rejected_input_handler(request: Request, exc: RejectedInputError):
    """Input the query layer refused (unknown field/operator, bad value) is a client error."""
    return _error_response(
        request,
        400,
        [ErrorObject(status="400", title="Bad Request", detail=str(exc), code="rejected_input")],
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Request validation failures, one error object per problem."""
    errors = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ())]
        source = None
        if location and location[0] == "body":
            source = ErrorSource(pointer="/" + "/".join(location[1:]))
        elif len(location) > 1:
            source = ErrorSource(parameter=location[-1])
        errors.append(
            ErrorObject(
                status="422",
                title="Unprocessable Entity",
                detail=error.get("msg"),
                code="validation_error",
                source=source,
            )
        )
    return _error_response(request, 422, errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTP errors raised by routing (unknown path, method not allowed) or by handlers."""
    detail = exc.detail if isinstance(exc.detail, str) else None
    title = "Resource Not Found" if exc.status_code == 404 else "HTTP Error"
    response = _error_response(
        request,
        exc.status_code,
        [ErrorObject(status=str(exc.status_code), title=title, detail=detail, code="http_error")],
    )
    for key, value in (exc.headers or {}).items():
        response.headers[key] = value
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Catch-all handler to avoid leaking stack traces and to return a structured error.
    """
    logger.exception("Unhandled error processing request")
    return _error_response(
        request,
        500,
        [
            ErrorObject(
                status="500",
                title="Internal Server Error",
                detail="An unexpected error occurred",
                code="internal_error",
            )
        ],
    )


# PUBLIC_INTERFACE
def register_resources(
    app: FastAPI,
    definitions: Iterable[ResourceDefinition],
    settings: AppSettings,
) -> ResourceRegistry:
    """
    Register a controller for every definition under settings.API_PREFIX.

    Returns:
        ResourceRegistry holding the definitions; also stored on app.state.registry
        (settings go to app.state.settings).
    """
    registry = ResourceRegistry(definitions)
    serializer = JsonApiSerializer(registry)
    router = APIRouter(prefix=settings.API_PREFIX)
    for definition in registry:
        JsonApiController(definition, serializer, settings).register(router)
    app.include_router(router)
    app.state.settings = settings
    app.state.registry = registry
    return registry


# PUBLIC_INTERFACE
def create_app(
    definitions: Iterable[ResourceDefinition],
    *,
    settings: Optional[AppSettings] = None,
    lifespan: Any = None,
) -> FastAPI:
    """
    Build the FastAPI application serving the given resources.

    Parameters:
        definitions: resources to expose
        settings: application settings; read from the environment when omitted
        lifespan: optional FastAPI lifespan context (e.g. to create tables)
    Returns:
        configured FastAPI app.
    """
    settings = settings or get_app_settings()
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    # CORS - avoid wildcard with credentials
    cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
    if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
        logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
        cors_allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=cors_allow_credentials,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """
        Bind a correlation id to the request for logging and error documents.
        Adds 'X-Correlation-ID' to every response.
        """
        corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
        request.state.correlation_id = corr

        with bound(correlation_id_var, corr):
            logger.info("Incoming request %s %s", request.method, request.url.path)
            response = await call_next(request)

        response.headers["X-Correlation-ID"] = corr
        return response

    app.add_exception_handler(JsonApiError, jsonapi_error_handler)
    app.add_exception_handler(RejectedInputError, rejected_input_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    register_resources(app, definitions, settings)
    return app
