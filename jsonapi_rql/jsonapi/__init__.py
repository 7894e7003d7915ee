"""
JSON:API document handling: resource definitions, query parameters,
serialization, responses and errors.
"""

from .errors import (
    BadRequest,
    ConflictError,
    JsonApiError,
    ResourceNotFound,
    UnprocessableEntity,
    UnsupportedMediaType,
)
from .request import JsonApiRequest, Page
from .resource import ResourceDefinition, ResourceRegistry
from .responses import JSONAPI_MEDIA_TYPE, JsonApiResponse, no_content
from .serializer import JSONAPI_VERSION, JsonApiSerializer, LinkResolver

__all__ = [
    "BadRequest",
    "ConflictError",
    "JsonApiError",
    "ResourceNotFound",
    "UnprocessableEntity",
    "UnsupportedMediaType",
    "JsonApiRequest",
    "Page",
    "ResourceDefinition",
    "ResourceRegistry",
    "JSONAPI_MEDIA_TYPE",
    "JsonApiResponse",
    "no_content",
    "JSONAPI_VERSION",
    "JsonApiSerializer",
    "LinkResolver",
]
