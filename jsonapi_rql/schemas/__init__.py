"""
Public Pydantic schemas for JSON:API request and error documents.

Response documents for resources are produced by jsonapi_rql.jsonapi.serializer.
"""

from .common import ErrorDocument, ErrorObject, ErrorSource, JsonApiObject  # noqa: F401
from .document import (  # noqa: F401
    RelationshipIn,
    ResourceDocumentIn,
    ResourceIdentifier,
    ResourceObjectIn,
)
