from __future__ import annotations

from typing import Optional

from jsonapi_rql.schemas.common import ErrorObject, ErrorSource


class JsonApiError(Exception):
    """
    Base class for errors rendered as JSON:API error documents.

    Subclasses fix the HTTP status and title; the detail describes the
    specific occurrence.
    """

    status_code = 400
    title = "Bad Request"
    code = "bad_request"

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        pointer: Optional[str] = None,
        parameter: Optional[str] = None,
    ) -> None:
        super().__init__(detail or self.title)
        self.detail = detail
        self.pointer = pointer
        self.parameter = parameter

    def to_error_object(self) -> ErrorObject:
        source = None
        if self.pointer or self.parameter:
            source = ErrorSource(pointer=self.pointer, parameter=self.parameter)
        return ErrorObject(
            status=str(self.status_code),
            title=self.title,
            detail=self.detail,
            code=self.code,
            source=source,
        )


class BadRequest(JsonApiError):
    pass


class ResourceNotFound(JsonApiError):
    status_code = 404
    title = "Resource Not Found"
    code = "not_found"


class ConflictError(JsonApiError):
    """Raised when the document type or id does not match the endpoint."""
    status_code = 409
    title = "Conflict"
    code = "conflict"


class UnsupportedMediaType(JsonApiError):
    status_code = 415
    title = "Unsupported Media Type"
    code = "unsupported_media_type"


class UnprocessableEntity(JsonApiError):
    """Raised for well-formed documents that cannot be applied to the resource."""
    status_code = 422
    title = "Unprocessable Entity"
    code = "unprocessable_entity"
