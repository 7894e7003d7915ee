from __future__ import annotations

from typing import Any, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"


class JsonApiResponse(JSONResponse):
    """JSON response with the JSON:API media type; content goes through jsonable_encoder."""

    media_type = JSONAPI_MEDIA_TYPE

    def render(self, content: Any) -> bytes:
        return super().render(jsonable_encoder(content))


# PUBLIC_INTERFACE
def no_content(headers: Optional[Mapping[str, str]] = None) -> Response:
    """204 response used after a successful delete."""
    return Response(status_code=204, headers=dict(headers or {}))
