from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class JsonApiObject(BaseModel):
    """Top-level ``jsonapi`` member."""
    version: str = Field(default="1.0", description="JSON:API version")


class ErrorSource(BaseModel):
    """Reference to the part of the request that caused an error."""
    pointer: Optional[str] = Field(default=None, description="JSON pointer into the request document")
    parameter: Optional[str] = Field(default=None, description="Query parameter that caused the error")


# PUBLIC_INTERFACE
class ErrorObject(BaseModel):
    """A single JSON:API error object."""
    status: str = Field(..., description="HTTP status code, as a string")
    title: str = Field(..., description="Short, human-readable summary")
    detail: Optional[str] = Field(default=None, description="Explanation specific to this occurrence")
    code: Optional[str] = Field(default=None, description="Machine-readable error type code")
    source: Optional[ErrorSource] = Field(default=None)
    meta: Optional[Dict[str, Any]] = Field(default=None)


# PUBLIC_INTERFACE
class ErrorDocument(BaseModel):
    """Standardized JSON:API error envelope returned by exception handlers."""
    errors: List[ErrorObject] = Field(..., description="One or more errors")
    jsonapi: JsonApiObject = Field(default_factory=JsonApiObject)
    meta: Optional[Dict[str, Any]] = Field(default=None)
