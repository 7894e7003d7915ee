from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ResourceIdentifier(BaseModel):
    """Linkage to another resource."""
    type: str = Field(..., min_length=1, description="Resource type")
    id: str = Field(..., description="Resource id")

    model_config = ConfigDict(coerce_numbers_to_str=True)


class RelationshipIn(BaseModel):
    """Relationship member of an incoming resource object."""
    data: Union[ResourceIdentifier, List[ResourceIdentifier], None] = Field(
        ..., description="Resource linkage (null, an identifier or a list of identifiers)"
    )


class ResourceObjectIn(BaseModel):
    """Resource object sent by clients in POST/PUT/PATCH requests."""
    type: str = Field(..., min_length=1, description="Resource type")
    id: Optional[str] = Field(default=None, description="Client-generated or target id")
    attributes: Dict[str, Any] = Field(default_factory=dict)
    relationships: Dict[str, RelationshipIn] = Field(default_factory=dict)

    model_config = ConfigDict(coerce_numbers_to_str=True)


# PUBLIC_INTERFACE
class ResourceDocumentIn(BaseModel):
    """Top-level request document carrying a single resource object."""
    data: ResourceObjectIn = Field(..., description="Primary data")
    meta: Optional[Dict[str, Any]] = Field(default=None)
