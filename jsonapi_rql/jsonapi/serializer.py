"""
Rendering of mapped objects as JSON:API documents.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .resource import ResourceDefinition, ResourceRegistry

logger = logging.getLogger(__name__)

JSONAPI_VERSION = "1.0"


class LinkResolver(Protocol):
    """Produces URLs for resources; returns None when no route exists."""

    def resource(self, resource_type: str, resource_id: str) -> Optional[str]:
        ...

    def relationship(self, resource_type: str, resource_id: str, name: str) -> Optional[str]:
        ...


class JsonApiSerializer:
    """
    Serializes mapped objects described by a ResourceRegistry.

    Relationship attributes must already be loaded on the objects; the
    repository eager-loads every declared relationship.
    """

    def __init__(self, registry: ResourceRegistry) -> None:
        self.registry = registry

    # PUBLIC_INTERFACE
    def resource_object(
        self,
        definition: ResourceDefinition,
        obj: Any,
        fields: Optional[Dict[str, List[str]]] = None,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """
        Render a single resource object.

        Parameters:
            definition: resource definition of ``obj``
            obj: mapped instance
            fields: sparse fieldsets keyed by resource type
            links: optional link resolver for ``links.self``
        Returns:
            dict with type, id, attributes, relationships and links members.
        """
        resource_id = self.identifier(definition, obj)
        selected = (fields or {}).get(definition.type)

        attributes = {
            name: getattr(obj, name)
            for name in definition.attributes or ()
            if selected is None or name in selected
        }

        relationships: Dict[str, Any] = {}
        for name, related_type in definition.relationships.items():
            if selected is not None and name not in selected:
                continue
            member: Dict[str, Any] = {"data": self._linkage(definition, obj, name, related_type)}
            related_link = links.relationship(definition.type, resource_id, name) if links else None
            if related_link:
                member["links"] = {"related": related_link}
            relationships[name] = member

        resource: Dict[str, Any] = {"type": definition.type, "id": resource_id, "attributes": attributes}
        if relationships:
            resource["relationships"] = relationships
        self_link = links.resource(definition.type, resource_id) if links else None
        if self_link:
            resource["links"] = {"self": self_link}
        return resource

    def identifier(self, definition: ResourceDefinition, obj: Any) -> str:
        return str(getattr(obj, definition.id_attribute))

    def _linkage(self, definition: ResourceDefinition, obj: Any, name: str, related_type: str):
        related = getattr(obj, name)
        related_definition = self.registry.get(related_type)
        id_attribute = related_definition.id_attribute if related_definition else "id"
        if definition.is_to_many(name):
            return [
                {"type": related_type, "id": str(getattr(item, id_attribute))}
                for item in related or ()
            ]
        if related is None:
            return None
        return {"type": related_type, "id": str(getattr(related, id_attribute))}

    def included(
        self,
        definition: ResourceDefinition,
        objects: Iterable[Any],
        include: Sequence[str],
        fields: Optional[Dict[str, List[str]]] = None,
        links: Optional[LinkResolver] = None,
    ) -> List[Dict[str, Any]]:
        """Render related objects named in ``include``, each once."""
        seen: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for obj in objects:
            for name in include:
                related_type = definition.relationships[name]
                related_definition = self.registry.get(related_type)
                if related_definition is None:
                    logger.warning("Cannot include %s: type %r is not registered", name, related_type)
                    continue
                related = getattr(obj, name)
                if definition.is_to_many(name):
                    items = list(related or ())
                else:
                    items = [related] if related is not None else []
                for item in items:
                    key = (related_type, self.identifier(related_definition, item))
                    if key not in seen:
                        seen[key] = self.resource_object(related_definition, item, fields, links)
        return list(seen.values())

    # PUBLIC_INTERFACE
    def document(
        self,
        definition: ResourceDefinition,
        obj: Any,
        *,
        include: Sequence[str] = (),
        fields: Optional[Dict[str, List[str]]] = None,
        links: Optional[LinkResolver] = None,
    ) -> Dict[str, Any]:
        """Render a document whose primary data is a single resource."""
        document: Dict[str, Any] = {
            "jsonapi": {"version": JSONAPI_VERSION},
            "data": self.resource_object(definition, obj, fields, links),
        }
        if include:
            document["included"] = self.included(definition, [obj], include, fields, links)
        self_link = links.resource(definition.type, document["data"]["id"]) if links else None
        if self_link:
            document["links"] = {"self": self_link}
        return document

    # PUBLIC_INTERFACE
    def collection_document(
        self,
        definition: ResourceDefinition,
        objects: Sequence[Any],
        *,
        total: int,
        include: Sequence[str] = (),
        fields: Optional[Dict[str, List[str]]] = None,
        links: Optional[LinkResolver] = None,
        pagination: Optional[Dict[str, Optional[str]]] = None,
    ) -> Dict[str, Any]:
        """Render a document whose primary data is a collection."""
        document: Dict[str, Any] = {
            "jsonapi": {"version": JSONAPI_VERSION},
            "data": [self.resource_object(definition, obj, fields, links) for obj in objects],
            "meta": {"total": total},
        }
        if include:
            document["included"] = self.included(definition, objects, include, fields, links)
        if pagination:
            document["links"] = pagination
        return document
