"""
Resource definitions map a JSON:API type onto a SQLAlchemy mapped class.

    posts = ResourceDefinition(
        type="posts",
        model=Post,
        relationships={"author": "people", "comments": "comments"},
    )
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.orm import Mapper, RelationshipProperty


@dataclass
class ResourceDefinition:
    """
    Describes how a mapped class is exposed as a JSON:API resource.

    Attributes default to every mapped column except the identifier and the
    foreign keys backing declared relationships. Filterable and sortable
    fields default to the attributes plus the identifier; filterable fields
    also include those foreign keys.
    """

    type: str
    model: Any
    id_attribute: str = "id"
    attributes: Optional[Sequence[str]] = None
    relationships: Dict[str, str] = field(default_factory=dict)
    filterable: Optional[Sequence[str]] = None
    sortable: Optional[Sequence[str]] = None

    def __post_init__(self) -> None:
        mapper: Mapper = inspect(self.model)
        column_keys = [prop.key for prop in mapper.column_attrs]

        if self.id_attribute not in column_keys:
            raise ValueError(f"{self.model.__name__} has no column attribute {self.id_attribute!r}")

        for name in self.relationships:
            if name not in mapper.relationships:
                raise ValueError(f"{self.model.__name__} has no relationship {name!r}")

        foreign_keys = self._relationship_foreign_keys(mapper)
        if self.attributes is None:
            hidden = {self.id_attribute} | set(foreign_keys)
            self.attributes = [key for key in column_keys if key not in hidden]
        else:
            unknown = [name for name in self.attributes if name not in column_keys]
            if unknown:
                raise ValueError(f"{self.model.__name__} has no column attributes {unknown}")
            self.attributes = list(self.attributes)

        default_fields = [self.id_attribute, *self.attributes]
        if self.filterable is not None:
            self.filterable = list(self.filterable)
        else:
            self.filterable = default_fields + [key for key in foreign_keys if key not in default_fields]
        self.sortable = list(self.sortable) if self.sortable is not None else default_fields

    @staticmethod
    def _relationship_foreign_keys(mapper: Mapper) -> List[str]:
        keys = []
        for relationship in mapper.relationships:
            for local, _remote in relationship.local_remote_pairs or ():
                if local.foreign_keys and local.table is mapper.local_table:
                    keys.append(mapper.get_property_by_column(local).key)
        return keys

    @property
    def mapper(self) -> Mapper:
        return inspect(self.model)

    @property
    def columns(self) -> Dict[str, Any]:
        """Mapping of attribute key to column, limited to filterable fields."""
        mapper = self.mapper
        return {
            prop.key: prop.columns[0]
            for prop in mapper.column_attrs
            if prop.key in (self.filterable or ())
        }

    def column(self, key: str):
        return self.mapper.column_attrs[key].columns[0]

    def relationship(self, name: str) -> RelationshipProperty:
        return self.mapper.relationships[name]

    def is_to_many(self, name: str) -> bool:
        return bool(self.relationship(name).uselist)

    def foreign_key_attribute(self, name: str) -> Optional[str]:
        """Attribute holding the foreign key of a to-one relationship, if local."""
        relationship = self.relationship(name)
        if relationship.uselist:
            return None
        mapper = self.mapper
        for local, _remote in relationship.local_remote_pairs or ():
            if local.foreign_keys and local.table is mapper.local_table:
                return mapper.get_property_by_column(local).key
        return None


class ResourceRegistry:
    """Collection of resource definitions keyed by type."""

    def __init__(self, definitions: Sequence[ResourceDefinition] = ()) -> None:
        self._definitions: Dict[str, ResourceDefinition] = {}
        for definition in definitions:
            self.register(definition)

    def register(self, definition: ResourceDefinition) -> ResourceDefinition:
        if definition.type in self._definitions:
            raise ValueError(f"Resource type {definition.type!r} is already registered")
        self._definitions[definition.type] = definition
        return definition

    def get(self, resource_type: str) -> Optional[ResourceDefinition]:
        return self._definitions.get(resource_type)

    def __getitem__(self, resource_type: str) -> ResourceDefinition:
        return self._definitions[resource_type]

    def __contains__(self, resource_type: object) -> bool:
        return resource_type in self._definitions

    def __iter__(self) -> Iterator[ResourceDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)
