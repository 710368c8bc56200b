"""Pydantic v2 models for parsed feature descriptors.

A ``FeatureSet`` is the normalised form of a human-authored feature list:
the entities to scaffold, their fields, and the operations each exposes.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from layerkit.utils import camel_case, snake_case


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Priority(str, Enum):
    """Entity priority level. P0 = must-have, P1 = should-have, P2 = nice-to-have."""
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class HTTPMethod(str, Enum):
    """HTTP methods an operation maps to."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class OperationKind(str, Enum):
    CREATE = "create"
    GET = "get"
    LIST = "list"
    UPDATE = "update"
    DELETE = "delete"
    CUSTOM = "custom"


FIELD_TYPES: tuple[str, ...] = (
    "str", "int", "float", "bool", "datetime", "date", "uuid", "dict", "list[str]",
)


# ---------------------------------------------------------------------------
# Entity models
# ---------------------------------------------------------------------------

class FieldSpec(BaseModel):
    """A single attribute of an entity."""
    name: str = Field(..., description="snake_case field name")
    type: str = Field(default="str", description="Canonical type, one of FIELD_TYPES")
    required: bool = Field(default=True)
    reference: Optional[str] = Field(
        default=None, description="Referenced entity for '<entity>_id' fields"
    )


class Operation(BaseModel):
    """An operation exposed for an entity."""
    name: str = Field(..., description="snake_case operation name, e.g. 'archive'")
    kind: OperationKind = Field(...)
    method: HTTPMethod = Field(...)
    path: str = Field(default="", description="Path relative to the collection, e.g. '/{id}'")
    description: str = Field(default="")


class Entity(BaseModel):
    """A domain entity to scaffold across every layer."""
    name: str = Field(..., description="PascalCase singular name, e.g. 'OrderLine'")
    plural: str = Field(..., description="snake_case plural, e.g. 'order_lines'")
    description: str = Field(default="")
    priority: Priority = Field(default=Priority.P1)
    fields: list[FieldSpec] = Field(default_factory=list)
    operations: list[Operation] = Field(default_factory=list)

    @property
    def snake(self) -> str:
        return snake_case(self.name)

    @property
    def camel(self) -> str:
        return camel_case(self.name)

    def references(self) -> list[str]:
        """Names of entities referenced by this entity's fields, in field order."""
        seen: list[str] = []
        for field in self.fields:
            if field.reference and field.reference != self.name and field.reference not in seen:
                seen.append(field.reference)
        return seen


class FeatureSet(BaseModel):
    """Complete, normalised result of parsing a feature descriptor."""
    project_name: str = Field(default="project")
    description: str = Field(default="")
    entities: list[Entity] = Field(default_factory=list)
    ambiguities: list[str] = Field(
        default_factory=list,
        description="Unclear or defaulted parts of the descriptor",
    )

    def entity(self, name: str) -> Entity:
        for entity in self.entities:
            if entity.name == name:
                return entity
        raise KeyError(f"Unknown entity: {name}")
