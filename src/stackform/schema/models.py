"""Pydantic models for resource type schemas."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AttributeType(str, Enum):
    """Semantic attribute types understood by the schema validator."""
    STRING = "string"
    INTEGER = "integer"
    NUMBER = "number"
    BOOLEAN = "boolean"
    LIST = "list"
    MAP = "map"
    ANY = "any"


class Operation(str, Enum):
    """Provider operations a resource type may support."""
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class AttributeDef(BaseModel):
    """Definition of a single resource attribute."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Attribute name as written in templates")
    type: AttributeType = Field(AttributeType.STRING, description="Semantic type")
    required: bool = Field(False, description="Whether templates must set this attribute")
    default: Any = Field(None, description="Value used when the attribute is omitted")
    immutable: bool = Field(False, description="Changing the value forces replacement")
    sensitive: bool = Field(False, description="Masked in human-readable output")
    computed: bool = Field(False, description="Assigned by the provider, never set in templates")


class ResourceType(BaseModel):
    """Named schema for a kind of resource, immutable once registered."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Type name, e.g. cloud_vpc")
    provider: str = Field(..., description="Name of the provider that manages this type")
    description: str = ""
    attributes: List[AttributeDef] = Field(default_factory=list)
    operations: List[Operation] = Field(
        default_factory=lambda: [Operation.CREATE, Operation.READ, Operation.UPDATE, Operation.DELETE]
    )

    def attribute(self, name: str) -> Optional[AttributeDef]:
        """Return the attribute definition for ``name`` if declared."""
        for attr in self.attributes:
            if attr.name == name:
                return attr
        return None

    @property
    def settable(self) -> Dict[str, AttributeDef]:
        return {a.name: a for a in self.attributes if not a.computed}

    @property
    def outputs(self) -> List[str]:
        """Names of provider-assigned attributes (``id`` is always available)."""
        return ["id"] + [a.name for a in self.attributes if a.computed]

    @property
    def immutable_attributes(self) -> List[str]:
        return [a.name for a in self.attributes if a.immutable]

    @property
    def sensitive_attributes(self) -> List[str]:
        return [a.name for a in self.attributes if a.sensitive]

    def supports(self, operation: Operation) -> bool:
        return operation in self.operations
