"""Resource schema registry."""

from .models import AttributeDef, AttributeType, Operation, ResourceType
from .registry import SchemaRegistry, get_default_registry

__all__ = ["AttributeDef", "AttributeType", "Operation", "ResourceType", "SchemaRegistry", "get_default_registry"]
