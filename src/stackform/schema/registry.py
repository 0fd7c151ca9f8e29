"""Process-wide registry mapping resource type names to schemas."""

import copy
from typing import Any, Dict, List, Optional
from ..ingest.models import Interpolation, Reference
from ..utils.errors import SchemaValidationError, UnknownResourceTypeError
from ..utils.logging import get_logger
from .models import AttributeDef, AttributeType, ResourceType

logger = get_logger("schema.registry")

_TYPE_CHECKS = {
    AttributeType.STRING: lambda v: isinstance(v, str),
    AttributeType.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
    AttributeType.NUMBER: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    AttributeType.BOOLEAN: lambda v: isinstance(v, bool),
    AttributeType.LIST: lambda v: isinstance(v, list),
    AttributeType.MAP: lambda v: isinstance(v, dict),
    AttributeType.ANY: lambda v: True,
}


class SchemaRegistry:
    """Registry of ResourceType schemas, keyed by type name."""

    def __init__(self, types: Optional[List[ResourceType]] = None):
        self._types: Dict[str, ResourceType] = {}
        for resource_type in types or []:
            self.register(resource_type)

    def register(self, resource_type: ResourceType) -> None:
        """Register a resource type. Re-registering a name is an error."""
        if resource_type.name in self._types:
            raise ValueError(f"Resource type already registered: {resource_type.name}")
        self._types[resource_type.name] = resource_type
        logger.debug(f"Registered resource type {resource_type.name} ({resource_type.provider})")

    def get(self, name: str) -> ResourceType:
        try:
            return self._types[name]
        except KeyError:
            raise UnknownResourceTypeError(name)

    def has(self, name: str) -> bool:
        return name in self._types

    def names(self) -> List[str]:
        return list(self._types)

    def all(self) -> List[ResourceType]:
        return list(self._types.values())

    def validate_attributes(
        self,
        resource_type_name: str,
        attributes: Dict[str, Any],
        logical_name: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Validate attribute values against a resource type and fill defaults.

        Symbolic values (references and interpolations) are accepted for any
        attribute type; their concrete values are only known at apply time.

        Args:
            resource_type_name: Name of the registered resource type
            attributes: Attribute values after variable interpolation
            logical_name: Instance name used in error messages

        Returns:
            New attribute mapping in schema order with defaults applied

        Raises:
            UnknownResourceTypeError: If the type is not registered
            SchemaValidationError: If an attribute is missing, unknown or mistyped
        """
        try:
            resource_type = self.get(resource_type_name)
        except UnknownResourceTypeError:
            raise UnknownResourceTypeError(resource_type_name, logical_name)

        declared = {a.name: a for a in resource_type.attributes}
        problems: List[str] = []

        for name in attributes:
            attr = declared.get(name)
            if attr is None:
                problems.append(f"unknown attribute '{name}'")
            elif attr.computed:
                problems.append(f"attribute '{name}' is computed by the provider and cannot be set")

        validated: Dict[str, Any] = {}
        for attr in resource_type.attributes:
            if attr.computed:
                continue
            if attr.name in attributes and attributes[attr.name] is not None:
                value = attributes[attr.name]
                if not _matches_type(attr, value):
                    problems.append(
                        f"attribute '{attr.name}' expects {attr.type.value}, got {type(value).__name__}"
                    )
                validated[attr.name] = value
            elif attr.required:
                problems.append(f"missing required attribute '{attr.name}'")
            elif attr.default is not None:
                validated[attr.name] = copy.deepcopy(attr.default)

        if problems:
            raise SchemaValidationError("; ".join(problems), logical_name)

        return validated


def _matches_type(attr: AttributeDef, value: Any) -> bool:
    if isinstance(value, (Reference, Interpolation)):
        return True
    return matches_type(attr.type, value)


def matches_type(attr_type: AttributeType, value: Any) -> bool:
    """Whether a concrete value has the given semantic type."""
    return _TYPE_CHECKS[AttributeType(attr_type)](value)


_default_registry: Optional[SchemaRegistry] = None


def get_default_registry() -> SchemaRegistry:
    """Return the registry populated with the built-in resource types."""
    global _default_registry
    if _default_registry is None:
        from .builtin import BUILTIN_TYPES
        _default_registry = SchemaRegistry(BUILTIN_TYPES)
        logger.debug(f"Initialized schema registry with {len(BUILTIN_TYPES)} built-in types")
    return _default_registry
