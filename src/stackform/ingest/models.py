"""Pydantic models for parsed templates and desired resource instances."""

import hashlib
import json
import re
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

REFERENCE_PATTERN = re.compile(r"\$\{\s*([a-z][a-z0-9_]*)\.([A-Za-z0-9_-]+)(?:\.([A-Za-z0-9_]+))?\s*\}")


def parse_reference(expression: str) -> Optional["Reference"]:
    """Return the Reference for a ``${TYPE.NAME[.ATTR]}`` expression, else None."""
    match = REFERENCE_PATTERN.fullmatch(expression.strip())
    if not match:
        return None
    return Reference(target=f"{match.group(1)}.{match.group(2)}", attribute=match.group(3) or "id")


class Reference(BaseModel):
    """Symbolic pointer from an attribute to another instance's id or output."""

    model_config = ConfigDict(frozen=True)

    target: str = Field(..., description="Logical name of the referenced instance")
    attribute: str = Field("id", description="Output attribute of the referenced instance")

    def render(self) -> str:
        return "${%s.%s}" % (self.target, self.attribute)

    def __str__(self) -> str:
        return self.render()


class Interpolation(BaseModel):
    """String with one or more embedded references, substituted at apply time."""

    model_config = ConfigDict(frozen=True)

    parts: List[Union[Reference, str]] = Field(default_factory=list, description="Literal text and references")

    @property
    def references(self) -> List[Reference]:
        found: List[Reference] = []
        for part in self.parts:
            if isinstance(part, Reference) and part not in found:
                found.append(part)
        return found

    def render(self) -> str:
        return "".join(part.render() if isinstance(part, Reference) else part for part in self.parts)

    def substitute(self, values: Dict[Reference, Any]) -> str:
        """Join the parts, replacing each reference with ``values[ref]``."""
        return "".join(
            stringify_value(values[part]) if isinstance(part, Reference) else part
            for part in self.parts
        )

    def __str__(self) -> str:
        return self.render()


AttributeValue = Union[Reference, Interpolation, Any]


class VariableDef(BaseModel):
    """Declared template variable."""
    name: str
    description: str = ""
    default: Any = None
    has_default: bool = False
    sensitive: bool = False
    type: Optional[str] = Field(None, description="Declared value type, one of the attribute type names")


class ResourceInstance(BaseModel):
    """Desired resource instance produced by the template parser."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    logical_name: str = Field(..., description="Stable author-assigned name: <type>.<name>")
    resource_type: str = Field(..., description="Resource type name")
    name: str = Field(..., description="Name part of the logical name")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute values, possibly symbolic")
    depends_on: List[str] = Field(default_factory=list, description="Explicit extra dependencies")
    index: int = Field(0, description="Declaration order in the template")

    def references(self) -> List[Reference]:
        """All references embedded in attribute values, in attribute order."""
        found: List[Reference] = []
        for value in self.attributes.values():
            _collect_references(value, found)
        return found

    def dependency_names(self) -> List[str]:
        """Logical names this instance must follow (references + depends_on)."""
        names: List[str] = []
        for ref in self.references():
            if ref.target not in names:
                names.append(ref.target)
        for name in self.depends_on:
            if name not in names:
                names.append(name)
        return names

    def symbolic_config(self) -> Dict[str, Any]:
        """Attributes with references rendered back to ``${...}`` text."""
        return {key: to_symbolic(value) for key, value in self.attributes.items()}


class Template(BaseModel):
    """Parsed template: variables, provider blocks, desired instances, outputs."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    variables: Dict[str, VariableDef] = Field(default_factory=dict)
    variable_values: Dict[str, Any] = Field(default_factory=dict)
    providers: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    resources: List[ResourceInstance] = Field(default_factory=list)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    digest: Optional[str] = None

    def get(self, logical_name: str) -> Optional[ResourceInstance]:
        for instance in self.resources:
            if instance.logical_name == logical_name:
                return instance
        return None

    @property
    def logical_names(self) -> List[str]:
        return [instance.logical_name for instance in self.resources]

    def sensitive_values(self) -> List[str]:
        """String values of sensitive variables, for masking in output."""
        return [
            str(self.variable_values[name])
            for name, var in self.variables.items()
            if var.sensitive and self.variable_values.get(name) not in (None, "")
        ]


def _collect_references(value: Any, found: List[Reference]) -> None:
    if isinstance(value, Reference):
        found.append(value)
    elif isinstance(value, Interpolation):
        found.extend(value.references)
    elif isinstance(value, dict):
        for item in value.values():
            _collect_references(item, found)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _collect_references(item, found)


def stringify_value(value: Any) -> str:
    """Text form of a value embedded in a string (booleans as YAML spells them)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def collect_references(value: Any) -> List[Reference]:
    """Collect references from an arbitrary (nested) attribute value."""
    found: List[Reference] = []
    _collect_references(value, found)
    return found


def encode_value(value: Any) -> Any:
    """Encode references losslessly as tagged JSON objects."""
    if isinstance(value, Reference):
        return {"$ref": f"{value.target}.{value.attribute}"}
    if isinstance(value, Interpolation):
        return {"$interpolate": [encode_value(part) for part in value.parts]}
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, dict):
        if set(value) == {"$ref"}:
            target, _, attribute = str(value["$ref"]).rpartition(".")
            return Reference(target=target, attribute=attribute)
        if set(value) == {"$interpolate"}:
            return Interpolation(parts=[decode_value(part) for part in value["$interpolate"]])
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def to_symbolic(value: Any) -> Any:
    """Render references inside ``value`` as ``${...}`` strings (JSON-safe)."""
    if isinstance(value, (Reference, Interpolation)):
        return value.render()
    if isinstance(value, dict):
        return {k: to_symbolic(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_symbolic(v) for v in value]
    return value


def compute_digest(
    providers: Dict[str, Dict[str, Any]],
    resources: List[ResourceInstance],
    outputs: Dict[str, Any]
) -> str:
    """
    Fingerprint of the parsed desired state.

    Covers resolved variable values and file payloads, so two parses with
    different inputs never share a digest while formatting-only edits do.
    """
    document = {
        "providers": providers,
        "resources": [
            {
                "logical_name": instance.logical_name,
                "attributes": encode_value(instance.attributes),
                "depends_on": instance.depends_on,
            }
            for instance in resources
        ],
        "outputs": encode_value(outputs),
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
