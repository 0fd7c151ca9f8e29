"""Parse template text into a desired resource instance graph."""

import re
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml
from ..schema.models import AttributeType
from ..schema.registry import SchemaRegistry, get_default_registry, matches_type
from ..utils.errors import (
    MissingVariableError,
    ParseError,
    SchemaValidationError,
    UnresolvedReferenceError,
)
from ..utils.logging import get_logger
from .models import (
    Interpolation,
    Reference,
    ResourceInstance,
    Template,
    VariableDef,
    collect_references,
    compute_digest,
    parse_reference,
    stringify_value,
)
from .template_loader import load_yaml, parse_scalar

logger = get_logger("ingest.template_parser")

TOP_LEVEL_KEYS = ("variables", "providers", "resources", "outputs")
ADDRESS_PATTERN = re.compile(r"^([a-z][a-z0-9_]*)\.([A-Za-z0-9_-]+)$")
VAR_PATTERN = re.compile(r"\$\{\s*var\.([A-Za-z_][A-Za-z0-9_]*)\s*\}")
FILE_PATTERN = re.compile(r"\$\{\s*file\(\s*\"([^\"]+)\"\s*\)\s*\}")
ESCAPED = "$${"
TOKEN_PATTERN = re.compile(r"\$\$\{|\$\{[^}]*\}")


class _Context:
    """Per-parse state for interpolation."""

    def __init__(self, values: Dict[str, Any], declared: Dict[str, VariableDef], base_dir: Optional[Path]):
        self.values = values
        self.declared = declared
        self.base_dir = base_dir

    def variable(self, name: str, logical_name: Optional[str]) -> Any:
        if name not in self.declared:
            raise MissingVariableError(name, logical_name)
        if name not in self.values:
            raise MissingVariableError(name, logical_name)
        return self.values[name]

    def read_file(self, relative: str, logical_name: Optional[str]) -> str:
        path = Path(relative)
        if not path.is_absolute():
            path = (self.base_dir or Path.cwd()) / path
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ParseError(f"Cannot read file '{relative}': {e}", logical_name)


def parse_template(
    text: str,
    values: Optional[Dict[str, Any]] = None,
    base_dir: Optional[Path] = None,
    registry: Optional[SchemaRegistry] = None
) -> Template:
    """
    Parse template text into a Template holding the desired instance graph.

    Variable references (``${var.NAME}``) and ``${file("PATH")}`` payloads are
    substituted textually before schema validation. References to other
    resources (``${TYPE.NAME.ATTR}``) are kept symbolic.

    Args:
        text: Template text (YAML)
        values: Externally supplied variable values
        base_dir: Directory used to resolve relative file() paths
        registry: Schema registry (defaults to the built-in registry)

    Returns:
        Parsed Template

    Raises:
        ParseError: Invalid YAML or template structure
        MissingVariableError: A variable has no value and no default
        UnresolvedReferenceError: A reference names an undeclared resource
        SchemaValidationError: Attribute values do not match the resource type
    """
    registry = registry or get_default_registry()
    values = dict(values or {})

    try:
        document = load_yaml(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid template syntax: {e}")

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise ParseError("Template must be a mapping with variables, providers, resources and outputs")

    unknown = [key for key in document if key not in TOP_LEVEL_KEYS]
    if unknown:
        raise ParseError(f"Unknown top-level section(s): {', '.join(map(str, unknown))}")

    declared = _parse_variables(document.get("variables"))
    resolved_values = _resolve_variable_values(declared, values)
    ctx = _Context(resolved_values, declared, base_dir)

    providers = _parse_providers(document.get("providers"), ctx)
    resources = _parse_resources(document.get("resources"), ctx, registry)
    outputs = _parse_outputs(document.get("outputs"), ctx)

    template = Template(
        variables=declared,
        variable_values=resolved_values,
        providers=providers,
        resources=resources,
        outputs=outputs,
        digest=compute_digest(providers, resources, outputs),
    )
    _check_references(template, registry)

    logger.info(f"Parsed template: {len(resources)} resources, {len(declared)} variables, {len(outputs)} outputs")
    return template


def _parse_variables(section: Any) -> Dict[str, VariableDef]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ParseError("'variables' must be a mapping")

    declared = {}
    for name, body in section.items():
        if not isinstance(name, str) or not re.match(r"^[A-Za-z_][A-Za-z0-9_]*$", name):
            raise ParseError(f"Invalid variable name: {name!r}")
        if body is None:
            body = {}
        if not isinstance(body, dict):
            # shorthand: "region: us-east-1" declares a default
            body = {"default": body}
        extra = set(body) - {"default", "description", "sensitive", "type"}
        if extra:
            raise ParseError(f"Variable '{name}' has unknown field(s): {', '.join(sorted(extra))}")
        var_type = body.get("type")
        if var_type is not None:
            try:
                var_type = AttributeType(str(var_type)).value
            except ValueError:
                allowed = ", ".join(t.value for t in AttributeType)
                raise ParseError(f"Variable '{name}' has unknown type {var_type!r} (expected one of: {allowed})")
        declared[name] = VariableDef(
            name=name,
            description=str(body.get("description", "")),
            default=body.get("default"),
            has_default="default" in body,
            sensitive=bool(body.get("sensitive", False)),
            type=var_type,
        )
    return declared


def _resolve_variable_values(declared: Dict[str, VariableDef], supplied: Dict[str, Any]) -> Dict[str, Any]:
    resolved = {}
    for name, var in declared.items():
        if name in supplied:
            resolved[name] = _coerce_variable(var, supplied[name])
        elif var.has_default:
            resolved[name] = _coerce_variable(var, var.default)
        else:
            raise MissingVariableError(name)

    ignored = sorted(set(supplied) - set(declared))
    if ignored:
        logger.warning(f"Ignoring values for undeclared variable(s): {', '.join(ignored)}")
    return resolved


def _coerce_variable(var: VariableDef, value: Any) -> Any:
    """Convert a supplied value to the variable's declared type, if it has one."""
    if value is None or var.type is None:
        return value
    declared = AttributeType(var.type)
    if declared == AttributeType.STRING and not isinstance(value, (dict, list)):
        value = stringify_value(value)
    elif declared in (AttributeType.INTEGER, AttributeType.NUMBER, AttributeType.BOOLEAN) and isinstance(value, str):
        value = parse_scalar(value.strip())
    if not matches_type(declared, value):
        raise ParseError(f"Variable '{var.name}' expects {declared.value}, got {type(value).__name__}")
    return value


def _parse_providers(section: Any, ctx: _Context) -> Dict[str, Dict[str, Any]]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ParseError("'providers' must be a mapping")

    providers = {}
    for name, body in section.items():
        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ParseError(f"Provider '{name}' must be a mapping")
        config = _interpolate(body, ctx, f"provider.{name}")
        if collect_references(config):
            raise ParseError("Provider configuration cannot reference resources", f"provider.{name}")
        providers[str(name)] = config
    return providers


def _parse_resources(section: Any, ctx: _Context, registry: SchemaRegistry) -> List[ResourceInstance]:
    if section is None:
        return []
    if not isinstance(section, dict):
        raise ParseError("'resources' must be a mapping of <type>.<name> to attributes")

    instances = []
    for index, (address, body) in enumerate(section.items()):
        match = ADDRESS_PATTERN.match(str(address))
        if not match:
            raise ParseError(f"Invalid resource address {address!r}, expected <type>.<name>")
        resource_type, name = match.groups()
        logical_name = str(address)

        if body is None:
            body = {}
        if not isinstance(body, dict):
            raise ParseError("Resource body must be a mapping of attributes", logical_name)

        body = dict(body)
        depends_on = _parse_depends_on(body.pop("depends_on", None), logical_name)
        attributes = _interpolate(body, ctx, logical_name)
        attributes = registry.validate_attributes(resource_type, attributes, logical_name)

        instances.append(ResourceInstance(
            logical_name=logical_name,
            resource_type=resource_type,
            name=name,
            attributes=attributes,
            depends_on=depends_on,
            index=index,
        ))
        logger.debug(f"Parsed {logical_name} with {len(attributes)} attributes")
    return instances


def _parse_depends_on(value: Any, logical_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ParseError("'depends_on' must be a list of resource addresses", logical_name)

    names = []
    for item in value:
        item = str(item).strip()
        if item.startswith("${") and item.endswith("}"):
            item = item[2:-1].strip()
        if not ADDRESS_PATTERN.match(item):
            raise ParseError(f"Invalid depends_on entry {item!r}", logical_name)
        if item not in names:
            names.append(item)
    return names


def _parse_outputs(section: Any, ctx: _Context) -> Dict[str, Any]:
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ParseError("'outputs' must be a mapping")
    return {str(name): _interpolate(value, ctx, f"output.{name}") for name, value in section.items()}


def _interpolate(value: Any, ctx: _Context, logical_name: Optional[str]) -> Any:
    """Recursively substitute variables and files, and make references symbolic."""
    if isinstance(value, str):
        return _interpolate_string(value, ctx, logical_name)
    if isinstance(value, dict):
        return {str(k): _interpolate(v, ctx, logical_name) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate(v, ctx, logical_name) for v in value]
    return value


def _interpolate_string(text: str, ctx: _Context, logical_name: Optional[str]) -> Any:
    if "${" not in text:
        return text

    stripped = text.strip()
    whole_var = VAR_PATTERN.fullmatch(stripped)
    if whole_var:
        return ctx.variable(whole_var.group(1), logical_name)
    whole_file = FILE_PATTERN.fullmatch(stripped)
    if whole_file:
        return ctx.read_file(whole_file.group(1), logical_name)
    whole_ref = parse_reference(stripped)
    if whole_ref is not None:
        return whole_ref

    # substituted text is never rescanned, so file payloads may contain ${...}
    parts: List[Any] = []
    position = 0
    for match in TOKEN_PATTERN.finditer(text):
        parts.append(text[position:match.start()])
        position = match.end()
        token = match.group(0)
        if token == ESCAPED:
            parts.append("${")
            continue

        var_match = VAR_PATTERN.fullmatch(token)
        file_match = FILE_PATTERN.fullmatch(token)
        if var_match:
            parts.append(stringify_value(ctx.variable(var_match.group(1), logical_name)))
        elif file_match:
            parts.append(ctx.read_file(file_match.group(1), logical_name))
        else:
            ref = parse_reference(token)
            if ref is None:
                raise ParseError(f"Invalid expression {token}", logical_name)
            parts.append(ref)
    parts.append(text[position:])

    merged: List[Any] = []
    for part in parts:
        if isinstance(part, str):
            if not part:
                continue
            if merged and isinstance(merged[-1], str):
                merged[-1] += part
                continue
        merged.append(part)

    if not any(isinstance(part, Reference) for part in merged):
        return "".join(merged)
    return Interpolation(parts=merged)


def _check_references(template: Template, registry: SchemaRegistry) -> None:
    by_name = {instance.logical_name: instance for instance in template.resources}

    def check(ref: Reference, source: str) -> None:
        target = by_name.get(ref.target)
        if target is None:
            raise UnresolvedReferenceError(ref.target, source)
        resource_type = registry.get(target.resource_type)
        known = set(resource_type.outputs) | {a.name for a in resource_type.attributes}
        if ref.attribute not in known:
            raise SchemaValidationError(
                f"Reference {ref.render()} names unknown attribute '{ref.attribute}' of {target.resource_type}",
                source,
            )

    for instance in template.resources:
        for ref in instance.references():
            check(ref, instance.logical_name)
        for name in instance.depends_on:
            if name not in by_name:
                raise UnresolvedReferenceError(name, instance.logical_name)

    for name, value in template.outputs.items():
        for ref in collect_references(value):
            check(ref, f"output.{name}")
