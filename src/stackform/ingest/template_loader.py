"""Load template text and variable values from files and the environment."""

import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple
import yaml
from ..utils.errors import TemplateLoadError
from ..utils.logging import get_logger

logger = get_logger("ingest.template_loader")

ENV_VAR_PREFIX = "STACKFORM_VAR_"
TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class TemplateYamlLoader(yaml.SafeLoader):
    """SafeLoader that leaves dates and timestamps as plain strings, so values stay JSON-compatible."""


TemplateYamlLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != TIMESTAMP_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


def load_yaml(stream) -> Any:
    """Parse YAML text or a file object with TemplateYamlLoader."""
    return yaml.load(stream, Loader=TemplateYamlLoader)


def parse_scalar(raw: str) -> Any:
    """Read a command-line or environment value as a YAML scalar (``3`` -> 3, ``true`` -> True)."""
    if not raw:
        return ""
    try:
        return load_yaml(raw)
    except yaml.YAMLError:
        return raw


def load_template(template_path: str) -> Tuple[str, Path]:
    """
    Read a template file.

    Args:
        template_path: Path to the YAML template

    Returns:
        Tuple of (template text, base directory for relative file() paths)

    Raises:
        TemplateLoadError: If the file is missing or unreadable
    """
    path = Path(template_path)

    if not path.exists():
        raise TemplateLoadError(
            f"Template file not found: {template_path}. "
            "Please check the file path and ensure the file exists."
        )

    if not path.is_file():
        raise TemplateLoadError(f"Path is not a file: {template_path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateLoadError(f"Error reading template file {template_path}: {e}")

    logger.info(f"Loaded template from {template_path} ({len(text)} bytes)")
    return text, path.resolve().parent


def load_values_file(values_path: str) -> Dict[str, Any]:
    """
    Load variable values from a YAML mapping file.

    Raises:
        TemplateLoadError: If the file is missing, invalid YAML or not a mapping
    """
    path = Path(values_path)
    if not path.is_file():
        raise TemplateLoadError(f"Values file not found: {values_path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = load_yaml(f)
    except yaml.YAMLError as e:
        raise TemplateLoadError(f"Invalid YAML in values file {values_path}: {e}")
    except OSError as e:
        raise TemplateLoadError(f"Error reading values file {values_path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TemplateLoadError(f"Values file must contain a mapping: {values_path}")

    logger.debug(f"Loaded {len(data)} variable values from {values_path}")
    return data


def values_from_environment(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``STACKFORM_VAR_<name>`` environment variables, read as YAML scalars."""
    if environ is None:
        environ = os.environ
    values = {}
    for key, value in environ.items():
        if key.startswith(ENV_VAR_PREFIX) and len(key) > len(ENV_VAR_PREFIX):
            values[key[len(ENV_VAR_PREFIX):]] = parse_scalar(value)
    return values


def parse_var_assignments(assignments: Iterable[str]) -> Dict[str, Any]:
    """
    Parse ``name=value`` strings from the command line.

    Values are read as YAML scalars so ``count=3`` yields an int.

    Raises:
        TemplateLoadError: If an assignment has no ``=``
    """
    values = {}
    for assignment in assignments:
        if "=" not in assignment:
            raise TemplateLoadError(f"Invalid variable assignment '{assignment}', expected name=value")
        name, raw = assignment.split("=", 1)
        name = name.strip()
        if not name:
            raise TemplateLoadError(f"Invalid variable assignment '{assignment}', empty name")
        values[name] = parse_scalar(raw)
    return values


def collect_variable_values(
    var_files: Iterable[str] = (),
    assignments: Iterable[str] = (),
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Merge variable values by precedence: environment < values files < assignments.
    """
    values = values_from_environment(environ)
    for var_file in var_files:
        values.update(load_values_file(var_file))
    values.update(parse_var_assignments(assignments))
    return values
