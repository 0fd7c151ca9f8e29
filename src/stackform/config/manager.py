"""Two-tier configuration manager (user + project override)."""

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import yaml
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .paths import get_defaults_path, get_project_config_path, get_user_config_path

logger = get_logger("config.manager")

ENV_OVERRIDES = {
    "STACKFORM_STATE_PATH": ("state_path",),
    "STACKFORM_LOG_LEVEL": ("log_level",),
    "STACKFORM_PARALLELISM": ("apply", "parallelism"),
    "STACKFORM_REFRESH": ("plan", "refresh"),
    "STACKFORM_PROVIDER": ("provider", "kind"),
    "STACKFORM_PROVIDER_ENDPOINT": ("provider", "endpoint"),
}


def load_config(
    base_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Load full config tree: defaults < user < project < environment.

    Args:
        base_dir: Project directory holding .stackform/ (default: cwd)
        environ: Environment mapping (default: os.environ)

    Returns:
        Merged configuration dictionary

    Raises:
        ConfigError: If a config file is not valid YAML or not a mapping
    """
    config = _read_yaml(get_defaults_path())

    user_config_path = get_user_config_path()
    if user_config_path.exists():
        _deep_merge(config, _read_yaml(user_config_path))
        logger.debug(f"Loaded user config from {user_config_path}")

    project_config_path = get_project_config_path(base_dir)
    if project_config_path:
        _deep_merge(config, _read_yaml(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")

    _apply_environment(config, os.environ if environ is None else environ)
    return config


def save_config(config: Dict[str, Any], path: Path) -> None:
    """
    Save config to the given path.

    Raises:
        ConfigError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, 'w', encoding='utf-8') as f:
            yaml.dump(config, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved config to {path}")
    except OSError as e:
        raise ConfigError(f"Failed to save config to {path}: {e}")


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error loading config file {path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a dictionary: {path}")
    return data


def _apply_environment(config: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for variable, keys in ENV_OVERRIDES.items():
        value = environ.get(variable)
        if value is None or value == "":
            continue
        target = config
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = yaml.safe_load(value)
        logger.debug(f"Config {'.'.join(keys)} overridden by {variable}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (mutates base)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
