"""Config path resolution for two-tier config system."""

from pathlib import Path
from typing import Optional

WORKDIR_NAME = ".stackform"


def get_user_config_path() -> Path:
    """Get user config path: ~/.stackform/config.yaml"""
    return Path.home() / WORKDIR_NAME / "config.yaml"


def get_workdir(base: Optional[Path] = None) -> Path:
    """Get the project working directory: .stackform/ under ``base`` or the cwd"""
    return (base or Path.cwd()) / WORKDIR_NAME


def get_project_config_path(base: Optional[Path] = None) -> Optional[Path]:
    """Get project config path: .stackform/config.yaml if it exists"""
    project_config = get_workdir(base) / "config.yaml"
    if project_config.exists():
        return project_config
    return None


def get_defaults_path() -> Path:
    """Path of the packaged defaults.yaml"""
    return Path(__file__).parent / "defaults.yaml"
