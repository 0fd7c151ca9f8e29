"""Configuration module: load and validate stackform settings."""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import _deep_merge, load_config, save_config
from .paths import get_defaults_path, get_project_config_path, get_user_config_path, get_workdir

logger = get_logger("config")


class ProviderKind(str, Enum):
    SIMULATED = "simulated"
    HTTP = "http"


class PlanSettings(BaseModel):
    refresh: bool = False


class ApplySettings(BaseModel):
    parallelism: int = Field(10, ge=1, le=256)


class ProviderSettings(BaseModel):
    """How the cloud provider is reached."""
    kind: ProviderKind = ProviderKind.SIMULATED
    cloud_path: Optional[str] = Field(None, description="Persistence file for the simulated cloud")
    endpoint: Optional[str] = Field(None, description="Base URL of the HTTP provider API")
    token_env: Optional[str] = "STACKFORM_PROVIDER_TOKEN"
    timeout: float = Field(30.0, gt=0)
    region: Optional[str] = None


class StackformConfig(BaseModel):
    state_path: str = ".stackform/state.json"
    log_level: str = "WARNING"
    plan: PlanSettings = Field(default_factory=PlanSettings)
    apply: ApplySettings = Field(default_factory=ApplySettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, value: str) -> str:
        return value.upper()

    def resolve_path(self, value: str, base_dir: Optional[Path] = None) -> Path:
        """Resolve a configured path relative to the project directory."""
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return (base_dir or Path.cwd()) / path


def load_settings(
    base_dir: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> StackformConfig:
    """
    Load and validate the effective configuration.

    Args:
        base_dir: Project directory (default: cwd)
        environ: Environment mapping (default: os.environ)
        overrides: Values from command-line flags, merged last

    Returns:
        Validated StackformConfig

    Raises:
        ConfigError: If a config file cannot be read or a value is invalid
    """
    raw = load_config(base_dir, environ)
    if overrides:
        _deep_merge(raw, overrides)

    try:
        return StackformConfig(**raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid configuration: {problems}")


__all__ = [
    "ProviderKind",
    "PlanSettings",
    "ApplySettings",
    "ProviderSettings",
    "StackformConfig",
    "load_config",
    "load_settings",
    "save_config",
    "get_defaults_path",
    "get_project_config_path",
    "get_user_config_path",
    "get_workdir",
]
