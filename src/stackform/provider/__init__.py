"""Provider boundary: capability interface and implementations."""

from .base import ProviderRegistry, ProviderResult, ResourceProvider
from .http import HttpProvider
from .simulated import SimulatedCloudProvider

__all__ = ["HttpProvider", "ProviderRegistry", "ProviderResult", "ResourceProvider", "SimulatedCloudProvider"]
