"""Provider capability interface and registry."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field
from ..schema.models import ResourceType
from ..utils.errors import ProviderError
from ..utils.logging import get_logger

logger = get_logger("provider.base")


class ProviderResult(BaseModel):
    """Identifier and outputs returned by a provider call."""
    id: str = Field(..., description="Provider-assigned identifier")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider-assigned attributes")
    attributes: Optional[Dict[str, Any]] = Field(None, description="Live attribute values (read only)")


class ResourceProvider(ABC):
    """
    Abstract interface to an external cloud API.

    Providers perform one remote call per operation and never retry:
    - ProviderError means the request was rejected
    - ProviderTransientError means it may succeed if repeated
    """

    name: str = "provider"

    def configure(self, settings: Dict[str, Any]) -> None:
        """Apply provider settings from the template's providers block."""
        pass

    @abstractmethod
    def create(self, resource_type: ResourceType, attributes: Dict[str, Any]) -> ProviderResult:
        """
        Create a resource.

        Args:
            resource_type: Schema of the resource being created
            attributes: Fully resolved attribute values

        Returns:
            ProviderResult with the new identifier and outputs
        """
        pass

    @abstractmethod
    def read(self, resource_type: ResourceType, resource_id: str) -> Optional[ProviderResult]:
        """Read a resource; returns None if it no longer exists."""
        pass

    @abstractmethod
    def update(
        self,
        resource_type: ResourceType,
        resource_id: str,
        attributes: Dict[str, Any],
        prior: Dict[str, Any]
    ) -> ProviderResult:
        """Update mutable attributes of an existing resource in place."""
        pass

    @abstractmethod
    def delete(self, resource_type: ResourceType, resource_id: str) -> None:
        """Delete a resource. Deleting an already-missing resource is not an error."""
        pass


class ProviderRegistry:
    """Dispatches resource types to providers by the type's provider name."""

    def __init__(self, providers: Optional[Dict[str, ResourceProvider]] = None):
        self._providers: Dict[str, ResourceProvider] = dict(providers or {})

    def register(self, name: str, provider: ResourceProvider) -> None:
        self._providers[name] = provider
        logger.debug(f"Registered provider '{name}' ({type(provider).__name__})")

    def for_type(self, resource_type: ResourceType) -> ResourceProvider:
        """
        Return the provider responsible for ``resource_type``.

        Raises:
            ProviderError: If no provider is registered under the type's provider name
        """
        provider = self._providers.get(resource_type.provider)
        if provider is None:
            raise ProviderError(
                f"No provider registered for '{resource_type.provider}' (needed by {resource_type.name})"
            )
        return provider

    def configure(self, settings: Dict[str, Dict[str, Any]]) -> None:
        """Pass each template providers block to the matching provider."""
        for name, provider_settings in settings.items():
            provider = self._providers.get(name)
            if provider is None:
                logger.warning(f"Template configures unknown provider '{name}'")
                continue
            provider.configure(provider_settings)

    def names(self) -> List[str]:
        return list(self._providers)
