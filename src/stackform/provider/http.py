"""REST provider binding resource operations to an HTTP API."""

import os
from typing import Any, Dict, Optional
import requests
from ..schema.models import ResourceType
from ..utils.errors import ProviderError, ProviderTransientError
from ..utils.logging import get_logger
from .base import ProviderResult, ResourceProvider

logger = get_logger("provider.http")


class HttpProvider(ResourceProvider):
    """
    Provider speaking a small JSON REST protocol.

    Routes:
        POST   {endpoint}/{type}         create, body {"attributes": {...}}
        GET    {endpoint}/{type}/{id}    read, 404 means gone
        PUT    {endpoint}/{type}/{id}    update, body {"attributes": {...}, "prior": {...}}
        DELETE {endpoint}/{type}/{id}    delete, 404 is treated as success

    Responses carry {"id": "...", "outputs": {...}} (read also "attributes").
    """

    name = "cloud"

    def __init__(
        self,
        endpoint: str,
        token: Optional[str] = None,
        token_env: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None
    ):
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.settings: Dict[str, Any] = {}
        if token is None and token_env:
            token = os.getenv(token_env)
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

    def configure(self, settings: Dict[str, Any]) -> None:
        self.settings = dict(settings)
        region = settings.get("region")
        if region:
            self.session.headers["X-Cloud-Region"] = str(region)

    def create(self, resource_type: ResourceType, attributes: Dict[str, Any]) -> ProviderResult:
        data = self._request("POST", f"/{resource_type.name}", json={"attributes": attributes})
        return self._result(data, resource_type)

    def read(self, resource_type: ResourceType, resource_id: str) -> Optional[ProviderResult]:
        data = self._request("GET", f"/{resource_type.name}/{resource_id}", allow_missing=True)
        if data is None:
            return None
        return self._result(data, resource_type, default_id=resource_id)

    def update(
        self,
        resource_type: ResourceType,
        resource_id: str,
        attributes: Dict[str, Any],
        prior: Dict[str, Any]
    ) -> ProviderResult:
        data = self._request(
            "PUT",
            f"/{resource_type.name}/{resource_id}",
            json={"attributes": attributes, "prior": prior},
        )
        return self._result(data, resource_type, default_id=resource_id)

    def delete(self, resource_type: ResourceType, resource_id: str) -> None:
        self._request("DELETE", f"/{resource_type.name}/{resource_id}", allow_missing=True)

    def _request(self, method: str, path: str, json: Optional[dict] = None, allow_missing: bool = False):
        url = f"{self.endpoint}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, json=json, timeout=self.timeout)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise ProviderTransientError(f"{method} {url} failed: {e}")
        except requests.exceptions.RequestException as e:
            raise ProviderError(f"{method} {url} failed: {e}")

        if allow_missing and response.status_code == 404:
            return None
        if response.status_code >= 500 or response.status_code == 429:
            raise ProviderTransientError(f"{method} {url} returned {response.status_code}: {_error_text(response)}")
        if response.status_code >= 400:
            raise ProviderError(f"{method} {url} returned {response.status_code}: {_error_text(response)}")

        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(f"{method} {url} returned invalid JSON: {e}")

    def _result(self, data: Any, resource_type: ResourceType, default_id: Optional[str] = None) -> ProviderResult:
        if not isinstance(data, dict):
            raise ProviderError(f"Unexpected response for {resource_type.name}: {data!r}")
        resource_id = data.get("id") or default_id
        if not resource_id:
            raise ProviderError(f"Response for {resource_type.name} has no id")
        return ProviderResult(
            id=str(resource_id),
            outputs=data.get("outputs") or {},
            attributes=data.get("attributes"),
        )


def _error_text(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)[:200]
