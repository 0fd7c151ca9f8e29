"""In-memory simulated cloud implementing the built-in resource types."""

import hashlib
import json
import secrets
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from ..schema.models import ResourceType
from ..utils.errors import ProviderError, ProviderTransientError
from ..utils.logging import get_logger
from .base import ProviderResult, ResourceProvider

logger = get_logger("provider.simulated")

ID_PREFIXES = {
    "cloud_vpc": "vpc",
    "cloud_subnet": "subnet",
    "cloud_security_group": "sg",
    "cloud_instance": "i",
    "cloud_eip": "eipalloc",
    "cloud_db_instance": "db",
    "cloud_db_account": "dbuser",
    "cloud_db_grant": "dbgrant",
}

# attributes holding identifiers of other resources, checked on create/update
LINK_ATTRIBUTES = ("vpc_id", "subnet_id", "instance_id", "account_id")
LINK_LIST_ATTRIBUTES = ("security_group_ids", "subnet_ids")
# associations dropped by the cloud when their target goes away
DETACHABLE_TYPES = ("cloud_eip",)

DB_PORTS = {"mysql": 3306, "mariadb": 3306, "postgres": 5432, "postgresql": 5432, "sqlserver": 1433}


class _Fault:
    def __init__(self, resource_type: str, operation: str, match: Optional[Dict[str, Any]], transient: bool,
                 message: str, times: Optional[int]):
        self.resource_type = resource_type
        self.operation = operation
        self.match = match or {}
        self.transient = transient
        self.message = message
        self.remaining = times

    def applies(self, resource_type: str, operation: str, attributes: Dict[str, Any]) -> bool:
        if self.remaining is not None and self.remaining <= 0:
            return False
        if resource_type != self.resource_type or operation != self.operation:
            return False
        return all(attributes.get(k) == v for k, v in self.match.items())


class SimulatedCloudProvider(ResourceProvider):
    """
    Deterministic stand-in for a cloud API.

    Resources live in a dictionary keyed by identifier, optionally mirrored
    to a JSON file so separate CLI runs share one simulated cloud. The
    provider enforces referential integrity the way a real cloud does:
    linked identifiers must exist and a resource still referenced by
    another cannot be deleted.
    """

    name = "cloud"

    def __init__(self, path: Optional[str] = None, region: str = "local-1"):
        self.region = region
        self.path = Path(path) if path else None
        self.calls: List[tuple] = []
        self._lock = threading.RLock()
        self._faults: List[_Fault] = []
        self._resources: Dict[str, Dict[str, Any]] = {}
        self._counter = 0
        if self.path and self.path.exists():
            self._load()

    def configure(self, settings: Dict[str, Any]) -> None:
        if settings.get("region"):
            self.region = str(settings["region"])

    def inject_failure(
        self,
        resource_type: str,
        operation: str = "create",
        match: Optional[Dict[str, Any]] = None,
        transient: bool = False,
        message: str = "simulated failure",
        times: Optional[int] = None
    ) -> None:
        """Make matching calls fail with ProviderError (or ProviderTransientError)."""
        self._faults.append(_Fault(resource_type, operation, match, transient, message, times))

    def create(self, resource_type: ResourceType, attributes: Dict[str, Any]) -> ProviderResult:
        with self._lock:
            self._record_call("create", resource_type.name, attributes)
            self._check_fault(resource_type.name, "create", attributes)
            self._check_links(attributes)
            self._counter += 1
            resource_id = self._new_id(resource_type.name)
            outputs = self._outputs(resource_type.name, resource_id, attributes)
            self._resources[resource_id] = {
                "type": resource_type.name,
                "attributes": dict(attributes),
                "outputs": outputs,
            }
            self._save()
        logger.info(f"Created {resource_type.name} {resource_id}")
        return ProviderResult(id=resource_id, outputs=outputs)

    def read(self, resource_type: ResourceType, resource_id: str) -> Optional[ProviderResult]:
        with self._lock:
            self._record_call("read", resource_type.name, {"id": resource_id})
            self._check_fault(resource_type.name, "read", {"id": resource_id})
            resource = self._resources.get(resource_id)
            if resource is None or resource["type"] != resource_type.name:
                return None
            return ProviderResult(
                id=resource_id,
                outputs=dict(resource["outputs"]),
                attributes=dict(resource["attributes"]),
            )

    def update(
        self,
        resource_type: ResourceType,
        resource_id: str,
        attributes: Dict[str, Any],
        prior: Dict[str, Any]
    ) -> ProviderResult:
        with self._lock:
            self._record_call("update", resource_type.name, attributes)
            self._check_fault(resource_type.name, "update", attributes)
            resource = self._resources.get(resource_id)
            if resource is None:
                raise ProviderError(f"{resource_type.name} {resource_id} does not exist")
            for name in resource_type.immutable_attributes:
                if resource["attributes"].get(name) != attributes.get(name):
                    raise ProviderError(f"Attribute '{name}' of {resource_type.name} cannot be changed in place")
            self._check_links(attributes)
            resource["attributes"] = dict(attributes)
            resource["outputs"] = self._outputs(resource_type.name, resource_id, attributes, resource["outputs"])
            self._save()
            outputs = dict(resource["outputs"])
        logger.info(f"Updated {resource_type.name} {resource_id}")
        return ProviderResult(id=resource_id, outputs=outputs)

    def delete(self, resource_type: ResourceType, resource_id: str) -> None:
        with self._lock:
            self._record_call("delete", resource_type.name, {"id": resource_id})
            self._check_fault(resource_type.name, "delete", {"id": resource_id})
            if resource_id not in self._resources:
                logger.debug(f"{resource_type.name} {resource_id} already gone")
                return
            users = self._referenced_by(resource_id)
            if users:
                raise ProviderError(
                    f"DependencyViolation: {resource_id} is still used by {', '.join(sorted(users))}"
                )
            del self._resources[resource_id]
            self._save()
        logger.info(f"Deleted {resource_type.name} {resource_id}")

    def exists(self, resource_id: str) -> bool:
        with self._lock:
            return resource_id in self._resources

    def resources_of(self, resource_type: str) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            return {rid: dict(r) for rid, r in self._resources.items() if r["type"] == resource_type}

    def forget(self, resource_id: str) -> None:
        """Drop a resource behind the tool's back (simulates out-of-band deletion)."""
        with self._lock:
            self._resources.pop(resource_id, None)
            self._save()

    def _record_call(self, operation: str, resource_type: str, attributes: Dict[str, Any]) -> None:
        self.calls.append((operation, resource_type, dict(attributes)))

    def _check_fault(self, resource_type: str, operation: str, attributes: Dict[str, Any]) -> None:
        for fault in self._faults:
            if fault.applies(resource_type, operation, attributes):
                if fault.remaining is not None:
                    fault.remaining -= 1
                if fault.transient:
                    raise ProviderTransientError(fault.message)
                raise ProviderError(fault.message)

    def _check_links(self, attributes: Dict[str, Any]) -> None:
        for name in LINK_ATTRIBUTES:
            value = attributes.get(name)
            if value and value not in self._resources:
                raise ProviderError(f"{name} '{value}' does not exist")
        for name in LINK_LIST_ATTRIBUTES:
            for value in attributes.get(name) or []:
                if value not in self._resources:
                    raise ProviderError(f"{name} entry '{value}' does not exist")

    def _referenced_by(self, resource_id: str) -> List[str]:
        users = []
        for other_id, resource in self._resources.items():
            if resource["type"] in DETACHABLE_TYPES:
                continue
            attrs = resource["attributes"]
            linked = [attrs.get(name) for name in LINK_ATTRIBUTES]
            for name in LINK_LIST_ATTRIBUTES:
                linked.extend(attrs.get(name) or [])
            if resource_id in linked:
                users.append(other_id)
        return users

    def _new_id(self, resource_type: str) -> str:
        prefix = ID_PREFIXES.get(resource_type, resource_type.split("_", 1)[-1])
        digest = hashlib.sha256(f"{self.region}:{resource_type}:{self._counter}".encode("utf-8")).hexdigest()
        return f"{prefix}-{digest[:12]}"

    def _outputs(
        self,
        resource_type: str,
        resource_id: str,
        attributes: Dict[str, Any],
        previous: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        previous = previous or {}
        arn = f"arn:cloud:{self.region}:{resource_type.replace('cloud_', '')}/{resource_id}"
        seed = int(hashlib.sha256(resource_id.encode("utf-8")).hexdigest()[:6], 16)

        if resource_type in ("cloud_vpc", "cloud_subnet", "cloud_security_group"):
            return {"arn": arn}
        if resource_type == "cloud_instance":
            public_ip = None
            if attributes.get("associate_public_ip"):
                public_ip = previous.get("public_ip") or f"198.51.100.{seed % 250 + 1}"
            return {
                "private_ip": previous.get("private_ip") or f"10.0.{seed % 250}.{seed // 250 % 250 + 4}",
                "public_ip": public_ip,
                "state": "running",
            }
        if resource_type == "cloud_eip":
            return {"public_ip": previous.get("public_ip") or f"203.0.113.{seed % 250 + 1}", "allocation_id": resource_id}
        if resource_type == "cloud_db_instance":
            address = f"{attributes.get('identifier', resource_id)}.{self.region}.db.cloud.internal"
            port = DB_PORTS.get(str(attributes.get("engine", "")).lower(), 3306)
            return {"address": address, "port": port, "endpoint": f"{address}:{port}"}
        if resource_type == "cloud_db_account":
            password = attributes.get("password") or previous.get("password") or secrets.token_urlsafe(16)
            return {"password": password}
        return {}

    def _load(self) -> None:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ProviderError(f"Cannot read simulated cloud file {self.path}: {e}")
        self._resources = data.get("resources", {})
        self._counter = int(data.get("counter", 0))
        self.region = data.get("region", self.region)

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, 'w', encoding='utf-8') as f:
                json.dump({"region": self.region, "counter": self._counter, "resources": self._resources}, f, indent=2)
        except OSError as e:
            raise ProviderTransientError(f"Cannot write simulated cloud file {self.path}: {e}")
