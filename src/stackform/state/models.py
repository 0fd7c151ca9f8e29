"""Pydantic models for persisted infrastructure state."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

STATE_VERSION = 1


def _now() -> datetime:
    return datetime.now(timezone.utc)


class StateRecord(BaseModel):
    """Last-known provider identifier and attributes of one logical resource."""

    logical_name: str = Field(..., description="Template-assigned logical name")
    resource_type: str = Field(..., description="Resource type name")
    provider_id: str = Field(..., description="Identifier assigned by the provider")
    config: Dict[str, Any] = Field(default_factory=dict, description="Symbolic attributes as last applied")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Resolved attributes sent to the provider")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Provider-assigned outputs")
    dependencies: List[str] = Field(default_factory=list, description="Logical names this resource depended on")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def value_of(self, attribute: str) -> Any:
        """
        Resolve an output attribute for reference substitution.

        ``id`` is the provider identifier; outputs take precedence over
        resolved input attributes.

        Raises:
            KeyError: If the record has no such attribute
        """
        if attribute == "id":
            return self.provider_id
        if attribute in self.outputs:
            return self.outputs[attribute]
        if attribute in self.attributes:
            return self.attributes[attribute]
        raise KeyError(attribute)


class StateSnapshot(BaseModel):
    """Complete persisted state document."""

    version: int = STATE_VERSION
    serial: int = 0
    lineage: str = Field(default_factory=lambda: str(uuid.uuid4()))
    records: Dict[str, StateRecord] = Field(default_factory=dict)

    def get(self, logical_name: str) -> Optional[StateRecord]:
        return self.records.get(logical_name)
