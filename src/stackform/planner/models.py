"""Pydantic models for reconciliation plans."""

import json
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_serializer, field_validator
from ..ingest.models import decode_value, encode_value
from ..state.models import StateRecord


class ActionType(str, Enum):
    """Kinds of planned actions."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NO_OP = "no-op"


class AttributeChange(BaseModel):
    """Before/after values of one changed attribute."""
    name: str
    before: Any = None
    after: Any = None
    forces_replacement: bool = False
    sensitive: bool = False


class PlannedAction(BaseModel):
    """One action bound to one logical resource."""

    logical_name: str = Field(..., description="Logical name the action applies to")
    resource_type: str = Field(..., description="Resource type name")
    action: ActionType = Field(..., description="Kind of action")
    replace: bool = Field(False, description="Part of a replacement (delete and create of one logical name)")
    replace_reason: List[str] = Field(default_factory=list, description="Attributes forcing replacement")
    create_before_delete: bool = Field(False, description="Replacement creates the new resource before deleting the old one")
    changes: List[AttributeChange] = Field(default_factory=list, description="Attribute-level diff")
    desired: Optional[Dict[str, Any]] = Field(None, description="Desired attributes, references unresolved")
    prior: Optional[StateRecord] = Field(None, description="Recorded state before the action")
    dependencies: List[str] = Field(default_factory=list, description="Logical names the desired instance follows")
    requires: List[str] = Field(default_factory=list, description="Keys of actions that must succeed first")

    @field_validator("desired", mode="before")
    @classmethod
    def decode_desired(cls, value):
        return decode_value(value) if value is not None else None

    @field_serializer("desired")
    def encode_desired(self, value):
        return encode_value(value) if value is not None else None

    @property
    def key(self) -> str:
        return action_key(self.action, self.logical_name)

    @property
    def is_change(self) -> bool:
        return self.action != ActionType.NO_OP


class Plan(BaseModel):
    """Ordered list of actions reconciling desired and recorded state."""

    actions: List[PlannedAction] = Field(default_factory=list)
    destroy: bool = False
    refreshed: bool = False
    template_digest: Optional[str] = None
    state_serial: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def changes(self) -> List[PlannedAction]:
        """Actions other than no-op, in plan order."""
        return [a for a in self.actions if a.is_change]

    def is_empty(self) -> bool:
        return not self.changes()

    def get(self, key: str) -> Optional[PlannedAction]:
        for action in self.actions:
            if action.key == key:
                return action
        return None

    def for_name(self, logical_name: str) -> List[PlannedAction]:
        return [a for a in self.actions if a.logical_name == logical_name]

    def summary(self) -> Dict[str, int]:
        """Counts per action type; a replacement counts once as 'replace'."""
        counts = {"create": 0, "update": 0, "delete": 0, "replace": 0, "no-op": 0}
        for action in self.actions:
            if action.replace:
                if action.action == ActionType.CREATE:
                    counts["replace"] += 1
                continue
            counts[action.action.value] += 1
        return counts

    def save(self, path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(self.model_dump(mode="json"), f, indent=2)

    @classmethod
    def load(cls, path) -> "Plan":
        with open(Path(path), 'r', encoding='utf-8') as f:
            return cls.model_validate(json.load(f))


def action_key(action: ActionType, logical_name: str) -> str:
    return f"{ActionType(action).value}:{logical_name}"
