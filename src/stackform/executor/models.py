"""Pydantic models for apply results."""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field
from ..planner.models import ActionType
from ..utils.errors import ActionFailedError, ApplyError


class ActionStatus(str, Enum):
    """Outcome of one planned action."""
    SUCCEEDED = "succeeded"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"
    CANCELED = "canceled"


class ActionOutcome(BaseModel):
    """What happened to one planned action."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: str
    logical_name: str
    action: ActionType
    status: ActionStatus
    replace: bool = False
    provider_id: Optional[str] = None
    message: Optional[str] = Field(None, description="Error text for failed actions")
    failed_dependency: Optional[str] = Field(None, description="Failed action that caused a skip")
    error: Optional[ActionFailedError] = Field(None, exclude=True)


class ApplyResult(BaseModel):
    """Outcomes of executing a plan, in plan order."""

    outcomes: List[ActionOutcome] = Field(default_factory=list)
    canceled: bool = False

    def get(self, key: str) -> Optional[ActionOutcome]:
        for outcome in self.outcomes:
            if outcome.key == key:
                return outcome
        return None

    def status_of(self, logical_name: str) -> Optional[ActionStatus]:
        """Status of the last action for ``logical_name``, or of the create of a replacement."""
        status = None
        for outcome in self.outcomes:
            if outcome.logical_name != logical_name:
                continue
            if outcome.replace and outcome.action == ActionType.CREATE:
                return outcome.status
            status = outcome.status
        return status

    def with_status(self, status: ActionStatus) -> List[ActionOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def failures(self) -> List[ActionFailedError]:
        return [o.error for o in self.outcomes if o.status == ActionStatus.FAILED and o.error is not None]

    @property
    def ok(self) -> bool:
        return not self.canceled and all(
            o.status in (ActionStatus.SUCCEEDED, ActionStatus.UNCHANGED) for o in self.outcomes
        )

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in ActionStatus}
        for outcome in self.outcomes:
            counts[outcome.status.value] += 1
        return counts

    def raise_for_failures(self) -> None:
        """Raise ApplyError if any action failed."""
        failures = self.failures
        if failures:
            raise ApplyError(failures)
