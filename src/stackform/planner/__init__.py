"""Planner: pure diff between desired instances and recorded state."""

from .models import ActionType, AttributeChange, Plan, PlannedAction
from .planner import create_plan, diff_attributes
from .refresh import refresh_records

__all__ = ["ActionType", "AttributeChange", "Plan", "PlannedAction", "create_plan", "diff_attributes", "refresh_records"]
