"""Executor: applies plans against providers and records state."""

from .executor import Executor, resolve_outputs, resolve_value
from .models import ActionOutcome, ActionStatus, ApplyResult

__all__ = ["ActionOutcome", "ActionStatus", "ApplyResult", "Executor", "resolve_outputs", "resolve_value"]
