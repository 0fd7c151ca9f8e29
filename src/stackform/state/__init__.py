"""State store: last-known reconciled resources."""

from .models import StateRecord, StateSnapshot
from .store import FileStateStore, InMemoryStateStore, StateStore

__all__ = ["FileStateStore", "InMemoryStateStore", "StateRecord", "StateSnapshot", "StateStore"]
