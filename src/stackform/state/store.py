"""State store interface with in-memory and JSON file implementations."""

import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional
from pydantic import ValidationError
from ..utils.errors import StateError
from ..utils.logging import get_logger
from .models import STATE_VERSION, StateRecord, StateSnapshot

logger = get_logger("state.store")


class StateStore(ABC):
    """
    Persistent mapping of logical names to StateRecords.

    During a run the executor is the only writer; implementations serialise
    writes so concurrent actions never interleave partial updates.
    """

    def __init__(self):
        self._lock = threading.RLock()

    @abstractmethod
    def snapshot(self) -> StateSnapshot:
        """Return a deep copy of the current state document."""
        pass

    @abstractmethod
    def _write(self, snapshot: StateSnapshot) -> None:
        """Persist ``snapshot`` as the new current state."""
        pass

    def get(self, logical_name: str) -> Optional[StateRecord]:
        return self.snapshot().get(logical_name)

    def list(self) -> List[StateRecord]:
        """All records in insertion order."""
        return list(self.snapshot().records.values())

    def names(self) -> List[str]:
        return list(self.snapshot().records)

    def put(self, record: StateRecord) -> None:
        """Insert or replace the record for ``record.logical_name``."""
        with self._lock:
            snapshot = self.snapshot()
            snapshot.records[record.logical_name] = record
            snapshot.serial += 1
            self._write(snapshot)
        logger.debug(f"Stored state record for {record.logical_name} ({record.provider_id})")

    def remove(self, logical_name: str) -> None:
        """Remove the record for ``logical_name`` if present."""
        with self._lock:
            snapshot = self.snapshot()
            if snapshot.records.pop(logical_name, None) is None:
                return
            snapshot.serial += 1
            self._write(snapshot)
        logger.debug(f"Removed state record for {logical_name}")


class InMemoryStateStore(StateStore):
    """State store held in process memory."""

    def __init__(self, records: Optional[List[StateRecord]] = None):
        super().__init__()
        self._snapshot = StateSnapshot()
        for record in records or []:
            self._snapshot.records[record.logical_name] = record

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return self._snapshot.model_copy(deep=True)

    def _write(self, snapshot: StateSnapshot) -> None:
        self._snapshot = snapshot.model_copy(deep=True)


class FileStateStore(StateStore):
    """State store persisted as a JSON document, replaced atomically on every write."""

    def __init__(self, path):
        super().__init__()
        self.path = Path(path)
        self._cache: Optional[StateSnapshot] = None

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            if self._cache is None:
                self._cache = self._load()
            return self._cache.model_copy(deep=True)

    def _load(self) -> StateSnapshot:
        if not self.path.exists():
            logger.debug(f"No state file at {self.path}, starting empty")
            return StateSnapshot()

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise StateError(f"State file {self.path} is not valid JSON: {e}")
        except OSError as e:
            raise StateError(f"Error reading state file {self.path}: {e}")

        if not isinstance(data, dict):
            raise StateError(f"State file {self.path} must contain a JSON object")
        version = data.get("version", STATE_VERSION)
        if version != STATE_VERSION:
            raise StateError(f"Unsupported state version {version} in {self.path} (expected {STATE_VERSION})")

        try:
            snapshot = StateSnapshot(**data)
        except ValidationError as e:
            raise StateError(f"Invalid state file {self.path}: {e}")

        logger.info(f"Loaded state from {self.path} (serial {snapshot.serial}, {len(snapshot.records)} records)")
        return snapshot

    def _write(self, snapshot: StateSnapshot) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(snapshot.model_dump(mode="json"), f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}: {e}")
        self._cache = snapshot.model_copy(deep=True)

    def initialize(self) -> bool:
        """Write an empty state document if none exists. Returns True if created."""
        with self._lock:
            if self.path.exists():
                return False
            self._write(StateSnapshot())
            return True
