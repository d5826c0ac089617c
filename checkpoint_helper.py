#!/usr/bin/env python3
"""
Checkpoint helpers - durable per-(database, measurement) migration progress

Purpose:
- Load the checkpoint document once at start ({"state": {...}}, defaulted to {})
- Persist the full state after every mutation so a restart resumes where it stopped
- Interpret stored values: True is done, a string is the failure message, absence is pending
- Reset the checkpoint on request (--clean)
"""

import json
import os
import tempfile
import threading
from enum import Enum
from pathlib import Path

from exceptions import ConfigurationError


class MeasurementStatus(Enum):
    PENDING = "pending"
    DONE = "done"
    FAILED = "failed"


class JsonCheckpointStore:
    """Single JSON document on disk, read in full and rewritten in full."""

    def __init__(self, path):
        self.path = Path(path)

    def load(self):
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Unable to read checkpoint file {self.path}: {e}") from e
        if not isinstance(document, dict) or not isinstance(document.get("state", {}), dict):
            raise ConfigurationError(f"Malformed checkpoint file {self.path}: expected a 'state' object")
        state = document.get("state", {})
        for database, measurements in state.items():
            if not isinstance(measurements, dict):
                raise ConfigurationError(
                    f"Malformed checkpoint file {self.path}: entry for database {database!r} is not an object")
        return state

    def save(self, state):
        """Write the full document atomically."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".checkpoint_", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"state": state}, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def clear(self):
        self.path.unlink(missing_ok=True)


class MigrationCheckpoint:
    """
    In-memory MigrationState backed by a checkpoint store.

    The store needs load() -> dict and save(dict); clear() is optional.
    All mutations are serialized and persisted before returning.
    """

    def __init__(self, store):
        self.store = store
        self._lock = threading.Lock()
        self.state = store.load()

    def _persist(self):
        self.store.save(self.state)

    def ensure_database(self, database):
        """Record a database as seen. Returns True when the entry was newly created."""
        with self._lock:
            if database in self.state:
                return False
            self.state[database] = {}
            self._persist()
            return True

    def status(self, database, measurement):
        """Return (MeasurementStatus, failure message or None)."""
        with self._lock:
            value = self.state.get(database, {}).get(measurement)
        if value is True:
            return MeasurementStatus.DONE, None
        if isinstance(value, str):
            return MeasurementStatus.FAILED, value
        return MeasurementStatus.PENDING, None

    def is_done(self, database, measurement):
        return self.status(database, measurement)[0] is MeasurementStatus.DONE

    def mark_done(self, database, measurement):
        with self._lock:
            self.state.setdefault(database, {})[measurement] = True
            self._persist()

    def mark_failed(self, database, measurement, message):
        with self._lock:
            self.state.setdefault(database, {})[measurement] = str(message)
            self._persist()

    def failed_measurements(self):
        """Map (database, measurement) -> stored failure message."""
        with self._lock:
            return {
                (database, measurement): value
                for database, measurements in self.state.items()
                for measurement, value in measurements.items()
                if isinstance(value, str)
            }

    def flush(self):
        with self._lock:
            self._persist()

    def reset(self):
        """Drop all progress, in memory and on disk."""
        with self._lock:
            self.state = {}
            if hasattr(self.store, "clear"):
                self.store.clear()
            else:
                self._persist()
