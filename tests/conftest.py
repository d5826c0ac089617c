import threading

import pytest

from checkpoint_helper import MigrationCheckpoint
from exceptions import DiscoveryError, TransferError


class FakeInfluxHelper:
    """In-memory stand-in for InfluxMigrationHelper that records every call."""

    def __init__(self, data=None):
        # {database: {measurement: [point, ...]}}
        self.data = data or {}
        self.calls = []
        self.written = {}
        self.fail_list_databases = None
        self.fail_measurements = {}
        self.fail_queries = {}
        self.fail_writes = {}
        self.fail_create = {}
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def calls_of(self, name):
        return [call for call in self.calls if call[0] == name]

    def list_databases(self):
        self._record("list_databases")
        if self.fail_list_databases:
            raise DiscoveryError(self.fail_list_databases)
        return list(self.data)

    def list_measurements(self, database):
        self._record("list_measurements", database)
        if database in self.fail_measurements:
            raise DiscoveryError(self.fail_measurements[database])
        return list(self.data.get(database, {}))

    def query_points(self, measurement, database):
        self._record("query_points", measurement, database)
        if (database, measurement) in self.fail_queries:
            raise TransferError(self.fail_queries[(database, measurement)])
        return [dict(point) for point in self.data[database][measurement]]

    def create_database(self, name):
        self._record("create_database", name)
        if name in self.fail_create:
            raise TransferError(self.fail_create[name])
        self.data.setdefault(name, {})

    def write_points(self, records, database):
        self._record("write_points", database, len(records))
        measurement = records[0]["measurement"] if records else None
        if (database, measurement) in self.fail_writes:
            raise TransferError(self.fail_writes[(database, measurement)])
        with self._lock:
            self.written.setdefault((database, measurement), []).append(list(records))


class MemoryCheckpointStore:
    def __init__(self, state=None):
        self.state = state or {}
        self.saves = 0

    def load(self):
        import copy
        return copy.deepcopy(self.state)

    def save(self, state):
        import copy
        self.saves += 1
        self.state = copy.deepcopy(state)

    def clear(self):
        self.state = {}


class RecordingReporter:
    def __init__(self):
        self.events = []

    def __getattr__(self, name):
        def record(*args):
            self.events.append((name,) + args)
        return record

    def of(self, name):
        return [event for event in self.events if event[0] == name]


@pytest.fixture
def source():
    return FakeInfluxHelper({
        "metrics_a": {
            "cpu": [{"time": 1, "value": 0.5, "host": "a"}, {"time": 2, "value": 0.7, "host": None}],
            "mem": [{"time": 1, "used": 10}],
        },
        "metrics_b": {
            "disk": [{"time": 5, "free": 3}],
        },
    })


@pytest.fixture
def target():
    return FakeInfluxHelper()


@pytest.fixture
def store():
    return MemoryCheckpointStore()


@pytest.fixture
def checkpoint(store):
    return MigrationCheckpoint(store)


@pytest.fixture
def reporter():
    return RecordingReporter()
