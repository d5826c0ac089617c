#!/usr/bin/env python3
"""
InfluxMigrationWorkflowHelper - InfluxDB migration workflow control helper class

Purpose:
- Select source databases to migrate (optional regex filter, source order kept)
- Migrate database by database, measurement by measurement, strictly in order
- Skip measurements the checkpoint marks done, retry the ones that failed
- Split points into bounded chunks and write them with a bounded worker pool
- Contain failures: a failing measurement is recorded and the run goes on
- Stop cooperatively when cancellation is requested, then flush the checkpoint
"""

import re
import threading
from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum

from config import CHUNK_SIZE, WRITE_WORKERS
from exceptions import ConfigurationError


class MeasurementOutcome(Enum):
    SKIPPED = "skipped"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class DatabaseOutcome:
    name: str
    completed: bool = False
    error: str = None
    succeeded: list = field(default_factory=list)
    skipped: list = field(default_factory=list)
    failed: dict = field(default_factory=dict)
    cancelled: list = field(default_factory=list)


@dataclass
class MigrationSummary:
    total_databases: int = 0
    selected: list = field(default_factory=list)
    databases: list = field(default_factory=list)
    error: str = None
    cancelled: bool = False

    @property
    def failed_measurements(self):
        return {
            (outcome.name, measurement): message
            for outcome in self.databases
            for measurement, message in outcome.failed.items()
        }

    @property
    def failed_databases(self):
        return {outcome.name: outcome.error for outcome in self.databases if outcome.error}


def plan_databases(names, pattern=None):
    """Keep names matching pattern (regex search), in source order."""
    if pattern is None or pattern == "":
        return list(names)
    if isinstance(pattern, str):
        try:
            pattern = re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid database pattern {pattern!r}: {e}") from e
    return [name for name in names if pattern.search(name)]


def to_write_points(points, measurement):
    """Turn source rows into write-ready records: 'time' becomes the timestamp, nulls are dropped."""
    return [
        {
            "timestamp": point.get("time"),
            "measurement": measurement,
            "fields": {key: value for key, value in point.items() if key != "time" and value is not None},
        }
        for point in points
    ]


def chunk_points(records, size=CHUNK_SIZE):
    """Split records into ordered chunks of at most size records."""
    if size <= 0:
        raise ConfigurationError(f"Chunk size must be positive, got {size}")
    return [records[i:i + size] for i in range(0, len(records), size)]


def error_message(error):
    return str(error) or error.__class__.__name__


class InfluxMigrationWorkflowHelper:
    def __init__(self, source_helper, target_helper, checkpoint, reporter,
                 chunk_size=CHUNK_SIZE, max_workers=WRITE_WORKERS, cancel_event=None):
        if chunk_size <= 0:
            raise ConfigurationError(f"Chunk size must be positive, got {chunk_size}")
        if max_workers <= 0:
            raise ConfigurationError(f"Write workers must be positive, got {max_workers}")
        self.source_helper = source_helper
        self.target_helper = target_helper
        self.checkpoint = checkpoint
        self.reporter = reporter
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.cancel_event = cancel_event or threading.Event()

    @property
    def cancelled(self):
        return self.cancel_event.is_set()

    def _report(self, event, *args):
        """Forward an event to the reporter; reporter errors never reach the workflow."""
        try:
            getattr(self.reporter, event)(*args)
        except Exception:
            pass

    def run_migration(self, pattern=None):
        """Migrate every selected database in order and return a MigrationSummary."""
        summary = MigrationSummary()

        self._report("discovering", "source databases")
        try:
            all_databases = self.source_helper.list_databases()
        except Exception as e:
            summary.error = error_message(e)
            self._report("failed", "Loading source databases", summary.error)
            return summary

        databases = plan_databases(all_databases, pattern)
        summary.total_databases = len(all_databases)
        summary.selected = databases
        self._report("loaded", len(databases), len(all_databases))

        if not databases:
            self._report("info", "Nothing to migrate")
            return summary

        for database in databases:
            if self.cancelled:
                break
            summary.databases.append(self.migrate_database(database))

        summary.cancelled = self.cancelled
        if summary.cancelled:
            self._report("info", "Migration interrupted, progress saved")
        self.checkpoint.flush()
        return summary

    def migrate_database(self, name):
        """Migrate all measurements of one database. Measurement failures do not fail the database."""
        outcome = DatabaseOutcome(name)
        self.checkpoint.ensure_database(name)

        self._report("discovering", f"measurements of {name}")
        try:
            measurements = self.source_helper.list_measurements(name)
        except Exception as e:
            outcome.error = error_message(e)
            self._report("failed", name, outcome.error)
            return outcome

        try:
            self.target_helper.create_database(name)
        except Exception as e:
            outcome.error = error_message(e)
            self._report("failed", name, outcome.error)
            return outcome
        self._report("created", name)

        for measurement in measurements:
            result = self.migrate_measurement(name, measurement)
            if result is MeasurementOutcome.SKIPPED:
                outcome.skipped.append(measurement)
            elif result is MeasurementOutcome.SUCCEEDED:
                outcome.succeeded.append(measurement)
            elif result is MeasurementOutcome.FAILED:
                outcome.failed[measurement] = self.checkpoint.status(name, measurement)[1]
            else:
                outcome.cancelled.append(measurement)

        if outcome.cancelled:
            return outcome

        outcome.completed = True
        self._report("succeeded", f"Migrating database: {name} completed")
        return outcome

    def migrate_measurement(self, database, measurement):
        """Transfer one measurement unless the checkpoint already marks it done."""
        if self.checkpoint.is_done(database, measurement):
            self._report("skipped", database, measurement)
            return MeasurementOutcome.SKIPPED

        if self.cancelled:
            return MeasurementOutcome.CANCELLED

        self._report("migrating", database, measurement)
        try:
            points = self.source_helper.query_points(measurement, database)
            chunks = chunk_points(to_write_points(points, measurement), self.chunk_size)
            finished = self._write_chunks(chunks, database)
        except Exception as e:
            message = error_message(e)
            self.checkpoint.mark_failed(database, measurement, message)
            self._report("warned", f"{database}.{measurement}", message)
            return MeasurementOutcome.FAILED

        if not finished:
            self._report("info", f"Interrupted {database}.{measurement}, it will be retried on the next run")
            return MeasurementOutcome.CANCELLED

        self.checkpoint.mark_done(database, measurement)
        self._report("succeeded", f"{database}.{measurement}")
        return MeasurementOutcome.SUCCEEDED

    def _write_chunks(self, chunks, database):
        """
        Write chunks with at most max_workers in flight.
        Returns False if cancellation stopped submission early; raises the first write error.
        """
        if not chunks:
            return True

        first_error = None
        submitted = 0
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(chunks))) as executor:
            pending = set()
            while submitted < len(chunks) and first_error is None and not self.cancelled:
                if len(pending) >= self.max_workers:
                    done, pending = wait(pending, return_when=FIRST_COMPLETED)
                    first_error = self._first_error(done)
                    continue
                pending.add(executor.submit(self.target_helper.write_points, chunks[submitted], database))
                submitted += 1

            # in-flight writes always finish before the outcome is recorded
            done, _ = wait(pending)
            first_error = first_error or self._first_error(done)

        if first_error is not None:
            raise first_error
        return submitted == len(chunks)

    @staticmethod
    def _first_error(futures):
        for future in futures:
            if future.exception() is not None:
                return future.exception()
        return None
