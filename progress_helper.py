#!/usr/bin/env python3
"""
ProgressReporter - console and log file output for migration lifecycle events

Purpose:
- Print started/succeeded/skipped/warned/failed events with a timestamp
- Append every event to the migration log file
- Never raise into the caller: output errors are swallowed
"""

import sys
from datetime import datetime
from pathlib import Path

from config import LOG_FILE


class ProgressReporter:
    def __init__(self, log_file=LOG_FILE, verbose=True, stream=None):
        self.log_file = log_file
        self.verbose = verbose
        self.stream = stream
        if log_file:
            try:
                Path(log_file).parent.mkdir(parents=True, exist_ok=True)
            except OSError:
                pass

    def _log(self, msg, console=True):
        """Log message to console and file with timestamp."""
        timestamp = datetime.now().strftime("%a %b %d %H:%M:%S %Y")
        log_msg = f"{timestamp}: {msg}"
        try:
            if console:
                print(log_msg, file=self.stream or sys.stdout, flush=True)
        except Exception:
            pass
        if not self.log_file:
            return
        try:
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(log_msg + "\n")
        except Exception as e:
            try:
                print(f"Failed to write to log file: {e}", file=sys.stderr)
            except Exception:
                pass

    def info(self, message):
        self._log(message)

    def discovering(self, scope):
        self._log(f"Loading {scope}")

    def loaded(self, selected, total):
        self._log(f"Loaded [{selected}/{total}] databases")

    def created(self, database):
        self._log(f"Database created on destination: {database}")

    def migrating(self, database, measurement):
        self._log(f"Migrating measurement: {database}.{measurement}", console=self.verbose)

    def skipped(self, database, measurement):
        self._log(f"Skip {database}.{measurement} (already migrated)", console=self.verbose)

    def succeeded(self, scope):
        self._log(f"OK {scope}")

    def warned(self, scope, message):
        self._log(f"WARNING error during migrating {scope}: {message}")

    def failed(self, scope, message):
        self._log(f"FAILED {scope}: {message}")
