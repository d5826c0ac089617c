#!/usr/bin/env python3
"""
InfluxDB Migration Tool - Main Entry

Purpose:
- Parse command line options and validate source/destination addresses
- Initialize connections to source and destination InfluxDB servers
- Load the checkpoint and start the resumable migration workflow
"""

import argparse
import os
import signal
import sys
import threading

from config import (
    SOURCE_INFLUX, TARGET_INFLUX, CHECKPOINT_FILE, LOG_FILE,
    CHUNK_SIZE, WRITE_WORKERS
)
from checkpoint_helper import JsonCheckpointStore, MigrationCheckpoint
from exceptions import ConfigurationError
from influx_helper import InfluxMigrationHelper, parse_address
from migration_workflow_helper import InfluxMigrationWorkflowHelper, plan_databases
from progress_helper import ProgressReporter


def build_parser():
    parser = argparse.ArgumentParser(
        prog="influx-migrate",
        description="Migrate all databases and measurements from one InfluxDB server to another",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --source 127.0.0.1:8086 --destination 127.0.0.1:9086
  %(prog)s -s 127.0.0.1:8086 -d 127.0.0.1:9086 --pattern '^metrics'
  %(prog)s -s 127.0.0.1:8086 -d 127.0.0.1:9086 --clean   # Forget previous progress
"""
    )
    parser.add_argument("-s", "--source", default=SOURCE_INFLUX or None, required=not SOURCE_INFLUX,
                        help="Influx source server (host:port)")
    parser.add_argument("-d", "--destination", default=TARGET_INFLUX or None, required=not TARGET_INFLUX,
                        help="Influx destination server (host:port)")
    parser.add_argument("-p", "--pattern", default=None,
                        help="Regex pattern to filter databases")
    parser.add_argument("-c", "--clean", action="store_true", default=False,
                        help="Execute program with clean state (drops saved progress)")
    parser.add_argument("--checkpoint-file", dest="checkpoint_file",
                        default=os.environ.get("INFLUX_MIGRATION_CHECKPOINT", CHECKPOINT_FILE),
                        help=f"Checkpoint file for resume support (default: {CHECKPOINT_FILE})")
    parser.add_argument("--log-file", dest="log_file",
                        default=os.environ.get("INFLUX_MIGRATION_LOG", LOG_FILE),
                        help=f"Log file (default: {LOG_FILE})")
    parser.add_argument("--chunk-size", dest="chunk_size", type=int, default=CHUNK_SIZE,
                        help=f"Points per write batch (default: {CHUNK_SIZE})")
    parser.add_argument("--workers", dest="workers", type=int, default=WRITE_WORKERS,
                        help=f"Concurrent batch writes per measurement (default: {WRITE_WORKERS})")
    parser.add_argument("-u", "--username", default=os.environ.get("INFLUX_USERNAME"),
                        help="Username for both servers")
    parser.add_argument("--password", default=os.environ.get("INFLUX_PASSWORD"),
                        help="Password for both servers")
    parser.add_argument("-q", "--quiet", action="store_true", default=False,
                        help="Only print database level events")
    return parser


def validate_args(args):
    """Check everything that can be checked without a network call. Raises ConfigurationError."""
    try:
        parse_address(args.source)
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid source influx database format: {e}") from e
    try:
        parse_address(args.destination)
    except ConfigurationError as e:
        raise ConfigurationError(f"Invalid destination influx database format: {e}") from e
    if args.pattern:
        plan_databases([], args.pattern)
    if args.chunk_size <= 0:
        raise ConfigurationError("--chunk-size must be positive")
    if args.workers <= 0:
        raise ConfigurationError("--workers must be positive")


def install_interrupt_handler(cancel_event):
    """First Ctrl+C finishes in-flight writes and saves progress, the second one quits."""
    def sigint_handler(signum, frame):
        if cancel_event.is_set():
            print("\nForce quit.", file=sys.stderr)
            # sys.exit would still wait for the write pool to drain
            os._exit(130)
        cancel_event.set()
        print("\nInterrupted - finishing in-flight writes before saving progress...", file=sys.stderr)

    signal.signal(signal.SIGINT, sigint_handler)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        validate_args(args)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        parser.print_help(sys.stderr)
        return 2

    try:
        # Initialize
        reporter = ProgressReporter(log_file=args.log_file, verbose=not args.quiet)
        store = JsonCheckpointStore(args.checkpoint_file)
        if args.clean:
            # cleared before loading so an unreadable checkpoint can be discarded
            reporter.info("Cleaning state")
            store.clear()
        checkpoint = MigrationCheckpoint(store)

        source_helper = InfluxMigrationHelper(args.source, username=args.username, password=args.password)
        target_helper = InfluxMigrationHelper(args.destination, username=args.username, password=args.password)

        cancel_event = threading.Event()
        install_interrupt_handler(cancel_event)
        workflow_helper = InfluxMigrationWorkflowHelper(
            source_helper=source_helper,
            target_helper=target_helper,
            checkpoint=checkpoint,
            reporter=reporter,
            chunk_size=args.chunk_size,
            max_workers=args.workers,
            cancel_event=cancel_event
        )

        # Execute migration
        summary = workflow_helper.run_migration(args.pattern)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"Migration failed: {e}", file=sys.stderr)
        return 1

    if summary.error:
        return 1

    failed = summary.failed_measurements
    if summary.failed_databases:
        reporter.info(f"{len(summary.failed_databases)} database(s) could not be processed")
    if failed:
        reporter.info(f"{len(failed)} measurement(s) failed and will be retried on the next run")
    if summary.cancelled:
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
