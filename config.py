#!/usr/bin/env python3
"""
Centralized configuration for InfluxDB migration tool.
All modules import settings from this file.
"""

# InfluxDB Endpoints (host:port, usually given on the command line)
SOURCE_INFLUX = ""
TARGET_INFLUX = ""

# Migration Settings
CHUNK_SIZE = 5000
WRITE_WORKERS = 4
WRITE_MAX_RETRIES = 3
WRITE_RETRY_DELAY = 5
REQUEST_TIMEOUT = 60

# File Paths
CHECKPOINT_FILE = "./.data.json"
LOG_FILE = "./logs/migration.log"
