#!/usr/bin/env python3
"""
InfluxMigrationHelper - InfluxDB 1.x cluster connection and data query helper class

Purpose:
- Parse and validate host:port addresses before any network call
- List databases and measurements
- Query all points of a measurement
- Create databases and write point batches (line protocol) with retry
"""

import time
from urllib.parse import urlparse

import requests
from influxdb_client import Point, WritePrecision

from config import REQUEST_TIMEOUT, WRITE_MAX_RETRIES, WRITE_RETRY_DELAY
from exceptions import ConfigurationError, DiscoveryError, TransferError


def parse_address(address):
    """
    Split a host:port address. Accepts an optional http:// or https:// scheme.
    Usage: parse_address('127.0.0.1:8086') -> ('127.0.0.1', 8086)
    Raises ConfigurationError when host or port is missing or invalid.
    """
    if not address or not isinstance(address, str):
        raise ConfigurationError("Invalid influx address format (please provide host:port)")

    raw = address.strip()
    parsed = urlparse(raw if "://" in raw else f"//{raw}")
    if "://" in raw and parsed.scheme not in ("http", "https"):
        raise ConfigurationError(f"Unsupported scheme in influx address: {address}")

    try:
        host, port = parsed.hostname, parsed.port
    except ValueError:
        raise ConfigurationError(f"Invalid port in influx address: {address}")

    if not host or port is None:
        raise ConfigurationError(f"Invalid influx address format (please provide host:port): {address}")
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range in influx address: {address}")

    return host, port


def quote_identifier(name):
    """Double-quote an InfluxQL identifier."""
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


class InfluxMigrationHelper:
    def __init__(self, address, username=None, password=None, timeout=REQUEST_TIMEOUT,
                 max_retries=WRITE_MAX_RETRIES, retry_delay=WRITE_RETRY_DELAY, session=None):
        self.address = address
        self.host, self.port = parse_address(address)
        scheme = "https" if address.strip().startswith("https://") else "http"
        self.base_url = f"{scheme}://{self.host}:{self.port}"
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.session = session or requests.Session()
        if username:
            self.session.auth = (username, password or "")

    def __repr__(self):
        return f"InfluxMigrationHelper({self.base_url})"

    def _query(self, query, database=None, method="GET", epoch=None):
        """Run an InfluxQL statement and return the first statement result."""
        params = {"q": query}
        if database:
            params["db"] = database
        if epoch:
            params["epoch"] = epoch

        url = f"{self.base_url}/query"
        if method == "POST":
            response = self.session.post(url, params=params, timeout=self.timeout)
        else:
            response = self.session.get(url, params=params, timeout=self.timeout)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code != 200:
            detail = payload.get("error") or response.text[-500:]
            raise Exception(f"HTTP {response.status_code} from {self.base_url}: {detail}")
        if payload.get("error"):
            raise Exception(payload["error"])

        results = payload.get("results") or [{}]
        result = results[0]
        if result.get("error"):
            raise Exception(result["error"])
        return result

    @staticmethod
    def _rows(result):
        """Flatten InfluxQL series into a list of column -> value dicts."""
        rows = []
        for series in result.get("series") or []:
            columns = series.get("columns") or []
            for values in series.get("values") or []:
                rows.append(dict(zip(columns, values)))
        return rows

    def list_databases(self):
        """Return database names in server order."""
        try:
            result = self._query("SHOW DATABASES")
        except Exception as e:
            raise DiscoveryError(f"Failed to list databases on {self.base_url}: {e}") from e
        return [row["name"] for row in self._rows(result)]

    def list_measurements(self, database):
        """Return measurement names of a database in server order."""
        try:
            result = self._query(f"SHOW MEASUREMENTS ON {quote_identifier(database)}")
        except Exception as e:
            raise DiscoveryError(f"Failed to list measurements of {database}: {e}") from e
        return [row["name"] for row in self._rows(result)]

    def query_points(self, measurement, database):
        """Return every point of a measurement. Each dict carries 'time' in epoch nanoseconds."""
        try:
            result = self._query(f"SELECT * FROM {quote_identifier(measurement)}",
                                 database=database, epoch="ns")
        except Exception as e:
            raise TransferError(f"Failed to query {database}.{measurement}: {e}") from e
        return self._rows(result)

    def create_database(self, name):
        """Create a database. An existing database is not an error."""
        try:
            self._query(f"CREATE DATABASE {quote_identifier(name)}", method="POST")
        except Exception as e:
            if "already exists" in str(e):
                return
            raise TransferError(f"Failed to create database {name}: {e}") from e

    @staticmethod
    def to_line_protocol(records):
        """Serialize write-ready records. Field-less records produce no line."""
        lines = []
        for record in records:
            point = Point(record["measurement"])
            for key, value in record["fields"].items():
                # InfluxQL JSON does not keep the int/float distinction;
                # integers a float cannot hold exactly are sent as integers
                if isinstance(value, int) and not isinstance(value, bool) and float(value) == value:
                    value = float(value)
                point.field(key, value)
            if record.get("timestamp") is not None:
                point.time(record["timestamp"], WritePrecision.NS)
            line = point.to_line_protocol()
            if line:
                lines.append(line)
        return "\n".join(lines)

    def write_points(self, records, database):
        """
        Write a batch of records with retry.
        Usage: helper.write_points([{'timestamp': 1, 'measurement': 'cpu', 'fields': {'v': 1.0}}], 'telegraf')
        Raises TransferError after max retries.
        """
        body = self.to_line_protocol(records)
        if not body:
            return

        params = {"db": database, "precision": "ns"}
        for attempt in range(self.max_retries):
            try:
                response = self.session.post(f"{self.base_url}/write", params=params,
                                             data=body.encode("utf-8"), timeout=self.timeout)
                if response.status_code in (200, 204):
                    return
                error_msg = f"HTTP {response.status_code}: {response.text[-500:]}"
                # Client errors (bad points, missing database) do not improve on retry
                if 400 <= response.status_code < 500:
                    raise TransferError(f"Write to {database} rejected: {error_msg}")
            except TransferError:
                raise
            except requests.RequestException as e:
                error_msg = str(e)

            if attempt < self.max_retries - 1:
                time.sleep((attempt + 1) * self.retry_delay)

        raise TransferError(f"Write to {database} failed after {self.max_retries} attempts: {error_msg}")
