#!/usr/bin/env python3
"""
Error types raised by the migration helpers.

- ConfigurationError: bad addresses or settings, detected before any network call
- DiscoveryError: listing databases or measurements failed
- TransferError: query, create or write failure for a single unit of work
"""


class MigrationError(Exception):
    """Base error. The message is stored verbatim in the checkpoint on failure."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def __str__(self):
        return self.message


class ConfigurationError(MigrationError):
    pass


class DiscoveryError(MigrationError):
    pass


class TransferError(MigrationError):
    pass
