"""Failures surfaced by the log store layer.

Only index-read and delete failures propagate as exceptions. Individual record
lookups that fail are absorbed by the record gateway and counted instead.
"""

from __future__ import annotations

from typing import Optional


class LogStoreError(Exception):
    """Base class for store failures."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class StoreUnavailable(LogStoreError):
    """Network, timeout or server-side failure talking to the tree store."""


class PermissionDenied(LogStoreError):
    """The store rejected the credentials for this path."""


class NotFound(LogStoreError):
    """Nothing exists at the requested path (raised by delete only)."""


class InvalidDeletePath(LogStoreError):
    """Empty or malformed delete path, rejected before any network call."""
