"""
Repository-layer exceptions for store access.
"""

from __future__ import annotations


class MetricStoreError(RuntimeError):
    """Base exception for durable store failures (network, timeout, constraint)."""


class SchemaUnavailableError(MetricStoreError):
    """
    Raised when the target relation or column does not exist in the store.

    Signals that the store exposes a different schema generation than the
    one the statement was written for.
    """

    def __init__(self, message: str, *, table_name: str, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.table_name = table_name
        self.sqlstate = sqlstate
