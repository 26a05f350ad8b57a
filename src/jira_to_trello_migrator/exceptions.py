"""
Custom exception classes for the Jira to Trello migration tool.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import MigrationResult


class MigrationError(Exception):
    """Base exception for migration errors."""


class TransportError(MigrationError):
    """Raised on a network failure or a non-success HTTP status from Jira or Trello."""


class DecodeError(MigrationError):
    """Raised when a response body does not match the expected schema."""


class NotFoundError(MigrationError):
    """Raised when a required cross-reference (epic, priority, list, field) is missing."""


class LocalIOError(MigrationError):
    """Raised when a temporary attachment file cannot be created or removed."""


class MigrationAbortedError(MigrationError):
    """Raised when a run stops before the record stream is exhausted.

    Carries the key of the record being migrated (None when the stream itself
    failed), the underlying error and the counters accumulated so far.
    """

    def __init__(self, record_key: str | None, cause: BaseException, result: MigrationResult) -> None:
        self.record_key: str | None = record_key
        self.cause: BaseException = cause
        self.result: MigrationResult = result
        where = f"record {record_key}" if record_key else "record stream"
        super().__init__(f"Migration aborted at {where}: {cause}")
