"""
Jira to Trello Migration Tool

Migrates Jira issues to Trello cards, carrying over comments, attachments,
epic membership and priority through Trello custom fields.
"""

from __future__ import annotations

from .cli import main
from .config import MigrationConfig
from .exceptions import (
    DecodeError,
    LocalIOError,
    MigrationAbortedError,
    MigrationError,
    NotFoundError,
    TransportError,
)
from .orchestrator import FailFast, Migrator, SkipAndContinue
from .reconciler import LookupReconciler, sync_epics
from .utils import setup_logging

# Package version
__version__ = "0.1.0"

__all__ = [
    "DecodeError",
    "FailFast",
    "LocalIOError",
    "LookupReconciler",
    "MigrationAbortedError",
    "MigrationConfig",
    "MigrationError",
    "Migrator",
    "NotFoundError",
    "SkipAndContinue",
    "TransportError",
    "main",
    "setup_logging",
    "sync_epics",
]
