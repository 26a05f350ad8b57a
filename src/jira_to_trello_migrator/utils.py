"""
Utility functions for the Jira to Trello migration tool.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from subprocess import CompletedProcess

logger: logging.Logger = logging.getLogger(__name__)

_LOG_FILE = "migration.log"
_CONSOLE_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG)


class PassError(Exception):
    """Base class for pass-related errors."""


class InvalidPassPathError(PassError):
    """Raised when the pass path does not exist in the password store."""


class PassphraseRequiredError(PassError):
    """Raised when a GPG passphrase is required for the pass utility."""


def setup_logging(*, verbosity: int = 0) -> None:
    """Configure logging for the migration process.

    The console shows warnings by default, info with -v and debug with -vv.
    The log file always receives everything.
    """
    console_level = _CONSOLE_LEVELS[min(max(verbosity, 0), len(_CONSOLE_LEVELS) - 1)]

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)

    file_handler = logging.FileHandler(_LOG_FILE, mode="a")
    file_handler.setLevel(logging.DEBUG)

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=[console_handler, file_handler],
    )


def _validate_pass_path(pass_path: str) -> None:
    """Validate the pass path format."""
    if not re.fullmatch(r"(?:[A-Za-z0-9_-]+)(?:/[A-Za-z0-9_-]+)*", pass_path):
        msg = f"Invalid pass path: {pass_path}"
        raise ValueError(msg)


def get_pass_value(pass_path: str) -> str:
    """Get value from pass utility at specified path."""
    _validate_pass_path(pass_path)

    try:
        result: CompletedProcess[str] = subprocess.run(  # noqa: S603
            ["pass", pass_path], capture_output=True, text=True, check=True
        )
    except FileNotFoundError as e:
        msg = "The 'pass' utility is not installed"
        raise PassError(msg) from e
    except subprocess.CalledProcessError as e:
        if e.returncode == 1 and "not in the password store" in e.stderr.lower():
            msg = f"Pass path '{pass_path}' not found or invalid."
            raise InvalidPassPathError(msg) from e
        if "decryption failed" in e.stderr.lower():
            # The key is locked and there is no terminal for pinentry
            msg = f"Could not decrypt '{pass_path}'. Unlock the GPG key (e.g. 'pass show {pass_path}') and rerun."
            raise PassphraseRequiredError(msg) from e
        msg = (
            f"Failed to get value from pass at '{pass_path}'.\n"
            f"Error: {e.stderr.strip()}\n"
            f"Return code: {e.returncode}"
        )
        raise PassError(msg) from e

    return result.stdout.strip()


def resolve_secret(pass_path: str | None, env_var: str, default_pass_path: str) -> str | None:
    """Resolve a credential from an explicit pass path, an env var or the default pass path."""
    if pass_path:
        return get_pass_value(pass_path)

    value = os.environ.get(env_var)
    if value:
        return value

    try:
        return get_pass_value(default_pass_path)
    except PassError:
        logger.warning(f"No value found for {env_var} nor at pass path '{default_pass_path}'")
        return None
