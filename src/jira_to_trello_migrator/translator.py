"""Translate Jira records into Trello cards and related values.

Everything here is pure apart from warning logs: no network, no mutation of
the inputs.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from typing import TYPE_CHECKING, Final

from .exceptions import NotFoundError
from .models import Card

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import Comment, EpicRecord, LookupOption, Priority, RichText, SourceRecord

logger: logging.Logger = logging.getLogger(__name__)

COMPLETION_STATUS: Final[str] = "Done"

# Jira timestamps look like 2022-05-18T11:23:43.391+0200
JIRA_TIME_FORMAT: Final[str] = "%Y-%m-%dT%H:%M:%S.%f%z"

# Jira epic colours are "ghx-label-<n>"; see JRACLOUD-59765
_COLOUR_CODE_PATTERN: Final[re.Pattern[str]] = re.compile(r"ghx-label-(\d+)")
COLOUR_TABLE: Final[dict[int, str]] = {
    1: "black",
    2: "yellow",
    3: "yellow",
    4: "blue",
    5: "lime",
    6: "lime",
    7: "purple",
    8: "purple",
    9: "pink",
    10: "sky",
    11: "sky",
    12: "black",
    13: "green",
    14: "orange",
}


def to_plain_text(rich_text: RichText) -> str:
    """Flatten a content tree: one line per span, a blank line after each block."""
    parts: list[str] = []
    for block in rich_text.blocks:
        parts.extend(f"{span.text}\n" for span in block.spans)
        parts.append("\n")
    return "".join(parts)


def to_card(record: SourceRecord, target_list_id: str, put_at_top: bool) -> Card:
    """Build the card for a source record. Attachments are transferred separately."""
    return Card(
        list_id=target_list_id,
        title=record.summary,
        description=to_plain_text(record.description),
        position="top" if put_at_top else "bottom",
        due_date=record.due_date,
        due_complete=True if record.status == COMPLETION_STATUS else None,
    )


def translate_colour_code(code: str | None) -> str:
    """Translate a Jira epic colour code to a Trello colour name, or "" if unknown."""
    if not code:
        return ""

    match = _COLOUR_CODE_PATTERN.search(code)
    if match is None:
        logger.warning(f"Can't translate colour code '{code}', expected the form ghx-label-<n>")
        return ""

    colour = COLOUR_TABLE.get(int(match.group(1)))
    if colour is None:
        logger.warning(f"Unknown colour code '{code}'")
        return ""
    return colour


def to_lookup_value(priority: Priority, options: Iterable[LookupOption]) -> str:
    """Return the id of the option whose text equals the priority name.

    Raises:
        NotFoundError: If no option matches
    """
    for option in options:
        if option.text == priority.name:
            return option.id
    msg = f"No lookup option matches priority '{priority.name}'"
    raise NotFoundError(msg)


def epic_desired_values(epics: Iterable[EpicRecord]) -> list[tuple[str, str]]:
    """Return (epic name, colour) pairs for the epics that have a name."""
    values: list[tuple[str, str]] = []
    for epic in epics:
        if not epic.epic_name:
            logger.warning(f"Epic {epic.key} ('{epic.summary}') has no epic name, ignoring it")
            continue
        values.append((epic.epic_name, translate_colour_code(epic.colour_code)))
    return values


def parse_timestamp(raw: str) -> dt.datetime | None:
    """Parse a Jira or ISO 8601 timestamp, returning None if it cannot be parsed.

    Timestamps without an offset are taken as UTC, so results always compare.
    """
    if not raw:
        return None
    try:
        return dt.datetime.strptime(raw, JIRA_TIME_FORMAT)
    except ValueError:
        pass
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.UTC)
    return parsed


def format_timestamp(raw: str) -> str:
    """Format a timestamp to a human-readable form.

    Returns:
        e.g. "2022-05-18 11:23:43+02:00", with "Z" for UTC.
        Returns the original value if parsing fails.
    """
    parsed = parse_timestamp(raw)
    if parsed is None:
        return raw
    formatted = parsed.isoformat(sep=" ", timespec="seconds")
    return formatted.replace("+00:00", "Z")


def build_comment_text(comment: Comment) -> str:
    """Build the text of a Trello comment replaying a Jira comment."""
    author = comment.author.display_name or "Unknown"
    body = to_plain_text(comment.body).rstrip("\n")
    return f"{body}\n\n*{author}, {format_timestamp(comment.created)}*"


def build_provenance_text(record: SourceRecord) -> str:
    """Build the final comment recording where a card came from."""
    reporter = record.reporter.display_name or "Unknown"
    text = f"Migrated from Jira issue {record.key}\n"
    text += f"Originally reported by {reporter} on {format_timestamp(record.created)}"
    return text
