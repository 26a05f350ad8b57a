"""Data models exchanged between the record source, the record sink and the Migrator.

These models are the normalized form of Jira issues and Trello cards. The
transports decode into and encode from them; the core never sees raw JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Literal, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class InlineSpan:
    """A run of text inside a content block (e.g. "text", "hardBreak")."""

    type: str
    text: str = ""


@dataclass(frozen=True)
class ContentBlock:
    """A block of rich text (e.g. "paragraph") made of inline spans."""

    type: str
    spans: tuple[InlineSpan, ...] = ()


@dataclass(frozen=True)
class RichText:
    """A tree of content blocks, as found in issue descriptions and comment bodies."""

    blocks: tuple[ContentBlock, ...] = ()


@dataclass(frozen=True)
class User:
    account_id: str = ""
    display_name: str = ""
    email: str = ""


@dataclass(frozen=True)
class Priority:
    name: str
    id: str = ""


@dataclass(frozen=True)
class AttachmentDescriptor:
    """An attachment on a source record. The bytes are fetched separately by id."""

    id: str
    filename: str
    mime_type: str = ""
    size: int = 0
    content_url: str = ""


@dataclass(frozen=True)
class SourceRecord:
    """An issue from the source system.

    The parent reference is advisory: it is not validated against other records.
    """

    id: str
    key: str
    summary: str
    description: RichText = field(default_factory=RichText)
    status: str = ""
    issue_type: str = ""
    priority: Priority | None = None
    due_date: str | None = None
    parent_id: str | None = None
    epic_key: str | None = None
    attachments: tuple[AttachmentDescriptor, ...] = ()
    reporter: User = field(default_factory=User)
    creator: User = field(default_factory=User)
    created: str = ""


@dataclass(frozen=True)
class EpicRecord(SourceRecord):
    """A source record of epic kind, carrying its display name and colour code."""

    epic_name: str | None = None
    colour_code: str | None = None


@dataclass(frozen=True)
class Comment:
    id: str
    author: User
    body: RichText
    created: str = ""


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a paginated response, with the total reported by the server."""

    items: list[T]
    total: int


@dataclass
class Card:
    """A card to be created on the destination board.

    Members and labels are left empty: cross-referencing Jira users to board
    members and merging epics/priorities into labels are not done.
    """

    list_id: str
    title: str
    description: str = ""
    position: Literal["top", "bottom"] | float = "bottom"
    due_date: str | None = None
    due_complete: bool | None = None
    members: list[str] = field(default_factory=list)
    labels: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LookupOption:
    """One selectable value of a lookup (drop-down) field."""

    id: str
    text: str
    colour: str = ""
    pos: float = 0


@dataclass(frozen=True)
class LookupField:
    """A named custom field on the destination board.

    Option display text is expected to be unique within a field; this is not
    enforced by the destination.
    """

    id: str
    board_id: str
    name: str
    field_type: str = "list"
    options: tuple[LookupOption, ...] = ()


@dataclass(frozen=True)
class ListInfo:
    id: str
    name: str


class RecordState(Enum):
    MIGRATED = "migrated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class RecordOutcome:
    """Terminal state of a single source record."""

    record_key: str
    state: RecordState
    reason: str = ""
    card_id: str | None = None


@dataclass
class MigrationStats:
    """Statistics collected during migration."""

    cards_created: int = 0
    comments_created: int = 0
    attachments_uploaded: int = 0
    epic_links_set: int = 0
    priority_links_set: int = 0


@dataclass
class MigrationResult:
    """Result of a migration run."""

    processed: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    stats: MigrationStats = field(default_factory=MigrationStats)
    outcomes: list[RecordOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def record(self, outcome: RecordOutcome) -> None:
        self.outcomes.append(outcome)
        self.processed += 1
        if outcome.state is RecordState.MIGRATED:
            self.migrated += 1
        elif outcome.state is RecordState.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1
