"""Protocols defining the contracts for the record source and the record sink.

The migration architecture separates concerns into three components:

1. RecordSource: Reads issues, comments and attachment bytes (Jira)
2. RecordSink: Creates cards, custom fields and side effects (Trello)
3. Migrator: Orchestrates the flow, resolves cross-references, enforces ordering

Authentication, encoding and HTTP status handling live entirely in the
implementations. Every call either succeeds or raises a MigrationError
subclass (TransportError, DecodeError, LocalIOError); nothing is retried.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from .models import Card, Comment, ListInfo, LookupField, LookupOption, Page, SourceRecord


class RecordSource(Protocol):
    """Protocol for reading data from the source issue tracker.

    Paging is explicit: callers pass an offset and a page size, and each page
    reports the total number of matching entities. The SourcePaginator turns
    this into a stream.
    """

    def search_records(self, query: str, offset: int, page_size: int) -> Page[SourceRecord]:
        """Return one page of records matching a query expression.

        Records of epic kind are returned as EpicRecord instances.
        """
        ...

    def list_comments(self, record_key: str, offset: int, page_size: int) -> Page[Comment]:
        """Return one page of comments on a record, in source order."""
        ...

    def fetch_attachment_bytes(self, attachment_id: str) -> Path:
        """Download an attachment to a local temporary file and return its path.

        The caller owns the file and must remove it.

        Raises:
            TransportError: If the download fails
            LocalIOError: If the temporary file cannot be written
        """
        ...


class RecordSink(Protocol):
    """Protocol for writing data to the destination board.

    The Migrator calls methods in a specific order:
    1. list_lists() - Resolve the target list by name
    2. list_lookup_fields() / create_lookup_field() / add_lookup_option() - Reconcile
    3. create_card() - Once per migrated record
    4. set_text_field_value() - Tag the card with the source key
    5. upload_attachment() - Attachments of the record
    6. set_lookup_value() - Epic and priority
    7. append_comment() - Comments in chronological order, then provenance
    """

    def list_lists(self, board_id: str) -> list[ListInfo]: ...

    def list_lookup_fields(self, board_id: str) -> list[LookupField]: ...

    def create_lookup_field(
        self,
        board_id: str,
        name: str,
        field_type: str,
        initial_options: Sequence[LookupOption],
    ) -> LookupField:
        """Create a custom field with an initial option set and return it."""
        ...

    def add_lookup_option(self, field_id: str, option: LookupOption) -> None:
        """Append one option to an existing lookup field."""
        ...

    def create_card(self, card: Card) -> str:
        """Create a card and return its identifier."""
        ...

    def set_lookup_value(self, card_id: str, field_id: str, option_id: str) -> None: ...

    def set_text_field_value(self, card_id: str, field_id: str, text: str) -> None: ...

    def append_comment(self, card_id: str, text: str) -> None: ...

    def upload_attachment(self, card_id: str, path: Path, filename: str, mime_type: str) -> None: ...
