"""Reconcile a destination lookup field against values from the source.

Trello custom fields and Jira epics share no identifier space; the only
correlation key is the option's display text. The reconciler is the one
place that enforces "at most one option per distinct value". It is
append-only: existing options are never removed or renamed, so edits made
on the board in the meantime survive a re-run.
"""

from __future__ import annotations

import logging
import uuid
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from .exceptions import NotFoundError
from .models import EpicRecord, LookupOption
from .paginator import SourcePaginator
from .translator import epic_desired_values

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from .config import MigrationConfig
    from .models import LookupField
    from .protocols import RecordSink, RecordSource

logger: logging.Logger = logging.getLogger(__name__)

LIST_FIELD_TYPE: Final[str] = "list"
POSITION_STEP: Final[int] = 10


def make_option_id() -> str:
    """Generate an opaque option identifier in the 32 hex digit form Trello uses."""
    return uuid.uuid4().hex


def _sorted_unique(desired_values: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Drop empty texts and duplicates (first colour wins), sorted by text codepoints."""
    unique: dict[str, str] = {}
    for text, colour in desired_values:
        if not text:
            logger.warning("Skipping lookup value with empty display text")
            continue
        unique.setdefault(text, colour)
    return sorted(unique.items())


def option_index(field: LookupField) -> Mapping[str, str]:
    """Return a read-only mapping from option display text to option id."""
    index: dict[str, str] = {}
    for option in field.options:
        if option.text in index:
            logger.warning(f"Field '{field.name}' has duplicate option '{option.text}', using the first one")
            continue
        index[option.text] = option.id
    return MappingProxyType(index)


class LookupReconciler:
    """Ensures a named lookup field on the board covers a set of values."""

    _sink: RecordSink

    def __init__(self, sink: RecordSink) -> None:
        self._sink = sink

    def find_field(self, board_id: str, field_name: str) -> LookupField | None:
        for field in self._sink.list_lookup_fields(board_id):
            if field.name == field_name:
                return field
        return None

    def reconcile(
        self,
        board_id: str,
        field_name: str,
        desired_values: Sequence[tuple[str, str]],
    ) -> LookupField:
        """Create or extend the field so it has an option for every desired value.

        Args:
            board_id: Board holding the field
            field_name: Exact name of the field
            desired_values: (display text, colour) pairs

        Returns:
            The field as it stands on the board after reconciliation

        Raises:
            TransportError: On any destination failure; the field must not be trusted
        """
        wanted = _sorted_unique(desired_values)
        existing = self.find_field(board_id, field_name)

        if existing is None:
            logger.info(f"No existing field with name '{field_name}', creating it with {len(wanted)} options")
            initial_options = [
                LookupOption(id="", text=text, colour=colour, pos=index * POSITION_STEP)
                for index, (text, colour) in enumerate(wanted)
            ]
            created = self._sink.create_lookup_field(board_id, field_name, LIST_FIELD_TYPE, initial_options)
            logger.info(f"Created field '{field_name}' on board '{board_id}'")
            return created

        logger.info(f"Found existing field with name '{field_name}' ({len(existing.options)} options)")
        present = {option.text for option in existing.options}
        missing = [(text, colour) for text, colour in wanted if text not in present]
        if not missing:
            logger.info(f"Field '{field_name}' already covers all {len(wanted)} values")
            return existing

        last_pos = max((option.pos for option in existing.options), default=-POSITION_STEP)
        for offset, (text, colour) in enumerate(missing, start=1):
            option = LookupOption(id=make_option_id(), text=text, colour=colour, pos=last_pos + offset * POSITION_STEP)
            self._sink.add_lookup_option(existing.id, option)
            logger.debug(f"Added option '{text}' to field '{field_name}'")
        logger.info(f"Added {len(missing)} options to field '{field_name}'")

        # Re-read so the caller gets the identifiers the board actually assigned
        refreshed = self.find_field(board_id, field_name)
        if refreshed is None:
            msg = f"Field '{field_name}' disappeared from board '{board_id}' during reconciliation"
            raise NotFoundError(msg)
        return refreshed


def load_epics(source: RecordSource, config: MigrationConfig) -> list[EpicRecord]:
    """Fetch every epic from the source, to completion."""
    paginator = SourcePaginator(source)
    records = paginator.stream(config.epic_query, config.page_size)
    epics = [record for record in records if isinstance(record, EpicRecord)]
    logger.info(f"Loaded {len(epics)} epics")
    return epics


def sync_epics(source: RecordSource, sink: RecordSink, config: MigrationConfig) -> LookupField:
    """Reconcile the epic field on the board with the epics currently in the source."""
    epics = load_epics(source, config)
    return LookupReconciler(sink).reconcile(config.board_id, config.epic_field_name, epic_desired_values(epics))
