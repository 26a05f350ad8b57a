"""Migration orchestrator that coordinates the record source and the record sink.

Migration Flow
--------------
Phase 1: Preparation (sequential, must complete before streaming)
    - Resolve the target list on the board by name
    - Load every epic and build the epic key -> epic name index
    - Reconcile the epic lookup field, keeping its text -> option id index
    - Resolve the priority lookup field and the identity text field

Phase 2: Stream and migrate
    A producer thread pages through the source into a bounded queue; the
    calling thread consumes records one at a time. For each record:
        a. Skip it if its status is the completion status
        b. Create the card
        c. Tag the card with the source key
        d. Transfer attachments (temp files always removed)
        e. Set the epic lookup value
        f. Set the priority lookup value
        g. Replay comments in chronological order, then a provenance comment

Error Handling
--------------
Any MigrationError while migrating a record goes to the FailurePolicy. The
default policy (FailFast) aborts the run with MigrationAbortedError; committed
writes are not rolled back. An error from the record stream itself always
aborts the run.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Protocol

from .attachments import AttachmentHandler
from .exceptions import MigrationAbortedError, MigrationError, NotFoundError
from .models import MigrationResult, RecordOutcome, RecordState
from .paginator import SourcePaginator, stream_in_background
from .reconciler import LookupReconciler, load_epics, option_index
from .translator import (
    COMPLETION_STATUS,
    build_comment_text,
    build_provenance_text,
    epic_desired_values,
    to_card,
    to_lookup_value,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .config import MigrationConfig
    from .models import EpicRecord, LookupField, MigrationStats, SourceRecord
    from .protocols import RecordSink, RecordSource

logger: logging.Logger = logging.getLogger(__name__)


class FailurePolicy(Protocol):
    """Decides what happens when a record fails to migrate."""

    def handle(self, record: SourceRecord, error: MigrationError, result: MigrationResult) -> None:
        """Raise to abort the run, return to continue with the next record."""
        ...


class FailFast:
    """Abort the whole run on the first failed record."""

    def handle(self, record: SourceRecord, error: MigrationError, result: MigrationResult) -> None:
        raise MigrationAbortedError(record.key, error, result) from error


class SkipAndContinue:
    """Log the failure and move on to the next record."""

    def handle(self, record: SourceRecord, error: MigrationError, result: MigrationResult) -> None:
        logger.error(f"Failed to migrate {record.key}, continuing: {error}")


@dataclass(frozen=True)
class RunContext:
    """Lookups resolved before streaming. Read-only for the rest of the run."""

    list_id: str
    epic_names: Mapping[str, str]
    epic_field_id: str
    epic_options: Mapping[str, str]
    priority_field: LookupField | None
    identity_field_id: str | None


def build_epic_index(epics: list[EpicRecord]) -> Mapping[str, str]:
    """Map epic keys (not display names) to epic names."""
    return MappingProxyType({epic.key: epic.epic_name for epic in epics if epic.epic_name})


class Migrator:
    """Orchestrates migration from a record source to a record sink.

    Usage:
        source = JiraSource(session, "example.atlassian.net")
        sink = TrelloSink(session, api_key=key, token=token)
        migrator = Migrator(source, sink, MigrationConfig(jira_host=..., board_id=...))
        result = migrator.migrate()
    """

    _source: RecordSource
    _sink: RecordSink
    _config: MigrationConfig
    _policy: FailurePolicy

    def __init__(
        self,
        source: RecordSource,
        sink: RecordSink,
        config: MigrationConfig,
        *,
        failure_policy: FailurePolicy | None = None,
    ) -> None:
        self._source = source
        self._sink = sink
        self._config = config
        if failure_policy is None:
            failure_policy = FailFast() if config.fail_fast else SkipAndContinue()
        self._policy = failure_policy
        self._paginator = SourcePaginator(source)
        self._attachments = AttachmentHandler(source, sink)

    def migrate(self) -> MigrationResult:
        """Execute the full migration.

        Returns:
            MigrationResult with per-record outcomes and counters

        Raises:
            MigrationError: If preparation fails (nothing has been written to cards yet)
            MigrationAbortedError: If the run stops part-way; carries the partial result
        """
        context = self.prepare()
        result = MigrationResult()

        records = stream_in_background(
            self._paginator.stream(self._config.issue_query, self._config.page_size),
            self._config.queue_capacity,
        )
        with contextlib.closing(records):
            try:
                for record in records:
                    self._process(record, context, result)
            except MigrationAbortedError:
                raise
            except MigrationError as e:
                logger.exception("Record stream failed")
                raise MigrationAbortedError(None, e, result) from e

        logger.info(
            f"Migration finished: {result.processed} processed, {result.migrated} migrated, "
            f"{result.skipped} skipped, {result.failed} failed"
        )
        return result

    def prepare(self) -> RunContext:
        """Resolve the target list, the epic index and the custom fields."""
        board_id = self._config.board_id

        list_id = self._find_list_id(board_id, self._config.target_list)

        epics = load_epics(self._source, self._config)
        epic_names = build_epic_index(epics)

        reconciler = LookupReconciler(self._sink)
        epic_field = reconciler.reconcile(board_id, self._config.epic_field_name, epic_desired_values(epics))
        epic_options = option_index(epic_field)

        fields = {field.name: field for field in self._sink.list_lookup_fields(board_id)}
        priority_field = self._require_field(fields, self._config.priority_field_name)
        identity_field = self._require_field(fields, self._config.identity_field_name)

        return RunContext(
            list_id=list_id,
            epic_names=epic_names,
            epic_field_id=epic_field.id,
            epic_options=epic_options,
            priority_field=priority_field,
            identity_field_id=identity_field.id if identity_field else None,
        )

    def _find_list_id(self, board_id: str, list_name: str) -> str:
        for board_list in self._sink.list_lists(board_id):
            if board_list.name == list_name:
                return board_list.id
        msg = f"No list named '{list_name}' on board '{board_id}'"
        raise NotFoundError(msg)

    def _require_field(self, fields: dict[str, LookupField], name: str | None) -> LookupField | None:
        if name is None:
            return None
        field = fields.get(name)
        if field is None:
            msg = f"No custom field named '{name}' on board '{self._config.board_id}'"
            raise NotFoundError(msg)
        return field

    def _process(self, record: SourceRecord, context: RunContext, result: MigrationResult) -> None:
        """Migrate one record and hand any failure to the policy."""
        try:
            outcome = self.migrate_record(record, context, result.stats)
        except MigrationError as e:
            logger.error(f"Failed to migrate {record.key}: {e}")
            result.record(RecordOutcome(record.key, RecordState.FAILED, reason=str(e)))
            self._policy.handle(record, e, result)
            return
        result.record(outcome)

    def migrate_record(self, record: SourceRecord, context: RunContext, stats: MigrationStats) -> RecordOutcome:
        """Run one record through filter, create, tag, attachments, epic, priority and comments."""
        if record.status == COMPLETION_STATUS:
            logger.info(f"Skipping {record.key}: already {COMPLETION_STATUS}")
            return RecordOutcome(record.key, RecordState.SKIPPED, reason=f"status is {COMPLETION_STATUS}")

        card_id = self._sink.create_card(to_card(record, context.list_id, self._config.put_at_top))
        stats.cards_created += 1
        logger.info(f"Created card {card_id} for {record.key}")

        if context.identity_field_id:
            self._sink.set_text_field_value(card_id, context.identity_field_id, record.key)

        stats.attachments_uploaded += self._attachments.transfer(record.attachments, card_id)

        if record.epic_key:
            self._link_epic(record, card_id, context)
            stats.epic_links_set += 1

        if context.priority_field is not None and record.priority is not None:
            option_id = to_lookup_value(record.priority, context.priority_field.options)
            self._sink.set_lookup_value(card_id, context.priority_field.id, option_id)
            stats.priority_links_set += 1

        stats.comments_created += self._replay_comments(record, card_id)

        return RecordOutcome(record.key, RecordState.MIGRATED, card_id=card_id)

    def _link_epic(self, record: SourceRecord, card_id: str, context: RunContext) -> None:
        epic_key = record.epic_key or ""
        epic_name = context.epic_names.get(epic_key)
        if epic_name is None:
            msg = f"{record.key} references unknown epic {epic_key}"
            raise NotFoundError(msg)
        option_id = context.epic_options.get(epic_name)
        if option_id is None:
            msg = f"{record.key} references epic '{epic_name}' which has no option on the epic field"
            raise NotFoundError(msg)
        self._sink.set_lookup_value(card_id, context.epic_field_id, option_id)

    def _replay_comments(self, record: SourceRecord, card_id: str) -> int:
        """Append comments in ascending creation order, then the provenance comment."""
        comments = self._paginator.list_comments(record.key, self._config.comment_page_size)
        for comment in comments:
            self._sink.append_comment(card_id, build_comment_text(comment))
        self._sink.append_comment(card_id, build_provenance_text(record))
        return len(comments) + 1
