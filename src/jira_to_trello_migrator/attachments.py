"""Attachment transfer from Jira issues to Trello cards."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from .exceptions import LocalIOError

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from .models import AttachmentDescriptor
    from .protocols import RecordSink, RecordSource

logger: logging.Logger = logging.getLogger(__name__)


def release_local_file(path: Path) -> None:
    """Remove a downloaded attachment file.

    Raises:
        LocalIOError: If the file exists but cannot be removed
    """
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        msg = f"Failed to remove temporary file {path}: {e}"
        raise LocalIOError(msg) from e


class AttachmentHandler:
    """Downloads attachments from the source and uploads them to a card."""

    _source: RecordSource
    _sink: RecordSink
    uploaded_files_count: int

    def __init__(self, source: RecordSource, sink: RecordSink) -> None:
        self._source = source
        self._sink = sink
        self.uploaded_files_count = 0

    @contextmanager
    def fetched(self, attachment: AttachmentDescriptor) -> Iterator[Path]:
        """Fetch an attachment to a local file that is removed on exit, whatever happens."""
        path = self._source.fetch_attachment_bytes(attachment.id)
        logger.debug(f"Downloaded {attachment.filename} ({attachment.size} bytes) to {path}")
        try:
            yield path
        except BaseException:
            # Keep the original error; a cleanup failure is only logged
            try:
                release_local_file(path)
            except LocalIOError:
                logger.exception(f"Could not clean up {path} after a failed transfer")
            raise
        release_local_file(path)

    def transfer(self, attachments: Iterable[AttachmentDescriptor], card_id: str) -> int:
        """Copy every attachment onto the card, in order. Any failure propagates.

        Returns:
            Number of attachments uploaded
        """
        count = 0
        for attachment in attachments:
            with self.fetched(attachment) as path:
                self._sink.upload_attachment(card_id, path, attachment.filename, attachment.mime_type)
            count += 1
            logger.info(f"Uploaded attachment {attachment.filename} to card {card_id}")
        self.uploaded_files_count += count
        return count
