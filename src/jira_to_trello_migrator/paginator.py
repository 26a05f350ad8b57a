"""Paginated streaming of records from the source system.

The paging loop owns no business logic, only the
offset and total-count bookkeeping. stream_in_background() moves any record
iterator onto a producer thread connected to the caller by a bounded queue.
"""

from __future__ import annotations

import datetime as dt
import logging
import queue
import threading
from typing import TYPE_CHECKING, Final, TypeVar

from .translator import parse_timestamp

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from .models import Comment, Page, SourceRecord
    from .protocols import RecordSource

logger: logging.Logger = logging.getLogger(__name__)

T = TypeVar("T")

_EPOCH: Final[dt.datetime] = dt.datetime.min.replace(tzinfo=dt.UTC)
_END_OF_STREAM: Final[object] = object()
_PUT_POLL_SECONDS: Final[float] = 0.1


def paginate(fetch_page: Callable[[int, int], Page[T]], page_size: int) -> Iterator[T]:
    """Yield every item from a paged endpoint, in page order.

    The offset advances by the number of items actually returned, so a short
    final page is handled. The stream ends once the number of emitted items
    reaches the total reported by the server. Errors from fetch_page
    propagate and end the stream.
    """
    offset = 0
    expected_total: int | None = None
    pages = 0

    while True:
        page = fetch_page(offset, page_size)
        pages += 1

        if expected_total is None:
            expected_total = page.total
        elif page.total != expected_total:
            logger.warning(f"Total count changed mid-stream from {expected_total} to {page.total} at offset {offset}")
            expected_total = page.total

        yield from page.items
        offset += len(page.items)

        if offset >= page.total:
            logger.debug(f"Iterated a total of {offset} items in {pages} page(s)")
            return
        if not page.items:
            logger.warning(f"Empty page at offset {offset} before reaching total {page.total}, stopping")
            return


def _comment_sort_key(comment: Comment) -> dt.datetime:
    # Unparseable timestamps sort first
    return parse_timestamp(comment.created) or _EPOCH


class SourcePaginator:
    """Streams records and comments from a RecordSource."""

    _source: RecordSource

    def __init__(self, source: RecordSource) -> None:
        self._source = source

    def stream(self, query: str, page_size: int) -> Iterator[SourceRecord]:
        """Lazily yield all records matching the query. Not restartable."""
        logger.info(f"Streaming records for query '{query}' with page size {page_size}")
        return paginate(lambda offset, size: self._source.search_records(query, offset, size), page_size)

    def list_comments(self, record_key: str, page_size: int) -> list[Comment]:
        """Return all comments on a record sorted by creation time, ascending (stable)."""
        comments = list(
            paginate(lambda offset, size: self._source.list_comments(record_key, offset, size), page_size)
        )
        comments.sort(key=_comment_sort_key)
        logger.debug(f"Retrieved {len(comments)} comments for {record_key}")
        return comments


class _ProducerError:
    """Terminal signal carrying the exception raised by the producer."""

    def __init__(self, error: BaseException) -> None:
        self.error = error


def stream_in_background(items: Iterable[T], capacity: int) -> Iterator[T]:
    """Consume an iterable on a producer thread, yielding its items through a bounded queue.

    The producer blocks while the queue is full. A terminal error from the
    producer is delivered through a single-slot error queue and re-raised
    in the consumer as soon as it is observed, even if records are still
    buffered. Closing the returned generator early stops the producer and
    discards anything buffered.
    """
    buffer: queue.Queue[object] = queue.Queue(maxsize=capacity)
    error_slot: queue.Queue[_ProducerError] = queue.Queue(maxsize=1)
    stop = threading.Event()

    def offer(item: object) -> bool:
        while not stop.is_set():
            try:
                buffer.put(item, timeout=_PUT_POLL_SECONDS)
            except queue.Full:
                continue
            return True
        return False

    def produce() -> None:
        try:
            for item in items:
                if not offer(item):
                    return
        except Exception as e:  # noqa: BLE001 - handed over to the consumer
            error_slot.put(_ProducerError(e))
        offer(_END_OF_STREAM)

    def pending_error() -> BaseException | None:
        try:
            return error_slot.get_nowait().error
        except queue.Empty:
            return None

    producer = threading.Thread(target=produce, name="record-producer", daemon=True)
    producer.start()

    try:
        while True:
            error = pending_error()
            if error is not None:
                raise error

            item = buffer.get()
            if item is _END_OF_STREAM:
                error = pending_error()
                if error is not None:
                    raise error
                return
            yield item  # type: ignore[misc]
    finally:
        stop.set()
        while True:
            try:
                buffer.get_nowait()
            except queue.Empty:
                break
        producer.join(timeout=1.0)
