"""
Batch assembler that buffers document records and pushes them to a
DocIdPusher in batches of bounded size.
"""

import logging
from typing import Optional

from dbfeed.core.errors import FeedDeliveryError
from dbfeed.core.models import DocumentRecord
from dbfeed.infrastructure.feed import DocIdPusher

logger = logging.getLogger(__name__)


class BatchAssembler:
    """
    Accumulates records and pushes them when the batch is full.

    The owner must call `flush()` once the scan is done and then `close()`
    (or use the assembler as a context manager). A batch that is still
    non-empty at close has been lost and is reported as an error.

    The batch is cleared only after the pusher accepted it, so an
    exception or interrupt during a push leaves it intact.
    """

    def __init__(self, pusher: DocIdPusher, max_batch_size: int):
        if pusher is None:
            raise ValueError("pusher is required")
        if max_batch_size <= 0:
            raise ValueError(f"max_batch_size must be positive, got {max_batch_size}")
        self._pusher = pusher
        self._max_batch_size = max_batch_size
        self._saved: list[DocumentRecord] = []
        self._closed = False
        self.flush_count = 0
        self.records_pushed = 0

    @property
    def pending(self) -> int:
        return len(self._saved)

    def add(self, record: DocumentRecord) -> None:
        """Add a record; pushes synchronously when the batch becomes full."""
        if self._closed:
            raise RuntimeError("BatchAssembler is closed")
        self._saved.append(record)
        if len(self._saved) >= self._max_batch_size:
            self.flush_count += 1
            self.flush()

    def flush(self) -> None:
        """
        Push the current batch, even if empty, and clear it.

        Raises:
            FeedDeliveryError: If the pusher did not accept the batch
        """
        failed: Optional[DocumentRecord] = self._pusher.push_records(list(self._saved))
        if failed is not None:
            raise FeedDeliveryError(
                f"Pusher rejected batch of {len(self._saved)} records at {failed.doc_id}",
                failed_record=failed,
            )
        logger.debug(f"sent {len(self._saved)} doc ids to pusher")
        self.records_pushed += len(self._saved)
        self._saved.clear()

    def close(self) -> int:
        """
        End the assembler's lifetime.

        Returns:
            Number of records that were never pushed
        """
        self._closed = True
        unsent = len(self._saved)
        if unsent:
            logger.error(f"still have {unsent} saved ids that weren't sent")
        return unsent

    def __enter__(self) -> "BatchAssembler":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
