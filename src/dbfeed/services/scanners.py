"""
Full and incremental scanners.

Both stream a query row by row, turn every row into a DocId with the
identity codec and push the records in bounded batches. A failure while
streaming aborts the pass; batches already pushed stay pushed.
"""

import logging
from typing import Optional

from dbfeed.core.models import DocId, DocumentRecord, Watermark
from dbfeed.core.primary_key import IdentityCodec
from dbfeed.infrastructure.database import Database, RowCursor
from dbfeed.infrastructure.feed import DocIdPusher
from dbfeed.services.batching import BatchAssembler

logger = logging.getLogger(__name__)


def _push_rows(
    rows: RowCursor,
    codec: IdentityCodec,
    batch: BatchAssembler,
    crawl_immediately: bool,
) -> int:
    count = 0
    while rows.advance():
        doc_id = DocId(codec.make_unique_id(rows))
        logger.debug(f"doc id: {doc_id}")
        batch.add(DocumentRecord(doc_id, crawl_immediately=crawl_immediately))
        count += 1
    return count


class FullScanner:
    """Lists every document id returned by the full-scan query."""

    def __init__(
        self,
        database: Database,
        codec: IdentityCodec,
        every_doc_id_sql: str,
        max_batch_size: int,
    ):
        self._database = database
        self._codec = codec
        self._sql = every_doc_id_sql
        self._max_batch_size = max_batch_size

    def get_doc_ids(self, pusher: DocIdPusher) -> int:
        """
        Push all document ids.

        Returns:
            Number of ids pushed

        Raises:
            DatabaseIOError: If the query or a row fetch fails
            FeedDeliveryError: If the pusher rejects a batch
        """
        with BatchAssembler(pusher, self._max_batch_size) as batch:
            with self._database.connect() as conn:
                with conn.execute_streaming(self._sql, fetch_hint=self._max_batch_size) as rows:
                    count = _push_rows(rows, self._codec, batch, crawl_immediately=False)
            batch.flush()
        logger.info(f"Full scan pushed {count} doc ids")
        return count


class IncrementalScanner:
    """
    Lists ids of documents changed since the watermark.

    The watermark is bound as the only parameter of the update query and
    advances only after a pass that completed without error, so a failed
    pass is covered again by the next one.
    """

    def __init__(
        self,
        database: Database,
        codec: IdentityCodec,
        update_sql: str,
        max_batch_size: int,
        watermark: Optional[Watermark] = None,
    ):
        self._database = database
        self._codec = codec
        self._sql = update_sql
        self._max_batch_size = max_batch_size
        self._watermark = watermark or Watermark()
        logger.info(f"update sql: {self._sql}")

    @property
    def watermark(self) -> Watermark:
        return self._watermark

    def get_modified_doc_ids(self, pusher: DocIdPusher) -> int:
        """
        Push ids of changed documents, flagged for immediate crawl.

        Returns:
            Number of ids pushed

        Raises:
            DatabaseIOError: If the query or a row fetch fails
            FeedDeliveryError: If the pusher rejects a batch
        """
        since = self._watermark.value
        with BatchAssembler(pusher, self._max_batch_size) as batch:
            with self._database.connect() as conn:
                with conn.execute_parameterized(
                    self._sql, (since,), fetch_hint=self._max_batch_size
                ) as rows:
                    count = _push_rows(rows, self._codec, batch, crawl_immediately=True)
            batch.flush()

        advanced = self._watermark.advance()
        logger.info(f"Incremental scan since {since} pushed {count} doc ids")
        logger.debug(f"last pushing timestamp set to: {advanced}")
        return count
