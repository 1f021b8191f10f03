"""
Database adaptor: the outward face of the scanners and the content resolver.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from dbfeed.core.errors import DbFeedError
from dbfeed.core.models import DocId
from dbfeed.infrastructure.feed import DocIdPusher, DocumentResponse
from dbfeed.services.content_resolver import DocumentContentResolver
from dbfeed.services.scanners import FullScanner, IncrementalScanner

logger = logging.getLogger(__name__)


@dataclass
class DocumentResult:
    """Outcome of one content request in a multi-document fetch."""

    doc_id: DocId
    response: DocumentResponse = field(default_factory=DocumentResponse)
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.error is None and not self.response.not_found


class DatabaseAdaptor:
    """
    Lists document ids and serves document content from a database.

    The incremental scanner is optional; without an update query the
    adaptor only supports full scans.
    """

    def __init__(
        self,
        full_scanner: FullScanner,
        content_resolver: DocumentContentResolver,
        incremental_scanner: Optional[IncrementalScanner] = None,
    ):
        self._full_scanner = full_scanner
        self._content_resolver = content_resolver
        self._incremental_scanner = incremental_scanner

    @property
    def supports_incremental(self) -> bool:
        return self._incremental_scanner is not None

    @property
    def incremental_scanner(self) -> Optional[IncrementalScanner]:
        return self._incremental_scanner

    def get_doc_ids(self, pusher: DocIdPusher) -> int:
        """Push every document id."""
        return self._full_scanner.get_doc_ids(pusher)

    def get_modified_doc_ids(self, pusher: DocIdPusher) -> int:
        """Push ids changed since the last successful incremental scan."""
        if self._incremental_scanner is None:
            raise RuntimeError("No update query configured; incremental scans are disabled")
        return self._incremental_scanner.get_modified_doc_ids(pusher)

    def get_doc_content(self, doc_id: DocId, response: DocumentResponse) -> bool:
        """Render one document; False when it does not exist."""
        return self._content_resolver.get_doc_content(doc_id, response)

    def get_docs(self, doc_ids: Iterable[DocId]) -> list[DocumentResult]:
        """
        Render several documents.

        A failure is recorded on that document's result and does not stop
        the remaining documents.
        """
        results = []
        for doc_id in doc_ids:
            result = DocumentResult(doc_id=doc_id)
            try:
                self.get_doc_content(doc_id, result.response)
            except (DbFeedError, OSError) as e:
                logger.error(f"Failed to retrieve {doc_id}: {e}")
                result.error = str(e)
            results.append(result)
        return results
