"""
Fake implementations for testing.

Provides in-memory implementations of the outbound interfaces for use
in unit and integration tests without a real feed endpoint.
"""

from __future__ import annotations

from typing import Optional, Sequence

from dbfeed.core.models import DocId, DocumentRecord
from dbfeed.infrastructure.feed import DocIdPusher, DocumentResponse


class RecordingDocIdPusher(DocIdPusher):
    """
    Records every pushed batch.

    Args:
        reject_push: 1-based push number whose first record is reported
            as not accepted
        raise_on_push: 1-based push number that raises ``error`` instead
        error: Exception raised on ``raise_on_push``
    """

    def __init__(
        self,
        reject_push: Optional[int] = None,
        raise_on_push: Optional[int] = None,
        error: Optional[BaseException] = None,
    ):
        self.batches: list[list[DocumentRecord]] = []
        self.push_attempts = 0
        self._reject_push = reject_push
        self._raise_on_push = raise_on_push
        self._error = error or RuntimeError("push failed")

    def push_records(self, records: Sequence[DocumentRecord]) -> Optional[DocumentRecord]:
        self.push_attempts += 1
        if self.push_attempts == self._raise_on_push:
            raise self._error
        if self.push_attempts == self._reject_push:
            return records[0] if records else None
        self.batches.append(list(records))
        return None

    @property
    def records(self) -> list[DocumentRecord]:
        return [record for batch in self.batches for record in batch]

    def get_doc_ids(self) -> list[DocId]:
        return [record.doc_id for record in self.records]

    def reset(self) -> None:
        self.batches.clear()
        self.push_attempts = 0


class RecordingResponse(DocumentResponse):
    """DocumentResponse that also counts every call, for side-effect checks."""

    def __init__(self):
        super().__init__()
        self.calls: list[str] = []

    def respond_not_found(self) -> None:
        self.calls.append("respond_not_found")
        super().respond_not_found()

    def add_metadata(self, key: str, value: str) -> None:
        self.calls.append("add_metadata")
        super().add_metadata(key, value)

    def set_acl(self, acl) -> None:
        self.calls.append("set_acl")
        super().set_acl(acl)

    def set_content_type(self, content_type: str) -> None:
        self.calls.append("set_content_type")
        super().set_content_type(content_type)

    def set_display_url(self, url: str) -> None:
        self.calls.append("set_display_url")
        super().set_display_url(url)

    def write(self, data: bytes) -> None:
        self.calls.append("write")
        super().write(data)
