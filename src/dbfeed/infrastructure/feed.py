"""
Outbound interfaces: the document sink for id batches and the response
a single rendered document is written into.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from dbfeed.core.models import Acl, DocumentRecord

logger = logging.getLogger(__name__)


class DocIdPusher(ABC):
    """Receives batches of document records."""

    @abstractmethod
    def push_records(self, records: Sequence[DocumentRecord]) -> Optional[DocumentRecord]:
        """
        Deliver a batch of records.

        Args:
            records: Records in scan order

        Returns:
            None on success, otherwise the first record that was not accepted
        """
        pass


class Response(ABC):
    """Write surface for one rendered document."""

    @abstractmethod
    def respond_not_found(self) -> None:
        pass

    @abstractmethod
    def add_metadata(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def set_acl(self, acl: Acl) -> None:
        pass

    @abstractmethod
    def set_content_type(self, content_type: str) -> None:
        pass

    @abstractmethod
    def set_display_url(self, url: str) -> None:
        pass

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Append bytes to the document body."""
        pass


@dataclass
class DocumentResponse(Response):
    """In-memory response, filled by one content request."""

    not_found: bool = False
    metadata: list[tuple[str, str]] = field(default_factory=list)
    acl: Optional[Acl] = None
    content_type: Optional[str] = None
    display_url: Optional[str] = None
    body: bytearray = field(default_factory=bytearray)

    def respond_not_found(self) -> None:
        self.not_found = True

    def add_metadata(self, key: str, value: str) -> None:
        self.metadata.append((key, value))

    def set_acl(self, acl: Acl) -> None:
        self.acl = acl

    def set_content_type(self, content_type: str) -> None:
        self.content_type = content_type

    def set_display_url(self, url: str) -> None:
        self.display_url = url

    def write(self, data: bytes) -> None:
        self.body.extend(data)

    def text(self, encoding: str = "utf-8") -> str:
        return bytes(self.body).decode(encoding, errors="replace")


class FeedFileWriter(DocIdPusher):
    """
    Writes each pushed batch as one JSON-lines feed file.

    Files are named ``feed-00001.jsonl``, ``feed-00002.jsonl``, ... in
    push order. Empty batches produce no file.
    """

    def __init__(self, output_dir: Path | str):
        self._output_dir = Path(output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._sequence = self._last_sequence(self._output_dir)
        self.records_written = 0

    @staticmethod
    def _last_sequence(output_dir: Path) -> int:
        """Highest sequence number among existing feed files, 0 if none."""
        last = 0
        for path in output_dir.glob("feed-*.jsonl"):
            number = path.stem[len("feed-"):]
            if number.isdigit():
                last = max(last, int(number))
        return last

    def push_records(self, records: Sequence[DocumentRecord]) -> Optional[DocumentRecord]:
        if not records:
            return None
        path = self._output_dir / f"feed-{self._sequence + 1:05d}.jsonl"
        pushed_at = datetime.now(timezone.utc).isoformat()
        lines = [
            json.dumps({
                "doc_id": record.doc_id.unique_id,
                "crawl_immediately": record.crawl_immediately,
                "pushed_at": pushed_at,
            })
            for record in records
        ]
        try:
            path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write feed file {path}: {e}")
            return records[0]
        self._sequence += 1
        self.records_written += len(records)
        logger.info(f"Wrote {len(records)} doc ids to {path}")
        return None
