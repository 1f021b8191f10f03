"""
Infrastructure Layer - Database access, document sinks and test fakes.
"""

from dbfeed.infrastructure.database import Connection, Database, RowCursor
from dbfeed.infrastructure.fakes import RecordingDocIdPusher, RecordingResponse
from dbfeed.infrastructure.feed import (
    DocIdPusher,
    DocumentResponse,
    FeedFileWriter,
    Response,
)

__all__ = [
    # Database
    "Database",
    "Connection",
    "RowCursor",
    # Sinks
    "DocIdPusher",
    "Response",
    "DocumentResponse",
    "FeedFileWriter",
    # Fakes for testing
    "RecordingDocIdPusher",
    "RecordingResponse",
]
