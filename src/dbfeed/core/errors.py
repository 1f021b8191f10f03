"""Exception types for dbfeed."""


class DbFeedError(Exception):
    """Base exception for dbfeed errors."""

    pass


class InvalidConfigurationError(DbFeedError):
    """Configuration is missing, malformed or cannot be resolved.

    Raised during start-up only; the process must not start with it.
    """

    pass


class DatabaseIOError(DbFeedError, OSError):
    """A query or cursor operation failed in the relational engine."""

    pass


class ContentFetchError(DbFeedError, OSError):
    """Document content referenced by a row could not be fetched."""

    pass


class FeedDeliveryError(DbFeedError):
    """The document sink refused a batch of records."""

    def __init__(self, message: str, failed_record=None):
        self.failed_record = failed_record
        super().__init__(message)


class InvalidDocIdError(DbFeedError):
    """A unique id cannot be decoded with the configured primary key."""

    pass
