"""
Core Layer - Configuration, data model, identity codec and metadata mapping.
"""

from dbfeed.core.config import (
    AclRowPolicy,
    AdaptorConfig,
    DatabaseConfig,
    EmptyAclPolicy,
    FeedConfig,
    FlatConfig,
    LoggingConfig,
    load_config,
)
from dbfeed.core.errors import (
    ContentFetchError,
    DatabaseIOError,
    DbFeedError,
    FeedDeliveryError,
    InvalidConfigurationError,
    InvalidDocIdError,
)
from dbfeed.core.metadata_columns import ACL_COLUMNS, MetadataColumns
from dbfeed.core.models import (
    Acl,
    DocId,
    DocumentRecord,
    GroupPrincipal,
    UserPrincipal,
    Watermark,
)
from dbfeed.core.primary_key import IdentityCodec, PrimaryKey

__all__ = [
    # Config
    "AdaptorConfig",
    "DatabaseConfig",
    "FeedConfig",
    "FlatConfig",
    "LoggingConfig",
    "AclRowPolicy",
    "EmptyAclPolicy",
    "load_config",
    # Errors
    "DbFeedError",
    "InvalidConfigurationError",
    "DatabaseIOError",
    "ContentFetchError",
    "FeedDeliveryError",
    "InvalidDocIdError",
    # Models
    "DocId",
    "DocumentRecord",
    "UserPrincipal",
    "GroupPrincipal",
    "Acl",
    "Watermark",
    # Identity codec
    "IdentityCodec",
    "PrimaryKey",
    # Metadata
    "MetadataColumns",
    "ACL_COLUMNS",
]
