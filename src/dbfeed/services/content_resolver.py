"""
Document content resolution: content query, metadata, ACL, rendered body.
"""

import logging
from typing import Any, Optional

from dbfeed.core.config import EmptyAclPolicy
from dbfeed.core.errors import ContentFetchError, DbFeedError
from dbfeed.core.metadata_columns import MetadataColumns
from dbfeed.core.models import Acl, DocId
from dbfeed.core.primary_key import IdentityCodec
from dbfeed.infrastructure.database import Database
from dbfeed.infrastructure.feed import Response
from dbfeed.services.acl_resolver import AclResolver
from dbfeed.services.response_strategies import ResponseStrategy

logger = logging.getLogger(__name__)


def metadata_text(value: Any) -> str:
    """Textual form of a metadata value; NULL becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


class DocumentContentResolver:
    """
    Produces one document for a content request.

    Steps, in order: run the content query; when it returns no row respond
    not-found and stop. Otherwise emit metadata for the mapped columns,
    attach the ACL when an ACL query is configured, and let the response
    strategy render the body from the same positioned row.
    """

    def __init__(
        self,
        database: Database,
        codec: IdentityCodec,
        content_sql: str,
        metadata_columns: MetadataColumns,
        strategy: ResponseStrategy,
        acl_resolver: Optional[AclResolver] = None,
        empty_acl_policy: EmptyAclPolicy = EmptyAclPolicy.PUBLIC,
    ):
        self._database = database
        self._codec = codec
        self._sql = content_sql
        self._metadata_columns = metadata_columns
        self._strategy = strategy
        self._acl_resolver = acl_resolver
        self._empty_acl_policy = empty_acl_policy

    def get_doc_content(self, doc_id: DocId, response: Response) -> bool:
        """
        Fill ``response`` with the document's content.

        Returns:
            False if the document does not exist, True otherwise

        Raises:
            InvalidDocIdError: If the id does not decode with the primary key
            DatabaseIOError: If the content or ACL query fails
            ContentFetchError: If the response strategy fails; errors that
                are not DbFeedErrors are wrapped
        """
        params = self._codec.bind_parameters(doc_id.unique_id)
        with self._database.connect() as conn:
            with conn.execute_parameterized(self._sql, params) as row:
                if not row.advance():
                    logger.info(f"document not found: {doc_id}")
                    response.respond_not_found()
                    return False

                for i, column in enumerate(row.column_names):
                    if self._metadata_columns.is_metadata_column_name(column):
                        key = self._metadata_columns.get_metadata_name(column)
                        response.add_metadata(key, metadata_text(row.value_at(i)))

                if self._acl_resolver is not None:
                    acl = self._acl_resolver.resolve(doc_id, conn=conn)
                    if acl is None and self._empty_acl_policy is EmptyAclPolicy.RESTRICTED:
                        logger.debug(f"no acl rows for {doc_id}, restricting it")
                        acl = Acl()
                    if acl is not None:
                        response.set_acl(acl)

                try:
                    self._strategy.generate_response(row, response)
                except DbFeedError:
                    raise
                except Exception as e:
                    raise ContentFetchError(
                        f"Response strategy failed for {doc_id}: {type(e).__name__}: {e}"
                    ) from e
        return True
