"""
Access control resolution from a per-document ACL query.

The ACL query is bound with the document's key and may return any of
four reserved columns holding delimited principal names:

    GSA_PERMIT_USERS, GSA_DENY_USERS, GSA_PERMIT_GROUPS, GSA_DENY_GROUPS

Row policy:
    - first_row: only the first returned row is read
    - all_rows: each principal set is the union over every returned row

Tokenization is identical under both policies: split on the delimiter,
strip each token, drop empty tokens. An empty delimiter keeps the whole
stripped value as one principal. Missing columns, NULL and blank values
contribute no principals. No rows at all yields ``None``, and the caller
applies its empty-ACL policy.
"""

import logging
from typing import Optional

from dbfeed.core.config import AclRowPolicy
from dbfeed.core.models import Acl, DocId, GroupPrincipal, UserPrincipal
from dbfeed.core.primary_key import IdentityCodec
from dbfeed.infrastructure.database import Connection, Database, RowCursor

logger = logging.getLogger(__name__)

PERMIT_USERS = "GSA_PERMIT_USERS"
DENY_USERS = "GSA_DENY_USERS"
PERMIT_GROUPS = "GSA_PERMIT_GROUPS"
DENY_GROUPS = "GSA_DENY_GROUPS"


def split_principals(value: Optional[object], delimiter: str) -> list[str]:
    """
    Split a column value into principal names.

    Example:
        >>> split_principals(" alice, bob ,,", ",")
        ['alice', 'bob']
        >>> split_principals("alice,bob", "")
        ['alice,bob']
    """
    if value is None:
        return []
    text = str(value)
    if not text.strip():
        return []
    if delimiter == "":
        return [text.strip()]
    return [token.strip() for token in text.split(delimiter) if token.strip()]


class AclResolver:
    """Builds the Acl of one document from the configured ACL query."""

    def __init__(
        self,
        database: Database,
        codec: IdentityCodec,
        acl_sql: str,
        delimiter: str = ",",
        row_policy: AclRowPolicy = AclRowPolicy.FIRST_ROW,
    ):
        self._database = database
        self._codec = codec
        self._sql = acl_sql
        self._delimiter = delimiter
        self._row_policy = row_policy

    @property
    def row_policy(self) -> AclRowPolicy:
        return self._row_policy

    def resolve(self, doc_id: DocId, conn: Optional[Connection] = None) -> Optional[Acl]:
        """
        Run the ACL query for a document.

        Args:
            doc_id: Document to resolve
            conn: Open connection to reuse; a new one is opened if None

        Returns:
            The Acl, or None when the query returned no rows

        Raises:
            DatabaseIOError: If the ACL query fails
        """
        if conn is not None:
            return self._resolve(conn, doc_id)
        with self._database.connect() as own_conn:
            return self._resolve(own_conn, doc_id)

    def _resolve(self, conn: Connection, doc_id: DocId) -> Optional[Acl]:
        params = self._codec.bind_parameters(doc_id.unique_id)
        with conn.execute_parameterized(self._sql, params) as rows:
            if not rows.advance():
                logger.debug(f"no acl rows for {doc_id}")
                return None

            permit_users: set[str] = set()
            deny_users: set[str] = set()
            permit_groups: set[str] = set()
            deny_groups: set[str] = set()
            row_count = 0
            while True:
                row_count += 1
                permit_users.update(self._column_principals(rows, PERMIT_USERS))
                deny_users.update(self._column_principals(rows, DENY_USERS))
                permit_groups.update(self._column_principals(rows, PERMIT_GROUPS))
                deny_groups.update(self._column_principals(rows, DENY_GROUPS))
                if self._row_policy is AclRowPolicy.FIRST_ROW or not rows.advance():
                    break

        logger.debug(f"acl for {doc_id} built from {row_count} row(s)")
        return Acl(
            permit_users=frozenset(UserPrincipal(n) for n in permit_users),
            deny_users=frozenset(UserPrincipal(n) for n in deny_users),
            permit_groups=frozenset(GroupPrincipal(n) for n in permit_groups),
            deny_groups=frozenset(GroupPrincipal(n) for n in deny_groups),
        )

    def _column_principals(self, rows: RowCursor, column: str) -> list[str]:
        if not rows.has_column(column):
            return []
        return split_principals(rows.value_at(column), self._delimiter)
