"""
Tests for DocumentContentResolver.
"""

import pytest

from dbfeed.core.config import AclRowPolicy, EmptyAclPolicy
from dbfeed.core.errors import ContentFetchError, DatabaseIOError, InvalidDocIdError
from dbfeed.core.metadata_columns import MetadataColumns
from dbfeed.core.models import Acl, DocId
from dbfeed.core.primary_key import PrimaryKey
from dbfeed.infrastructure.database import Database
from dbfeed.infrastructure.fakes import RecordingResponse
from dbfeed.services.acl_resolver import AclResolver
from dbfeed.services.content_resolver import DocumentContentResolver, metadata_text
from dbfeed.services.response_strategies import FunctionStrategy, TextColumn
from tests.support.db_fixtures import (
    ACL_SQL,
    CONTENT_SQL,
    create_documents_db,
    numbered_documents,
)

KEY = PrimaryKey("id:int, region:string")


def make_resolver(
    db_path,
    sql=CONTENT_SQL,
    metadata="title, author:creator",
    strategy=None,
    acl_sql=None,
    empty_acl_policy=EmptyAclPolicy.PUBLIC,
):
    database = Database(str(db_path))
    acl_resolver = None
    if acl_sql:
        acl_resolver = AclResolver(database, KEY, acl_sql, row_policy=AclRowPolicy.FIRST_ROW)
    return DocumentContentResolver(
        database,
        KEY,
        sql,
        MetadataColumns(metadata),
        strategy or TextColumn("body", "text/plain"),
        acl_resolver=acl_resolver,
        empty_acl_policy=empty_acl_policy,
    )


class TestMetadataText:
    def test_null_is_empty(self):
        assert metadata_text(None) == ""

    def test_bytes_are_decoded(self):
        assert metadata_text(b"caf\xc3\xa9") == "café"

    def test_numbers_are_stringified(self):
        assert metadata_text(42) == "42"


class TestDocumentContentResolver:
    """Content requests against a sqlite database."""

    def test_renders_existing_document(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(2))
        response = RecordingResponse()

        assert make_resolver(db_path).get_doc_content(DocId("2/eu"), response) is True
        assert response.text() == "body of 2"
        assert response.content_type == "text/plain"
        assert response.metadata == [("title", "Title 2"), ("creator", "author2")]
        assert response.acl is None
        assert not response.not_found

    def test_missing_document_only_responds_not_found(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        response = RecordingResponse()
        resolver = make_resolver(db_path, acl_sql=ACL_SQL, empty_acl_policy=EmptyAclPolicy.RESTRICTED)

        assert resolver.get_doc_content(DocId("9/eu"), response) is False
        assert response.calls == ["respond_not_found"]
        assert response.not_found

    def test_null_metadata_value_is_empty_string(self, tmp_path):
        db_path = create_documents_db(
            tmp_path / "docs.db", [(1, "eu", None, "someone", "b", "2020-01-01 00:00:00")]
        )
        response = RecordingResponse()
        make_resolver(db_path).get_doc_content(DocId("1/eu"), response)
        assert ("title", "") in response.metadata

    def test_unmapped_columns_are_not_metadata(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        response = RecordingResponse()
        make_resolver(db_path, metadata="").get_doc_content(DocId("1/eu"), response)
        assert response.metadata == []
        assert "add_metadata" not in response.calls

    def test_acl_columns_never_become_metadata(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        sql = (
            "SELECT title, 'alice' AS GSA_PERMIT_USERS, body FROM documents "
            "WHERE id = ? AND region = ?"
        )
        response = RecordingResponse()
        make_resolver(db_path, sql=sql, metadata="title, GSA_PERMIT_USERS").get_doc_content(
            DocId("1/eu"), response
        )
        assert response.metadata == [("title", "Title 1")]

    def test_acl_is_attached(self, tmp_path):
        db_path = create_documents_db(
            tmp_path / "docs.db",
            numbered_documents(1),
            acl_rows=[(1, "eu", "alice", None, "staff", None)],
        )
        response = RecordingResponse()
        make_resolver(db_path, acl_sql=ACL_SQL).get_doc_content(DocId("1/eu"), response)
        assert response.acl == Acl.build(permit_users=["alice"], permit_groups=["staff"])
        # metadata first, then the acl, then the body
        assert response.calls.index("set_acl") > response.calls.index("add_metadata")
        assert response.calls.index("set_acl") < response.calls.index("write")

    def test_no_acl_rows_public_policy(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        response = RecordingResponse()
        make_resolver(db_path, acl_sql=ACL_SQL).get_doc_content(DocId("1/eu"), response)
        assert response.acl is None
        assert "set_acl" not in response.calls

    def test_no_acl_rows_restricted_policy(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        response = RecordingResponse()
        resolver = make_resolver(
            db_path, acl_sql=ACL_SQL, empty_acl_policy=EmptyAclPolicy.RESTRICTED
        )
        resolver.get_doc_content(DocId("1/eu"), response)
        assert response.acl == Acl()
        assert response.acl.is_empty

    def test_strategy_sees_positioned_row(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(3))
        seen = []
        strategy = FunctionStrategy(lambda row, response: seen.append(row.as_dict()))

        make_resolver(db_path, strategy=strategy).get_doc_content(DocId("3/eu"), RecordingResponse())
        assert seen[0]["id"] == 3
        assert seen[0]["title"] == "Title 3"

    def test_bad_id_raises(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        with pytest.raises(InvalidDocIdError):
            make_resolver(db_path).get_doc_content(DocId("not-a-number/eu"), RecordingResponse())

    def test_query_failure_raises(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db")
        resolver = make_resolver(db_path, sql="SELECT * FROM nowhere WHERE a = ? AND b = ?")
        with pytest.raises(DatabaseIOError):
            resolver.get_doc_content(DocId("1/eu"), RecordingResponse())

    def test_content_columns_reorder_parameters(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(2))
        key = PrimaryKey("id:int, region:string", "region, id")
        resolver = DocumentContentResolver(
            Database(str(db_path)),
            key,
            "SELECT body FROM documents WHERE region = ? AND id = ?",
            MetadataColumns(),
            TextColumn("body", "text/plain"),
        )
        response = RecordingResponse()
        assert resolver.get_doc_content(DocId("2/eu"), response)
        assert response.text() == "body of 2"

    def test_strategy_error_becomes_content_fetch_error(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))

        def explode(row, response):
            raise KeyError("missing")

        resolver = make_resolver(db_path, strategy=FunctionStrategy(explode))
        with pytest.raises(ContentFetchError, match="KeyError") as exc_info:
            resolver.get_doc_content(DocId("1/eu"), RecordingResponse())
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_strategy_dbfeed_error_is_not_wrapped(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))

        def fail(row, response):
            raise DatabaseIOError("lost connection")

        resolver = make_resolver(db_path, strategy=FunctionStrategy(fail))
        with pytest.raises(DatabaseIOError, match="lost connection"):
            resolver.get_doc_content(DocId("1/eu"), RecordingResponse())
