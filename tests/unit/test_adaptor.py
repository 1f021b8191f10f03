"""
Tests for DatabaseAdaptor and the services container wiring.
"""

import pytest

from dbfeed.core.errors import InvalidConfigurationError
from dbfeed.core.models import Acl, DocId
from dbfeed.infrastructure.fakes import RecordingDocIdPusher
from dbfeed.services import create_adaptor_services
from dbfeed.services.response_strategies import ResponseStrategyRegistry, TextColumn
from tests.support.db_fixtures import (
    ACL_SQL,
    UPDATE_SQL,
    create_documents_db,
    execute,
    make_config,
    numbered_documents,
)


class TestContainer:
    def test_wires_full_scan_and_content(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(4))
        services = create_adaptor_services(make_config(db_path))

        assert isinstance(services.strategy, TextColumn)
        assert not services.adaptor.supports_incremental
        pusher = RecordingDocIdPusher()
        assert services.adaptor.get_doc_ids(pusher) == 4

        result = services.adaptor.get_docs([DocId("4/eu")])[0]
        assert result.found
        assert result.response.text() == "body of 4"

    def test_incremental_requires_update_sql(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db")
        services = create_adaptor_services(make_config(db_path))
        with pytest.raises(RuntimeError, match="incremental"):
            services.adaptor.get_modified_doc_ids(RecordingDocIdPusher())

    def test_incremental_enabled_by_update_sql(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(2))
        services = create_adaptor_services(make_config(db_path, db_updateSql=UPDATE_SQL))
        assert services.adaptor.supports_incremental

        execute(db_path, "UPDATE documents SET updated_at = '2999-01-01 00:00:00' WHERE id = 1")
        pusher = RecordingDocIdPusher()
        assert services.adaptor.get_modified_doc_ids(pusher) == 1
        assert pusher.get_doc_ids() == [DocId("1/eu")]

    def test_acl_policy_flows_through(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        services = create_adaptor_services(
            make_config(db_path, db_aclSql=ACL_SQL, db_emptyAclPolicy="restricted")
        )
        result = services.adaptor.get_docs([DocId("1/eu")])[0]
        assert result.response.acl == Acl()

    def test_unknown_strategy_fails_at_startup(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db")
        with pytest.raises(InvalidConfigurationError):
            create_adaptor_services(make_config(db_path, db_modeOfOperation="nodots"))

    def test_custom_registry(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        registry = ResponseStrategyRegistry().register(
            "shout", lambda cfg: TextColumn("title", "text/plain")
        )
        services = create_adaptor_services(
            make_config(db_path, db_modeOfOperation="shout"), registry=registry
        )
        result = services.adaptor.get_docs([DocId("1/eu")])[0]
        assert result.response.text() == "Title 1"


class TestGetDocs:
    def test_failures_are_isolated_per_document(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(2))
        adaptor = create_adaptor_services(make_config(db_path)).adaptor

        results = adaptor.get_docs([DocId("1/eu"), DocId("bad"), DocId("7/eu"), DocId("2/eu")])

        assert [r.found for r in results] == [True, False, False, True]
        assert results[1].error is not None
        assert results[2].error is None
        assert results[2].response.not_found
        assert results[3].response.text() == "body of 2"

    def test_strategy_exception_is_isolated(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(3))
        mode = "tests.support.custom_strategies.fails_on_id"
        config = make_config(
            db_path,
            db_modeOfOperation=mode,
            **{f"db_modeOfOperation.{mode}.failId": "2"},
        )
        adaptor = create_adaptor_services(config).adaptor

        results = adaptor.get_docs([DocId("1/eu"), DocId("2/eu"), DocId("3/eu")])

        assert [r.found for r in results] == [True, False, True]
        assert "cannot render row 2" in results[1].error
        assert results[2].response.text() == "Title 3"

    def test_encoding_failure_is_isolated(self, tmp_path):
        db_path = create_documents_db(
            tmp_path / "docs.db",
            [
                (1, "eu", "t", "a", "café", "2020-01-01 00:00:00"),
                (2, "eu", "t", "a", "plain", "2020-01-01 00:00:00"),
            ],
        )
        config = make_config(db_path, **{"db_modeOfOperation.textColumn.encoding": "ascii"})
        adaptor = create_adaptor_services(config).adaptor

        results = adaptor.get_docs([DocId("1/eu"), DocId("2/eu")])

        assert "UnicodeEncodeError" in results[0].error
        assert results[1].found
        assert results[1].response.text() == "plain"
