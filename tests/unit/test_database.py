"""
Tests for the DB-API wrapper.
"""

import logging
import sqlite3
from datetime import date, datetime, time

import pytest

from dbfeed.core.errors import DatabaseIOError, InvalidConfigurationError
from dbfeed.infrastructure.database import Database, RowCursor
from tests.support.db_fixtures import create_documents_db, numbered_documents


class BrokenCloseCursor:
    """Cursor stand-in whose close() fails."""

    description = (("id",),)

    def fetchmany(self, size):
        return []

    def close(self):
        raise sqlite3.OperationalError("close exploded")


class TestDatabase:
    def test_streams_rows_in_order(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(5))
        database = Database(str(db_path))
        seen = []
        with database.connect() as conn:
            with conn.execute_streaming("SELECT id FROM documents ORDER BY id", 2) as rows:
                assert rows.column_names == ["id"]
                while rows.advance():
                    seen.append(rows.value_at("id"))
                assert rows.advance() is False
        assert seen == [1, 2, 3, 4, 5]

    def test_parameterized_query(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(3))
        with Database(str(db_path)).connect() as conn:
            sql = "SELECT title FROM documents WHERE id = ? AND region = ?"
            with conn.execute_parameterized(sql, (2, "eu")) as row:
                assert row.advance()
                assert row.as_dict() == {"title": "Title 2"}

    def test_unknown_driver(self):
        with pytest.raises(InvalidConfigurationError, match="no_such_driver"):
            Database("x", driver_module="no_such_driver")

    def test_module_without_connect_is_not_a_driver(self):
        with pytest.raises(InvalidConfigurationError, match="DB-API"):
            Database("x", driver_module="json")

    def test_bad_sql_is_io_error(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db")
        with Database(str(db_path)).connect() as conn:
            with pytest.raises(DatabaseIOError):
                conn.execute_streaming("SELEC nonsense", 10)

    def test_connect_failure_is_io_error(self, tmp_path):
        database = Database(str(tmp_path / "missing-dir" / "docs.db"))
        with pytest.raises(DatabaseIOError):
            with database.connect():
                pass

    def test_unknown_column(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        with Database(str(db_path)).connect() as conn:
            with conn.execute_streaming("SELECT id FROM documents", 1) as rows:
                rows.advance()
                with pytest.raises(DatabaseIOError, match="nope"):
                    rows.value_at("nope")

    def test_value_before_advance(self, tmp_path):
        db_path = create_documents_db(tmp_path / "docs.db", numbered_documents(1))
        with Database(str(db_path)).connect() as conn:
            with conn.execute_streaming("SELECT id FROM documents", 1) as rows:
                with pytest.raises(DatabaseIOError):
                    rows.value_at(0)

    def test_close_failure_is_logged_not_raised(self, caplog):
        cursor = RowCursor(BrokenCloseCursor(), sqlite3.Error)
        with caplog.at_level(logging.WARNING, logger="dbfeed.infrastructure.database"):
            with cursor:
                assert cursor.advance() is False
        assert "close exploded" in caplog.text

    def test_sqlite_temporal_parameters(self, tmp_path):
        database = Database(str(tmp_path / "t.db"))
        adapted = database.adapt_parameters(
            (datetime(2024, 1, 2, 3, 4, 5), date(2024, 1, 2), time(3, 4), 7)
        )
        assert adapted == ("2024-01-02 03:04:05", "2024-01-02", "03:04:00", 7)
