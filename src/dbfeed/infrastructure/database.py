"""
Relational access over any DB-API 2.0 driver.

Connections and cursors are scoped with ``with`` blocks. Driver errors
raised while executing or reading become ``DatabaseIOError``; errors
raised while closing are logged and never propagated, so they cannot
mask the outcome of the operation that opened the resource.
"""

import importlib
import logging
from collections import deque
from contextlib import contextmanager
from datetime import date, datetime, time
from types import ModuleType
from typing import Any, Iterator, Optional, Sequence

from dbfeed.core.errors import DatabaseIOError, InvalidConfigurationError

logger = logging.getLogger(__name__)


def _close_quietly(resource: Any, what: str, error_class: type[BaseException]) -> None:
    try:
        resource.close()
    except error_class as e:
        logger.warning(f"{what} close failed: {e}")


class RowCursor:
    """
    Forward-only cursor positioned on one row at a time.

    Rows are pulled from the driver in chunks of ``fetch_hint`` rows so
    memory stays bounded on both sides of the driver.
    """

    def __init__(self, cursor: Any, error_class: type[BaseException], fetch_hint: int = 1):
        self._cursor = cursor
        self._error_class = error_class
        self._fetch_hint = max(1, fetch_hint)
        self._buffer: deque = deque()
        self._row: Optional[Sequence[Any]] = None
        self._exhausted = False
        description = cursor.description or ()
        self._columns = [d[0] for d in description]
        self._index = {name: i for i, name in enumerate(self._columns)}

    @property
    def column_names(self) -> list[str]:
        return list(self._columns)

    def has_column(self, name: str) -> bool:
        return name in self._index

    def advance(self) -> bool:
        """Move to the next row; False once the result is exhausted."""
        if not self._buffer and not self._exhausted:
            try:
                rows = self._cursor.fetchmany(self._fetch_hint)
            except self._error_class as e:
                raise DatabaseIOError(f"Failed to fetch rows: {e}") from e
            if rows:
                self._buffer.extend(rows)
            else:
                self._exhausted = True
        if self._buffer:
            self._row = self._buffer.popleft()
            return True
        self._row = None
        return False

    def value_at(self, column: int | str) -> Any:
        """Value of the current row by zero-based index or column name."""
        if self._row is None:
            raise DatabaseIOError("Cursor is not positioned on a row")
        if isinstance(column, int):
            return self._row[column]
        try:
            return self._row[self._index[column]]
        except KeyError:
            raise DatabaseIOError(f"No column named {column!r} in result {self._columns}")

    def as_dict(self) -> dict[str, Any]:
        """Current row as an ordered column -> value mapping."""
        return {name: self.value_at(i) for i, name in enumerate(self._columns)}

    def close(self) -> None:
        _close_quietly(self._cursor, "cursor", self._error_class)

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class Connection:
    """Wrapper around a DB-API connection that hands out RowCursors."""

    def __init__(self, conn: Any, database: "Database"):
        self._conn = conn
        self._database = database

    @property
    def raw(self) -> Any:
        return self._conn

    def _open_cursor(self, sql: str, params: Optional[Sequence[Any]], fetch_hint: int) -> RowCursor:
        error_class = self._database.error_class
        try:
            cursor = self._conn.cursor()
        except error_class as e:
            raise DatabaseIOError(f"Failed to open cursor: {e}") from e
        try:
            cursor.arraysize = fetch_hint
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, self._database.adapt_parameters(params))
        except error_class as e:
            _close_quietly(cursor, "cursor", error_class)
            raise DatabaseIOError(f"Query failed: {e}") from e
        return RowCursor(cursor, error_class, fetch_hint=fetch_hint)

    def execute_streaming(self, sql: str, fetch_hint: int) -> RowCursor:
        """Run an unparameterized query for forward-only streaming."""
        logger.debug(f"about to query for stream: {sql}")
        cursor = self._open_cursor(sql, None, fetch_hint)
        logger.debug("queried for stream")
        return cursor

    def execute_parameterized(
        self, sql: str, params: Sequence[Any], fetch_hint: int = 1
    ) -> RowCursor:
        """Run a query with bind parameters."""
        logger.debug(f"about to query: {sql} with {list(params)}")
        cursor = self._open_cursor(sql, params, fetch_hint)
        logger.debug("queried")
        return cursor


class Database:
    """
    Connection factory for a DB-API 2.0 driver module.

    Example:
        >>> db = Database("/tmp/docs.db")
        >>> with db.connect() as conn, conn.execute_streaming("SELECT id FROM t", 100) as rows:
        ...     while rows.advance():
        ...         print(rows.value_at("id"))
    """

    def __init__(
        self,
        url: str,
        driver_module: str = "sqlite3",
        user: str = "",
        password: str = "",
    ):
        self._url = url
        self._user = user
        self._password = password
        self._driver = self._load_driver(driver_module)

    @staticmethod
    def _load_driver(driver_module: str) -> ModuleType:
        try:
            driver = importlib.import_module(driver_module)
        except ImportError as e:
            raise InvalidConfigurationError(f"Cannot load database driver {driver_module}: {e}") from e
        if not hasattr(driver, "connect") or not hasattr(driver, "Error"):
            raise InvalidConfigurationError(f"{driver_module} is not a DB-API 2.0 driver module")
        logger.info(f"loaded driver: {driver_module}")
        return driver

    @property
    def error_class(self) -> type[BaseException]:
        return self._driver.Error

    @property
    def driver_name(self) -> str:
        return self._driver.__name__

    def adapt_parameters(self, params: Sequence[Any]) -> tuple:
        """Convert temporal values for drivers without native support."""
        if self.driver_name != "sqlite3":
            return tuple(params)
        adapted = []
        for value in params:
            if isinstance(value, datetime):
                adapted.append(value.isoformat(sep=" "))
            elif isinstance(value, (date, time)):
                adapted.append(value.isoformat())
            else:
                adapted.append(value)
        return tuple(adapted)

    def _open(self) -> Any:
        kwargs: dict[str, Any] = {}
        if self._user:
            kwargs["user"] = self._user
        if self._password:
            kwargs["password"] = self._password
        logger.debug("about to connect")
        try:
            conn = self._driver.connect(self._url, **kwargs)
        except self._driver.Error as e:
            raise DatabaseIOError(f"Failed to connect to {self._url}: {e}") from e
        logger.debug("connected")
        return conn

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        """Open a connection that is closed on every exit path."""
        conn = self._open()
        try:
            yield Connection(conn, self)
        finally:
            _close_quietly(conn, "connection", self._driver.Error)
