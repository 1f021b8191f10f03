"""
Identity codec: turns the key columns of a row into a reversible unique id.

The key is configured as ``"cust_id:int, order_id:string"``. Values are
joined with ``/``; backslash and slash inside a value are escaped with a
backslash so any text survives the round trip.
"""

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, time
from typing import Any, Callable, Optional

from dbfeed.core.errors import InvalidConfigurationError, InvalidDocIdError

logger = logging.getLogger(__name__)

SEPARATOR = "/"
ESCAPE = "\\"


def _format_timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return str(value)


def _format_temporal(value: Any) -> str:
    if isinstance(value, (date, time)):
        return value.isoformat()
    return str(value)


# type name -> (to text, from text)
_KEY_TYPES: dict[str, tuple[Callable[[Any], str], Callable[[str], Any]]] = {
    "int": (lambda v: str(int(v)), int),
    "string": (str, str),
    "timestamp": (_format_timestamp, datetime.fromisoformat),
    "date": (_format_temporal, date.fromisoformat),
    "time": (_format_temporal, time.fromisoformat),
}


class IdentityCodec(ABC):
    """Converts rows to unique ids and unique ids back to bind parameters."""

    @abstractmethod
    def make_unique_id(self, row) -> str:
        """Encode the key columns of a positioned row."""
        pass

    @abstractmethod
    def bind_parameters(self, unique_id: str) -> tuple:
        """Decode a unique id into the parameters of the per-document queries."""
        pass


def escape_value(text: str) -> str:
    return text.replace(ESCAPE, ESCAPE + ESCAPE).replace(SEPARATOR, ESCAPE + SEPARATOR)


def split_unique_id(unique_id: str) -> list[str]:
    """Split on unescaped separators, undoing the escaping."""
    parts: list[str] = []
    current: list[str] = []
    chars = iter(unique_id)
    for ch in chars:
        if ch == ESCAPE:
            nxt = next(chars, None)
            if nxt is None:
                raise InvalidDocIdError(f"Dangling escape in unique id: {unique_id!r}")
            current.append(nxt)
        elif ch == SEPARATOR:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    parts.append("".join(current))
    return parts


class PrimaryKey(IdentityCodec):
    """
    Primary key description parsed from configuration.

    Example:
        >>> key = PrimaryKey("id:int, region:string")
        >>> key.names
        ['id', 'region']
    """

    def __init__(self, key_spec: str, content_columns: Optional[str] = None):
        self._names: list[str] = []
        self._types: list[str] = []

        for part in (key_spec or "").split(","):
            part = part.strip()
            if not part:
                continue
            name, _, type_name = part.partition(":")
            name = name.strip()
            type_name = (type_name.strip() or "string").lower()
            if not name:
                raise InvalidConfigurationError(f"Empty column name in primary key: {key_spec!r}")
            if type_name not in _KEY_TYPES:
                raise InvalidConfigurationError(
                    f"Unsupported primary key type {type_name!r} for column {name}; "
                    f"expected one of {', '.join(_KEY_TYPES)}"
                )
            if name in self._names:
                raise InvalidConfigurationError(f"Duplicate primary key column: {name}")
            self._names.append(name)
            self._types.append(type_name)

        if not self._names:
            raise InvalidConfigurationError("db.primaryKey needs at least one column")

        self._bind_order = self._parse_content_columns(content_columns)

    def _parse_content_columns(self, content_columns: Optional[str]) -> list[int]:
        if content_columns is None or not content_columns.strip():
            return list(range(len(self._names)))
        order = []
        for name in content_columns.split(","):
            name = name.strip()
            if not name:
                continue
            if name not in self._names:
                raise InvalidConfigurationError(
                    f"Content column {name} is not part of the primary key {self._names}"
                )
            order.append(self._names.index(name))
        return order

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def make_unique_id(self, row) -> str:
        parts = []
        for name, type_name in zip(self._names, self._types):
            value = row.value_at(name)
            if value is None:
                raise InvalidDocIdError(f"Primary key column {name} is NULL")
            to_text, _ = _KEY_TYPES[type_name]
            parts.append(escape_value(to_text(value)))
        return SEPARATOR.join(parts)

    def decode(self, unique_id: str) -> tuple:
        """Decode a unique id into typed values in key column order."""
        texts = split_unique_id(unique_id)
        if len(texts) != len(self._names):
            raise InvalidDocIdError(
                f"Unique id {unique_id!r} has {len(texts)} fields, "
                f"primary key has {len(self._names)}"
            )
        values = []
        for text, name, type_name in zip(texts, self._names, self._types):
            _, from_text = _KEY_TYPES[type_name]
            try:
                values.append(from_text(text))
            except ValueError as e:
                raise InvalidDocIdError(
                    f"Cannot parse {text!r} as {type_name} for column {name}"
                ) from e
        return tuple(values)

    def bind_parameters(self, unique_id: str) -> tuple:
        values = self.decode(unique_id)
        return tuple(values[i] for i in self._bind_order)

    def __repr__(self) -> str:
        columns = ", ".join(f"{n}:{t}" for n, t in zip(self._names, self._types))
        return f"PrimaryKey({columns})"
