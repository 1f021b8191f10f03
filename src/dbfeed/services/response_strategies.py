"""
Response strategies: render one positioned row into a document body.

A strategy is chosen once at start-up by ``db.modeOfOperation``. The name
is first looked up among the registered (built-in) strategies; otherwise
it is read as ``<namespace>.<factory>`` and resolved through a
StrategyProvider. Either way the factory is called with the settings
under ``db.modeOfOperation.<mode>.`` and must return a ResponseStrategy.
"""

import codecs
import csv
import html
import importlib
import inspect
import io
import logging
import mimetypes
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import httpx

from dbfeed.core.config import MODE_PREFIX, FlatConfig
from dbfeed.core.errors import ContentFetchError, InvalidConfigurationError
from dbfeed.infrastructure.database import RowCursor
from dbfeed.infrastructure.feed import Response

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[Mapping[str, str]], Any]


class ResponseStrategy(ABC):
    """Writes body, content type and extras of one document."""

    @abstractmethod
    def generate_response(self, row: RowCursor, response: Response) -> None:
        """
        Render the current row of ``row`` into ``response``.

        The cursor is already positioned; strategies must not advance it.
        """
        pass


class FunctionStrategy(ResponseStrategy):
    """Adapts a plain ``(row, response)`` callable."""

    def __init__(self, func: Callable[[RowCursor, Response], None]):
        self._func = func

    def generate_response(self, row: RowCursor, response: Response) -> None:
        self._func(row, response)

    def __repr__(self) -> str:
        return f"FunctionStrategy({getattr(self._func, '__qualname__', self._func)!r})"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return str(value)


def _as_bytes(value: Any, encoding: str = "utf-8") -> bytes:
    if value is None:
        return b""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return str(value).encode(encoding)


def _required(config: Mapping[str, str], key: str, mode: str) -> str:
    value = (config.get(key) or "").strip()
    if not value:
        raise InvalidConfigurationError(f"{MODE_PREFIX}{mode}.{key} is required")
    return value


class RowToText(ResponseStrategy):
    """Whole row as one CSV line."""

    CONTENT_TYPE = "text/plain; charset=utf-8"

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "RowToText":
        return cls()

    def generate_response(self, row: RowCursor, response: Response) -> None:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow([_as_text(row.value_at(i)) for i in range(len(row.column_names))])
        response.set_content_type(self.CONTENT_TYPE)
        response.write(buffer.getvalue().encode("utf-8"))

    def __repr__(self) -> str:
        return "RowToText()"


class RowToHtml(ResponseStrategy):
    """Row as an HTML table of column names and values."""

    CONTENT_TYPE = "text/html; charset=utf-8"

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "RowToHtml":
        return cls(title_column=(config.get("titleColumn") or "").strip() or None)

    def __init__(self, title_column: Optional[str] = None):
        self._title_column = title_column

    def generate_response(self, row: RowCursor, response: Response) -> None:
        title = ""
        if self._title_column and row.has_column(self._title_column):
            title = _as_text(row.value_at(self._title_column))
        lines = [
            "<!DOCTYPE html>",
            "<html><head>",
            '<meta charset="utf-8">',
            f"<title>{html.escape(title)}</title>",
            "</head><body><table>",
        ]
        for i, name in enumerate(row.column_names):
            value = _as_text(row.value_at(i))
            lines.append(f"<tr><th>{html.escape(name)}</th><td>{html.escape(value)}</td></tr>")
        lines.append("</table></body></html>")
        response.set_content_type(self.CONTENT_TYPE)
        response.write(("\n".join(lines) + "\n").encode("utf-8"))

    def __repr__(self) -> str:
        return f"RowToHtml(title_column={self._title_column!r})"


class TextColumn(ResponseStrategy):
    """Body is the text of one column."""

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "TextColumn":
        encoding = (config.get("encoding") or "").strip() or "utf-8"
        try:
            codecs.lookup(encoding)
        except LookupError:
            raise InvalidConfigurationError(
                f"{MODE_PREFIX}textColumn.encoding names an unknown codec: {encoding!r}"
            )
        return cls(
            column=_required(config, "columnName", "textColumn"),
            content_type=(config.get("contentType") or "").strip() or "text/plain; charset=utf-8",
            encoding=encoding,
        )

    def __init__(self, column: str, content_type: str, encoding: str = "utf-8"):
        self._column = column
        self._content_type = content_type
        self._encoding = encoding

    def generate_response(self, row: RowCursor, response: Response) -> None:
        response.set_content_type(self._content_type)
        response.write(_as_bytes(row.value_at(self._column), self._encoding))

    def __repr__(self) -> str:
        return f"TextColumn(column={self._column!r}, content_type={self._content_type!r})"


class BlobColumn(ResponseStrategy):
    """Body is the raw bytes of one column."""

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "BlobColumn":
        return cls(
            column=_required(config, "columnName", "blobColumn"),
            content_type=(config.get("contentTypeOverride") or "").strip() or None,
        )

    def __init__(self, column: str, content_type: Optional[str] = None):
        self._column = column
        self._content_type = content_type

    def generate_response(self, row: RowCursor, response: Response) -> None:
        if self._content_type:
            response.set_content_type(self._content_type)
        response.write(_as_bytes(row.value_at(self._column)))

    def __repr__(self) -> str:
        return f"BlobColumn(column={self._column!r})"


class UrlAndMetadataLister(ResponseStrategy):
    """Column holds a URL; the body is fetched from it and it becomes the display URL."""

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "UrlAndMetadataLister":
        raw_timeout = (config.get("timeout") or "30").strip()
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise InvalidConfigurationError(
                f"{MODE_PREFIX}urlAndMetadataLister.timeout must be a number; got {raw_timeout!r}"
            )
        return cls(column=_required(config, "columnName", "urlAndMetadataLister"), timeout=timeout)

    def __init__(self, column: str, timeout: float = 30.0, client: Optional[httpx.Client] = None):
        self._column = column
        self._timeout = timeout
        self._client = client

    def generate_response(self, row: RowCursor, response: Response) -> None:
        url = _as_text(row.value_at(self._column)).strip()
        if not url:
            raise ContentFetchError(f"Column {self._column} holds no URL")
        response.set_display_url(url)
        try:
            if self._client is not None:
                fetched = self._client.get(url, follow_redirects=True, timeout=self._timeout)
            else:
                fetched = httpx.get(url, follow_redirects=True, timeout=self._timeout)
            fetched.raise_for_status()
        except httpx.HTTPError as e:
            raise ContentFetchError(f"Failed to fetch {url}: {e}") from e
        content_type = fetched.headers.get("content-type")
        if content_type:
            response.set_content_type(content_type)
        response.write(fetched.content)

    def __repr__(self) -> str:
        return f"UrlAndMetadataLister(column={self._column!r})"


class FilepathAndMetadataLister(ResponseStrategy):
    """Column holds a local file path; the body is the file's bytes."""

    @classmethod
    def from_config(cls, config: Mapping[str, str]) -> "FilepathAndMetadataLister":
        return cls(column=_required(config, "columnName", "filepathAndMetadataLister"))

    def __init__(self, column: str):
        self._column = column

    def generate_response(self, row: RowCursor, response: Response) -> None:
        path = Path(_as_text(row.value_at(self._column)).strip())
        try:
            data = path.read_bytes()
        except OSError as e:
            raise ContentFetchError(f"Failed to read {path}: {e}") from e
        content_type, _ = mimetypes.guess_type(path.name)
        if content_type:
            response.set_content_type(content_type)
        response.write(data)

    def __repr__(self) -> str:
        return f"FilepathAndMetadataLister(column={self._column!r})"


BUILTIN_STRATEGIES: dict[str, StrategyFactory] = {
    "rowToText": RowToText.from_config,
    "rowToHtml": RowToHtml.from_config,
    "textColumn": TextColumn.from_config,
    "blobColumn": BlobColumn.from_config,
    "urlAndMetadataLister": UrlAndMetadataLister.from_config,
    "filepathAndMetadataLister": FilepathAndMetadataLister.from_config,
}


class StrategyProvider(ABC):
    """Resolves externally named strategy factories."""

    @abstractmethod
    def resolve(self, namespace: str, name: str) -> StrategyFactory:
        """
        Find factory ``name`` in ``namespace``.

        Raises:
            InvalidConfigurationError: If it cannot be found
        """
        pass


class ImportlibStrategyProvider(StrategyProvider):
    """
    Resolves ``namespace`` as an importable module, or as a class inside
    one (``package.module.Class``), and ``name`` as an attribute of it.
    """

    def resolve(self, namespace: str, name: str) -> StrategyFactory:
        owner = self._import_namespace(namespace)
        try:
            return getattr(owner, name)
        except AttributeError:
            raise InvalidConfigurationError(f"No method {name} found for {namespace}")

    @staticmethod
    def _is_missing(error: ImportError, namespace: str) -> bool:
        """True if ``namespace`` itself (or a parent package) does not exist."""
        if not isinstance(error, ModuleNotFoundError) or not error.name:
            return False
        return namespace == error.name or namespace.startswith(error.name + ".")

    @classmethod
    def _import_namespace(cls, namespace: str) -> Any:
        try:
            return importlib.import_module(namespace)
        except ImportError as module_error:
            if not cls._is_missing(module_error, namespace):
                raise InvalidConfigurationError(
                    f"Failed to import {namespace}: {module_error}"
                ) from module_error
            parent, _, attr = namespace.rpartition(".")
            if parent:
                try:
                    module = importlib.import_module(parent)
                except ImportError as parent_error:
                    if not cls._is_missing(parent_error, parent):
                        raise InvalidConfigurationError(
                            f"Failed to import {parent}: {parent_error}"
                        ) from parent_error
                else:
                    if hasattr(module, attr):
                        return getattr(module, attr)
            raise InvalidConfigurationError(f"No module {namespace} found") from module_error


class ResponseStrategyRegistry:
    """
    Registry of named strategy factories with an external-lookup fallback.

    Example:
        >>> registry = ResponseStrategyRegistry()
        >>> registry.register("upper", lambda cfg: FunctionStrategy(render_upper))
        >>> strategy = registry.load("upper", {})
    """

    def __init__(
        self,
        provider: Optional[StrategyProvider] = None,
        include_builtins: bool = True,
    ):
        self._factories: dict[str, StrategyFactory] = (
            dict(BUILTIN_STRATEGIES) if include_builtins else {}
        )
        self._provider = provider or ImportlibStrategyProvider()

    def register(self, name: str, factory: StrategyFactory) -> "ResponseStrategyRegistry":
        """Register a factory under a short mode name."""
        if not name or not name.strip():
            raise ValueError("Strategy name must not be empty")
        if not callable(factory):
            raise ValueError(f"Strategy factory for {name} must be callable")
        self._factories[name] = factory
        return self

    @property
    def names(self) -> list[str]:
        return sorted(self._factories)

    def is_registered(self, name: str) -> bool:
        return name in self._factories

    def load(self, mode: str, config: Mapping[str, str]) -> ResponseStrategy:
        """
        Resolve a mode name into a strategy.

        Args:
            mode: Short registered name or ``<namespace>.<factory>``
            config: Settings scoped to this mode, prefix stripped

        Raises:
            InvalidConfigurationError: If the mode is blank, cannot be
                resolved, or its factory fails or returns a non-strategy
        """
        mode = (mode or "").strip()
        if not mode:
            raise InvalidConfigurationError("modeOfOperation can not be an empty string")

        logger.debug(f"about to look for {mode} in registered strategies")
        factory = self._factories.get(mode)
        if factory is None:
            logger.debug(f"did not find {mode} in registered strategies, trying it as a fully qualified name")
            namespace, sep, name = mode.rpartition(".")
            if not sep or not namespace or not name:
                raise InvalidConfigurationError(
                    f"{mode} is not a registered strategy ({', '.join(self.names)}) "
                    f"and cannot be parsed as a fully qualified name"
                )
            logger.debug(f"split {mode} into namespace {namespace} and method {name}")
            factory = self._provider.resolve(namespace, name)

        return self._invoke(mode, factory, config)

    @staticmethod
    def _invoke(mode: str, factory: Any, config: Mapping[str, str]) -> ResponseStrategy:
        if not callable(factory):
            raise InvalidConfigurationError(f"{mode} does not name a callable factory")
        try:
            inspect.signature(factory).bind(dict(config))
        except TypeError as e:
            raise InvalidConfigurationError(
                f"{mode} must accept exactly one argument, its configuration mapping: {e}"
            ) from e
        except ValueError:
            # builtins without an introspectable signature
            pass

        try:
            result = factory(dict(config))
        except InvalidConfigurationError:
            raise
        except Exception as e:
            raise InvalidConfigurationError(
                f"Unexpected exception happened in invoking {mode}: {e}"
            ) from e

        if isinstance(result, ResponseStrategy):
            strategy = result
        elif callable(result):
            strategy = FunctionStrategy(result)
        else:
            raise InvalidConfigurationError(
                f"{mode} needs to return a {ResponseStrategy.__name__}, got {type(result).__name__}"
            )
        logger.info(f"loaded response strategy: {strategy!r}")
        return strategy


def load_response_strategy(
    config: FlatConfig,
    registry: Optional[ResponseStrategyRegistry] = None,
) -> ResponseStrategy:
    """Load the strategy named by ``db.modeOfOperation``."""
    mode = (config.get_value("db.modeOfOperation") or "").strip()
    registry = registry or ResponseStrategyRegistry()
    return registry.load(mode, config.get_values_with_prefix(f"{MODE_PREFIX}{mode}."))
