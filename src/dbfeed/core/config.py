"""
Configuration module for dbfeed.

Supports loading from YAML/JSON files with environment variable overrides.
Default values are loaded from defaults.yaml for maintainability.

Configuration is held as a flat, string-keyed mapping (``FlatConfig``) so
that per-mode settings can be scoped with a key prefix; ``AdaptorConfig``
is the validated, typed view used to wire the services.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from dbfeed.core.errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

# Path to the default configuration file
_DEFAULTS_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"

# Cache for default values
_defaults_cache: dict[str, str] | None = None

MODE_PREFIX = "db.modeOfOperation."

REQUIRED_KEYS = (
    "db.url",
    "db.primaryKey",
    "db.everyDocIdSql",
    "db.singleDocContentSql",
    "db.modeOfOperation",
)


def _load_defaults() -> dict[str, str]:
    """Load default configuration values from defaults.yaml."""
    global _defaults_cache

    if _defaults_cache is not None:
        return _defaults_cache

    if not _DEFAULTS_CONFIG_PATH.exists():
        logger.warning(f"Defaults config not found: {_DEFAULTS_CONFIG_PATH}")
        _defaults_cache = {}
        return _defaults_cache

    try:
        content = _DEFAULTS_CONFIG_PATH.read_text(encoding="utf-8")
        _defaults_cache = flatten(yaml.safe_load(content) or {})
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse defaults config: {e}")
        _defaults_cache = {}

    return _defaults_cache


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def flatten(data: Mapping[str, Any], prefix: str = "") -> dict[str, str]:
    """
    Flatten nested mappings into dotted string keys with string values.

    ``{"db": {"url": "x"}}`` and ``{"db.url": "x"}`` both give
    ``{"db.url": "x"}``.
    """
    flat: dict[str, str] = {}
    for key, value in data.items():
        full_key = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(flatten(value, prefix=f"{full_key}."))
        else:
            flat[full_key] = _to_text(value)
    return flat


class FlatConfig:
    """
    Flat string-keyed configuration with prefix queries.

    Example:
        >>> cfg = FlatConfig({"db.modeOfOperation.textColumn.columnName": "body"})
        >>> cfg.get_values_with_prefix("db.modeOfOperation.textColumn.")
        {'columnName': 'body'}
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None, load_defaults: bool = True):
        self._values: dict[str, str] = dict(_load_defaults()) if load_defaults else {}
        if values:
            self._values.update({k: _to_text(v) for k, v in values.items()})

    @classmethod
    def from_file(cls, path: Path | str) -> "FlatConfig":
        """
        Load configuration from a YAML or JSON file.

        Raises:
            FileNotFoundError: If the config file doesn't exist
            ValueError: If the file format is unsupported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        content = path.read_text(encoding="utf-8")

        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content) or {}
        elif path.suffix == ".json":
            data = json.loads(content) if content.strip() else {}
        else:
            raise ValueError(f"Unsupported config file format: {path.suffix}")

        if not isinstance(data, Mapping):
            raise InvalidConfigurationError(
                f"Config file {path} must contain a mapping, got {type(data).__name__}"
            )
        return cls(flatten(data))

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        return self._values.get(key, default)

    def set_value(self, key: str, value: Any) -> None:
        self._values[key] = _to_text(value)

    def get_values_with_prefix(self, prefix: str) -> dict[str, str]:
        """Return every key starting with prefix, with the prefix stripped."""
        return {
            key[len(prefix):]: value
            for key, value in self._values.items()
            if key.startswith(prefix) and len(key) > len(prefix)
        }

    def apply_env_overrides(self) -> "FlatConfig":
        """
        Apply environment variable overrides to the configuration.

        Environment variables follow the pattern: DBFEED_<SECTION>_<KEY>
        Examples:
            - DBFEED_DB_URL
            - DBFEED_FEED_MAX_URLS
            - DBFEED_LOG_LEVEL

        Returns:
            Self with environment overrides applied
        """
        env_mappings = {
            "DBFEED_DB_URL": "db.url",
            "DBFEED_DB_USER": "db.user",
            "DBFEED_DB_PASSWORD": "db.password",
            "DBFEED_DB_DRIVER_MODULE": "db.driverModule",
            "DBFEED_FEED_MAX_URLS": "feed.maxUrls",
            "DBFEED_LOG_LEVEL": "log.level",
        }

        for env_var, key in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                self._values[key] = value

        return self

    def to_dict(self) -> dict[str, str]:
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values


def _is_blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""


class AclRowPolicy(Enum):
    """How many rows of the ACL query contribute principals."""

    FIRST_ROW = "first_row"
    ALL_ROWS = "all_rows"


class EmptyAclPolicy(Enum):
    """What a document gets when the ACL query returns no rows."""

    PUBLIC = "public"
    RESTRICTED = "restricted"


def _parse_enum(enum_cls, key: str, value: Optional[str]):
    try:
        return enum_cls((value or "").strip().lower())
    except ValueError:
        choices = ", ".join(member.value for member in enum_cls)
        raise InvalidConfigurationError(f"{key} must be one of: {choices}; got {value!r}")


@dataclass
class FeedConfig:
    """Configuration for batches pushed to the document sink."""

    max_urls: int = 5000


@dataclass
class DatabaseConfig:
    """Configuration for the relational source and its queries."""

    url: str
    primary_key: str
    every_doc_id_sql: str
    single_doc_content_sql: str
    mode_of_operation: str
    driver_module: str = "sqlite3"
    user: str = ""
    password: str = field(default="", repr=False)
    single_doc_content_columns: str = ""
    metadata_columns: str = ""
    update_sql: Optional[str] = None
    acl_sql: Optional[str] = None
    acl_principal_delimiter: str = ","
    acl_row_policy: AclRowPolicy = AclRowPolicy.FIRST_ROW
    empty_acl_policy: EmptyAclPolicy = EmptyAclPolicy.PUBLIC


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    format: str = "%(name)s: %(message)s"


@dataclass
class AdaptorConfig:
    """Main, validated configuration for dbfeed."""

    feed: FeedConfig
    db: DatabaseConfig
    logging: LoggingConfig
    raw: FlatConfig

    @classmethod
    def from_flat(cls, config: FlatConfig) -> "AdaptorConfig":
        """
        Validate a flat configuration and build the typed view.

        Raises:
            InvalidConfigurationError: On a missing required key, a
                non-positive or non-integer feed.maxUrls, or an unknown
                policy name.
        """
        missing = [key for key in REQUIRED_KEYS if _is_blank(config.get_value(key))]
        if missing:
            raise InvalidConfigurationError(
                f"Missing required configuration: {', '.join(missing)}"
            )

        raw_max = config.get_value("feed.maxUrls", "")
        try:
            max_urls = int(raw_max.strip())
        except (AttributeError, ValueError):
            raise InvalidConfigurationError(f"feed.maxUrls must be an integer; got {raw_max!r}")
        if max_urls <= 0:
            raise InvalidConfigurationError("feed.maxUrls needs to be positive")

        update_sql = config.get_value("db.updateSql")
        acl_sql = config.get_value("db.aclSql")

        db = DatabaseConfig(
            url=config.get_value("db.url").strip(),
            primary_key=config.get_value("db.primaryKey"),
            every_doc_id_sql=config.get_value("db.everyDocIdSql"),
            single_doc_content_sql=config.get_value("db.singleDocContentSql"),
            mode_of_operation=config.get_value("db.modeOfOperation").strip(),
            driver_module=config.get_value("db.driverModule", "sqlite3").strip(),
            user=config.get_value("db.user", ""),
            password=config.get_value("db.password", ""),
            single_doc_content_columns=config.get_value("db.singleDocContentColumns", ""),
            metadata_columns=config.get_value("db.metadataColumns", ""),
            update_sql=None if _is_blank(update_sql) else update_sql,
            acl_sql=None if _is_blank(acl_sql) else acl_sql,
            acl_principal_delimiter=config.get_value("db.aclPrincipalDelimiter", ","),
            acl_row_policy=_parse_enum(
                AclRowPolicy, "db.aclRowPolicy", config.get_value("db.aclRowPolicy")
            ),
            empty_acl_policy=_parse_enum(
                EmptyAclPolicy, "db.emptyAclPolicy", config.get_value("db.emptyAclPolicy")
            ),
        )

        log_cfg = LoggingConfig(
            level=config.get_value("log.level", "INFO").upper(),
            format=config.get_value("log.format", LoggingConfig.format),
        )

        return cls(feed=FeedConfig(max_urls=max_urls), db=db, logging=log_cfg, raw=config)

    def mode_config(self) -> dict[str, str]:
        """Settings scoped to the configured mode of operation."""
        return self.raw.get_values_with_prefix(f"{MODE_PREFIX}{self.db.mode_of_operation}.")

    def log_summary(self) -> None:
        """Log the loaded configuration; the password is never logged."""
        logger.info(f"db driver module: {self.db.driver_module}")
        logger.info(f"db: {self.db.url}")
        logger.info(f"db user: {self.db.user}")
        logger.info(f"primary key: {self.db.primary_key}")
        logger.info(f"every doc id sql: {self.db.every_doc_id_sql}")
        logger.info(f"single doc content sql: {self.db.single_doc_content_sql}")
        logger.info(f"metadata columns: {self.db.metadata_columns}")
        logger.info(f"mode of operation: {self.db.mode_of_operation}")
        logger.info(f"max ids per feed file: {self.feed.max_urls}")
        if self.db.update_sql:
            logger.info(f"update sql: {self.db.update_sql}")
        if self.db.acl_sql:
            logger.info(
                f"acl sql: {self.db.acl_sql} "
                f"(rows={self.db.acl_row_policy.value}, empty={self.db.empty_acl_policy.value})"
            )


def load_config(config_path: Optional[Path | str] = None, apply_env: bool = True) -> AdaptorConfig:
    """
    Load and validate configuration with optional environment overrides.

    Args:
        config_path: Optional path to config file. If None, uses defaults
            and the environment only.
        apply_env: Whether to apply environment variable overrides.

    Returns:
        Validated AdaptorConfig

    Raises:
        InvalidConfigurationError: If the configuration is invalid
    """
    if config_path:
        flat = FlatConfig.from_file(config_path)
    else:
        flat = FlatConfig()

    if apply_env:
        flat.apply_env_overrides()

    return AdaptorConfig.from_flat(flat)
