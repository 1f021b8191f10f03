"""
Centralized services container module for dbfeed.

Wires the database, identity codec, scanners, resolvers and response
strategy from one validated configuration.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dbfeed.core.config import AdaptorConfig, load_config
from dbfeed.core.metadata_columns import MetadataColumns
from dbfeed.core.models import Watermark
from dbfeed.core.primary_key import PrimaryKey
from dbfeed.infrastructure.database import Database
from dbfeed.services.acl_resolver import AclResolver
from dbfeed.services.adaptor import DatabaseAdaptor
from dbfeed.services.content_resolver import DocumentContentResolver
from dbfeed.services.response_strategies import (
    ResponseStrategy,
    ResponseStrategyRegistry,
    load_response_strategy,
)
from dbfeed.services.scanners import FullScanner, IncrementalScanner

logger = logging.getLogger(__name__)


@dataclass
class ServicesContainer:
    """
    Container holding the shared service instances.

    Attributes:
        config: Validated configuration
        database: Connection factory for the source database
        primary_key: Identity codec for document ids
        strategy: Response strategy bound for the process lifetime
        adaptor: Facade over scanners and content resolution
    """

    config: AdaptorConfig
    database: Database
    primary_key: PrimaryKey
    strategy: ResponseStrategy
    adaptor: DatabaseAdaptor


def create_adaptor_services(
    config: AdaptorConfig,
    registry: Optional[ResponseStrategyRegistry] = None,
    watermark: Optional[Watermark] = None,
) -> ServicesContainer:
    """
    Build all services from a validated configuration.

    Args:
        config: Validated configuration
        registry: Strategy registry; defaults to the built-in strategies
            with importlib lookup of fully qualified names
        watermark: Starting watermark for the incremental scanner

    Raises:
        InvalidConfigurationError: If any part of the configuration cannot
            be resolved
    """
    config.log_summary()

    database = Database(
        url=config.db.url,
        driver_module=config.db.driver_module,
        user=config.db.user,
        password=config.db.password,
    )
    primary_key = PrimaryKey(config.db.primary_key, config.db.single_doc_content_columns)
    metadata_columns = MetadataColumns(config.db.metadata_columns)
    strategy = load_response_strategy(config.raw, registry)

    max_batch_size = config.feed.max_urls
    full_scanner = FullScanner(database, primary_key, config.db.every_doc_id_sql, max_batch_size)

    incremental_scanner = None
    if config.db.update_sql:
        incremental_scanner = IncrementalScanner(
            database, primary_key, config.db.update_sql, max_batch_size, watermark=watermark
        )

    acl_resolver = None
    if config.db.acl_sql:
        acl_resolver = AclResolver(
            database,
            primary_key,
            config.db.acl_sql,
            delimiter=config.db.acl_principal_delimiter,
            row_policy=config.db.acl_row_policy,
        )

    content_resolver = DocumentContentResolver(
        database,
        primary_key,
        config.db.single_doc_content_sql,
        metadata_columns,
        strategy,
        acl_resolver=acl_resolver,
        empty_acl_policy=config.db.empty_acl_policy,
    )

    adaptor = DatabaseAdaptor(full_scanner, content_resolver, incremental_scanner)
    return ServicesContainer(
        config=config,
        database=database,
        primary_key=primary_key,
        strategy=strategy,
        adaptor=adaptor,
    )


def create_services(
    config_path: Optional[Path | str] = None,
    registry: Optional[ResponseStrategyRegistry] = None,
) -> ServicesContainer:
    """
    Load configuration and create all services.

    Args:
        config_path: Optional path to a YAML/JSON config file. If None,
            uses environment variables and defaults.
        registry: Optional strategy registry

    Raises:
        InvalidConfigurationError: If the configuration is invalid
    """
    return create_adaptor_services(load_config(config_path), registry=registry)
