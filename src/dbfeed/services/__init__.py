"""
Service Layer - Batching, scanners, resolvers, response strategies and ServicesContainer.
"""

from dbfeed.services.acl_resolver import AclResolver, split_principals
from dbfeed.services.adaptor import DatabaseAdaptor, DocumentResult
from dbfeed.services.batching import BatchAssembler
from dbfeed.services.container import (
    ServicesContainer,
    create_adaptor_services,
    create_services,
)
from dbfeed.services.content_resolver import DocumentContentResolver
from dbfeed.services.response_strategies import (
    BUILTIN_STRATEGIES,
    FunctionStrategy,
    ImportlibStrategyProvider,
    ResponseStrategy,
    ResponseStrategyRegistry,
    StrategyProvider,
    load_response_strategy,
)
from dbfeed.services.scanners import FullScanner, IncrementalScanner

__all__ = [
    # Container and factory
    "ServicesContainer",
    "create_services",
    "create_adaptor_services",
    # Services
    "BatchAssembler",
    "FullScanner",
    "IncrementalScanner",
    "AclResolver",
    "split_principals",
    "DocumentContentResolver",
    "DatabaseAdaptor",
    "DocumentResult",
    # Response strategies
    "ResponseStrategy",
    "FunctionStrategy",
    "ResponseStrategyRegistry",
    "StrategyProvider",
    "ImportlibStrategyProvider",
    "BUILTIN_STRATEGIES",
    "load_response_strategy",
]
