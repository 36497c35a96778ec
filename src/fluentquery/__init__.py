
from fluentquery.__version__ import __version__

from fluentquery.query_builder import (
    StatementFactory,
    create_statement_factory,
    Query,
    TableRegistry,
    PostgresTableRegistry,
    BaseDialect,
    MySQLDialect,
    PostgresDialect,
    Paginator,
    PaginationContext,
    PaginationDescriptor,
)
from fluentquery.engine import SQLEngine

from fluentquery.common.exceptions import (
    FluentQueryError,
    ConfigurationError,
    TableNotFoundError,
    UsageError,
    InvalidOperatorError,
    UnsupportedOperationError,
    DriverError,
    ErrorCode,
)

from fluentquery.constants import Dialect, FetchShape, SortDirection
from fluentquery.logging import setup_logging


__all__ = [
    "__version__",

    "StatementFactory",
    "create_statement_factory",
    "Query",
    "SQLEngine",

    "TableRegistry",
    "PostgresTableRegistry",
    "BaseDialect",
    "MySQLDialect",
    "PostgresDialect",

    "Paginator",
    "PaginationContext",
    "PaginationDescriptor",

    # Exceptions (public API)
    "FluentQueryError",
    "ConfigurationError",
    "TableNotFoundError",
    "UsageError",
    "InvalidOperatorError",
    "UnsupportedOperationError",
    "DriverError",
    "ErrorCode",

    "Dialect",
    "FetchShape",
    "SortDirection",
    "setup_logging",
]
