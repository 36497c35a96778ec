"""Constants module for fluentquery.

As Layer 0 in the architecture, this module has no dependencies on other
fluentquery modules.
"""

from fluentquery.constants.sql import (
    COMPARISON_OPERATORS,
    DEFAULT_CHUNK_SIZE,
    NULL_SAFE_EQUALS,
    ClauseType,
    Dialect,
    FetchShape,
    QueryType,
    SortDirection,
)

__all__ = [
    "ClauseType",
    "Dialect",
    "FetchShape",
    "QueryType",
    "SortDirection",
    "COMPARISON_OPERATORS",
    "NULL_SAFE_EQUALS",
    "DEFAULT_CHUNK_SIZE",
]
