"""Common exceptions for fluentquery.

Exception Design:
    Every error raised by the package inherits from FluentQueryError and
    carries an ErrorCode plus structured details. Four kinds are exposed
    for callers to catch:

    - **ConfigurationError**: unknown table, missing upsert conflict target,
      odd JSON-set argument count
    - **UsageError**: operator outside the whitelist, self-referencing
      subquery, placeholder/parameter count mismatch
    - **UnsupportedOperationError**: capability the dialect cannot render
    - **DriverError**: anything the database driver raised, with the
      original exception kept as ``cause``
"""

from fluentquery.common.exceptions import (
    FluentQueryError,
    ConfigurationError,
    TableNotFoundError,
    UsageError,
    InvalidOperatorError,
    UnsupportedOperationError,
    DriverError,
    ErrorCode,
    # Helper functions
    configuration_error,
    table_not_found_error,
    usage_error,
    invalid_operator_error,
    unsupported_operation_error,
    query_execution_error,
    transaction_error,
)

__all__ = [
    # Base Exception and Error Codes
    "FluentQueryError",
    "ErrorCode",
    # Kinds
    "ConfigurationError",
    "TableNotFoundError",
    "UsageError",
    "InvalidOperatorError",
    "UnsupportedOperationError",
    "DriverError",
    # Helper functions
    "configuration_error",
    "table_not_found_error",
    "usage_error",
    "invalid_operator_error",
    "unsupported_operation_error",
    "query_execution_error",
    "transaction_error",
]
