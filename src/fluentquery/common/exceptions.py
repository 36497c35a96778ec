from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standard error codes for fluentquery operations.

    Each category has a specific number range for easy identification.

    Attributes:
        CONFIG_*: Setup and configuration errors (1xxx)
        USAGE_*: Caller misuse of the fluent API (2xxx)
        UNSUPPORTED_*: Capabilities the active dialect lacks (3xxx)
        DRIVER_*: Failures reported by the database driver (4xxx)
        RESOURCE_*: Unknown tables or columns (5xxx)
    """
    # Configuration errors (1xxx)
    CONFIG_ERROR = "CONFIG_001"
    CONFIG_MISSING = "CONFIG_002"
    CONFIG_INVALID = "CONFIG_003"
    CONFLICT_TARGET_MISSING = "CONFIG_004"

    # Usage errors (2xxx)
    USAGE_ERROR = "USAGE_001"
    INVALID_OPERATOR = "USAGE_002"
    INVALID_ARGUMENT = "USAGE_003"
    PARAMETER_MISMATCH = "USAGE_004"
    SELF_REFERENCE = "USAGE_005"
    STATEMENT_FINALIZED = "USAGE_006"

    # Unsupported operations (3xxx)
    UNSUPPORTED_OPERATION = "UNSUPPORTED_001"

    # Driver errors (4xxx)
    DRIVER_ERROR = "DRIVER_001"
    QUERY_EXECUTION_ERROR = "DRIVER_002"
    TRANSACTION_ERROR = "DRIVER_003"

    # Resource errors (5xxx)
    RESOURCE_NOT_FOUND = "RESOURCE_001"
    TABLE_NOT_FOUND = "RESOURCE_002"


class FluentQueryError(Exception):
    """Base exception for all fluentquery errors.

    Error codes carry the fine-grained category; the subclasses below exist
    so callers can catch by kind (configuration, usage, unsupported, driver).

    Attributes:
        message: Error message
        error_code: Error code from ErrorCode enum
        details: Additional error details
        cause: Optional underlying exception
    """

    default_code = ErrorCode.USAGE_ERROR

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        self.cause = cause

        # Lazy import, the logging package imports nothing from here but the
        # package __init__ does.
        from fluentquery.logging import get_logger
        logger = get_logger(__name__)
        logger.error(
            message,
            extra={
                "error_code": self.error_code.value,
                "details": self.details,
            },
            exc_info=cause is not None,
        )

    def __str__(self) -> str:
        msg = f"[{self.error_code.value}] {self.message}"
        if self.cause:
            msg = f"{msg} (caused by: {type(self.cause).__name__}: {str(self.cause)})"
        return msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details,
        }


class ConfigurationError(FluentQueryError, ValueError):
    """Invalid setup: unknown table, missing conflict target, bad argument shape."""

    default_code = ErrorCode.CONFIG_ERROR


class TableNotFoundError(ConfigurationError):
    default_code = ErrorCode.TABLE_NOT_FOUND


class UsageError(FluentQueryError, ValueError):
    """The fluent API was called in a way that can never produce valid SQL."""

    default_code = ErrorCode.USAGE_ERROR


class InvalidOperatorError(UsageError):
    default_code = ErrorCode.INVALID_OPERATOR


class UnsupportedOperationError(FluentQueryError, NotImplementedError):
    """The active dialect has no rendering for the requested capability."""

    default_code = ErrorCode.UNSUPPORTED_OPERATION


class DriverError(FluentQueryError):
    """Wraps an exception raised by the database driver."""

    default_code = ErrorCode.DRIVER_ERROR


def _truncate(query: str, limit: int = 500) -> str:
    return query[:limit] + "..." if len(query) > limit else query


# Helper functions for common error scenarios
def configuration_error(
    message: str,
    config_key: Optional[str] = None,
    **kwargs
) -> ConfigurationError:
    """Create a configuration error.

    Args:
        message: Error message
        config_key: Configuration key or argument that caused the error
        **kwargs: Additional error details

    Returns:
        ConfigurationError with CONFIG_ERROR code unless overridden
    """
    details = kwargs.pop('details', {})
    if config_key:
        details["config_key"] = config_key

    return ConfigurationError(message=message, details=details, **kwargs)


def table_not_found_error(table: str, **kwargs) -> TableNotFoundError:
    details = kwargs.pop('details', {})
    details["table"] = table
    return TableNotFoundError(
        message=f"Table '{table}' is not registered",
        details=details,
        **kwargs
    )


def usage_error(
    message: str,
    argument: Optional[str] = None,
    value: Any = None,
    **kwargs
) -> UsageError:
    """Create a usage error.

    Args:
        message: Error message
        argument: Name of the offending argument
        value: Offending value
        **kwargs: Additional error details

    Returns:
        UsageError with USAGE_ERROR code unless overridden
    """
    details = kwargs.pop('details', {})
    if argument:
        details["argument"] = argument
    if value is not None:
        details["value"] = str(value)

    return UsageError(message=message, details=details, **kwargs)


def invalid_operator_error(operator: str, allowed) -> InvalidOperatorError:
    return InvalidOperatorError(
        message=f"Invalid comparison operator '{operator}'",
        details={"operator": operator, "allowed": sorted(allowed)},
    )


def unsupported_operation_error(
    operation: str,
    dialect: str,
    **kwargs
) -> UnsupportedOperationError:
    """Create an unsupported operation error for the given dialect."""
    details = kwargs.pop('details', {})
    details["operation"] = operation
    details["dialect"] = dialect

    return UnsupportedOperationError(
        message=f"{operation} is not supported by the {dialect} dialect",
        details=details,
        **kwargs
    )


def query_execution_error(
    query: str,
    original_error: Exception,
    **kwargs
) -> DriverError:
    """Create a query execution error.

    Args:
        query: SQL query that failed
        original_error: The underlying exception
        **kwargs: Additional error details

    Returns:
        DriverError with QUERY_EXECUTION_ERROR code
    """
    details = kwargs.pop('details', {})
    details["query"] = _truncate(query)

    return DriverError(
        message=f"Query execution failed: {str(original_error)}",
        error_code=ErrorCode.QUERY_EXECUTION_ERROR,
        details=details,
        cause=original_error,
        **{k: v for k, v in kwargs.items() if k != 'cause'}
    )


def transaction_error(
    operation: str,
    original_error: Exception,
) -> DriverError:
    return DriverError(
        message=f"Transaction {operation} failed: {str(original_error)}",
        error_code=ErrorCode.TRANSACTION_ERROR,
        details={"operation": operation},
        cause=original_error,
    )
