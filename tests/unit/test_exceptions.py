"""Unit tests for the exception hierarchy and helpers."""

import pytest

from fluentquery.common.exceptions import (
    ConfigurationError,
    DriverError,
    ErrorCode,
    FluentQueryError,
    InvalidOperatorError,
    TableNotFoundError,
    UnsupportedOperationError,
    UsageError,
    configuration_error,
    query_execution_error,
    table_not_found_error,
    transaction_error,
    unsupported_operation_error,
    usage_error,
)


class TestHierarchy:

    @pytest.mark.parametrize(
        "error_class, bases",
        [
            (ConfigurationError, (FluentQueryError, ValueError)),
            (TableNotFoundError, (ConfigurationError,)),
            (UsageError, (FluentQueryError, ValueError)),
            (InvalidOperatorError, (UsageError,)),
            (UnsupportedOperationError, (FluentQueryError, NotImplementedError)),
            (DriverError, (FluentQueryError,)),
        ],
    )
    def test_bases(self, error_class, bases):
        for base in bases:
            assert issubclass(error_class, base)

    def test_default_codes(self):
        assert UsageError("x").error_code is ErrorCode.USAGE_ERROR
        assert TableNotFoundError("x").error_code is ErrorCode.TABLE_NOT_FOUND
        assert InvalidOperatorError("x").error_code is ErrorCode.INVALID_OPERATOR


class TestHelpers:

    def test_configuration_error(self):
        error = configuration_error("bad", config_key="dialect", error_code=ErrorCode.CONFIG_INVALID)
        assert error.error_code is ErrorCode.CONFIG_INVALID
        assert error.details == {"config_key": "dialect"}
        assert str(error) == "[CONFIG_003] bad"

    def test_usage_error_records_argument(self):
        error = usage_error("bad limit", argument="limit", value=-1)
        assert error.details == {"argument": "limit", "value": "-1"}

    def test_table_not_found(self):
        error = table_not_found_error("posts")
        assert error.details["table"] == "posts"
        assert "posts" in error.message

    def test_unsupported_operation(self):
        error = unsupported_operation_error("json_array_append", "postgres", details={"hint": "use raw()"})
        assert error.details == {"hint": "use raw()", "operation": "json_array_append", "dialect": "postgres"}

    def test_driver_errors_keep_cause(self):
        cause = RuntimeError("connection reset")

        error = query_execution_error("SELECT 1", cause)
        assert error.cause is cause
        assert error.error_code is ErrorCode.QUERY_EXECUTION_ERROR
        assert "caused by: RuntimeError: connection reset" in str(error)

        error = transaction_error("commit", cause)
        assert error.error_code is ErrorCode.TRANSACTION_ERROR
        assert error.details == {"operation": "commit"}

    def test_long_queries_are_truncated_in_details(self):
        error = query_execution_error("SELECT " + "x" * 1000, RuntimeError("boom"))
        assert len(error.details["query"]) == 503

    def test_to_dict(self):
        payload = usage_error("bad", argument="limit").to_dict()
        assert payload == {
            "type": "UsageError",
            "message": "bad",
            "error_code": "USAGE_001",
            "error_name": "USAGE_ERROR",
            "details": {"argument": "limit"},
        }
