"""Logging infrastructure for fluentquery.

Structured JSON logging with context tracking and OpenTelemetry trace
correlation. The package only emits records through ``get_logger``; call
``setup_logging`` from the application to install the JSON handler.
"""

from fluentquery.logging.filters import (
    ContextFilter,
    clear_request_context,
    set_logging_context,
    set_request_context,
)
from fluentquery.logging.logger import CustomJsonFormatter, get_logger, setup_logging

__all__ = [
    "get_logger",
    "setup_logging",
    "CustomJsonFormatter",
    "ContextFilter",
    "set_logging_context",
    "set_request_context",
    "clear_request_context",
]
