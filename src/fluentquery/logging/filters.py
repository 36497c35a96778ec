"""Logging filters for context injection.

This module provides filters that inject context variables into log records,
so statements issued while serving one request can be correlated.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any, Dict, Optional

from fluentquery.__version__ import __version__

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
operation_var: ContextVar[Optional[str]] = ContextVar("operation", default=None)

_static_context: Dict[str, Any] = {}


class ContextFilter(logging.Filter):
    """Logging filter that adds context variables to log records.

    Static context (environment and arbitrary extras) is process wide and
    set once through ``set_logging_context``; request context lives in
    context variables.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context variables to the log record.

        Args:
            record: Log record to enhance

        Returns:
            Always True (doesn't filter out any records)
        """
        setattr(record, "request_id", request_id_var.get())
        setattr(record, "operation", operation_var.get())
        setattr(record, "sdk_name", "fluentquery")
        setattr(record, "sdk_version", __version__)

        for key, value in _static_context.items():
            if not hasattr(record, key):
                setattr(record, key, value)

        return True


def set_logging_context(
    environment: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """Replace the static context attached to every record."""
    _static_context.clear()
    if environment is not None:
        _static_context["environment"] = environment
    if extra:
        _static_context.update(extra)


def set_request_context(
    request_id: Optional[str] = None,
    operation: Optional[str] = None,
) -> None:
    """Set request context variables."""
    if request_id is not None:
        request_id_var.set(request_id)
    if operation is not None:
        operation_var.set(operation)


def clear_request_context() -> None:
    """Clear all request context variables."""
    request_id_var.set(None)
    operation_var.set(None)
