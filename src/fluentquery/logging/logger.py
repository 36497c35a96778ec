"""Core logging setup and configuration.

Statements are logged as structured JSON with context propagation and
OpenTelemetry correlation. Configuration stays declarative via
``logging.config.dictConfig``.
"""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from opentelemetry import trace


def _build_reserved_keys() -> Set[str]:
    """Collect standard ``LogRecord`` attributes to avoid duplicating them."""
    template = logging.LogRecord(
        name="fluentquery.reserved",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg="",
        args=(),
        exc_info=None,
    )
    reserved = set(template.__dict__.keys())
    reserved.update({"asctime", "message"})
    return reserved


_RESERVED_LOG_RECORD_KEYS = _build_reserved_keys()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class CustomJsonFormatter(logging.Formatter):
    """JSON formatter that enriches log entries with context and trace data."""

    def format(self, record: logging.LogRecord) -> str:
        log_record: Dict[str, Any] = {}

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_RECORD_KEYS and key not in log_record:
                log_record[key] = value

        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["message"] = record.getMessage()

        trace_id, span_id = _current_trace_ids()
        if trace_id:
            log_record["trace_id"] = trace_id
            log_record["span_id"] = span_id

        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=str)


def _current_trace_ids() -> tuple[Optional[str], Optional[str]]:
    context = trace.get_current_span().get_span_context()
    if not context.is_valid:
        return None, None
    return format(context.trace_id, "032x"), format(context.span_id, "016x")


def setup_logging(
    level: Optional[str] = None,
    json_output: Optional[bool] = None,
    logger_name: str = "",
) -> None:
    """Configure structured logging backed by ``logging.config.dictConfig``.

    Args:
        level: Base log level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            ``FLUENTQUERY_LOG_LEVEL`` when omitted.
        json_output: Emit JSON lines; plain text when False.
            ``FLUENTQUERY_LOG_JSON`` when omitted.
        logger_name: Logger to attach the handler to, the root logger by default.
    """
    if level is None or json_output is None:
        from fluentquery.settings import get_settings

        log_settings = get_settings().logging
        level = level or log_settings.log_level
        json_output = log_settings.log_json if json_output is None else json_output

    handler: Dict[str, Any] = {
        "class": "logging.StreamHandler",
        "level": level.upper(),
        "formatter": "fq_json" if json_output else "fq_plain",
        "filters": ["fq_context"],
        "stream": "ext://sys.stdout",
    }
    target = {"level": level.upper(), "handlers": ["console"]}

    config_dict: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "fq_json": {
                "()": "fluentquery.logging.logger.CustomJsonFormatter",
            },
            "fq_plain": {
                "format": "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s",
            },
        },
        "filters": {
            "fq_context": {
                "()": "fluentquery.logging.filters.ContextFilter",
            }
        },
        "handlers": {"console": handler},
    }
    if logger_name:
        config_dict["loggers"] = {logger_name: dict(target, propagate=False)}
    else:
        config_dict["root"] = target

    logging.config.dictConfig(config_dict)
