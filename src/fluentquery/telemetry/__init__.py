"""OpenTelemetry instruments for statement execution.

Only the API package is required; without an SDK configured by the
application every tracer and meter returned here is a no-op. Instruments
are versioned with the installed fluentquery release.
"""

from typing import Optional

from opentelemetry import metrics, trace

from fluentquery.__version__ import __version__

__all__ = [
    "INSTRUMENTATION_SCOPE",
    "get_tracer",
    "get_meter",
    "statement_counter",
]

INSTRUMENTATION_SCOPE = "fluentquery"

_statement_counter: Optional[metrics.Counter] = None


def get_tracer(name: str = INSTRUMENTATION_SCOPE, version: Optional[str] = None) -> trace.Tracer:
    return trace.get_tracer(name, version or __version__)


def get_meter(name: str = INSTRUMENTATION_SCOPE, version: Optional[str] = None) -> metrics.Meter:
    return metrics.get_meter(name, version or __version__)


def statement_counter() -> metrics.Counter:
    """Counter of statements sent to the driver.

    Created on first use so an SDK meter provider installed after import
    still receives the measurements. Recorded with ``db.system`` and
    ``db.operation`` attributes.
    """
    global _statement_counter
    if _statement_counter is None:
        _statement_counter = get_meter().create_counter(
            "fluentquery.statements",
            unit="1",
            description="SQL statements sent to the driver",
        )
    return _statement_counter
