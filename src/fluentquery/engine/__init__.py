"""Driver boundary.

SQLEngine executes ``?``-marked statements on a SQLAlchemy connection;
the placeholders module rewrites markers for the driver's paramstyle and
splits scripts.
"""

from fluentquery.engine.base import ExecutionSummary, SQLEngine
from fluentquery.engine.placeholders import (
    convert_placeholders,
    count_placeholders,
    split_statements,
    translate_numbered_placeholders,
)

__all__ = [
    "SQLEngine",
    "ExecutionSummary",
    "convert_placeholders",
    "count_placeholders",
    "split_statements",
    "translate_numbered_placeholders",
]
