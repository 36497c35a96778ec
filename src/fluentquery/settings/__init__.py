"""Settings module providing configuration management for fluentquery.

Built on Pydantic Settings and organized by concern:

    1. Base Layer (base.py):
       - FluentQueryBaseSettings: shared model config (.env, case insensitive)

    2. Domain Settings:
       - database.py: URL, dialect, table prefix and SQLAlchemy pool options
       - query.py: batch insert chunk size and pagination defaults
       - log.py: log level and output format

    3. Main Aggregator (main.py):
       - get_settings(): Singleton factory function

Environment Variable Naming:
    - FLUENTQUERY_DB_URL, FLUENTQUERY_DB_DIALECT, FLUENTQUERY_DB_TABLE_PREFIX
    - FLUENTQUERY_CHUNK_SIZE, FLUENTQUERY_PER_PAGE, FLUENTQUERY_PAGE_NAME
    - FLUENTQUERY_LOG_LEVEL, FLUENTQUERY_LOG_JSON

Quick Start:
    >>> from fluentquery.settings import get_settings
    >>> settings = get_settings()
    >>> settings.query.chunk_size
    1000
"""

from .main import _Settings, get_settings, _reload_settings
from .base import FluentQueryBaseSettings
from .database import DatabaseSettings
from .log import LoggingSettings
from .query import QuerySettings

__all__ = [
    "get_settings",
    "DatabaseSettings",
    "QuerySettings",
    "LoggingSettings",
]
