"""PostgreSQL dialect.

Example:
    >>> from fluentquery.query_builder.postgres import PostgresDialect
    >>> dialect = PostgresDialect()
    >>> tables = dialect.create_table_registry()
    >>> tables.add_table("users", ["id", "username"]).pick_table("users", ["id"])
    '"users"."id"'
"""

from fluentquery.query_builder.postgres.dialect import (
    PostgresDialect,
    convert_date_format,
    json_path_to_pg_array,
)
from fluentquery.query_builder.postgres.tables import PostgresTableRegistry, quote_identifier

__all__ = [
    "PostgresDialect",
    "PostgresTableRegistry",
    "convert_date_format",
    "json_path_to_pg_array",
    "quote_identifier",
]
