"""MySQL / MariaDB dialect (the default).

Statements use MySQL's native date, JSON and upsert functions. Inserted
rows are read back after the INSERT because MySQL has no RETURNING clause.
"""

from fluentquery.query_builder.mysql.dialect import MySQLDialect

__all__ = [
    "MySQLDialect"
]
