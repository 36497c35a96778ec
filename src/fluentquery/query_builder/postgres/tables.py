from typing import Optional

from fluentquery.query_builder.tables import TableRegistry


def quote_identifier(identifier: str) -> str:
    """Double-quote an identifier, doubling any embedded double quote."""
    return '"' + identifier.replace('"', '""') + '"'


class PostgresTableRegistry(TableRegistry):
    """Table registry that quotes every identifier the PostgreSQL way.

    A dotted table name is treated as a schema path: each non-empty segment
    is quoted on its own, so ``public.users`` becomes ``"public"."users"``.
    """

    def transform_table_column(self, table: Optional[str], column: str) -> str:
        if not table:
            return quote_identifier(column)
        parts = [part for part in table.split(".") if part]
        quoted_table = ".".join(quote_identifier(part) for part in parts)
        return f"{quoted_table}.{quote_identifier(column)}"
