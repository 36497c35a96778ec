"""Fluent SQL statement builder.

Statements are assembled by a Query, spelled for a database by a dialect
and executed through the SQLEngine. Nothing here parses SQL; fragments
are concatenated in call order with their parameters bound positionally.

Architecture:
    - tables.py: TableRegistry, registered tables, prefix and quoting
    - base.py: BaseDialect, the capability set every dialect implements
    - mysql/: MySQLDialect (the default)
    - postgres/: PostgresDialect and PostgresTableRegistry
    - clauses.py: clause transition table (WHERE vs AND, ORDER BY vs ",")
    - query.py: Query, the fluent surface and execution methods
    - pagination.py: Paginator and the page descriptor models
    - factory.py: StatementFactory, the source of fresh queries

Design Principles:
    1. **Values are always bound**: only identifiers and keywords are
       concatenated; every value travels as a ``?`` parameter
    2. **Whitelisted operators**: comparison operators outside the
       whitelist are rejected before any SQL is appended
    3. **One statement per Query**: fresh queries come from the factory,
       never from copying a used one

Example:
    >>> from sqlalchemy import create_engine
    >>> from fluentquery.query_builder import StatementFactory
    >>> factory = StatementFactory(create_engine("sqlite://"), dialect="postgres")
    >>> q = factory.new_query().select("*").from_("users").where_like("name", "ali")
    >>> q.sql
    'SELECT * FROM users WHERE name LIKE (? || ? || ?)'
"""

from fluentquery.query_builder.base import BaseDialect, Fragment
from fluentquery.query_builder.clauses import CLAUSE_CONNECTORS, connector_for
from fluentquery.query_builder.factory import (
    DIALECTS,
    StatementFactory,
    create_statement_factory,
    get_dialect,
)
from fluentquery.query_builder.mysql import MySQLDialect
from fluentquery.query_builder.pagination import (
    PageLink,
    PaginationContext,
    PaginationDescriptor,
    Paginator,
)
from fluentquery.query_builder.postgres import PostgresDialect, PostgresTableRegistry
from fluentquery.query_builder.query import Query
from fluentquery.query_builder.tables import TableRegistry

__all__ = [
    "BaseDialect",
    "Fragment",
    "MySQLDialect",
    "PostgresDialect",
    "DIALECTS",
    "get_dialect",
    "TableRegistry",
    "PostgresTableRegistry",
    "Query",
    "StatementFactory",
    "create_statement_factory",
    "CLAUSE_CONNECTORS",
    "connector_for",
    "Paginator",
    "PaginationContext",
    "PaginationDescriptor",
    "PageLink",
]
