"""Statement Factory.

The factory holds everything a statement shares with its siblings: the
engine (and therefore the connection), the dialect and the table
registry. Every ``new_query()`` call returns an empty Query carrying only
that shared configuration, so concurrent callers never see each other's
accumulated SQL or parameters.
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, Optional, Type, Union

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine

from fluentquery.common.exceptions import ErrorCode, configuration_error
from fluentquery.constants.sql import Dialect, FetchShape
from fluentquery.engine.base import SQLEngine
from fluentquery.logging import get_logger
from fluentquery.query_builder.base import BaseDialect
from fluentquery.query_builder.mysql.dialect import MySQLDialect
from fluentquery.query_builder.postgres.dialect import PostgresDialect
from fluentquery.query_builder.query import Query
from fluentquery.query_builder.tables import TableRegistry

if TYPE_CHECKING:
    from fluentquery.settings.main import _Settings

logger = get_logger(__name__)


DIALECTS: Dict[Dialect, Type[BaseDialect]] = {
    Dialect.MYSQL: MySQLDialect,
    Dialect.POSTGRES: PostgresDialect,
}


def get_dialect(dialect: Union[Dialect, str, BaseDialect, None] = None) -> BaseDialect:
    """Resolve a dialect instance from an enum value, its name or an instance.

    Raises:
        ConfigurationError: If the name is not a registered dialect
    """
    if isinstance(dialect, BaseDialect):
        return dialect
    if dialect is None:
        return MySQLDialect()
    try:
        key = Dialect(str(getattr(dialect, "value", dialect)).lower())
    except ValueError:
        raise configuration_error(
            f"Unsupported dialect '{dialect}'. Supported: {', '.join(d.value for d in DIALECTS)}",
            config_key="dialect",
            error_code=ErrorCode.CONFIG_INVALID,
        )
    return DIALECTS[key]()


class StatementFactory:
    """Creates queries that share one engine, dialect and table registry.

    Example:
        >>> from sqlalchemy import create_engine
        >>> factory = StatementFactory(create_engine("sqlite://"), dialect="postgres")
        >>> factory.tables.add_table("users", ["id", "username"])
        >>> q = factory.new_query()
        >>> q.select(factory.tables.pick_table("users", ["username"])).from_("users").sql
        'SELECT "users"."username" FROM users'
    """

    def __init__(
        self,
        bind: Union[Engine, Connection, SQLEngine],
        tables: Optional[TableRegistry] = None,
        dialect: Union[Dialect, str, BaseDialect, None] = None,
        *,
        chunk_size: Optional[int] = None,
        fetch_shape: Optional[Union[FetchShape, str]] = None,
        per_page: Optional[int] = None,
        page_name: Optional[str] = None,
    ):
        """Initialize the factory.

        Args:
            bind: SQLAlchemy Engine or Connection, or a ready SQLEngine
            tables: Table registry; defaults to an empty one matching the dialect
            dialect: Dialect enum, name or instance; MySQL when omitted
            chunk_size: Rows per INSERT statement, settings default when omitted
            fetch_shape: Default row shape, settings default when omitted
            per_page: Default page size for simple_paginate
            page_name: Query string parameter carrying the page number
        """
        from fluentquery.settings import get_settings

        query_settings = get_settings().query

        self.dialect = get_dialect(dialect)
        self.tables = tables if tables is not None else self.dialect.create_table_registry()
        if isinstance(bind, SQLEngine):
            self.engine = bind
            self.engine.backslash_escapes = self.dialect.backslash_escapes
        else:
            self.engine = SQLEngine(
                bind,
                max_logged_statement_length=query_settings.max_logged_statement_length,
                backslash_escapes=self.dialect.backslash_escapes,
            )
        self.chunk_size = chunk_size or query_settings.chunk_size
        self.fetch_shape = FetchShape(fetch_shape or query_settings.fetch_shape)
        self.per_page = per_page or query_settings.per_page
        self.page_name = page_name or query_settings.page_name

        logger.debug(
            "Statement factory created",
            extra={
                "dialect": self.dialect.name.value,
                "table_registry": type(self.tables).__name__,
                "chunk_size": self.chunk_size,
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional["_Settings"] = None,
        tables: Optional[TableRegistry] = None,
    ) -> "StatementFactory":
        """Build a factory, and its SQLAlchemy engine, from settings.

        Raises:
            ConfigurationError: If no database URL is configured
        """
        if settings is None:
            from fluentquery.settings import get_settings
            settings = get_settings()

        database = settings.database
        if not database.is_configured:
            raise configuration_error(
                "No database URL configured; set FLUENTQUERY_DB_URL",
                config_key="database.url",
                error_code=ErrorCode.CONFIG_MISSING,
            )

        dialect = get_dialect(database.dialect)
        if tables is None:
            tables = dialect.create_table_registry(database.table_prefix)
        elif database.table_prefix and not tables.table_prefix:
            tables.set_table_prefix(database.table_prefix)

        engine = create_engine(database.url.get_secret_value(), **database.engine_options())
        logger.info(
            "Created SQLAlchemy engine",
            extra={"dialect": dialect.name.value, "db.system": engine.dialect.name},
        )

        return cls(
            engine,
            tables,
            dialect,
            chunk_size=settings.query.chunk_size,
            fetch_shape=settings.query.fetch_shape,
            per_page=settings.query.per_page,
            page_name=settings.query.page_name,
        )

    def new_query(self) -> Query:
        """An empty query sharing this factory's engine, dialect and tables."""
        return Query(self)

    def begin(self) -> None:
        self.engine.begin()

    def commit(self) -> None:
        self.engine.commit()

    def rollback(self) -> None:
        self.engine.rollback()

    def in_transaction(self) -> bool:
        return self.engine.in_transaction()

    @contextmanager
    def transaction(self) -> Iterator["StatementFactory"]:
        """Commit on success, roll back and re-raise on failure.

        Example:
            >>> with factory.transaction():
            ...     factory.new_query().update("users").set("active", 0).where("id", "=", 1).exec()
        """
        with self.engine.transaction():
            yield self

    def close(self) -> None:
        self.engine.close()

    def __enter__(self) -> "StatementFactory":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()


def create_statement_factory(
    url: Optional[str] = None,
    dialect: Union[Dialect, str, None] = None,
    tables: Optional[TableRegistry] = None,
) -> StatementFactory:
    """Create a factory from a URL, falling back to environment settings.

    Example:
        >>> factory = create_statement_factory("sqlite://", dialect="postgres")
    """
    from fluentquery.settings import get_settings

    settings = get_settings()
    if url is None:
        return StatementFactory.from_settings(settings, tables)

    database = settings.database
    resolved = get_dialect(dialect or database.dialect)
    if tables is None:
        tables = resolved.create_table_registry(database.table_prefix)
    engine_options = {"echo": database.echo} if url.startswith("sqlite") else database.engine_options()
    return StatementFactory(create_engine(url, **engine_options), tables, resolved)
