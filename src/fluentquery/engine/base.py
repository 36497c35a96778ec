import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, NamedTuple, Optional, Sequence, Union

import pandas as pd
from sqlalchemy.engine import Connection, Engine

from fluentquery.common.exceptions import (
    configuration_error,
    query_execution_error,
    transaction_error,
    usage_error,
)
from fluentquery.constants.sql import FetchShape, QueryType
from fluentquery.engine.placeholders import convert_placeholders, split_statements
from fluentquery.logging import get_logger
from fluentquery.telemetry import statement_counter
from fluentquery.utils.decorators import traced

logger = get_logger(__name__)


class ExecutionSummary(NamedTuple):
    row_count: int
    last_insert_id: Optional[Any] = None


def _statement_attributes(self: "SQLEngine", sql: str, params: Sequence[Any] = (), *args: Any, **kwargs: Any) -> Dict[str, Any]:
    return self._span_attributes(sql, params)


class SQLEngine:
    """Executes ``?``-marked SQL on a single SQLAlchemy connection.

    The engine is the only place that talks to the driver. It rewrites the
    markers for the connection's DBAPI paramstyle, times and logs every
    statement, wraps it in an OpenTelemetry span, and turns driver
    exceptions into DriverError with the original kept as ``cause``.

    Outside an explicit transaction each statement is committed as soon as
    it completes, and rolled back if it fails. Between ``begin()`` and
    ``commit()``/``rollback()`` nothing is committed implicitly.

    Features:
        - Lazy connection when given an Engine; a given Connection is used as is
        - Row shapes: attribute rows, plain dicts, pandas DataFrame
        - Multi-statement scripts run in one transaction
        - No automatic retries; failures surface immediately

    Example:
        >>> from sqlalchemy import create_engine
        >>> engine = SQLEngine(create_engine("sqlite://"))
        >>> engine.fetch_scalar("SELECT ? + ?", [1, 2])
        3
    """

    def __init__(
        self,
        bind: Union[Engine, Connection],
        max_logged_statement_length: int = 500,
        backslash_escapes: bool = False,
    ):
        """Initialize SQL engine.

        Args:
            bind: SQLAlchemy Engine (a connection is opened on first use and
                owned by this object) or an already open Connection
            max_logged_statement_length: Truncation limit for statements in
                log records and span attributes
            backslash_escapes: Whether string literals use backslash escapes,
                as MySQL does by default
        """
        if isinstance(bind, Engine):
            self._engine: Optional[Engine] = bind
            self._connection: Optional[Connection] = None
        elif hasattr(bind, "exec_driver_sql"):
            self._engine = None
            self._connection = bind
        else:
            raise configuration_error(
                f"Expected a SQLAlchemy Engine or Connection, got {type(bind).__name__}",
                config_key="bind",
            )
        self._owns_connection = self._engine is not None
        self._explicit_transaction = False
        self.max_logged_statement_length = max_logged_statement_length
        self.backslash_escapes = backslash_escapes

    @property
    def connection(self) -> Connection:
        if self._connection is None:
            try:
                self._connection = self._engine.connect()
            except Exception as exc:
                raise query_execution_error("CONNECT", exc)
            logger.info("Database connection opened", extra={"db.system": self.dialect_name})
        return self._connection

    @property
    def dialect_name(self) -> str:
        source = self._connection if self._connection is not None else self._engine
        return str(getattr(source.dialect, "name", "sql"))

    @property
    def paramstyle(self) -> str:
        return getattr(self.connection.dialect, "paramstyle", "qmark")

    def _truncate(self, sql: str) -> str:
        limit = self.max_logged_statement_length
        sql = (sql or "").strip()
        return f"{sql[:limit - 3]}..." if len(sql) > limit else sql

    def _span_attributes(self, sql: str, params: Sequence[Any] = ()) -> Dict[str, Any]:
        """Build OpenTelemetry span attributes for a statement."""
        return {
            "db.system": self.dialect_name,
            "db.operation": QueryType.from_sql(sql or "").value,
            "db.statement": self._truncate(sql),
            "db.params.count": len(params or ()),
        }

    def _run(self, sql: str, params: Sequence[Any], operation: str, consume: Callable[[Any], Any]) -> Any:
        """Send one statement to the driver and hand its result to ``consume``.

        ``consume`` runs before the implicit commit so rows are read while
        the cursor is still open.
        """
        start_time = time.time()
        params = list(params or ())
        payload: Dict[str, Any] = {
            "db.system": self.dialect_name,
            "db.operation": QueryType.from_sql(sql).value,
            "fluentquery.operation": operation,
            "db.params.count": len(params),
        }

        conn = self.connection
        statement, driver_params = convert_placeholders(sql, params, self.paramstyle, self.backslash_escapes)
        try:
            if driver_params is None:
                result = conn.exec_driver_sql(statement, execution_options={"no_parameters": True})
            else:
                result = conn.exec_driver_sql(statement, driver_params)
            value = consume(result)
            if not self._explicit_transaction:
                conn.commit()

        except Exception as exc:
            duration = time.time() - start_time
            logger.error(
                "SQL statement failed",
                extra={
                    **payload,
                    "db.statement": self._truncate(sql),
                    "duration.seconds": f"{duration:.6f}",
                    "error": str(exc),
                },
                exc_info=True,
            )
            if not self._explicit_transaction:
                self._rollback_quietly(conn)
            raise query_execution_error(sql, exc)

        duration = time.time() - start_time
        logger.debug(
            "SQL statement executed",
            extra={
                **payload,
                "db.statement": self._truncate(sql),
                "duration.seconds": f"{duration:.6f}",
            },
        )
        statement_counter().add(1, {"db.system": payload["db.system"], "db.operation": payload["db.operation"]})
        return value

    def _rollback_quietly(self, conn: Connection) -> None:
        # The statement error is what the caller needs to see.
        try:
            conn.rollback()
        except Exception as exc:
            logger.warning("Rollback after failed statement also failed: %s", exc, exc_info=True)

    @traced(span_name="fluentquery.sql.execute", attribute_getter=_statement_attributes)
    def execute(self, sql: str, params: Sequence[Any] = ()) -> ExecutionSummary:
        """Execute a statement that returns no rows."""
        def consume(result: Any) -> ExecutionSummary:
            return ExecutionSummary(
                row_count=getattr(result, "rowcount", -1),
                last_insert_id=getattr(result, "lastrowid", None) or None,
            )
        return self._run(sql, params, "execute", consume)

    @traced(span_name="fluentquery.sql.fetch_all", attribute_getter=_statement_attributes)
    def fetch_all(self, sql: str, params: Sequence[Any] = (), shape: FetchShape = FetchShape.OBJECT) -> List[Any]:
        """Execute a query and fetch every row.

        Returns:
            Rows supporting attribute access for ``FetchShape.OBJECT``,
            plain dicts for ``FetchShape.ROW``
        """
        def consume(result: Any) -> List[Any]:
            if not result.returns_rows:
                return []
            if FetchShape(shape) is FetchShape.ROW:
                return [dict(mapping) for mapping in result.mappings().all()]
            return list(result.all())
        rows = self._run(sql, params, "fetch_all", consume)
        logger.debug("Results fetched", extra={"row_count": len(rows)})
        return rows

    @traced(span_name="fluentquery.sql.fetch_first", attribute_getter=_statement_attributes)
    def fetch_first(self, sql: str, params: Sequence[Any] = (), shape: FetchShape = FetchShape.OBJECT) -> Optional[Any]:
        """First row of the result, or None when there is none."""
        def consume(result: Any) -> Optional[Any]:
            if not result.returns_rows:
                return None
            if FetchShape(shape) is FetchShape.ROW:
                mapping = result.mappings().first()
                return dict(mapping) if mapping is not None else None
            return result.first()
        return self._run(sql, params, "fetch_first", consume)

    @traced(span_name="fluentquery.sql.fetch_scalar", attribute_getter=_statement_attributes)
    def fetch_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        """First column of the first row, or None."""
        return self._run(sql, params, "fetch_scalar", lambda result: result.scalar())

    @traced(span_name="fluentquery.sql.fetch_dataframe", attribute_getter=_statement_attributes)
    def fetch_dataframe(self, sql: str, params: Sequence[Any] = ()) -> pd.DataFrame:
        """Execute query and return results as pandas DataFrame."""
        def consume(result: Any) -> pd.DataFrame:
            columns = list(result.keys())
            return pd.DataFrame.from_records(result.fetchall(), columns=columns)
        df = self._run(sql, params, "fetch_dataframe", consume)
        logger.debug("DataFrame fetched", extra={"row_count": len(df)})
        return df

    @traced(
        span_name="fluentquery.sql.execute_script",
        attribute_getter=lambda self, script: {
            "db.system": self.dialect_name,
            "db.operation": QueryType.SCRIPT.value,
            "db.statement": self._truncate(script),
        },
    )
    def execute_script(self, script: str) -> int:
        """Run a multi-statement script.

        Comments are stripped and the script is split on top-level
        semicolons. Outside an explicit transaction all statements run in
        one transaction that is rolled back if any of them fails.

        Returns:
            Number of statements executed
        """
        statements = split_statements(script, self.backslash_escapes)
        if not statements:
            return 0

        started = not self._explicit_transaction
        if started:
            self.begin()
        try:
            for index, statement in enumerate(statements):
                logger.debug(
                    "Running script statement",
                    extra={"batch.index": index, "batch.total": len(statements)},
                )
                self._run(statement, (), "execute_script", lambda result: None)
            if started:
                self.commit()
        except Exception:
            if started:
                self.rollback()
            raise

        logger.info("SQL script executed", extra={"statement_count": len(statements)})
        return len(statements)

    # Transactions

    def begin(self) -> None:
        """Start an explicit transaction.

        Raises:
            UsageError: If one is already active
            DriverError: If the driver refuses
        """
        if self._explicit_transaction:
            raise usage_error("A transaction is already active", argument="begin")
        conn = self.connection
        try:
            if not conn.in_transaction():
                conn.begin()
        except Exception as exc:
            raise transaction_error("begin", exc)
        self._explicit_transaction = True
        logger.debug("Transaction started")

    def commit(self) -> None:
        try:
            self.connection.commit()
        except Exception as exc:
            raise transaction_error("commit", exc)
        finally:
            self._explicit_transaction = False
        logger.debug("Transaction committed")

    def rollback(self) -> None:
        try:
            self.connection.rollback()
        except Exception as exc:
            raise transaction_error("rollback", exc)
        finally:
            self._explicit_transaction = False
        logger.debug("Transaction rolled back")

    def in_transaction(self) -> bool:
        return self._explicit_transaction

    @contextmanager
    def transaction(self) -> Iterator["SQLEngine"]:
        """Commit on success, roll back and re-raise on failure.

        Example:
            >>> with engine.transaction():
            ...     engine.execute("UPDATE users SET active = ?", [0])
        """
        self.begin()
        try:
            yield self
        except BaseException:
            self.rollback()
            raise
        self.commit()

    def close(self) -> None:
        """Close the connection if this engine opened it."""
        if self._connection is not None and self._owns_connection:
            self._connection.close()
            self._connection = None
            logger.info("Database connection closed")

    def get_connection_info(self) -> Dict[str, Any]:
        return {
            "db.system": self.dialect_name,
            "paramstyle": self.paramstyle,
            "owns_connection": self._owns_connection,
            "in_transaction": self._explicit_transaction,
        }
