"""Fluent statement builder.

A Query accumulates SQL fragments and their parameters in order. Every
fluent method validates its input, asks the dialect for the dialect
sensitive spelling, picks the connector from the clause transition table
and appends. Execution hands ``(sql, params)`` to the SQLEngine.

Example:
    >>> q = factory.new_query()
    >>> q.select("id, name").from_("users").where("age", ">", 18).where_null("deleted_at")
    >>> q.sql
    'SELECT id, name FROM users WHERE age > ? AND deleted_at IS NULL'
    >>> q.params
    [18]
"""

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import pandas as pd

from fluentquery.common.exceptions import ErrorCode, configuration_error, usage_error
from fluentquery.constants.sql import ClauseType, FetchShape, SortDirection
from fluentquery.engine.placeholders import count_placeholders, translate_numbered_placeholders
from fluentquery.logging import get_logger
from fluentquery.query_builder.base import Fragment, JsonPair
from fluentquery.query_builder.clauses import SELECT_LIST_CLAUSES, connector_for
from fluentquery.query_builder.pagination import PaginationContext, PaginationDescriptor, Paginator

if TYPE_CHECKING:
    from fluentquery.query_builder.factory import StatementFactory

logger = get_logger(__name__)

Row = Mapping[str, Any]
UpsertSpec = Union[Sequence[str], Mapping[str, Any]]

_UPSERT_KEYS = ("set", "columns", "conflict", "constraint")


class Query:
    """A single SQL statement under construction.

    Instances come from ``StatementFactory.new_query()`` (or ``q()`` on an
    existing query) and share only the factory's engine, dialect and table
    registry. Each one is meant to be built, executed and dropped by a
    single caller.

    After the first execution the query is finalized: fluent methods raise
    UsageError, but the statement may be executed again.

    Attributes:
        last_clause: Clause emitted last, drives connector decisions
        row_count: Rows affected or returned by the last execution
        fetch_shape: Row shape used by fetch methods
        chunk_size: Rows per INSERT for batch inserts and upserts
    """

    def __init__(self, factory: "StatementFactory"):
        self._factory = factory
        self._engine = factory.engine
        self._dialect = factory.dialect
        self._tables = factory.tables
        self.chunk_size: int = factory.chunk_size
        self.fetch_shape: FetchShape = factory.fetch_shape

        self._parts: List[str] = []
        self._params: List[Any] = []
        self.last_clause: ClauseType = ClauseType.NONE
        self.row_count: Optional[int] = None
        self._select_open = False
        self._executed = False

    @property
    def sql(self) -> str:
        return " ".join(self._parts)

    @property
    def params(self) -> List[Any]:
        return list(self._params)

    @property
    def dialect(self):
        return self._dialect

    @property
    def tables(self):
        return self._tables

    def __repr__(self) -> str:
        return f"Query(sql={self.sql!r}, params={self._params!r}, last_clause={self.last_clause.value})"

    # Internals

    def _ensure_mutable(self) -> None:
        if self._executed:
            raise usage_error(
                "Query has already been executed; start a new statement with q()",
                error_code=ErrorCode.STATEMENT_FINALIZED,
            )

    def _append(self, sql: str, params: Sequence[Any] = (), clause: Optional[ClauseType] = None) -> "Query":
        self._ensure_mutable()
        sql = sql.strip()
        if sql:
            self._parts.append(sql)
        self._params.extend(params)
        if clause is not None:
            self.last_clause = clause
            if clause not in SELECT_LIST_CLAUSES:
                self._select_open = False
        return self

    def _clause(
        self,
        clause: ClauseType,
        body: str,
        params: Sequence[Any] = (),
        continuation: Optional[str] = None,
    ) -> "Query":
        """Append ``body`` opened or continued according to the transition table."""
        self._ensure_mutable()
        connector = connector_for(self.last_clause, clause, continuation)
        if connector == ",":
            self._parts[-1] += ","
            return self._append(body, params, clause)
        return self._append(f"{connector} {body}", params, clause)

    def _in_select_list(self) -> bool:
        return self._select_open and self.last_clause in SELECT_LIST_CLAUSES

    def _separate_expression(self) -> None:
        if self._parts and self._parts[-1] != "SELECT" and not self._parts[-1].endswith(","):
            self._parts[-1] += ","

    def _append_expression(self, fragment: Fragment, clause: ClauseType) -> "Query":
        self._ensure_mutable()
        if self._in_select_list():
            self._separate_expression()
        return self._append(fragment.sql, fragment.params, clause)

    def _embed(self, query: "Query", argument: str) -> Fragment:
        """Render ``query`` as a parenthesised subquery with its params."""
        if query is self:
            raise usage_error(
                "A query cannot be embedded in itself",
                argument=argument,
                error_code=ErrorCode.SELF_REFERENCE,
            )
        return Fragment(f"( {query.sql} )", tuple(query.params))

    def _comparison(self, column: str, operator: str, value: Any) -> Fragment:
        op = self._dialect.comparison_operator(operator)
        if isinstance(value, Query):
            sub = self._embed(value, "value")
            return Fragment(f"{column} {op} {sub.sql}", sub.params)
        return Fragment(f"{column} {op} ?", (value,))

    def _where(self, fragment: Fragment, boolean: str = "AND") -> "Query":
        return self._clause(ClauseType.WHERE, fragment.sql, fragment.params, "OR" if boolean == "OR" else None)

    def _quote(self, column: str) -> str:
        return self._tables.transform_table_column("", column)

    @staticmethod
    def _require_table(table: str, argument: str = "table") -> str:
        if not isinstance(table, str) or not table.strip():
            raise usage_error("Table name must not be empty", argument=argument, value=table)
        return table.strip()

    # Statement start

    def select(self, columns: Union[str, "Query"] = "") -> "Query":
        """Start a SELECT, or extend the select list when one is open.

        Args:
            columns: Column list, or a Query rendered as ``( subquery )``

        Example:
            >>> q.select("id").select("name").from_("users").sql
            'SELECT id, name FROM users'
        """
        self._ensure_mutable()
        if isinstance(columns, Query):
            fragment = self._embed(columns, "columns")
        else:
            fragment = Fragment(str(columns or "").strip())

        if self._in_select_list():
            self._separate_expression()
            self._append(fragment.sql, fragment.params, ClauseType.SELECT)
        else:
            self._append(f"SELECT {fragment.sql}", fragment.params, ClauseType.SELECT)
        self._select_open = True
        return self

    def update(self, table: str) -> "Query":
        return self._append(f"UPDATE {self._require_table(table)}", clause=ClauseType.UPDATE)

    def delete(self, table: str) -> "Query":
        return self._append(f"DELETE FROM {self._require_table(table)}", clause=ClauseType.DELETE)

    def set(self, column: str, value: Any) -> "Query":
        """``SET column = ?``; a Query value is embedded as a subquery."""
        self._ensure_mutable()
        if isinstance(value, Query):
            sub = self._embed(value, "value")
            return self._clause(ClauseType.SET, f"{column} = {sub.sql}", sub.params)
        return self._clause(ClauseType.SET, f"{column} = ?", (value,))

    def insert_select(
        self,
        table: str,
        columns: Sequence[str],
        query: Optional["Query"] = None,
    ) -> "Query":
        """``INSERT INTO table (cols)`` followed by a SELECT.

        The SELECT is either ``query`` or whatever is built next on this
        query. Nothing is executed until ``exec()``.
        """
        table = self._require_table(table)
        if not isinstance(columns, (list, tuple)) or not columns:
            raise usage_error("insert_select needs a non-empty list of columns", argument="columns", value=columns)
        quoted = ",".join(self._quote(column) for column in columns)
        self._append(f"INSERT INTO {table} ({quoted})", clause=ClauseType.INSERT)
        if query is not None:
            if query is self:
                self._embed(query, "query")
            self._append(query.sql, query.params, ClauseType.SUB_QUERY)
            self._select_open = False
        return self

    # Select list expressions

    def as_(self, alias: str) -> "Query":
        return self._append(f"AS {alias}", clause=ClauseType.AS)

    def sub_query(self, query: "Query") -> "Query":
        return self._append_expression(self._embed(query, "query"), ClauseType.SUB_QUERY)

    def date_format(self, date: str, fmt: str) -> "Query":
        return self._append_expression(self._dialect.date_format(date, fmt), ClauseType.DATE_FORMAT)

    def json_extract(self, document: str, path: str, accessor: str = "$.") -> "Query":
        return self._append_expression(self._dialect.json_extract(document, path, accessor), ClauseType.JSON_EXTRACT)

    def json_set(self, document: str, *args: Any) -> "Query":
        """Set JSON paths in ``document``.

        Accepts ``(path, value)`` tuples or a flat ``path, value, ...``
        sequence. A Query value is embedded as a subquery.

        Raises:
            ConfigurationError: If no pairs are given or a value is missing
        """
        pairs = self._json_pairs(args, "json_set")
        return self._append_expression(self._dialect.json_set(document, pairs), ClauseType.JSON_SET)

    def json_remove(self, document: str, *paths: str) -> "Query":
        if not paths:
            return self
        return self._append_expression(self._dialect.json_remove(document, paths), ClauseType.JSON_REMOVE)

    def json_exist(self, document: str, path: str, accessor: str = "$.") -> "Query":
        return self._append_expression(self._dialect.json_exist(document, path, accessor), ClauseType.JSON_EXIST)

    def json_contain(self, document: str, path: str, value: Any, accessor: str = "$.") -> "Query":
        return self._append_expression(
            self._dialect.json_contain(document, path, value, accessor), ClauseType.JSON_CONTAIN
        )

    def json_merge_patch(self, document: str, other: str) -> "Query":
        return self._append_expression(self._dialect.json_merge_patch(document, other), ClauseType.JSON_MERGE_PATCH)

    def json_array_append(self, document: str, *args: Any) -> "Query":
        pairs = self._json_pairs(args, "json_array_append")
        return self._append_expression(
            self._dialect.json_array_append(document, pairs), ClauseType.JSON_ARRAY_APPEND
        )

    def json_unquote(self, value: Any) -> "Query":
        return self._append_expression(self._dialect.json_unquote(value), ClauseType.JSON_UNQUOTE)

    def json_compact(self, value: Any) -> "Query":
        return self._append_expression(self._dialect.json_compact(value), ClauseType.JSON_COMPACT)

    def _json_pairs(self, args: Sequence[Any], operation: str) -> List[JsonPair]:
        self._ensure_mutable()
        if args and all(isinstance(arg, tuple) and len(arg) == 2 for arg in args):
            raw_pairs = list(args)
        else:
            if not args or len(args) % 2:
                raise configuration_error(
                    f"{operation} needs path/value pairs, got {len(args)} argument(s)",
                    config_key=operation,
                    error_code=ErrorCode.CONFIG_INVALID,
                )
            raw_pairs = [(args[i], args[i + 1]) for i in range(0, len(args), 2)]

        pairs: List[JsonPair] = []
        for path, value in raw_pairs:
            if isinstance(value, Query):
                value = self._embed(value, "value")
            pairs.append((path, value))
        return pairs

    # Shaping

    def from_(self, table: Union[str, "Query"]) -> "Query":
        if isinstance(table, Query):
            sub = self._embed(table, "table")
            return self._append(f"FROM {sub.sql}", sub.params, ClauseType.FROM)
        return self._append(f"FROM {table}", clause=ClauseType.FROM)

    def _join(self, kind: str, table: str, first: str, operator: str, second: str) -> "Query":
        op = self._dialect.comparison_operator(operator)
        return self._append(f"{kind} {table} ON {first} {op} {second}", clause=ClauseType.JOIN)

    def join(self, table: str, first: str, operator: str, second: str) -> "Query":
        return self._join("JOIN", table, first, operator, second)

    def inner_join(self, table: str, first: str, operator: str, second: str) -> "Query":
        return self._join("INNER JOIN", table, first, operator, second)

    def left_join(self, table: str, first: str, operator: str, second: str) -> "Query":
        return self._join("LEFT JOIN", table, first, operator, second)

    def right_join(self, table: str, first: str, operator: str, second: str) -> "Query":
        return self._join("RIGHT JOIN", table, first, operator, second)

    def cross_join(self, table: str) -> "Query":
        return self._append(f"CROSS JOIN {table}", clause=ClauseType.JOIN)

    def order_by(self, column: str, direction: Union[str, SortDirection] = SortDirection.ASC) -> "Query":
        try:
            direction = SortDirection(str(getattr(direction, "value", direction)).upper())
        except ValueError:
            raise usage_error("Sort direction must be ASC or DESC", argument="direction", value=direction)
        return self._clause(ClauseType.ORDER_BY, f"{column} {direction.value}")

    def order_by_asc(self, column: str) -> "Query":
        return self.order_by(column, SortDirection.ASC)

    def order_by_desc(self, column: str) -> "Query":
        return self.order_by(column, SortDirection.DESC)

    def group_by(self, column: str) -> "Query":
        return self._clause(ClauseType.GROUP_BY, column)

    def having(self, column: str, operator: str, value: Any) -> "Query":
        fragment = self._comparison(column, operator, value)
        return self._clause(ClauseType.HAVING, fragment.sql, fragment.params)

    def or_having(self, column: str, operator: str, value: Any) -> "Query":
        fragment = self._comparison(column, operator, value)
        return self._clause(ClauseType.HAVING, fragment.sql, fragment.params, "OR")

    def limit(self, number: int) -> "Query":
        return self._append(self._dialect.limit_clause(), (self._count(number, "limit"),), ClauseType.LIMIT)

    def take(self, number: int) -> "Query":
        return self.limit(number)

    def offset(self, number: int) -> "Query":
        return self._append(self._dialect.offset_clause(), (self._count(number, "offset"),), ClauseType.OFFSET)

    def skip(self, number: int) -> "Query":
        return self.offset(number)

    @staticmethod
    def _count(number: Any, argument: str) -> int:
        if isinstance(number, bool) or not isinstance(number, int) or number < 0:
            raise usage_error(f"{argument} must be a non-negative integer", argument=argument, value=number)
        return number

    # Filtering

    def where(self, column: str, operator: str, value: Any) -> "Query":
        return self._where(self._comparison(column, operator, value))

    def or_where(self, column: str, operator: str, value: Any) -> "Query":
        return self._where(self._comparison(column, operator, value), "OR")

    def where_date(self, column: str, operator: str, value: Any) -> "Query":
        op = self._dialect.comparison_operator(operator)
        return self._where(self._dialect.date_predicate(column, op, value))

    def or_where_date(self, column: str, operator: str, value: Any) -> "Query":
        op = self._dialect.comparison_operator(operator)
        return self._where(self._dialect.date_predicate(column, op, value), "OR")

    def where_time(self, column: str, operator: str, value: Any) -> "Query":
        op = self._dialect.comparison_operator(operator)
        return self._where(self._dialect.time_predicate(column, op, value))

    def or_where_time(self, column: str, operator: str, value: Any) -> "Query":
        op = self._dialect.comparison_operator(operator)
        return self._where(self._dialect.time_predicate(column, op, value), "OR")

    def where_null(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} IS NULL"))

    def or_where_null(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} IS NULL"), "OR")

    def where_not_null(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} IS NOT NULL"))

    def or_where_not_null(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} IS NOT NULL"), "OR")

    def where_true(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} = TRUE"))

    def or_where_true(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} = TRUE"), "OR")

    def where_false(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} = FALSE"))

    def or_where_false(self, column: str) -> "Query":
        return self._where(Fragment(f"{column} = FALSE"), "OR")

    def _membership(self, column: str, values: Any, negate: bool) -> Fragment:
        keyword = "NOT IN" if negate else "IN"
        if isinstance(values, Query):
            sub = self._embed(values, "values")
            return Fragment(f"{column} {keyword} {sub.sql}", sub.params)
        if isinstance(values, (list, tuple, set, frozenset)):
            values = list(values)
            if not values:
                # Nothing is in an empty set.
                return Fragment("1 = 1" if negate else "1 = 0")
            marks = ", ".join("?" for _ in values)
            return Fragment(f"{column} {keyword} ({marks})", tuple(values))
        raise usage_error(
            f"where_{'not_' if negate else ''}in expects a list of values or a Query",
            argument=column,
            value=values,
        )

    def where_in(self, column: str, values: Union[Sequence[Any], "Query"]) -> "Query":
        return self._where(self._membership(column, values, negate=False))

    def or_where_in(self, column: str, values: Union[Sequence[Any], "Query"]) -> "Query":
        return self._where(self._membership(column, values, negate=False), "OR")

    def where_not_in(self, column: str, values: Union[Sequence[Any], "Query"]) -> "Query":
        return self._where(self._membership(column, values, negate=True))

    def or_where_not_in(self, column: str, values: Union[Sequence[Any], "Query"]) -> "Query":
        return self._where(self._membership(column, values, negate=True), "OR")

    def where_like(self, column: str, value: Any) -> "Query":
        """``column`` contains ``value``."""
        return self._where(self._dialect.like_predicate(column, value))

    def or_where_like(self, column: str, value: Any) -> "Query":
        return self._where(self._dialect.like_predicate(column, value), "OR")

    def where_starts(self, column: str, value: Any) -> "Query":
        return self._where(self._dialect.like_predicate(column, value, leading=False))

    def or_where_starts(self, column: str, value: Any) -> "Query":
        return self._where(self._dialect.like_predicate(column, value, leading=False), "OR")

    def where_ends(self, column: str, value: Any) -> "Query":
        return self._where(self._dialect.like_predicate(column, value, trailing=False))

    def or_where_ends(self, column: str, value: Any) -> "Query":
        return self._where(self._dialect.like_predicate(column, value, trailing=False), "OR")

    def where_between(self, column: str, low: Any, high: Any) -> "Query":
        return self._where(Fragment(f"{column} BETWEEN ? AND ?", (low, high)))

    def or_where_between(self, column: str, low: Any, high: Any) -> "Query":
        return self._where(Fragment(f"{column} BETWEEN ? AND ?", (low, high)), "OR")

    def where_not_between(self, column: str, low: Any, high: Any) -> "Query":
        return self._where(Fragment(f"{column} NOT BETWEEN ? AND ?", (low, high)))

    def or_where_not_between(self, column: str, low: Any, high: Any) -> "Query":
        return self._where(Fragment(f"{column} NOT BETWEEN ? AND ?", (low, high)), "OR")

    def where_json_contains(self, document: str, path: str, value: Any, accessor: str = "$.") -> "Query":
        return self._where(self._dialect.json_contain(document, path, value, accessor))

    def or_where_json_contains(self, document: str, path: str, value: Any, accessor: str = "$.") -> "Query":
        return self._where(self._dialect.json_contain(document, path, value, accessor), "OR")

    def _date_format_predicate(self, column: str, fmt: str, operator: Optional[str], value: Any) -> Fragment:
        fragment = self._dialect.date_format_column(column, fmt)
        if operator is None:
            return fragment
        op = self._dialect.comparison_operator(operator)
        return Fragment(f"{fragment.sql} {op} ?", fragment.params + (value,))

    def where_date_format(self, column: str, fmt: str, operator: Optional[str] = None, value: Any = None) -> "Query":
        """Filter on the formatted value of ``column``.

        Example:
            >>> q.where_date_format("created_at", "%Y-%m", "=", "2024-05")
        """
        return self._where(self._date_format_predicate(column, fmt, operator, value))

    def or_where_date_format(self, column: str, fmt: str, operator: Optional[str] = None, value: Any = None) -> "Query":
        return self._where(self._date_format_predicate(column, fmt, operator, value), "OR")

    # Set algebra

    def _combine(self, keyword: str, query: "Query") -> "Query":
        self._ensure_mutable()
        if query is self:
            self._embed(query, "query")
        return self._append(f"{keyword} {query.sql}", query.params, ClauseType.UNION)

    def union(self, query: "Query") -> "Query":
        return self._combine("UNION", query)

    def union_all(self, query: "Query") -> "Query":
        return self._combine("UNION ALL", query)

    def intersect(self, query: "Query") -> "Query":
        return self._combine("INTERSECT", query)

    def intersect_all(self, query: "Query") -> "Query":
        return self._combine("INTERSECT ALL", query)

    def except_(self, query: "Query") -> "Query":
        return self._combine("EXCEPT", query)

    def except_all(self, query: "Query") -> "Query":
        return self._combine("EXCEPT ALL", query)

    def with_(self, name: str, query: "Query", recursive: bool = False) -> "Query":
        """Add a common table expression.

        Repeated calls extend the same ``WITH`` list.

        Example:
            >>> q.with_("recent", recent).select("*").from_("recent").sql
            'WITH recent AS ( SELECT ... ) SELECT * FROM recent'
        """
        self._ensure_mutable()
        sub = self._embed(query, "query")
        if self.last_clause is ClauseType.WITH:
            return self._clause(ClauseType.WITH, f"{name} AS {sub.sql}", sub.params)
        keyword = "WITH RECURSIVE" if recursive else "WITH"
        return self._append(f"{keyword} {name} AS {sub.sql}", sub.params, ClauseType.WITH)

    def with_recursive(self, name: str, query: "Query") -> "Query":
        return self.with_(name, query, recursive=True)

    # Helpers

    def raw(self, sql: str, *params: Any) -> "Query":
        """Append SQL verbatim.

        Raises:
            UsageError: If the ``?`` count differs from the number of params
        """
        self._check_alignment(sql, params)
        return self._append(sql, params, ClauseType.RAW)

    def when(
        self,
        condition: Any,
        callback: Callable[["Query"], Any],
        otherwise: Optional[Callable[["Query"], Any]] = None,
    ) -> "Query":
        """Apply ``callback`` when ``condition`` is truthy, ``otherwise`` when not."""
        if condition:
            callback(self)
        elif otherwise is not None:
            otherwise(self)
        return self

    def q(self) -> "Query":
        """A fresh, empty query from the same factory."""
        return self._factory.new_query()

    def set_fetch_shape(self, shape: Union[str, FetchShape]) -> "Query":
        self.fetch_shape = self._coerce_shape(shape)
        return self

    @staticmethod
    def _coerce_shape(shape: Union[str, FetchShape]) -> FetchShape:
        try:
            return FetchShape(shape)
        except ValueError:
            raise usage_error(
                f"Fetch shape must be one of: {', '.join(s.value for s in FetchShape)}",
                argument="shape",
                value=shape,
            )

    # Execution

    def _check_alignment(self, sql: str, params: Sequence[Any]) -> None:
        markers = count_placeholders(sql, self._dialect.backslash_escapes)
        if markers != len(params):
            raise usage_error(
                f"Statement has {markers} placeholder(s) but {len(params)} parameter(s)",
                argument="params",
                error_code=ErrorCode.PARAMETER_MISMATCH,
                details={"placeholders": markers, "params": len(params)},
            )

    def _finalize(self) -> Tuple[str, List[Any]]:
        sql, params = self.sql, self.params
        if not sql:
            raise usage_error("Nothing to execute, the query is empty")
        self._check_alignment(sql, params)
        self._executed = True
        self.last_clause = ClauseType.DONE
        return sql, params

    def fetch_result(self, shape: Optional[Union[str, FetchShape]] = None) -> List[Any]:
        """Execute and return every row."""
        shape = self._coerce_shape(shape or self.fetch_shape)
        sql, params = self._finalize()
        rows = self._engine.fetch_all(sql, params, shape)
        self.row_count = len(rows)
        return rows

    def fetch_first(self, shape: Optional[Union[str, FetchShape]] = None) -> Optional[Any]:
        """Execute and return the first row, or None."""
        shape = self._coerce_shape(shape or self.fetch_shape)
        sql, params = self._finalize()
        row = self._engine.fetch_first(sql, params, shape)
        self.row_count = 0 if row is None else 1
        return row

    def fetch_dataframe(self) -> pd.DataFrame:
        sql, params = self._finalize()
        df = self._engine.fetch_dataframe(sql, params)
        self.row_count = len(df)
        return df

    def exec(self) -> int:
        """Execute a statement that returns no rows.

        Returns:
            Number of rows the driver reports as affected
        """
        sql, params = self._finalize()
        summary = self._engine.execute(sql, params)
        self.row_count = summary.row_count
        return summary.row_count

    def get_row_count(self) -> Optional[int]:
        return self.row_count

    def run(self, sql: str, *params: Any) -> List[Any]:
        """Run raw ``?``-marked SQL on this query's connection and return all rows.

        The builder's own statement is left untouched.
        """
        self._check_alignment(sql, params)
        rows = self._engine.fetch_all(sql, params, self.fetch_shape)
        self.row_count = len(rows)
        return rows

    def row(self, sql: str, *params: Any) -> Optional[Any]:
        self._check_alignment(sql, params)
        found = self._engine.fetch_first(sql, params, self.fetch_shape)
        self.row_count = 0 if found is None else 1
        return found

    def run_pg(self, sql: str, *params: Any) -> List[Any]:
        """Like ``run`` for SQL written with ``$1..$n`` markers."""
        translated, ordered = translate_numbered_placeholders(sql, params, self._dialect.backslash_escapes)
        return self.run(translated, *ordered)

    def row_pg(self, sql: str, *params: Any) -> Optional[Any]:
        translated, ordered = translate_numbered_placeholders(sql, params, self._dialect.backslash_escapes)
        return self.row(translated, *ordered)

    def exec_raw(self, script: str) -> int:
        """Run a multi-statement script; returns the number of statements executed."""
        count = self._engine.execute_script(script)
        self.row_count = count
        return count

    # Inserts

    def _normalize_rows(self, data: Union[Row, Sequence[Row]]) -> Tuple[List[str], List[Row]]:
        rows: List[Row] = [data] if isinstance(data, Mapping) else list(data)
        if not rows:
            return [], []
        for index, row in enumerate(rows):
            if not isinstance(row, Mapping):
                raise usage_error("Rows to insert must be mappings of column to value", argument=f"data[{index}]", value=row)
        columns = list(rows[0].keys())
        for index, row in enumerate(rows):
            missing = [column for column in columns if column not in row]
            if missing:
                raise usage_error(
                    f"Row {index} is missing column(s) {', '.join(missing)}",
                    argument=f"data[{index}]",
                )
        return columns, rows

    def _values_sql(self, columns: Sequence[str], rows: Sequence[Row]) -> Tuple[str, List[Any]]:
        group = "(" + ",".join("?" for _ in columns) + ")"
        values: List[Any] = []
        for row in rows:
            values.extend(row[column] for column in columns)
        return ",".join(group for _ in rows), values

    def _insert_chunks(self, table: str, data: Any, tail: str, chunk_size: Optional[int]) -> bool:
        table = self._require_table(table)
        columns, rows = self._normalize_rows(data)
        self._ensure_mutable()
        if not rows:
            self.row_count = 0
            return False

        size = chunk_size or self.chunk_size
        if not isinstance(size, int) or size < 1:
            raise usage_error("chunk_size must be a positive integer", argument="chunk_size", value=size)

        quoted = ",".join(self._quote(column) for column in columns)
        total = 0
        chunks = 0
        for start in range(0, len(rows), size):
            marks, values = self._values_sql(columns, rows[start:start + size])
            sql = f"INSERT INTO {table} ({quoted}) VALUES {marks}"
            if tail:
                sql = f"{sql} {tail}"
            self._parts, self._params = [sql], values
            summary = self._engine.execute(sql, values)
            total += max(summary.row_count, 0)
            chunks += 1

        self._executed = True
        self.last_clause = ClauseType.DONE
        self.row_count = total
        logger.info(
            "Rows inserted",
            extra={"table": table, "row_count": total, "chunks": chunks, "chunk_size": size},
        )
        return total > 0

    def insert(self, table: str, data: Union[Row, Sequence[Row]], chunk_size: Optional[int] = None) -> bool:
        """Insert one row or many, ``chunk_size`` rows per statement.

        Columns are taken from the first row.

        Returns:
            True if the driver reported any inserted rows
        """
        return self._insert_chunks(table, data, "", chunk_size)

    def insert_on_duplicate(
        self,
        table: str,
        data: Union[Row, Sequence[Row]],
        update: UpsertSpec,
        chunk_size: Optional[int] = None,
    ) -> bool:
        """Insert rows, updating the ``set`` columns of rows that conflict.

        Args:
            table: Target table
            data: Row mapping or list of row mappings
            update: Either a list of columns to update, or a mapping with
                ``set`` (alias ``columns``), ``conflict`` (column or list)
                and ``constraint`` (named unique constraint)
            chunk_size: Rows per statement, defaults to the query's chunk size

        Raises:
            ConfigurationError: If the set list is empty, or the dialect
                needs a conflict target and none is given or inferable

        Example:
            >>> q.insert_on_duplicate("users", rows, {"set": ["email"], "conflict": ["username"]})
            True
        """
        columns, rows = self._normalize_rows(data)
        if not rows:
            self._ensure_mutable()
            self.row_count = 0
            return False

        set_columns, conflict, constraint = self._parse_upsert_spec(update, rows[0])
        tail = self._dialect.upsert_clause(
            [self._quote(column) for column in set_columns],
            [self._quote(column) for column in conflict] if conflict else None,
            constraint,
        )
        return self._insert_chunks(table, rows, tail, chunk_size)

    def _parse_upsert_spec(
        self, update: UpsertSpec, first_row: Row
    ) -> Tuple[List[str], Optional[List[str]], Optional[str]]:
        conflict: Optional[List[str]] = None
        constraint: Optional[str] = None

        if isinstance(update, Mapping):
            set_columns = update.get("set") or update.get("columns") or []
            if update.get("conflict") is not None:
                target = update["conflict"]
                conflict = list(target) if isinstance(target, (list, tuple)) else [target]
            constraint = update.get("constraint") or None
            if not set_columns:
                set_columns = [key for key in update if key not in _UPSERT_KEYS]
        elif isinstance(update, str):
            set_columns = [update]
        else:
            set_columns = list(update or [])

        set_columns = list(set_columns) if isinstance(set_columns, (list, tuple)) else [set_columns]
        if not set_columns:
            raise configuration_error(
                "insert_on_duplicate needs columns to update; pass a list or {'set': [...]}",
                config_key="update",
                error_code=ErrorCode.CONFIG_INVALID,
            )

        if self._dialect.requires_conflict_target and not conflict and not constraint:
            if "id" not in first_row:
                raise configuration_error(
                    f"The {self._dialect.name.value} dialect needs a conflict target: pass "
                    "{'conflict': [...]} or {'constraint': '...'}, or include an 'id' column",
                    config_key="conflict",
                    error_code=ErrorCode.CONFLICT_TARGET_MISSING,
                )
            conflict = ["id"]

        return set_columns, conflict, constraint

    def insert_returning(
        self,
        table: str,
        data: Union[Row, Sequence[Row]],
        returning: Sequence[str],
        primary_key: str = "id",
    ) -> List[Any]:
        """Insert rows and return the requested columns of the inserted rows.

        Dialects with native ``RETURNING`` do it in one statement. Otherwise
        the rows are read back inside a transaction: by primary key from the
        driver's last insert id when one is available, else by matching the
        inserted values exactly.
        """
        table = self._require_table(table)
        columns, rows = self._normalize_rows(data)
        self._ensure_mutable()
        if not rows:
            self.row_count = 0
            return []
        if isinstance(returning, str):
            returning = [returning]
        if not returning:
            raise usage_error("insert_returning needs at least one column to return", argument="returning")

        quoted = ",".join(self._quote(column) for column in columns)
        marks, values = self._values_sql(columns, rows)
        insert_sql = f"INSERT INTO {table} ({quoted}) VALUES {marks}"
        returning_quoted = [self._quote(column) for column in returning]

        self._executed = True
        self.last_clause = ClauseType.DONE

        native = self._dialect.returning_clause(returning_quoted)
        if native:
            sql = f"{insert_sql} {native}"
            self._parts, self._params = [sql], values
            result = self._engine.fetch_all(sql, values, self.fetch_shape)
            self.row_count = len(result)
            return result

        self._parts, self._params = [insert_sql], values
        return self._emulate_returning(table, insert_sql, values, columns, rows, returning_quoted, primary_key)

    def _emulate_returning(
        self,
        table: str,
        insert_sql: str,
        values: List[Any],
        columns: Sequence[str],
        rows: Sequence[Row],
        returning: Sequence[str],
        primary_key: str,
    ) -> List[Any]:
        engine = self._engine
        started = not engine.in_transaction()
        if started:
            engine.begin()
        try:
            summary = engine.execute(insert_sql, values)
            select_list = ", ".join(returning)
            if summary.last_insert_id:
                pk = self._quote(primary_key)
                select_sql = f"SELECT {select_list} FROM {table} WHERE {pk} >= ? ORDER BY {pk} LIMIT ?"
                select_params: List[Any] = [summary.last_insert_id, summary.row_count]
            else:
                equals = self._dialect.null_safe_equals()
                group = "(" + " AND ".join(f"{self._quote(column)} {equals} ?" for column in columns) + ")"
                select_sql = f"SELECT {select_list} FROM {table} WHERE " + " OR ".join(group for _ in rows)
                select_params = [row[column] for row in rows for column in columns]
            result = engine.fetch_all(select_sql, select_params, self.fetch_shape)
            if started:
                engine.commit()
        except Exception:
            if started:
                engine.rollback()
            raise

        self.row_count = summary.row_count
        return result

    # Pagination

    def paginate(
        self,
        total_rows: int,
        fetch: Callable[[int, int], List[Any]],
        per_page: Optional[int] = None,
        page_name: Optional[str] = None,
        context: Optional[PaginationContext] = None,
    ) -> PaginationDescriptor:
        """Paginate with a known total; ``fetch(limit, offset)`` returns the page rows."""
        paginator = Paginator(per_page or self._factory.per_page, page_name or self._factory.page_name)
        return paginator.paginate(total_rows, fetch, context)

    def simple_paginate(
        self,
        per_page: Optional[int] = None,
        page_name: Optional[str] = None,
        context: Optional[PaginationContext] = None,
    ) -> PaginationDescriptor:
        """Count this statement's rows and fetch the requested page.

        The statement is wrapped in ``SELECT COUNT(*)`` for the total, and
        each page is fetched by a fresh query with ``LIMIT ? OFFSET ?``
        appended, so this query itself is only finalized.
        """
        sql, params = self._finalize()
        count_sql = f"SELECT COUNT(*) AS total FROM ( {sql} ) AS pagination_subquery"
        total = int(self._engine.fetch_scalar(count_sql, params) or 0)
        shape = self.fetch_shape

        def fetch(limit: int, offset: int) -> List[Any]:
            return self.q().raw(sql, *params).limit(limit).offset(offset).fetch_result(shape)

        page = self.paginate(total, fetch, per_page, page_name, context)
        self.row_count = len(page.data)
        return page
