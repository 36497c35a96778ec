"""PostgreSQL dialect implementation.

Adapts the MySQL-flavoured vocabulary to PostgreSQL:

    - ``DATE(col)``/``TIME(col)`` become ``CAST(col AS DATE)``/``CAST(col AS TIME)``
    - ``DATE_FORMAT`` becomes ``TO_CHAR`` with the format tokens translated
    - ``CONCAT`` in LIKE patterns becomes the ``||`` operator
    - ``<=>`` becomes ``IS NOT DISTINCT FROM``
    - JSON functions become ``jsonb`` operators over ``text[]`` paths
    - ``ON DUPLICATE KEY UPDATE`` becomes ``ON CONFLICT ... DO UPDATE``
"""

import re
from typing import Any, Optional, Sequence

from fluentquery.common.exceptions import unsupported_operation_error
from fluentquery.constants.sql import Dialect
from fluentquery.query_builder.base import BaseDialect, Fragment, JsonPair
from fluentquery.query_builder.postgres.tables import PostgresTableRegistry


# MySQL DATE_FORMAT token -> TO_CHAR pattern
DATE_FORMAT_TOKENS = {
    "%Y": "YYYY",
    "%y": "YY",
    "%m": "MM",
    "%c": "MM",
    "%d": "DD",
    "%e": "DD",
    "%H": "HH24",
    "%h": "HH12",
    "%I": "HH12",
    "%i": "MI",
    "%s": "SS",
    "%S": "SS",
    "%M": "Mon",
    "%b": "Mon",
}

_DATE_TOKEN_PATTERN = re.compile("|".join(re.escape(token) for token in DATE_FORMAT_TOKENS))


def convert_date_format(fmt: str) -> str:
    """Translate MySQL ``DATE_FORMAT`` tokens into a ``TO_CHAR`` pattern.

    Tokens are replaced in a single pass so a translated pattern is never
    translated again. Unknown tokens are left as they are.

    >>> convert_date_format("%Y-%m-%d %H:%i:%s")
    'YYYY-MM-DD HH24:MI:SS'
    """
    return _DATE_TOKEN_PATTERN.sub(lambda match: DATE_FORMAT_TOKENS[match.group(0)], fmt)


def json_path_to_pg_array(path: str) -> str:
    """Convert ``$.a.b`` or ``a.b`` into the ``{a,b}`` literal used for ``text[]`` paths."""
    segments = [segment for segment in str(path).lstrip("$.").split(".") if segment]
    return "{" + ",".join(segments) + "}"


class PostgresDialect(BaseDialect):

    name = Dialect.POSTGRES
    supports_returning = True
    requires_conflict_target = True
    backslash_escapes = False

    def create_table_registry(self, table_prefix: str = "") -> PostgresTableRegistry:
        return PostgresTableRegistry(table_prefix)

    def null_safe_equals(self) -> str:
        return "IS NOT DISTINCT FROM"

    def date_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        return Fragment(f"CAST({column} AS DATE) {operator} ?", (value,))

    def time_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        return Fragment(f"CAST({column} AS TIME) {operator} ?", (value,))

    def date_format(self, date: str, fmt: str) -> Fragment:
        # ``date`` is a column or expression, only the pattern is bound
        return Fragment(f"TO_CHAR({date}, ?)", (convert_date_format(fmt),))

    def date_format_column(self, column: str, fmt: str) -> Fragment:
        return self.date_format(column, fmt)

    def concat(self, count: int) -> str:
        return f"({' || '.join('?' * count)})"

    def json_extract(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        return Fragment(
            f"({document})::jsonb #>> (?::text[])",
            (json_path_to_pg_array(accessor + path),),
        )

    def json_set(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        expression = f"({document})::jsonb"
        params = []
        for path, value in pairs:
            params.append(json_path_to_pg_array(path))
            value_sql, value_params = self._embed(value, "(?::jsonb)")
            params.extend(value_params)
            expression = f"jsonb_set({expression}, ?::text[], {value_sql}, true)"
        return Fragment(expression, tuple(params))

    def json_remove(self, document: str, paths: Sequence[str]) -> Fragment:
        expression = f"({document})::jsonb"
        for _ in paths:
            expression = f"{expression} #- (?::text[])"
        return Fragment(expression, tuple(json_path_to_pg_array(path) for path in paths))

    def json_exist(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        return Fragment(
            f"(({document})::jsonb #> (?::text[])) IS NOT NULL",
            (json_path_to_pg_array(accessor + path),),
        )

    def json_contain(self, document: str, path: str, value: Any, accessor: str = "$.") -> Fragment:
        return Fragment(
            f"(({document})::jsonb #> (?::text[])) @> (?::jsonb)",
            (json_path_to_pg_array(accessor + path), value),
        )

    def json_merge_patch(self, document: str, other: str) -> Fragment:
        # jsonb concatenation merges objects, the right-hand keys win
        return Fragment(f"(({document})::jsonb || ({other})::jsonb)")

    def json_array_append(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        raise unsupported_operation_error(
            "json_array_append",
            self.name.value,
            details={"hint": "compose jsonb_set or jsonb_insert manually with raw()"},
        )

    def json_unquote(self, value: Any) -> Fragment:
        return Fragment("(?::text)", (value,))

    def json_compact(self, value: Any) -> Fragment:
        return Fragment("(?::jsonb)", (value,))

    def upsert_clause(
        self,
        set_columns: Sequence[str],
        conflict_columns: Optional[Sequence[str]] = None,
        constraint: Optional[str] = None,
    ) -> str:
        if constraint:
            target = f"ON CONFLICT ON CONSTRAINT {constraint}"
        else:
            target = f"ON CONFLICT ({','.join(conflict_columns or ())})"
        assignments = ", ".join(f"{column} = EXCLUDED.{column}" for column in set_columns)
        return f"{target} DO UPDATE SET {assignments}"

    def returning_clause(self, columns: Sequence[str]) -> Optional[str]:
        return f"RETURNING {', '.join(columns)}"
