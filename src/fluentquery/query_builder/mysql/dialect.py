"""MySQL dialect implementation."""

from typing import Any, List, Optional, Sequence, Tuple

from fluentquery.constants.sql import Dialect
from fluentquery.query_builder.base import BaseDialect, Fragment, JsonPair


class MySQLDialect(BaseDialect):
    """Renders statements for MySQL 5.7+ and MariaDB 10.2+.

    JSON paths accept either a full ``$``-rooted path or a bare dotted path
    which gets the accessor (``$.`` by default) prepended, so the same call
    works against the Postgres dialect.
    """

    name = Dialect.MYSQL
    supports_returning = False
    requires_conflict_target = False
    backslash_escapes = True

    def null_safe_equals(self) -> str:
        return "<=>"

    def date_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        return Fragment(f"DATE({column}) {operator} ?", (value,))

    def time_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        return Fragment(f"TIME({column}) {operator} ?", (value,))

    def date_format(self, date: str, fmt: str) -> Fragment:
        return Fragment("DATE_FORMAT(?, ?)", (date, fmt))

    def date_format_column(self, column: str, fmt: str) -> Fragment:
        return Fragment(f"DATE_FORMAT({column}, ?)", (fmt,))

    def concat(self, count: int) -> str:
        return f"CONCAT({', '.join('?' * count)})"

    def json_extract(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        return Fragment(f"JSON_EXTRACT({document}, ?)", (self._json_path(path, accessor),))

    def json_set(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        return self._json_pairs_call("JSON_SET", document, pairs)

    def json_remove(self, document: str, paths: Sequence[str]) -> Fragment:
        marks = ", ".join("?" for _ in paths)
        return Fragment(
            f"JSON_REMOVE({document}, {marks})",
            tuple(self._json_path(path) for path in paths),
        )

    def json_exist(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        return Fragment(
            f"JSON_CONTAINS_PATH({document}, 'one', ?)",
            (self._json_path(path, accessor),),
        )

    def json_contain(self, document: str, path: str, value: Any, accessor: str = "$.") -> Fragment:
        return Fragment(
            f"JSON_CONTAINS({document}, ?, ?)",
            (value, self._json_path(path, accessor)),
        )

    def json_merge_patch(self, document: str, other: str) -> Fragment:
        return Fragment(f"JSON_MERGE_PATCH({document}, {other})")

    def json_array_append(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        return self._json_pairs_call("JSON_ARRAY_APPEND", document, pairs)

    def json_unquote(self, value: Any) -> Fragment:
        return Fragment("JSON_UNQUOTE(?)", (value,))

    def json_compact(self, value: Any) -> Fragment:
        return Fragment("JSON_COMPACT(?)", (value,))

    def upsert_clause(
        self,
        set_columns: Sequence[str],
        conflict_columns: Optional[Sequence[str]] = None,
        constraint: Optional[str] = None,
    ) -> str:
        # MySQL resolves the conflict against every unique key; a target is ignored.
        assignments = ", ".join(f"{column} = VALUES({column})" for column in set_columns)
        return f"ON DUPLICATE KEY UPDATE {assignments}"

    def _json_pairs_call(self, function: str, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        pieces: List[str] = [document]
        params: List[Any] = []
        for path, value in pairs:
            pieces.append("?")
            params.append(self._json_path(path))
            sql, value_params = self._embed(value)
            pieces.append(sql)
            params.extend(value_params)
        return Fragment(f"{function}({', '.join(pieces)})", tuple(params))

    @staticmethod
    def _json_path(path: Any, accessor: str = "$.") -> str:
        path = str(path)
        if path.startswith("$"):
            return path
        return f"{accessor}{path}"
