from abc import ABC, abstractmethod
from typing import Any, List, NamedTuple, Optional, Sequence, Tuple

from fluentquery.common.exceptions import invalid_operator_error
from fluentquery.constants.sql import COMPARISON_OPERATORS, NULL_SAFE_EQUALS, Dialect
from fluentquery.query_builder.tables import TableRegistry


class Fragment(NamedTuple):
    """A piece of rendered SQL and the values bound to its ``?`` markers."""

    sql: str
    params: Tuple[Any, ...] = ()


JsonPair = Tuple[str, Any]


class BaseDialect(ABC):
    """Base interface for SQL dialects.

    A dialect is a stateless strategy injected into every query. The query
    owns clause sequencing and parameter order; the dialect decides how each
    dialect-sensitive capability is spelled and returns it as a Fragment
    whose params line up with its markers.

    Every capability is abstract so a new dialect cannot be registered with
    a partial implementation. A dialect that has no sensible rendering for
    a capability raises UnsupportedOperationError instead of emitting SQL
    that would silently do the wrong thing.

    Identifiers handed to the dialect (columns, documents, tables) are
    already rendered by the caller; only values become parameters.
    """

    name: Dialect
    supports_returning: bool = False
    requires_conflict_target: bool = False
    backslash_escapes: bool = False

    def create_table_registry(self, table_prefix: str = "") -> TableRegistry:
        """Registry whose identifier quoting matches this dialect."""
        return TableRegistry(table_prefix)

    def comparison_operator(self, operator: str) -> str:
        """Validate ``operator`` against the whitelist and spell it for this dialect.

        Raises:
            InvalidOperatorError: If the operator is not whitelisted
        """
        operator = operator.strip() if isinstance(operator, str) else operator
        if operator not in COMPARISON_OPERATORS:
            raise invalid_operator_error(str(operator), COMPARISON_OPERATORS)
        if operator == NULL_SAFE_EQUALS:
            return self.null_safe_equals()
        return operator

    @abstractmethod
    def null_safe_equals(self) -> str:
        """Operator that treats NULL = NULL as true."""
        pass

    # Date and time

    @abstractmethod
    def date_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        """Compare the date part of ``column``; ``operator`` is already validated."""
        pass

    @abstractmethod
    def time_predicate(self, column: str, operator: str, value: Any) -> Fragment:
        pass

    @abstractmethod
    def date_format(self, date: str, fmt: str) -> Fragment:
        """Format a date using MySQL style ``%`` tokens."""
        pass

    @abstractmethod
    def date_format_column(self, column: str, fmt: str) -> Fragment:
        """Format a column (not a bound value) using MySQL style ``%`` tokens."""
        pass

    # String matching

    @abstractmethod
    def concat(self, count: int) -> str:
        """Concatenation of ``count`` bound values."""
        pass

    def like_predicate(self, column: str, value: Any, leading: bool = True, trailing: bool = True) -> Fragment:
        """``column LIKE`` the value with ``%`` wildcards bound as separate values.

        The value itself is never concatenated into SQL so user supplied
        wildcards stay literal only if the caller escapes them.
        """
        params: List[Any] = []
        if leading:
            params.append("%")
        params.append(value)
        if trailing:
            params.append("%")
        return Fragment(f"{column} LIKE {self.concat(len(params))}", tuple(params))

    # JSON

    @abstractmethod
    def json_extract(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        pass

    @abstractmethod
    def json_set(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        """Set each ``(path, value)`` pair; a Fragment value is embedded, anything else bound."""
        pass

    @abstractmethod
    def json_remove(self, document: str, paths: Sequence[str]) -> Fragment:
        pass

    @abstractmethod
    def json_exist(self, document: str, path: str, accessor: str = "$.") -> Fragment:
        pass

    @abstractmethod
    def json_contain(self, document: str, path: str, value: Any, accessor: str = "$.") -> Fragment:
        pass

    @abstractmethod
    def json_merge_patch(self, document: str, other: str) -> Fragment:
        pass

    @abstractmethod
    def json_array_append(self, document: str, pairs: Sequence[JsonPair]) -> Fragment:
        pass

    @abstractmethod
    def json_unquote(self, value: Any) -> Fragment:
        pass

    @abstractmethod
    def json_compact(self, value: Any) -> Fragment:
        pass

    # Upsert and returning

    @abstractmethod
    def upsert_clause(
        self,
        set_columns: Sequence[str],
        conflict_columns: Optional[Sequence[str]] = None,
        constraint: Optional[str] = None,
    ) -> str:
        """Tail appended to a multi-row INSERT to turn it into an upsert.

        Columns arrive quoted.
        """
        pass

    def returning_clause(self, columns: Sequence[str]) -> Optional[str]:
        """Native ``RETURNING`` tail, or None when the dialect must emulate it."""
        return None

    def limit_clause(self) -> str:
        return "LIMIT ?"

    def offset_clause(self) -> str:
        return "OFFSET ?"

    @staticmethod
    def _embed(value: Any, placeholder: str = "?") -> Tuple[str, Tuple[Any, ...]]:
        """Render a JSON-set value: a Fragment is inlined, anything else bound."""
        if isinstance(value, Fragment):
            return value.sql, tuple(value.params)
        return placeholder, (value,)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"
