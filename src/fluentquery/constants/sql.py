"""SQL and query-related constants.

Layer 0: nothing in here imports from the rest of the package, so the
builder, the dialects and the engine can all share these enums.
"""

from enum import Enum
from typing import FrozenSet


class Dialect(str, Enum):
    """SQL dialects the builder can render."""

    MYSQL = "mysql"
    POSTGRES = "postgres"


class ClauseType(str, Enum):
    """The last clause a statement emitted.

    The builder keys its connector decisions (``WHERE`` vs ``AND``,
    ``ORDER BY`` vs ``,``) on this value.
    """

    NONE = "NONE"
    SELECT = "SELECT"
    FROM = "FROM"
    WHERE = "WHERE"
    ORDER_BY = "ORDER_BY"
    GROUP_BY = "GROUP_BY"
    HAVING = "HAVING"
    SET = "SET"
    JOIN = "JOIN"
    WITH = "WITH"
    SUB_QUERY = "SUB_QUERY"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    INSERT = "INSERT"
    LIMIT = "LIMIT"
    OFFSET = "OFFSET"
    AS = "AS"
    UNION = "UNION"
    RAW = "RAW"

    DATE_FORMAT = "DATE_FORMAT"
    JSON_EXTRACT = "JSON_EXTRACT"
    JSON_SET = "JSON_SET"
    JSON_REMOVE = "JSON_REMOVE"
    JSON_EXIST = "JSON_EXIST"
    JSON_CONTAIN = "JSON_CONTAIN"
    JSON_MERGE_PATCH = "JSON_MERGE_PATCH"
    JSON_ARRAY_APPEND = "JSON_ARRAY_APPEND"
    JSON_UNQUOTE = "JSON_UNQUOTE"
    JSON_COMPACT = "JSON_COMPACT"

    # Statement has been executed; it may be re-run but not modified.
    DONE = "DONE"


class FetchShape(str, Enum):
    """Shape of fetched rows.

    OBJECT rows support attribute access (``row.name``); ROW rows are plain
    dicts keyed by column name.
    """

    OBJECT = "object"
    ROW = "row"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


class QueryType(str, Enum):
    """Leading keyword of a statement, used to label spans and log records."""

    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    WITH = "WITH"
    SCRIPT = "SCRIPT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_sql(cls, sql: str) -> "QueryType":
        stripped = sql.lstrip(" \t\r\n(")
        keyword = stripped.split(None, 1)[0].upper() if stripped else ""
        try:
            return cls(keyword)
        except ValueError:
            return cls.UNKNOWN


COMPARISON_OPERATORS: FrozenSet[str] = frozenset({"=", "!=", "<", "<=", "<=>", ">", ">="})
NULL_SAFE_EQUALS = "<=>"

DEFAULT_CHUNK_SIZE = 1000
