"""Clause transitions.

Each clause that can repeat knows the keyword that opens it and the token
that continues it. Whether a call opens or continues is decided only by the
clause the statement emitted last.
"""

from typing import Dict, FrozenSet, NamedTuple, Optional

from fluentquery.constants.sql import ClauseType


class Connector(NamedTuple):
    keyword: str
    continuation: str


CLAUSE_CONNECTORS: Dict[ClauseType, Connector] = {
    ClauseType.WHERE: Connector("WHERE", "AND"),
    ClauseType.HAVING: Connector("HAVING", "AND"),
    ClauseType.ORDER_BY: Connector("ORDER BY", ","),
    ClauseType.GROUP_BY: Connector("GROUP BY", ","),
    ClauseType.SET: Connector("SET", ","),
    ClauseType.WITH: Connector("WITH", ","),
}

# Clauses after which another select expression continues the SELECT list.
SELECT_LIST_CLAUSES: FrozenSet[ClauseType] = frozenset({
    ClauseType.SELECT,
    ClauseType.AS,
    ClauseType.SUB_QUERY,
    ClauseType.RAW,
    ClauseType.DATE_FORMAT,
    ClauseType.JSON_EXTRACT,
    ClauseType.JSON_SET,
    ClauseType.JSON_REMOVE,
    ClauseType.JSON_EXIST,
    ClauseType.JSON_CONTAIN,
    ClauseType.JSON_MERGE_PATCH,
    ClauseType.JSON_ARRAY_APPEND,
    ClauseType.JSON_UNQUOTE,
    ClauseType.JSON_COMPACT,
})


def connector_for(last: ClauseType, entering: ClauseType, continuation: Optional[str] = None) -> str:
    """Token to emit when ``entering`` follows ``last``.

    Args:
        last: Clause the statement emitted last
        entering: Clause about to be emitted, must be in CLAUSE_CONNECTORS
        continuation: Override for the repeat token, e.g. ``OR`` for or-where

    >>> connector_for(ClauseType.FROM, ClauseType.WHERE)
    'WHERE'
    >>> connector_for(ClauseType.WHERE, ClauseType.WHERE, "OR")
    'OR'
    """
    connector = CLAUSE_CONNECTORS[entering]
    if last is entering:
        return continuation or connector.continuation
    return connector.keyword
