"""Placeholder handling for SQL text.

Statements are built with ``?`` markers. Before they reach a DBAPI driver
the markers are rewritten to the driver's paramstyle, skipping anything
inside string literals, quoted identifiers, comments and dollar-quoted
bodies. The same scanner translates ``$1``-style markers in raw SQL and
splits multi-statement scripts.

MySQL treats a backslash inside a string literal as an escape, so every
function takes a ``backslash_escapes`` flag that the dialect supplies.

Known limit: PostgreSQL's ``?`` jsonb operators are indistinguishable
from markers (use ``jsonb_exists`` instead).
"""

import re
from enum import Enum
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Sequence, Tuple, Union

from fluentquery.common.exceptions import ErrorCode, configuration_error, usage_error


class SegmentKind(str, Enum):
    CODE = "code"
    STRING = "string"
    IDENTIFIER = "identifier"
    COMMENT = "comment"
    DOLLAR = "dollar"


class Segment(NamedTuple):
    kind: SegmentKind
    text: str


_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")
_NUMBERED_MARKER = re.compile(r"(?<![A-Za-z0-9_])\$(\d+)")

DriverParams = Optional[Union[Tuple[Any, ...], Dict[str, Any]]]


def _is_identifier_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _quoted_end(sql: str, start: int, quote: str, backslash_escapes: bool = False) -> int:
    """Index just past the closing quote.

    A doubled quote is always an escape; with ``backslash_escapes`` a
    backslash also escapes the character after it.
    """
    n = len(sql)
    i = start + 1
    while i < n:
        ch = sql[i]
        if backslash_escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def scan(sql: str, backslash_escapes: bool = False) -> Iterator[Segment]:
    """Split ``sql`` into code and non-code segments.

    Unterminated literals and comments run to the end of the text.
    ``backslash_escapes`` applies to string literals only, never to
    quoted identifiers.
    """
    n = len(sql)
    i = 0
    code_start = 0
    while i < n:
        ch = sql[i]
        if ch == "'":
            kind, end = SegmentKind.STRING, _quoted_end(sql, i, ch, backslash_escapes)
        elif ch in ('"', "`"):
            kind, end = SegmentKind.IDENTIFIER, _quoted_end(sql, i, ch)
        elif sql.startswith("--", i):
            newline = sql.find("\n", i)
            kind, end = SegmentKind.COMMENT, n if newline == -1 else newline
        elif sql.startswith("/*", i):
            close = sql.find("*/", i + 2)
            kind, end = SegmentKind.COMMENT, n if close == -1 else close + 2
        elif ch == "$" and (i == 0 or not _is_identifier_char(sql[i - 1])):
            match = _DOLLAR_TAG.match(sql, i)
            if not match:
                i += 1
                continue
            tag = match.group(0)
            close = sql.find(tag, match.end())
            kind, end = SegmentKind.DOLLAR, n if close == -1 else close + len(tag)
        else:
            i += 1
            continue

        if code_start < i:
            yield Segment(SegmentKind.CODE, sql[code_start:i])
        yield Segment(kind, sql[i:end])
        i = code_start = end

    if code_start < n:
        yield Segment(SegmentKind.CODE, sql[code_start:])


def count_placeholders(sql: str, backslash_escapes: bool = False) -> int:
    """Number of ``?`` markers outside literals and comments."""
    segments = scan(sql, backslash_escapes)
    return sum(segment.text.count("?") for segment in segments if segment.kind is SegmentKind.CODE)


def convert_placeholders(
    sql: str,
    params: Sequence[Any],
    paramstyle: str,
    backslash_escapes: bool = False,
) -> Tuple[str, DriverParams]:
    """Rewrite ``?`` markers for a DBAPI ``paramstyle``.

    Args:
        sql: Statement with ``?`` markers
        params: Values in marker order
        paramstyle: ``qmark``, ``format``, ``pyformat``, ``numeric`` or ``named``
        backslash_escapes: Treat backslashes in string literals as escapes

    Returns:
        ``(statement, driver_params)``. ``driver_params`` is None when there
        are no values, in which case the statement is returned untouched
        and must be executed without parameters.

    Raises:
        ConfigurationError: If the paramstyle is unknown
    """
    if not params:
        return sql, None

    values = tuple(params)
    if paramstyle == "qmark":
        return sql, values

    if paramstyle in ("format", "pyformat"):
        def render(index: int) -> str:
            return "%s"
        escape_percent = True
    elif paramstyle == "numeric":
        def render(index: int) -> str:
            return f":{index}"
        escape_percent = False
    elif paramstyle == "named":
        def render(index: int) -> str:
            return f":p{index}"
        escape_percent = False
    else:
        raise configuration_error(
            f"Unsupported DBAPI paramstyle '{paramstyle}'",
            config_key="paramstyle",
            error_code=ErrorCode.CONFIG_INVALID,
        )

    pieces: List[str] = []
    counter = 0
    for segment in scan(sql, backslash_escapes):
        text = segment.text.replace("%", "%%") if escape_percent else segment.text
        if segment.kind is SegmentKind.CODE:
            parts = text.split("?")
            rebuilt = [parts[0]]
            for part in parts[1:]:
                counter += 1
                rebuilt.append(render(counter))
                rebuilt.append(part)
            text = "".join(rebuilt)
        pieces.append(text)

    statement = "".join(pieces)
    if paramstyle == "named":
        return statement, {f"p{index}": value for index, value in enumerate(values, start=1)}
    return statement, values


def translate_numbered_placeholders(
    sql: str,
    params: Sequence[Any],
    backslash_escapes: bool = False,
) -> Tuple[str, List[Any]]:
    """Turn ``$1..$n`` markers into ``?`` markers.

    Parameters are reordered, or repeated, to follow the markers as they
    appear, so ``"$2 AND $1 OR $2"`` with ``(a, b)`` binds ``[b, a, b]``.

    Raises:
        UsageError: If a marker refers past the supplied parameters
    """
    values = list(params)
    ordered: List[Any] = []

    def replace(match: "re.Match[str]") -> str:
        index = int(match.group(1))
        if index < 1 or index > len(values):
            raise usage_error(
                f"Placeholder ${index} has no matching parameter ({len(values)} supplied)",
                argument="params",
                error_code=ErrorCode.PARAMETER_MISMATCH,
            )
        ordered.append(values[index - 1])
        return "?"

    pieces = [
        _NUMBERED_MARKER.sub(replace, segment.text) if segment.kind is SegmentKind.CODE else segment.text
        for segment in scan(sql, backslash_escapes)
    ]
    return "".join(pieces), ordered


def split_statements(script: str, backslash_escapes: bool = False) -> List[str]:
    """Strip comments and split ``script`` on top-level semicolons.

    Semicolons inside literals and dollar-quoted bodies do not split.
    Empty statements are dropped.
    """
    statements: List[str] = []
    current: List[str] = []
    for segment in scan(script, backslash_escapes):
        if segment.kind is SegmentKind.COMMENT:
            current.append(" ")
            continue
        if segment.kind is not SegmentKind.CODE:
            current.append(segment.text)
            continue
        parts = segment.text.split(";")
        current.append(parts[0])
        for part in parts[1:]:
            statements.append("".join(current))
            current = [part]
    statements.append("".join(current))
    return [statement.strip() for statement in statements if statement.strip()]
