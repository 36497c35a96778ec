"""Shared fixtures: a recording stand-in for a SQLAlchemy connection."""

from collections import deque
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from fluentquery.constants import Dialect
from fluentquery.query_builder import StatementFactory


class FakeMappings:
    def __init__(self, rows: List[Dict[str, Any]]):
        self._rows = rows

    def all(self):
        return list(self._rows)

    def first(self):
        return self._rows[0] if self._rows else None


class FakeResult:
    """Mimics the parts of ``CursorResult`` the engine touches."""

    def __init__(
        self,
        rows: Optional[List[Dict[str, Any]]] = None,
        rowcount: int = 0,
        lastrowid: Optional[int] = None,
    ):
        self._rows = rows or []
        self.rowcount = rowcount
        self.lastrowid = lastrowid
        self.returns_rows = rows is not None

    def all(self):
        return [SimpleNamespace(**row) for row in self._rows]

    def first(self):
        rows = self.all()
        return rows[0] if rows else None

    def mappings(self):
        return FakeMappings(self._rows)

    def keys(self):
        return list(self._rows[0].keys()) if self._rows else []

    def fetchall(self):
        return [tuple(row.values()) for row in self._rows]

    def scalar(self):
        return next(iter(self._rows[0].values())) if self._rows else None


class FakeConnection:
    """Records every statement and hands back queued results in order."""

    def __init__(self, paramstyle: str = "qmark", name: str = "fake"):
        self.dialect = SimpleNamespace(paramstyle=paramstyle, name=name)
        self.statements: List[tuple] = []
        self.results: deque = deque()
        self.fail_on: Optional[str] = None
        self.commits = 0
        self.rollbacks = 0
        self.begins = 0
        self.closed = False
        self._in_transaction = False

    def queue(self, *results: FakeResult) -> "FakeConnection":
        self.results.extend(results)
        return self

    def exec_driver_sql(self, statement, parameters=None, execution_options=None):
        self.statements.append((statement, parameters))
        self._in_transaction = True
        if self.fail_on and self.fail_on in statement:
            raise RuntimeError(f"driver rejected: {statement}")
        if self.results:
            return self.results.popleft()
        return FakeResult(rowcount=1)

    def begin(self):
        self.begins += 1
        self._in_transaction = True

    def in_transaction(self):
        return self._in_transaction

    def commit(self):
        self.commits += 1
        self._in_transaction = False

    def rollback(self):
        self.rollbacks += 1
        self._in_transaction = False

    def close(self):
        self.closed = True

    @property
    def sql(self) -> List[str]:
        return [statement for statement, _ in self.statements]


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def mysql_factory(connection):
    return StatementFactory(connection, dialect=Dialect.MYSQL)


@pytest.fixture
def pg_factory(connection):
    return StatementFactory(connection, dialect=Dialect.POSTGRES)


@pytest.fixture
def mysql_query(mysql_factory):
    return mysql_factory.new_query()


@pytest.fixture
def pg_query(pg_factory):
    return pg_factory.new_query()
