"""Unit tests for executing built statements through SQLEngine."""

import pandas as pd
import pytest

from conftest import FakeConnection, FakeResult
from fluentquery.common.exceptions import DriverError, ErrorCode, UsageError
from fluentquery.constants import ClauseType, Dialect, FetchShape
from fluentquery.engine import SQLEngine
from fluentquery.query_builder import StatementFactory


class TestFetching:

    def test_fetch_result_object_rows(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 1, "name": "alice"}]))

        rows = mysql_query.select("id, name").from_("users").where("id", "=", 1).fetch_result()

        assert rows[0].name == "alice"
        assert connection.statements == [("SELECT id, name FROM users WHERE id = ?", (1,))]
        assert mysql_query.row_count == 1
        assert mysql_query.last_clause is ClauseType.DONE

    def test_fetch_result_row_shape(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]))

        rows = mysql_query.select("id, name").from_("users").fetch_result("row")

        assert rows == [{"id": 1, "name": "alice"}, {"id": 2, "name": "bob"}]
        assert mysql_query.get_row_count() == 2

    def test_set_fetch_shape_applies_to_fetch_first(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 3}]))
        row = mysql_query.set_fetch_shape(FetchShape.ROW).select("id").from_("users").fetch_first()
        assert row == {"id": 3}

    def test_fetch_first_without_rows(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[]))
        assert mysql_query.select("*").from_("users").where("id", "=", 99).fetch_first() is None
        assert mysql_query.row_count == 0

    def test_fetch_dataframe(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]))

        df = mysql_query.select("id, name").from_("users").fetch_dataframe()

        assert isinstance(df, pd.DataFrame)
        assert list(df.columns) == ["id", "name"]
        assert df["name"].tolist() == ["a", "b"]
        assert mysql_query.row_count == 2

    def test_exec_returns_affected_rows(self, mysql_query, connection):
        connection.queue(FakeResult(rowcount=3))

        affected = mysql_query.update("users").set("active", 0).where("last_login", "<", "2020-01-01").exec()

        assert affected == 3
        assert connection.statements == [
            ("UPDATE users SET active = ? WHERE last_login < ?", (0, "2020-01-01"))
        ]
        assert connection.commits == 1


class TestFinalization:

    def test_executed_query_rejects_mutation(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[]))
        mysql_query.select("*").from_("users").fetch_result()

        with pytest.raises(UsageError) as exc_info:
            mysql_query.where("id", "=", 1)
        assert exc_info.value.error_code is ErrorCode.STATEMENT_FINALIZED

    def test_executed_query_can_run_again(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 1}]), FakeResult(rows=[{"id": 1}, {"id": 2}]))
        mysql_query.select("id").from_("users")

        assert len(mysql_query.fetch_result()) == 1
        assert len(mysql_query.fetch_result()) == 2
        assert connection.sql == ["SELECT id FROM users", "SELECT id FROM users"]

    def test_empty_query_cannot_execute(self, mysql_query, connection):
        with pytest.raises(UsageError):
            mysql_query.exec()
        assert connection.statements == []

    def test_misaligned_statement_is_not_sent(self, mysql_query, connection):
        mysql_query.select("*").from_("users WHERE id = ?")
        with pytest.raises(UsageError) as exc_info:
            mysql_query.fetch_result()
        assert exc_info.value.error_code is ErrorCode.PARAMETER_MISMATCH
        assert connection.statements == []

    def test_driver_failure_is_wrapped(self, mysql_query, connection):
        connection.fail_on = "FROM missing"
        with pytest.raises(DriverError) as exc_info:
            mysql_query.select("*").from_("missing").fetch_result()
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert exc_info.value.error_code is ErrorCode.QUERY_EXECUTION_ERROR
        assert connection.rollbacks == 1


class TestRawExecution:

    def test_run_leaves_builder_untouched(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"one": 1}]))
        mysql_query.select("*").from_("users")

        rows = mysql_query.run("SELECT ? AS one", 1)

        assert rows[0].one == 1
        assert mysql_query.sql == "SELECT * FROM users"
        mysql_query.where("id", "=", 5)
        assert mysql_query.params == [5]

    def test_run_checks_placeholder_count(self, mysql_query, connection):
        with pytest.raises(UsageError):
            mysql_query.run("SELECT * FROM users WHERE id = ?")
        assert connection.statements == []

    def test_row_returns_first_row(self, mysql_query, connection):
        connection.queue(FakeResult(rows=[{"id": 4, "name": "d"}]))
        assert mysql_query.row("SELECT id, name FROM users WHERE id = ?", 4).name == "d"
        assert mysql_query.row_count == 1

    def test_run_pg_reorders_numbered_markers(self, pg_query, connection):
        connection.queue(FakeResult(rows=[]))

        pg_query.run_pg("SELECT * FROM users WHERE username = $1 OR email = $2 OR username = $1", "alice", "a@x.io")

        assert connection.statements == [
            ("SELECT * FROM users WHERE username = ? OR email = ? OR username = ?", ("alice", "a@x.io", "alice"))
        ]

    def test_run_pg_marker_out_of_range(self, pg_query, connection):
        with pytest.raises(UsageError) as exc_info:
            pg_query.run_pg("SELECT * FROM users WHERE id = $2", 1)
        assert exc_info.value.error_code is ErrorCode.PARAMETER_MISMATCH

    def test_row_pg_without_rows(self, pg_query, connection):
        connection.queue(FakeResult(rows=[]))
        assert pg_query.row_pg("SELECT * FROM users WHERE id = $1", 404) is None

    def test_exec_raw_runs_script_in_one_transaction(self, mysql_query, connection):
        script = """
            CREATE TABLE a (id int); -- first table
            INSERT INTO a VALUES (1); /* trailing; comment */
        """

        assert mysql_query.exec_raw(script) == 2
        assert connection.sql == ["CREATE TABLE a (id int)", "INSERT INTO a VALUES (1)"]
        assert connection.begins == 1
        assert connection.commits == 1
        assert mysql_query.row_count == 2


class TestBackslashEscapes:
    """MySQL string literals may escape a quote with a backslash."""

    BIO_FILTER = r"SELECT * FROM users WHERE bio <> 'it\'s' AND id = ?"

    def test_mysql_raw_accepts_escaped_quote(self, mysql_query):
        q = mysql_query.raw(self.BIO_FILTER, 1)
        assert q.params == [1]

    def test_mysql_run_rewrites_marker_for_pyformat_driver(self):
        connection = FakeConnection(paramstyle="pyformat")
        connection.queue(FakeResult(rows=[]))
        query = StatementFactory(connection, dialect=Dialect.MYSQL).new_query()

        query.run(self.BIO_FILTER, 1)

        assert connection.statements == [(r"SELECT * FROM users WHERE bio <> 'it\'s' AND id = %s", (1,))]

    def test_mysql_script_does_not_split_inside_escaped_literal(self, mysql_query, connection):
        script = r"INSERT INTO notes VALUES ('a\'; b'); INSERT INTO notes VALUES ('c')"

        assert mysql_query.exec_raw(script) == 2
        assert connection.sql == [r"INSERT INTO notes VALUES ('a\'; b')", "INSERT INTO notes VALUES ('c')"]

    def test_postgres_backslash_is_an_ordinary_character(self, pg_query):
        q = pg_query.raw(r"SELECT 'C:\' AS dir WHERE id = ?", 3)
        assert q.params == [3]

    def test_factory_aligns_a_ready_engine_with_its_dialect(self, connection):
        engine = SQLEngine(connection)
        assert StatementFactory(engine, dialect=Dialect.MYSQL).engine.backslash_escapes is True


class TestFetchShapeValidation:

    def test_set_fetch_shape_rejects_unknown_shape(self, mysql_query):
        with pytest.raises(UsageError) as exc_info:
            mysql_query.set_fetch_shape("tuple")
        assert exc_info.value.details["argument"] == "shape"

    def test_unknown_shape_does_not_finalize(self, mysql_query, connection):
        mysql_query.select("*").from_("users")
        with pytest.raises(UsageError):
            mysql_query.fetch_result("tuple")
        assert connection.statements == []
        assert mysql_query.last_clause is not ClauseType.DONE
