"""Unit tests for batch inserts, upserts and insert-returning."""

import pytest

from conftest import FakeResult
from fluentquery.common.exceptions import ConfigurationError, DriverError, ErrorCode, UsageError
from fluentquery.constants import Dialect
from fluentquery.query_builder import StatementFactory


def _users(count):
    return [{"name": f"user{i}", "email": f"user{i}@example.com"} for i in range(count)]


class TestInsert:

    def test_rows_are_chunked(self, mysql_query, connection):
        connection.queue(*[FakeResult(rowcount=50) for _ in range(3)])

        assert mysql_query.insert("users", _users(150), chunk_size=50) is True

        assert len(connection.statements) == 3
        sql, params = connection.statements[0]
        assert sql == "INSERT INTO users (`name`,`email`) VALUES " + ",".join(["(?,?)"] * 50)
        assert len(params) == 100
        assert params[:2] == ("user0", "user0@example.com")
        assert connection.statements[2][1][-1] == "user149@example.com"
        assert mysql_query.row_count == 150
        assert connection.commits == 3

    def test_factory_chunk_size_is_default(self, connection):
        factory = StatementFactory(connection, dialect=Dialect.MYSQL, chunk_size=2)
        factory.new_query().insert("users", _users(5))
        assert len(connection.statements) == 3

    def test_single_mapping(self, pg_query, connection):
        assert pg_query.insert("users", {"name": "a"}) is True
        assert connection.statements == [('INSERT INTO users ("name") VALUES (?)', ("a",))]

    def test_empty_data_is_a_noop(self, mysql_query, connection):
        assert mysql_query.insert("users", []) is False
        assert mysql_query.row_count == 0
        assert connection.statements == []

    def test_zero_rows_reported(self, mysql_query, connection):
        connection.queue(FakeResult(rowcount=0))
        assert mysql_query.insert("users", _users(1)) is False

    def test_rows_must_share_columns(self, mysql_query, connection):
        rows = [{"name": "a", "email": "a@x"}, {"name": "b"}]
        with pytest.raises(UsageError):
            mysql_query.insert("users", rows)
        assert connection.statements == []

    def test_rows_must_be_mappings(self, mysql_query):
        with pytest.raises(UsageError):
            mysql_query.insert("users", [("a", "b")])

    def test_insert_finalizes_query(self, mysql_query):
        mysql_query.insert("users", _users(1))
        with pytest.raises(UsageError) as exc_info:
            mysql_query.insert("users", _users(1))
        assert exc_info.value.error_code is ErrorCode.STATEMENT_FINALIZED


class TestUpsert:

    def test_mysql_duplicate_key(self, mysql_query, connection):
        mysql_query.insert_on_duplicate("users", [{"id": 1, "email": "a@x"}], ["email"])
        assert connection.sql == [
            "INSERT INTO users (`id`,`email`) VALUES (?,?) ON DUPLICATE KEY UPDATE `email` = VALUES(`email`)"
        ]

    def test_mysql_ignores_conflict_target(self, mysql_query, connection):
        mysql_query.insert_on_duplicate("users", {"username": "a", "email": "x"}, {"set": ["email"], "conflict": "username"})
        assert connection.sql[0].endswith("ON DUPLICATE KEY UPDATE `email` = VALUES(`email`)")

    def test_postgres_conflict_columns(self, pg_query, connection):
        pg_query.insert_on_duplicate(
            "users",
            [{"username": "a", "email": "x"}],
            {"set": ["email"], "conflict": ["username"]},
        )
        assert connection.sql == [
            'INSERT INTO users ("username","email") VALUES (?,?) '
            'ON CONFLICT ("username") DO UPDATE SET "email" = EXCLUDED."email"'
        ]

    def test_postgres_named_constraint(self, pg_query, connection):
        pg_query.insert_on_duplicate(
            "users",
            [{"username": "a", "email": "x", "name": "A"}],
            {"columns": ["email", "name"], "constraint": "users_username_key"},
        )
        assert connection.sql[0].endswith(
            'ON CONFLICT ON CONSTRAINT users_username_key DO UPDATE SET "email" = EXCLUDED."email", "name" = EXCLUDED."name"'
        )

    def test_postgres_infers_id_target(self, pg_query, connection):
        pg_query.insert_on_duplicate("users", [{"id": 1, "email": "x"}], ["email"])
        assert 'ON CONFLICT ("id") DO UPDATE' in connection.sql[0]

    def test_postgres_requires_target(self, pg_query, connection):
        with pytest.raises(ConfigurationError) as exc_info:
            pg_query.insert_on_duplicate("users", [{"username": "a", "email": "x"}], ["email"])
        assert exc_info.value.error_code is ErrorCode.CONFLICT_TARGET_MISSING
        assert connection.statements == []

    @pytest.mark.parametrize("update", [[], {"conflict": ["id"]}, {"set": []}])
    def test_set_columns_required(self, mysql_query, update):
        with pytest.raises(ConfigurationError) as exc_info:
            mysql_query.insert_on_duplicate("users", [{"id": 1, "email": "x"}], update)
        assert exc_info.value.error_code is ErrorCode.CONFIG_INVALID

    def test_upsert_is_chunked(self, pg_query, connection):
        rows = [{"id": i, "email": f"{i}@x"} for i in range(5)]
        pg_query.insert_on_duplicate("users", rows, ["email"], chunk_size=2)
        assert len(connection.statements) == 3
        assert all(sql.endswith('DO UPDATE SET "email" = EXCLUDED."email"') for sql in connection.sql)


class TestInsertReturning:

    def test_postgres_native_returning(self, pg_query, connection):
        connection.queue(FakeResult(rows=[{"id": 10, "username": "a"}, {"id": 11, "username": "b"}]))

        rows = pg_query.insert_returning("users", [{"username": "a"}, {"username": "b"}], ["id", "username"])

        assert [row.id for row in rows] == [10, 11]
        assert connection.statements == [
            ('INSERT INTO users ("username") VALUES (?),(?) RETURNING "id", "username"', ("a", "b"))
        ]
        assert pg_query.row_count == 2

    def test_mysql_reads_back_by_last_insert_id(self, mysql_query, connection):
        connection.queue(
            FakeResult(rowcount=2, lastrowid=7),
            FakeResult(rows=[{"id": 7, "name": "a"}, {"id": 8, "name": "b"}]),
        )

        rows = mysql_query.insert_returning("users", [{"name": "a"}, {"name": "b"}], ["id", "name"])

        assert [row.id for row in rows] == [7, 8]
        assert connection.statements == [
            ("INSERT INTO users (`name`) VALUES (?),(?)", ("a", "b")),
            ("SELECT `id`, `name` FROM users WHERE `id` >= ? ORDER BY `id` LIMIT ?", (7, 2)),
        ]
        assert connection.begins == 1
        assert connection.commits == 1
        assert mysql_query.row_count == 2

    def test_mysql_reads_back_by_values(self, mysql_query, connection):
        connection.queue(FakeResult(rowcount=2), FakeResult(rows=[{"id": 1}, {"id": 2}]))

        mysql_query.insert_returning(
            "users",
            [{"name": "a", "email": None}, {"name": "b", "email": "b@x"}],
            "id",
        )

        assert connection.statements[1] == (
            "SELECT `id` FROM users WHERE (`name` <=> ? AND `email` <=> ?) OR (`name` <=> ? AND `email` <=> ?)",
            ("a", None, "b", "b@x"),
        )

    def test_failed_read_back_rolls_back(self, mysql_query, connection):
        connection.fail_on = "SELECT"

        with pytest.raises(DriverError):
            mysql_query.insert_returning("users", [{"name": "a"}], ["id"])

        assert connection.rollbacks == 1
        assert connection.commits == 0

    def test_caller_transaction_is_left_open(self, mysql_factory, connection):
        connection.queue(FakeResult(rowcount=1, lastrowid=3), FakeResult(rows=[{"id": 3}]))
        mysql_factory.begin()

        mysql_factory.new_query().insert_returning("users", [{"name": "a"}], ["id"])

        assert connection.commits == 0
        assert mysql_factory.in_transaction()
        mysql_factory.commit()
        assert connection.commits == 1

    def test_empty_data(self, pg_query, connection):
        assert pg_query.insert_returning("users", [], ["id"]) == []
        assert connection.statements == []

    def test_returning_columns_required(self, pg_query):
        with pytest.raises(UsageError):
            pg_query.insert_returning("users", [{"name": "a"}], [])
