"""End-to-end tests against an in-memory SQLite database.

SQLite understands the PostgreSQL spellings used here (double quoted
identifiers, ``||`` concatenation, ``ON CONFLICT ... DO UPDATE``), so the
PostgreSQL dialect is exercised through a real SQLAlchemy connection.
"""

import pandas as pd
import pytest
from sqlalchemy import create_engine

from fluentquery.common.exceptions import DriverError
from fluentquery.constants import Dialect, FetchShape
from fluentquery.engine import SQLEngine
from fluentquery.query_builder import PaginationContext, PostgresTableRegistry, StatementFactory

SCHEMA = """
-- users and their posts
CREATE TABLE users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    email TEXT NOT NULL,
    active BOOLEAN NOT NULL DEFAULT 1
);
/* one row per post; titles may contain ';' */
CREATE TABLE posts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    title TEXT NOT NULL,
    views INTEGER NOT NULL DEFAULT 0
);
"""


@pytest.fixture
def factory():
    tables = PostgresTableRegistry()
    tables.add_table("users", ["id", "username", "email", "active"])
    tables.add_table("posts", ["id", "user_id", "title", "views"])

    factory = StatementFactory(create_engine("sqlite://"), tables, Dialect.POSTGRES, fetch_shape=FetchShape.ROW)
    factory.new_query().exec_raw(SCHEMA)
    factory.new_query().insert(
        "users",
        [{"username": f"user{i:02d}", "email": f"user{i:02d}@example.com", "active": i % 3 != 0} for i in range(1, 11)],
    )
    yield factory
    factory.close()


def test_engine_runs_plain_statements():
    engine = SQLEngine(create_engine("sqlite://"))
    assert engine.fetch_scalar("SELECT ? + ?", [1, 2]) == 3
    engine.close()


def test_schema_script_and_batch_insert(factory):
    q = factory.new_query()
    assert q.row("SELECT COUNT(*) AS total FROM users")["total"] == 10

    posts = [{"user_id": (i % 10) + 1, "title": f"Post {i}; part", "views": i * 10} for i in range(25)]
    assert factory.new_query().insert("posts", posts, chunk_size=10) is True
    assert factory.new_query().row("SELECT COUNT(*) AS total FROM posts")["total"] == 25


def test_select_with_filters(factory):
    rows = (
        factory.new_query()
        .select(factory.tables.pick_table("users", ["username"]))
        .from_("users")
        .where_true("active")
        .where_starts("username", "user0")
        .order_by_desc("id")
        .limit(2)
        .offset(1)
        .fetch_result()
    )
    # active user0x rows are 1, 2, 4, 5, 7, 8
    assert [row["username"] for row in rows] == ["user07", "user05"]


def test_like_and_membership(factory):
    q = factory.new_query()
    rows = (
        q.select("username").from_("users")
        .where_like("email", "r1")
        .or_where_ends("username", "03")
        .order_by("username")
        .fetch_result()
    )
    assert [row["username"] for row in rows] == ["user03", "user10"]

    sub = factory.new_query().select("id").from_("users").where_in("username", ["user01", "user02"])
    rows = factory.new_query().select("email").from_("users").where_in("id", sub).order_by("id").fetch_result()
    assert [row["email"] for row in rows] == ["user01@example.com", "user02@example.com"]


def test_update_and_delete(factory):
    affected = factory.new_query().update("users").set("email", "new@example.com").where("username", "=", "user01").exec()
    assert affected == 1

    deleted = factory.new_query().delete("users").where_false("active").exec()
    assert deleted == 3
    assert factory.new_query().row("SELECT COUNT(*) AS total FROM users")["total"] == 7


def test_upsert_on_conflict(factory):
    q = factory.new_query()
    q.insert_on_duplicate(
        "users",
        [
            {"username": "user01", "email": "changed@example.com", "active": True},
            {"username": "user11", "email": "user11@example.com", "active": True},
        ],
        {"set": ["email"], "conflict": ["username"]},
    )
    assert q.row_count == 2

    rows = factory.new_query().run("SELECT username, email FROM users WHERE username IN (?, ?) ORDER BY username", "user01", "user11")
    assert rows == [
        {"username": "user01", "email": "changed@example.com"},
        {"username": "user11", "email": "user11@example.com"},
    ]


def test_simple_paginate(factory):
    context = PaginationContext(path="/users", query_params={"page": "2", "sort": "name"})

    page = factory.new_query().select("id, username").from_("users").order_by("id").simple_paginate(4, context=context)

    assert page.total_rows == 10
    assert page.total_pages == 3
    assert page.per_page == 4
    assert [row["id"] for row in page.data] == [5, 6, 7, 8]
    assert page.next_page_url == "/users?page=3&sort=name"


def test_numbered_markers(factory):
    q = factory.new_query()
    rows = q.run_pg("SELECT username FROM users WHERE username = $1 OR email = $2", "user02", "user04@example.com")
    assert sorted(row["username"] for row in rows) == ["user02", "user04"]
    assert q.row_pg("SELECT id FROM users WHERE username = $1", "nobody") is None


def test_fetch_dataframe(factory):
    df = factory.new_query().select("username, active").from_("users").where("id", "<=", 3).order_by("id").fetch_dataframe()
    assert isinstance(df, pd.DataFrame)
    assert df["username"].tolist() == ["user01", "user02", "user03"]


def test_transaction_rollback(factory):
    with pytest.raises(DriverError):
        with factory.transaction():
            factory.new_query().delete("users").where("id", "=", 1).exec()
            factory.new_query().run("SELECT * FROM missing_table")

    assert factory.new_query().row("SELECT COUNT(*) AS total FROM users")["total"] == 10


def test_failed_statement_is_rolled_back(factory):
    with pytest.raises(DriverError):
        factory.new_query().insert("users", {"username": "user01", "email": "dup@example.com", "active": True})

    assert factory.new_query().row("SELECT email FROM users WHERE username = ?", "user01")["email"] == "user01@example.com"


def test_simple_paginate_first_page_by_default(factory):
    page = factory.new_query().select("*").from_("users").simple_paginate(5, "page")
    assert len(page.data) == 5
    assert page.per_page == 5
    assert page.current_page == 1
    assert [link.number for link in page.link_window] == [1, 2]


def test_upsert_against_existing_row_counts_one(factory):
    q = factory.new_query()
    q.insert_on_duplicate(
        "users",
        {"username": "user02", "email": "again@example.com", "active": True},
        {"set": ["email"], "conflict": ["username"]},
    )

    assert q.row_count == 1
    assert factory.new_query().row("SELECT COUNT(*) AS total FROM users")["total"] == 10


def test_null_safe_equality_matches_null(factory):
    factory.new_query().exec_raw(
        "CREATE TABLE notes (id INTEGER PRIMARY KEY, body TEXT); "
        "INSERT INTO notes (id, body) VALUES (1, NULL), (2, 'x')"
    )

    null_safe = factory.new_query().select("id").from_("notes").where("body", "<=>", None).fetch_result()
    plain = factory.new_query().select("id").from_("notes").where("body", "=", None).fetch_result()

    assert null_safe == [{"id": 1}]
    assert plain == []


def test_json_set_then_extract_round_trips():
    mysql_factory = StatementFactory(create_engine("sqlite://"), dialect=Dialect.MYSQL, fetch_shape=FetchShape.ROW)
    mysql_factory.new_query().exec_raw(
        "CREATE TABLE posts (id INTEGER PRIMARY KEY, metadata TEXT NOT NULL); "
        "INSERT INTO posts (id, metadata) VALUES (1, '{\"author\": \"Someone\"}')"
    )

    q = mysql_factory.new_query()
    value = q.q().json_set("metadata", "author", '"Updated Author"')
    assert q.update("posts").set("metadata", value).where("id", "=", 1).exec() == 1

    row = (
        mysql_factory.new_query()
        .select()
        .json_extract("metadata", "author").as_("author")
        .from_("posts")
        .where("id", "=", 1)
        .fetch_first()
    )
    assert row == {"author": '"Updated Author"'}
    mysql_factory.close()
