"""Tests for perch.data.database — SQLite executor, transactions, table ops."""

import logging
from pathlib import Path

import pytest

from perch.data import query as q
from perch.data.database import Database
from perch.data.errors import (
    ConnectionFailed,
    DataError,
    ExecuteFailed,
    InvalidIdentifier,
    PrepareFailed,
)

SCHEMA = """
CREATE TABLE users (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    age INTEGER
);
CREATE TABLE posts (
    id INTEGER PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id),
    title TEXT NOT NULL
);
"""


@pytest.fixture
def db(tmp_path: Path):
    database = Database(f"sqlite:///{tmp_path / 'test.db'}")
    database.run_script(SCHEMA)
    yield database
    database.close()


def _seed(db: Database) -> None:
    db.batch_insert("users", ["name", "age"], [("Ada", 36), ("Bob", 25), ("Cy", 41)])
    db.batch_insert(
        "posts",
        ["user_id", "title"],
        [(1, "Python tips"), (1, "SQL basics"), (2, "Learning python")],
    )


class TestUrl:
    def test_memory(self) -> None:
        with Database("sqlite:///:memory:") as mem:
            assert mem.connected
            assert mem.run_query("SELECT 1 AS one") == [{"one": 1}]
        assert not mem.connected

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(DataError, match="Unsupported database URL"):
            Database("postgresql://localhost/app")

    def test_connect_failure(self, tmp_path: Path) -> None:
        db = Database(f"sqlite:///{tmp_path / 'missing' / 'nested' / 'x.db'}")
        with pytest.raises(ConnectionFailed):
            db.connect()
        assert not db.connected

    def test_lazy_connect(self, tmp_path: Path) -> None:
        db = Database(f"sqlite:///{tmp_path / 'lazy.db'}")
        assert not db.connected
        db.run_query("SELECT 1")
        assert db.connected
        db.close()


class TestLowLevel:
    def test_rows_are_dicts(self, db: Database) -> None:
        db.run_execute("INSERT INTO users (name, age) VALUES (?, ?)", ["Ada", 36])
        rows = db.run_query("SELECT name, age FROM users")
        assert rows == [{"name": "Ada", "age": 36}]

    def test_run_insert_returns_id(self, db: Database) -> None:
        first = db.run_insert("INSERT INTO users (name) VALUES (?)", ["a"])
        second = db.run_insert(q.insert("users", {"name": "b"}))
        assert second == first + 1

    def test_run_execute_returns_affected(self, db: Database) -> None:
        _seed(db)
        assert db.run_execute("UPDATE users SET age = age + 1 WHERE age > ?", [30]) == 2

    def test_query_without_result_set(self, db: Database) -> None:
        assert db.run_query("INSERT INTO users (name) VALUES ('x')") == []

    def test_null_binds(self, db: Database) -> None:
        db.write_record("users", {"name": "n", "age": None})
        assert db.read_table("users", "age") == [{"age": None}]

    def test_syntax_error_is_prepare_failure(self, db: Database) -> None:
        with pytest.raises(PrepareFailed):
            db.run_query("SELEC * FROM users")

    def test_unknown_table_is_prepare_failure(self, db: Database) -> None:
        with pytest.raises(PrepareFailed):
            db.run_query("SELECT * FROM nope")

    def test_binding_count_mismatch_is_prepare_failure(self, db: Database) -> None:
        with pytest.raises(PrepareFailed):
            db.run_query("SELECT * FROM users WHERE id = ? AND name = ?", [1])

    def test_constraint_violation_is_execute_failure(self, db: Database) -> None:
        db.write_record("users", {"name": "dup"})
        with pytest.raises(ExecuteFailed) as exc_info:
            db.write_record("users", {"name": "dup"})
        assert exc_info.value.code is not None
        assert str(exc_info.value).startswith(f"({exc_info.value.code})")

    def test_foreign_keys_enforced(self, db: Database) -> None:
        with pytest.raises(ExecuteFailed):
            db.write_record("posts", {"user_id": 999, "title": "orphan"})

    def test_driver_errors_are_data_errors(self, db: Database) -> None:
        with pytest.raises(DataError):
            db.run_query("SELECT * FROM nope")

    def test_echo_logs_at_info(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        db = Database(f"sqlite:///{tmp_path / 'echo.db'}", echo=True)
        with caplog.at_level(logging.INFO, logger="perch.data"):
            db.run_query("SELECT ? AS v", [5])
        db.close()
        assert any("SELECT ? AS v" in r.getMessage() for r in caplog.records)


class TestTransactions:
    def test_commit(self, db: Database) -> None:
        with db.transaction():
            db.write_record("users", {"name": "a"})
            db.write_record("users", {"name": "b"})
            assert db.in_transaction
        assert not db.in_transaction
        assert db.count_rows("users") == 2

    def test_rollback_on_error(self, db: Database) -> None:
        db.write_record("users", {"name": "keep"})
        with pytest.raises(ExecuteFailed):
            with db.transaction():
                db.write_record("users", {"name": "new"})
                db.write_record("users", {"name": "keep"})
        assert db.count_rows("users") == 1
        assert db.read_table("users", "name") == [{"name": "keep"}]

    def test_rollback_on_any_exception(self, db: Database) -> None:
        with pytest.raises(KeyError):
            with db.transaction():
                db.write_record("users", {"name": "gone"})
                raise KeyError("boom")
        assert db.count_rows("users") == 0

    def test_nested_joins_outer(self, db: Database) -> None:
        with pytest.raises(RuntimeError):
            with db.transaction():
                db.write_record("users", {"name": "outer"})
                with db.transaction():
                    db.write_record("users", {"name": "inner"})
                raise RuntimeError("abort")
        assert db.count_rows("users") == 0

    def test_autocommit_restored(self, db: Database) -> None:
        with db.transaction():
            pass
        db.write_record("users", {"name": "after"})
        other = Database(db.config.url)
        try:
            assert other.count_rows("users") == 1
        finally:
            other.close()

    def test_run_transaction_returns_result(self, db: Database) -> None:
        def work(tx: Database) -> int:
            tx.write_record("users", {"name": "a"})
            return tx.write_record("users", {"name": "b"})

        last_id = db.run_transaction(work)
        assert db.read_table("users", "name", where="id = ?", params=[last_id]) == [
            {"name": "b"}
        ]


class TestTableOperations:
    def test_read_table_filters_and_orders(self, db: Database) -> None:
        _seed(db)
        rows = db.read_table("users", "name", where="age > ?", params=[30], order="age DESC")
        assert rows == [{"name": "Cy"}, {"name": "Ada"}]

    def test_read_table_limit_offset(self, db: Database) -> None:
        _seed(db)
        rows = db.read_table("users", "name", order="id", limit=1, offset=1)
        assert rows == [{"name": "Bob"}]

    def test_read_table_rejects_bad_identifier(self, db: Database) -> None:
        with pytest.raises(InvalidIdentifier):
            db.read_table("users; DROP TABLE users")
        assert db.count_rows("users") == 0

    def test_join(self, db: Database) -> None:
        _seed(db)
        rows = db.read_table_with_join(
            "posts p",
            [{"table": "users u", "on": "u.id = p.user_id", "type": "LEFT"}],
            "p.title, u.name AS author",
            order="p.id",
        )
        assert rows[0] == {"title": "Python tips", "author": "Ada"}
        assert len(rows) == 3

    def test_paginated(self, db: Database) -> None:
        _seed(db)
        page2 = db.read_table_paginated("users", page=2, per_page=2, columns="name", order="id")
        assert page2 == [{"name": "Cy"}]
        page0 = db.read_table_paginated("users", page=0, per_page=2, columns="name", order="id")
        assert page0 == [{"name": "Ada"}, {"name": "Bob"}]

    def test_partial_search(self, db: Database) -> None:
        _seed(db)
        rows = db.partial_search("posts", "title", "ython", "title", order="id")
        assert [r["title"] for r in rows] == ["Python tips", "Learning python"]
        assert db.count_partial_search("posts", "title", "ython") == 2

    def test_update_and_delete(self, db: Database) -> None:
        _seed(db)
        assert db.update_record("users", {"age": 1}, "name = ?", ["Bob"]) == 1
        assert db.read_table("users", "age", where="name = ?", params=["Bob"]) == [{"age": 1}]
        assert db.delete_record("posts", "user_id = ?", [1]) == 2
        assert db.count_rows("posts") == 1

    def test_batch_insert_count(self, db: Database) -> None:
        assert db.batch_insert("users", ["name"], [("a",), ("b",), ("c",)]) == 3
        assert db.count_rows("users", "name != ?", ["b"]) == 2

    def test_custom_query_select(self, db: Database) -> None:
        _seed(db)
        rows = db.custom_query("  select count(*) AS n FROM users")
        assert rows == [{"n": 3}]

    def test_custom_query_with_cte(self, db: Database) -> None:
        rows = db.custom_query("WITH x(v) AS (VALUES (1), (2)) SELECT SUM(v) AS s FROM x")
        assert rows == [{"s": 3}]

    def test_custom_query_write(self, db: Database) -> None:
        _seed(db)
        result = db.custom_query("DELETE FROM posts WHERE user_id = ?", [1])
        assert result == {"affected_rows": 2}
