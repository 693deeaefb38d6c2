"""Tests for sqlkv.connection (primitives, transactions, convenience CRUD) against SQLite."""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from sqlkv import Connection, Registry, Statement
from sqlkv.core.errors import EmptyBatchError, EmptyConditionMapError, EmptyValueMapError
from tests.utils.database import make_fake_conn, sqlite_connection


@pytest.fixture
def registry() -> Registry:
    reg = Registry()
    yield reg
    reg.unregister_all()


def test_execute_and_query_row(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    result = conn.execute(
        "INSERT INTO profile (first_name, last_name) VALUES (?, ?)", ["foo", "bar"]
    )

    assert result.rows_affected == 1
    assert result.last_insert_id == 1
    row = conn.query_row("SELECT first_name, last_name FROM profile WHERE id=?", [1])
    assert row == {"first_name": "foo", "last_name": "bar"}
    assert conn.query_row("SELECT id FROM profile WHERE id=?", [99]) is None


def test_create_update_delete_aliases(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.create("INSERT INTO profile (first_name) VALUES (?)", ["a"])
    assert conn.update("UPDATE profile SET first_name=? WHERE id=?", ["b", 1]).rows_affected == 1
    assert conn.delete("DELETE FROM profile WHERE id=?", [1]).rows_affected == 1


def test_primitives_release_connection_on_error(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    with pytest.raises(Exception):
        conn.execute("INSERT INTO missing_table VALUES (?)", [1])
    with pytest.raises(Exception):
        conn.query_rows("SELECT * FROM missing_table")

    assert conn.stats()["in_use"] == 0


def test_query_rows_context_manager(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.insert("profile", {"first_name": "a", "last_name": "x"})
    conn.insert("profile", {"first_name": "b", "last_name": "x"})

    with conn.query_rows("SELECT first_name FROM profile ORDER BY id") as rows:
        assert rows.columns == ["first_name"]
        assert [r["first_name"] for r in rows] == ["a", "b"]

    assert conn.stats()["in_use"] == 0


def test_transaction_commits(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    with conn.transaction() as tx:
        tx.execute("INSERT INTO profile (first_name) VALUES (?)", ["tx"])
        assert tx.query_row("SELECT first_name FROM profile WHERE first_name=?", ["tx"]) == {
            "first_name": "tx"
        }

    assert conn.select_row("profile", ["first_name"], {"first_name": "tx"}) == {"first_name": "tx"}


def test_transaction_rolls_back_on_error(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    with pytest.raises(RuntimeError):
        with conn.transaction() as tx:
            tx.execute("INSERT INTO profile (first_name) VALUES (?)", ["lost"])
            raise RuntimeError("abort")

    assert conn.select_row("profile", where={"first_name": "lost"}) is None
    assert conn.stats()["in_use"] == 0


def test_transaction_closes_open_rows(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.insert("profile", {"first_name": "a"})

    with conn.transaction() as tx:
        rows = tx.query_rows("SELECT * FROM profile")

    assert rows.closed
    assert conn.stats()["in_use"] == 0


def test_exec_tx(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.insert("profile", {"first_name": "a", "last_name": "x"})

    result = conn.exec_tx("UPDATE profile SET last_name = ? WHERE id=?", "Bill", 1)

    assert result.rows_affected == 1
    assert conn.select_row("profile", ["last_name"], {"id": 1}) == {"last_name": "Bill"}


def test_exec_batch_tx_returns_last_result(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    result = conn.exec_batch_tx(
        Statement("INSERT INTO profile (first_name) VALUES (?)", ["a"]),
        ("INSERT INTO profile (first_name) VALUES (?)", ["b"]),
        Statement("UPDATE profile SET last_name = ?", ["same"]),
    )

    assert result.rows_affected == 2
    with conn.select_rows("profile", ["last_name"]) as rows:
        assert [r["last_name"] for r in rows] == ["same", "same"]


def test_exec_batch_tx_is_atomic(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)

    with pytest.raises(Exception):
        conn.exec_batch_tx(
            Statement("INSERT INTO profile (first_name) VALUES (?)", ["a"]),
            Statement("INSERT INTO missing_table VALUES (?)", [1]),
        )

    assert conn.select_row("profile", where={"first_name": "a"}) is None


def test_exec_batch_tx_empty() -> None:
    pool = MagicMock()
    with pytest.raises(EmptyBatchError):
        Connection(pool, "x").exec_batch_tx()
    pool.acquire.assert_not_called()


def test_execute_keeps_zero_last_insert_id() -> None:
    pool = MagicMock()
    pool.acquire.return_value = make_fake_conn(lastrowid=0)

    result = Connection(pool, "x").execute("UPDATE t SET a=?", [1])

    assert result.last_insert_id == 0
    pool.release.assert_called_once()


def test_execute_without_lastrowid_reports_none() -> None:
    fake = make_fake_conn()
    del fake.cursor.return_value.lastrowid
    pool = MagicMock()
    pool.acquire.return_value = fake

    assert Connection(pool, "x").execute("UPDATE t SET a=?", [1]).last_insert_id is None


def test_convenience_crud_raises_on_caller_error(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    with pytest.raises(EmptyValueMapError):
        conn.insert("profile", {})
    with pytest.raises(EmptyConditionMapError):
        conn.update_where("profile", {"first_name": "x"}, {})
    with pytest.raises(EmptyConditionMapError):
        conn.delete_where("profile", {})


def test_convenience_update_and_delete(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.insert("profile", {"first_name": "foo", "last_name": "bar"})

    assert conn.update_where("profile", {"last_name": "Dog"}, {"first_name": "foo"}).rows_affected == 1
    assert conn.select_row("profile", ["last_name"], {"first_name": "foo"}) == {"last_name": "Dog"}
    assert conn.delete_where("profile", {"first_name": "foo"}).rows_affected == 1
    assert conn.select_row("profile", where={"first_name": "foo"}) is None


@patch("sqlkv.connection.settings")
def test_statement_logging(mock_settings, tmp_path: Path, registry: Registry, caplog) -> None:
    mock_settings.SQLKV_LOG_STATEMENTS = True
    conn = sqlite_connection(tmp_path, registry)

    with caplog.at_level("DEBUG", logger="sqlkv.connection"):
        conn.insert("profile", {"first_name": "foo"})

    assert "INSERT INTO profile(`first_name`) VALUES('foo')" in caplog.text


def test_ping_and_repr(tmp_path: Path, registry: Registry) -> None:
    conn = sqlite_connection(tmp_path, registry)
    conn.ping()
    assert repr(conn) == "Connection(name='main', driver=sqlite)"
