from __future__ import annotations

import pytest

from stockroom.db import _connect, changed, ensure_schema, q, transaction, x


def test_ensure_schema_creates_store(tmp_path):
    path = tmp_path / "nested" / "dir" / "store.db"

    assert ensure_schema(path) == [1, 2]
    assert ensure_schema(path) == []


def test_connection_enforces_foreign_keys(conn):
    assert conn.execute("PRAGMA foreign_keys").fetchone()[0] == 1


def test_x_returns_row_id_and_changed_counts(conn):
    pid = x(conn, "INSERT INTO products (name) VALUES (?)", ("Tea",))
    assert pid == 1
    assert changed(conn, "UPDATE products SET price=? WHERE id=?", (3.0, pid)) == 1
    assert changed(conn, "UPDATE products SET price=? WHERE id=?", (3.0, 999)) == 0


def test_transaction_commits_once(conn, db_path):
    with transaction(conn):
        x(conn, "INSERT INTO products (name) VALUES ('A')")
        x(conn, "INSERT INTO products (name) VALUES ('B')")

    other = _connect(db_path)
    assert len(q(other, "SELECT * FROM products")) == 2
    other.close()


def test_transaction_rolls_back_on_error(conn):
    with pytest.raises(RuntimeError):
        with transaction(conn):
            x(conn, "INSERT INTO products (name) VALUES ('A')")
            with transaction(conn):
                x(conn, "INSERT INTO products (name) VALUES ('B')")
            raise RuntimeError("abort")

    assert q(conn, "SELECT * FROM products") == []
    assert conn.in_unit_of_work is False


def test_transaction_commits_pending_caller_writes_first(conn, db_path):
    conn.execute("INSERT INTO products (name) VALUES ('Pending')")

    with pytest.raises(RuntimeError):
        with transaction(conn):
            x(conn, "INSERT INTO products (name) VALUES ('Inside')")
            raise RuntimeError("abort")

    other = _connect(db_path)
    assert [r["name"] for r in q(other, "SELECT name FROM products")] == ["Pending"]
    other.close()
