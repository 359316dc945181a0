from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from stockroom.logger import logger
from stockroom.schema import schema_manager


class StoreConnection(sqlite3.Connection):
    in_unit_of_work = False


def _connect(db_path: Path) -> StoreConnection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False, factory=StoreConnection)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> StoreConnection:
    return _connect(db_path)


def ensure_schema(db_path: Path) -> list[int]:
    """Bring the store up to the latest schema version. Must run before any query."""
    applied = schema_manager().apply(db_path)
    if applied:
        logger.info("Schema ready at %s (applied migrations %s)", db_path, applied)
    return applied


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    cur = conn.execute(sql, tuple(params))
    # Inside transaction() the commit is left to the context manager.
    if not getattr(conn, "in_unit_of_work", False):
        conn.commit()
    last = cur.lastrowid
    cur.close()
    return int(last or 0)


def changed(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> int:
    """Like x(), but returns the number of rows touched."""
    cur = conn.execute(sql, tuple(params))
    if not getattr(conn, "in_unit_of_work", False):
        conn.commit()
    n = cur.rowcount
    cur.close()
    return int(n)


@contextmanager
def transaction(conn: StoreConnection) -> Iterator[StoreConnection]:
    """
    Group several writes into one commit.

    Nested use joins the outer transaction. Any exception rolls everything back.
    Writes the caller left uncommitted on ``conn`` are committed before the
    unit starts, so a rollback here never discards them.
    """
    if getattr(conn, "in_unit_of_work", False):
        yield conn
        return

    conn.commit()
    conn.execute("BEGIN;")
    conn.in_unit_of_work = True
    try:
        yield conn
        conn.commit()
    except BaseException:
        conn.rollback()
        raise
    finally:
        conn.in_unit_of_work = False
