from __future__ import annotations

import sqlite3

import pytest

from stockroom.db import _connect
from stockroom.schema import schema_manager


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "data" / "inventory_v2.db"


@pytest.fixture
def conn(db_path):
    schema_manager().apply(db_path)
    c = _connect(db_path)
    yield c
    c.close()


def raw_conn(path) -> sqlite3.Connection:
    c = sqlite3.connect(str(path))
    c.row_factory = sqlite3.Row
    return c


def table_names(c: sqlite3.Connection) -> set[str]:
    rows = c.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()
    return {r[0] for r in rows}


def columns(c: sqlite3.Connection, table: str) -> list[str]:
    return [r[1] for r in c.execute(f"PRAGMA table_info({table})").fetchall()]


@pytest.fixture
def seeded(conn):
    """Two categories and five products, mirroring a small shop catalogue."""
    for name, desc, color in [
        ("Electronics", "Electronic devices and gadgets", "#3B82F6"),
        ("Accessories", "Computer accessories", "#10B981"),
    ]:
        conn.execute("INSERT INTO categories (name, description, color) VALUES (?, ?, ?)", (name, desc, color))

    conn.executemany(
        """
        INSERT INTO products (name, description, sku, price, cost, quantity, min_quantity, category_id)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        [
            ("Wireless Mouse", "Ergonomic wireless mouse", "WM-001", 29.99, 15.0, 45, 10, 1),
            ("Mechanical Keyboard", "RGB mechanical keyboard", "KB-002", 89.99, 45.0, 23, 5, 1),
            ("USB-C Hub", "7-in-1 USB-C hub", "HUB-003", 49.99, 22.0, 67, 15, 1),
            ("Monitor Stand", "Adjustable aluminum stand", "MS-004", 39.99, 18.0, 34, 8, 2),
            ("Webcam HD", "1080p HD webcam", "WC-005", 59.99, 28.0, 8, 10, 1),
        ],
    )
    conn.commit()
    return conn
