from __future__ import annotations

import sqlite3
from typing import Optional

from stockroom.db import changed, q, transaction, x
from stockroom.logger import logger
from stockroom.utils import clean_text

_UNSET = object()


def list_categories(conn):
    return q(conn, "SELECT * FROM categories ORDER BY name")


def get_category(conn, category_id: int):
    rows = q(conn, "SELECT * FROM categories WHERE id=?", (int(category_id),))
    return rows[0] if rows else None


def _require_name(name) -> str:
    n = clean_text(name)
    if n is None:
        raise ValueError("Category name is required.")
    return n


def create_category(
    conn,
    *,
    name: str,
    description: Optional[str] = None,
    color: Optional[str] = None,
):
    name = _require_name(name)
    try:
        category_id = x(
            conn,
            "INSERT INTO categories (name, description, color) VALUES (?, ?, ?)",
            (name, clean_text(description), clean_text(color)),
        )
    except sqlite3.IntegrityError as e:
        raise ValueError(f"Category '{name}' already exists.") from e

    logger.info("Created category %s (%s)", category_id, name)
    return get_category(conn, category_id)


def update_category(conn, category_id: int, *, name=_UNSET, description=_UNSET, color=_UNSET):
    """Partial update: only the fields passed are written. Returns the row, or None if missing."""
    fields: list[str] = []
    values: list = []

    if name is not _UNSET:
        fields.append("name=?")
        values.append(_require_name(name))
    if description is not _UNSET:
        fields.append("description=?")
        values.append(clean_text(description))
    if color is not _UNSET:
        fields.append("color=?")
        values.append(clean_text(color))

    if not fields:
        return get_category(conn, category_id)

    values.append(int(category_id))
    try:
        changed(conn, f"UPDATE categories SET {', '.join(fields)} WHERE id=?", values)
    except sqlite3.IntegrityError as e:
        raise ValueError("Another category already uses that name.") from e
    return get_category(conn, category_id)


def delete_category(conn, category_id: int) -> bool:
    # Detach products first so the foreign key never dangles.
    with transaction(conn):
        changed(conn, "UPDATE products SET category_id=NULL WHERE category_id=?", (int(category_id),))
        n = changed(conn, "DELETE FROM categories WHERE id=?", (int(category_id),))
    if n:
        logger.info("Deleted category %s", category_id)
    return n > 0
