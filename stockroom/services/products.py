from __future__ import annotations

import math
import sqlite3
from dataclasses import dataclass, field
from typing import Optional

from stockroom.db import changed, q, x
from stockroom.logger import logger
from stockroom.utils import clean_text

_UNSET = object()

_PRODUCT_SELECT = """
    SELECT p.*, c.name AS category_name
    FROM products p
    LEFT JOIN categories c ON c.id = p.category_id
"""


@dataclass
class ProductInput:
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    price: float = 0.0
    cost: float = 0.0
    quantity: int = 0
    min_quantity: int = 0
    category_id: Optional[int] = None


def _money(v, label: str) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{label} must be a number.")
    if not math.isfinite(f):
        raise ValueError(f"{label} must be a finite number.")
    if f < 0:
        raise ValueError(f"{label} must be >= 0.")
    return f


def _whole(v, label: str) -> int:
    if isinstance(v, bool):
        raise ValueError(f"{label} must be a whole number.")
    try:
        f = float(v)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"{label} must be a whole number.")
    if not math.isfinite(f) or f != int(f):
        raise ValueError(f"{label} must be a whole number.")
    return int(f)


def _check_category(conn, category_id) -> Optional[int]:
    if category_id is None:
        return None
    r = q(conn, "SELECT id FROM categories WHERE id=?", (int(category_id),))
    if not r:
        raise ValueError("Category not found.")
    return int(category_id)


def _integrity_message(e: sqlite3.IntegrityError) -> str:
    if "products.sku" in str(e):
        return "Another product already uses that SKU."
    return f"Product violates a database constraint: {e}"


# -------------------------
# Readers
# -------------------------

def list_products(conn):
    return q(conn, _PRODUCT_SELECT + " ORDER BY p.name")


def get_product(conn, product_id: int):
    rows = q(conn, _PRODUCT_SELECT + " WHERE p.id=?", (int(product_id),))
    return rows[0] if rows else None


def search_products(conn, text: str):
    """Case-insensitive match on product name, SKU or category name."""
    pattern = f"%{str(text or '').strip()}%"
    return q(
        conn,
        _PRODUCT_SELECT + " WHERE p.name LIKE ? OR p.sku LIKE ? OR c.name LIKE ? ORDER BY p.name",
        (pattern, pattern, pattern),
    )


def list_products_by_category(conn, category_id: int):
    return q(conn, _PRODUCT_SELECT + " WHERE p.category_id=? ORDER BY p.name", (int(category_id),))


def list_low_stock(conn):
    return q(conn, _PRODUCT_SELECT + " WHERE p.quantity <= p.min_quantity ORDER BY p.quantity ASC, p.name")


@dataclass
class ProductSaleEntry:
    sale_id: int
    date: str
    quantity: int
    unit_price: float
    subtotal: float


@dataclass
class ProductSalesHistory:
    product_id: int
    product_name: str
    sales: list[ProductSaleEntry] = field(default_factory=list)
    total_quantity: int = 0
    total_revenue: float = 0.0


def get_product_sales_history(conn, product_id: int) -> Optional[ProductSalesHistory]:
    """Every sale line for one product, newest sale first, with running totals."""
    product = get_product(conn, product_id)
    if product is None:
        return None

    rows = q(
        conn,
        """
        SELECT si.sale_id, s.created_at AS date, si.quantity, si.unit_price, si.subtotal
        FROM sale_items si
        JOIN sales s ON s.id = si.sale_id
        WHERE si.product_id=?
        ORDER BY s.created_at DESC, si.sale_id DESC, si.id DESC
        """,
        (int(product_id),),
    )
    sales = [
        ProductSaleEntry(
            sale_id=int(r["sale_id"]),
            date=str(r["date"]),
            quantity=int(r["quantity"]),
            unit_price=float(r["unit_price"]),
            subtotal=float(r["subtotal"]),
        )
        for r in rows
    ]
    return ProductSalesHistory(
        product_id=int(product["id"]),
        product_name=str(product["name"]),
        sales=sales,
        total_quantity=sum(s.quantity for s in sales),
        total_revenue=round(sum(s.subtotal for s in sales), 2),
    )


# -------------------------
# Writers
# -------------------------

def create_product(conn, data: ProductInput):
    name = clean_text(data.name)
    if name is None:
        raise ValueError("Product name is required.")

    params = (
        name,
        clean_text(data.description),
        clean_text(data.sku),
        _money(data.price, "Price"),
        _money(data.cost, "Cost"),
        _whole(data.quantity, "Quantity"),
        _whole(data.min_quantity, "Minimum quantity"),
        _check_category(conn, data.category_id),
    )
    try:
        product_id = x(
            conn,
            """
            INSERT INTO products (name, description, sku, price, cost, quantity, min_quantity, category_id)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            params,
        )
    except sqlite3.IntegrityError as e:
        raise ValueError(_integrity_message(e)) from e

    logger.info("Created product %s (%s)", product_id, name)
    return get_product(conn, product_id)


def update_product(
    conn,
    product_id: int,
    *,
    name=_UNSET,
    description=_UNSET,
    sku=_UNSET,
    price=_UNSET,
    cost=_UNSET,
    quantity=_UNSET,
    min_quantity=_UNSET,
    category_id=_UNSET,
):
    fields: list[str] = []
    values: list = []

    if name is not _UNSET:
        n = clean_text(name)
        if n is None:
            raise ValueError("Product name is required.")
        fields.append("name=?")
        values.append(n)
    if description is not _UNSET:
        fields.append("description=?")
        values.append(clean_text(description))
    if sku is not _UNSET:
        fields.append("sku=?")
        values.append(clean_text(sku))
    if price is not _UNSET:
        fields.append("price=?")
        values.append(_money(price, "Price"))
    if cost is not _UNSET:
        fields.append("cost=?")
        values.append(_money(cost, "Cost"))
    if quantity is not _UNSET:
        fields.append("quantity=?")
        values.append(_whole(quantity, "Quantity"))
    if min_quantity is not _UNSET:
        fields.append("min_quantity=?")
        values.append(_whole(min_quantity, "Minimum quantity"))
    if category_id is not _UNSET:
        fields.append("category_id=?")
        values.append(_check_category(conn, category_id))

    if not fields:
        return get_product(conn, product_id)

    fields.append("updated_at=CURRENT_TIMESTAMP")
    values.append(int(product_id))
    try:
        changed(conn, f"UPDATE products SET {', '.join(fields)} WHERE id=?", values)
    except sqlite3.IntegrityError as e:
        raise ValueError(_integrity_message(e)) from e
    return get_product(conn, product_id)


def adjust_quantity(conn, product_id: int, delta: int):
    n = changed(
        conn,
        "UPDATE products SET quantity = quantity + ?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
        (_whole(delta, "Quantity change"), int(product_id)),
    )
    return get_product(conn, product_id) if n else None


def restock_product(conn, product_id: int, quantity: int, new_cost: Optional[float] = None):
    """Add received stock, optionally replacing the unit cost. Returns None for unknown products."""
    qty = _whole(quantity, "Restock quantity")
    if qty <= 0:
        raise ValueError("Restock quantity must be > 0.")

    if new_cost is None:
        n = changed(
            conn,
            "UPDATE products SET quantity = quantity + ?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
            (qty, int(product_id)),
        )
    else:
        n = changed(
            conn,
            "UPDATE products SET quantity = quantity + ?, cost=?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
            (qty, _money(new_cost, "Cost"), int(product_id)),
        )
    if not n:
        return None

    logger.info("Restocked product %s by %s", product_id, qty)
    return get_product(conn, product_id)


def delete_product(conn, product_id: int) -> bool:
    """
    Hard delete. Foreign keys are enforced, so a product that appears on any
    sale line cannot be removed; sales history stays intact.
    """
    try:
        n = changed(conn, "DELETE FROM products WHERE id=?", (int(product_id),))
    except sqlite3.IntegrityError as e:
        raise ValueError("Product has recorded sales and cannot be deleted.") from e
    if n:
        logger.info("Deleted product %s", product_id)
    return n > 0
