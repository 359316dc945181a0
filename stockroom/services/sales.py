from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from stockroom.db import changed, q, transaction, x
from stockroom.logger import logger
from stockroom.utils import clean_text, round_money


@dataclass
class SaleLineInput:
    product_id: int
    quantity: int


@dataclass
class SaleLine:
    id: int
    sale_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    subtotal: float


@dataclass
class SaleResult:
    sale_id: int
    total_amount: float
    payment_method: Optional[str]
    notes: Optional[str]
    created_at: str
    items: list[SaleLine] = field(default_factory=list)


def _line_quantity(v) -> int:
    try:
        qty = int(v)
    except (TypeError, ValueError, OverflowError):
        raise ValueError("Quantity must be a whole number.")
    if isinstance(v, bool) or qty != v:
        raise ValueError("Quantity must be a whole number.")
    if qty <= 0:
        raise ValueError("Quantity must be > 0.")
    return qty


def create_sale(
    conn,
    *,
    items: list[SaleLineInput],
    payment_method: Optional[str] = None,
    notes: Optional[str] = None,
) -> SaleResult:
    """
    Record one checkout.

    Each line is priced at the product's current price; that price is copied
    to the line so later price changes never rewrite history. The sale, its
    lines and the stock decrement are committed together.
    """
    if not items:
        raise ValueError("A sale needs at least one item.")

    priced: list[dict] = []
    for it in items:
        qty = _line_quantity(it.quantity)
        rows = q(conn, "SELECT id, name, price FROM products WHERE id=?", (int(it.product_id),))
        if not rows:
            raise ValueError(f"Product {it.product_id} not found.")
        p = rows[0]
        unit_price = float(p["price"])
        priced.append(
            {
                "product_id": int(p["id"]),
                "product_name": str(p["name"]),
                "quantity": qty,
                "unit_price": unit_price,
                "subtotal": round_money(qty * unit_price),
            }
        )

    total = round_money(sum(line["subtotal"] for line in priced))

    with transaction(conn):
        sale_id = x(
            conn,
            "INSERT INTO sales (total_amount, payment_method, notes) VALUES (?, ?, ?)",
            (total, clean_text(payment_method), clean_text(notes)),
        )

        lines: list[SaleLine] = []
        for line in priced:
            item_id = x(
                conn,
                """
                INSERT INTO sale_items (sale_id, product_id, quantity, unit_price, subtotal)
                VALUES (?, ?, ?, ?, ?)
                """,
                (sale_id, line["product_id"], line["quantity"], line["unit_price"], line["subtotal"]),
            )
            changed(
                conn,
                "UPDATE products SET quantity = quantity - ?, updated_at=CURRENT_TIMESTAMP WHERE id=?",
                (line["quantity"], line["product_id"]),
            )
            lines.append(SaleLine(id=int(item_id), sale_id=int(sale_id), **line))

    sale = q(conn, "SELECT * FROM sales WHERE id=?", (sale_id,))[0]
    logger.info("Recorded sale %s: %s line(s), total %.2f", sale_id, len(lines), total)

    return SaleResult(
        sale_id=int(sale_id),
        total_amount=float(sale["total_amount"]),
        payment_method=sale["payment_method"],
        notes=sale["notes"],
        created_at=str(sale["created_at"]),
        items=lines,
    )


def get_sale(conn, sale_id: int) -> Optional[SaleResult]:
    rows = q(conn, "SELECT * FROM sales WHERE id=?", (int(sale_id),))
    if not rows:
        return None
    s = rows[0]

    items = q(
        conn,
        """
        SELECT si.*, p.name AS product_name
        FROM sale_items si
        JOIN products p ON p.id = si.product_id
        WHERE si.sale_id=?
        ORDER BY si.id
        """,
        (int(sale_id),),
    )
    return SaleResult(
        sale_id=int(s["id"]),
        total_amount=float(s["total_amount"]),
        payment_method=s["payment_method"],
        notes=s["notes"],
        created_at=str(s["created_at"]),
        items=[
            SaleLine(
                id=int(r["id"]),
                sale_id=int(r["sale_id"]),
                product_id=int(r["product_id"]),
                product_name=str(r["product_name"]),
                quantity=int(r["quantity"]),
                unit_price=float(r["unit_price"]),
                subtotal=float(r["subtotal"]),
            )
            for r in items
        ],
    )


def list_sales(conn):
    return q(conn, "SELECT * FROM sales ORDER BY created_at DESC, id DESC")


def list_sales_between(conn, start: str, end: str):
    """Sales with start <= created_at <= end (timestamps as stored, 'YYYY-MM-DD HH:MM:SS')."""
    return q(
        conn,
        "SELECT * FROM sales WHERE created_at >= ? AND created_at <= ? ORDER BY created_at DESC, id DESC",
        (str(start), str(end)),
    )


def delete_sale(conn, sale_id: int) -> bool:
    # sale_items go with it (ON DELETE CASCADE); stock is not put back.
    n = changed(conn, "DELETE FROM sales WHERE id=?", (int(sale_id),))
    if n:
        logger.info("Deleted sale %s", sale_id)
    return n > 0
