from __future__ import annotations

from stockroom.db import q, transaction, x
from stockroom.logger import logger
from stockroom.services.products import ProductInput, create_product
from stockroom.services.sales import SaleLineInput, create_sale

DEMO_CATEGORIES = [
    ("Electronics", "Electronic devices and gadgets", "#3B82F6"),
    ("Accessories", "Computer accessories", "#10B981"),
    ("Office", "Office supplies", "#F59E0B"),
]

# (name, description, sku, price, cost, quantity, min_quantity, category)
DEMO_PRODUCTS = [
    ("Wireless Mouse", "Ergonomic wireless mouse", "WM-001", 29.99, 15.0, 45, 10, "Electronics"),
    ("Mechanical Keyboard", "RGB mechanical keyboard", "KB-002", 89.99, 45.0, 23, 5, "Electronics"),
    ("USB-C Hub", "7-in-1 USB-C hub", "HUB-003", 49.99, 22.0, 67, 15, "Electronics"),
    ("Monitor Stand", "Adjustable aluminum stand", "MS-004", 39.99, 18.0, 34, 8, "Accessories"),
    ("Webcam HD", "1080p HD webcam", "WC-005", 59.99, 28.0, 8, 10, "Electronics"),
    ("Notebook A5", "Dotted notebook, 120 pages", "NB-006", 4.5, 1.8, 120, 30, "Office"),
]

# (payment_method, [(sku, quantity), ...])
DEMO_SALES = [
    ("cash", [("WM-001", 2), ("NB-006", 5)]),
    ("card", [("KB-002", 1)]),
    ("card", [("HUB-003", 1), ("MS-004", 1)]),
]


def wipe_all(conn) -> None:
    # Keep schema, delete data (order matters for FKs).
    with transaction(conn):
        for t in ["sale_items", "sales", "products", "categories"]:
            conn.execute(f"DELETE FROM {t};")
    logger.info("Wiped all data")


def load_demo_data(conn) -> bool:
    """Seed a small catalogue and a few sales. Does nothing if products already exist."""
    existing = q(conn, "SELECT COUNT(*) AS n FROM products")[0]
    if int(existing["n"]) > 0:
        logger.info("Store already has products, skipping demo data")
        return False

    with transaction(conn):
        cat_ids = {}
        for name, desc, color in DEMO_CATEGORIES:
            x(conn, "INSERT OR IGNORE INTO categories (name, description, color) VALUES (?, ?, ?)", (name, desc, color))
            cat_ids[name] = int(q(conn, "SELECT id FROM categories WHERE name=?", (name,))[0]["id"])

        by_sku = {}
        for name, desc, sku, price, cost, qty, min_qty, cat in DEMO_PRODUCTS:
            p = create_product(
                conn,
                ProductInput(
                    name=name,
                    description=desc,
                    sku=sku,
                    price=price,
                    cost=cost,
                    quantity=qty,
                    min_quantity=min_qty,
                    category_id=cat_ids[cat],
                ),
            )
            by_sku[sku] = int(p["id"])

        for method, lines in DEMO_SALES:
            create_sale(
                conn,
                items=[SaleLineInput(product_id=by_sku[sku], quantity=n) for sku, n in lines],
                payment_method=method,
                notes="Demo sale",
            )

    logger.info("Loaded demo data")
    return True
