from __future__ import annotations

import pytest

from stockroom.services.products import get_product, update_product
from stockroom.services.sales import (
    SaleLineInput,
    create_sale,
    delete_sale,
    get_sale,
    list_sales,
    list_sales_between,
)


def test_create_sale_prices_lines_and_decrements_stock(seeded):
    sale = create_sale(
        seeded,
        items=[SaleLineInput(product_id=1, quantity=2), SaleLineInput(product_id=2, quantity=1)],
        payment_method="card",
        notes="  ",
    )

    assert sale.total_amount == pytest.approx(149.97)
    assert sale.payment_method == "card"
    assert sale.notes is None
    assert [(i.product_name, i.quantity, i.unit_price, i.subtotal) for i in sale.items] == [
        ("Wireless Mouse", 2, 29.99, 59.98),
        ("Mechanical Keyboard", 1, 89.99, 89.99),
    ]
    assert get_product(seeded, 1)["quantity"] == 43
    assert get_product(seeded, 2)["quantity"] == 22


def test_unit_price_is_frozen_at_time_of_sale(seeded):
    sale = create_sale(seeded, items=[SaleLineInput(product_id=1, quantity=1)])
    update_product(seeded, 1, price=99.0)

    again = get_sale(seeded, sale.sale_id)
    assert again.items[0].unit_price == 29.99
    assert again.total_amount == 29.99


def test_subtotal_is_quantity_times_unit_price(seeded):
    sale = create_sale(seeded, items=[SaleLineInput(product_id=3, quantity=3)])
    row = seeded.execute("SELECT quantity, unit_price, subtotal FROM sale_items WHERE sale_id=?", (sale.sale_id,)).fetchone()
    assert row["subtotal"] == pytest.approx(row["quantity"] * row["unit_price"])


@pytest.mark.parametrize(
    "items",
    [
        [],
        [SaleLineInput(product_id=1, quantity=0)],
        [SaleLineInput(product_id=1, quantity=-2)],
        [SaleLineInput(product_id=1, quantity=1.5)],
        [SaleLineInput(product_id=999, quantity=1)],
    ],
)
def test_create_sale_rejects_bad_lines(seeded, items):
    with pytest.raises(ValueError):
        create_sale(seeded, items=items)

    assert list_sales(seeded) == []
    assert get_product(seeded, 1)["quantity"] == 45


def test_failed_write_leaves_no_partial_sale(seeded, monkeypatch):
    import stockroom.services.sales as sales_mod

    real_changed = sales_mod.changed

    def boom(conn, sql, params=()):
        if "UPDATE products" in sql and params[1] == 2:
            raise RuntimeError("disk went away")
        return real_changed(conn, sql, params)

    monkeypatch.setattr(sales_mod, "changed", boom)

    with pytest.raises(RuntimeError):
        create_sale(
            seeded,
            items=[SaleLineInput(product_id=1, quantity=1), SaleLineInput(product_id=2, quantity=1)],
        )

    assert seeded.execute("SELECT COUNT(*) FROM sales").fetchone()[0] == 0
    assert seeded.execute("SELECT COUNT(*) FROM sale_items").fetchone()[0] == 0
    assert get_product(seeded, 1)["quantity"] == 45


def test_get_sale(seeded):
    assert get_sale(seeded, 999) is None

    sale = create_sale(seeded, items=[SaleLineInput(product_id=4, quantity=1)], payment_method="cash")
    fetched = get_sale(seeded, sale.sale_id)

    assert fetched.sale_id == sale.sale_id
    assert fetched.payment_method == "cash"
    assert [i.product_name for i in fetched.items] == ["Monitor Stand"]


def test_list_sales_newest_first(seeded):
    seeded.execute("INSERT INTO sales (total_amount, created_at) VALUES (10, '2024-01-01 09:00:00')")
    seeded.execute("INSERT INTO sales (total_amount, created_at) VALUES (20, '2024-01-03 09:00:00')")
    seeded.execute("INSERT INTO sales (total_amount, created_at) VALUES (30, '2024-01-02 09:00:00')")
    seeded.commit()

    assert [r["total_amount"] for r in list_sales(seeded)] == [20, 30, 10]
    between = list_sales_between(seeded, "2024-01-01 00:00:00", "2024-01-02 23:59:59")
    assert [r["total_amount"] for r in between] == [30, 10]


def test_delete_sale_cascades_but_keeps_stock(seeded):
    sale = create_sale(seeded, items=[SaleLineInput(product_id=1, quantity=5)])

    assert delete_sale(seeded, sale.sale_id) is True
    assert get_sale(seeded, sale.sale_id) is None
    assert seeded.execute("SELECT COUNT(*) FROM sale_items").fetchone()[0] == 0
    assert get_product(seeded, 1)["quantity"] == 40
    assert delete_sale(seeded, sale.sale_id) is False


@pytest.mark.parametrize("qty", [float("inf"), float("nan"), float("-inf")])
def test_non_finite_line_quantity_is_rejected(seeded, qty):
    with pytest.raises(ValueError):
        create_sale(seeded, items=[SaleLineInput(product_id=1, quantity=qty)])
