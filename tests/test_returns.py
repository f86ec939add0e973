"""
Returns: entry in either unit, cumulative over-return guard, refund
overrides, discount replacement and the invoice bookkeeping around them.
"""

from __future__ import annotations

import pytest

from pos_inventory.errors import (
    ConfigurationError,
    NotFoundError,
    OverReturnError,
    ValidationError,
)


def _sell(invoices, variant_id, qty, uom="base", **kw):
    return invoices.create_invoice([{"variant_id": variant_id, "qty": qty, "uom": uom}], **kw)


def test_glass_sheet_returned_in_sqft(catalog, invoices, returns, inventory):
    inv = _sell(invoices, catalog.glass, 1, "sheet")
    item = inv["items"][0]
    ret = returns.create_return(inv["id"], [{"invoice_item_id": item["id"], "qty": 3, "uom": "sqft"}])

    line = ret["items"][0]
    assert line["uom"] == "sqft"
    assert line["base_qty"] == 0.5
    assert line["list_rate"] == 22
    assert line["effective_rate"] == 22
    assert line["refund_amount"] == 66
    assert line["refund_override"] is None
    assert line["sale_uom"] == "sheet"
    assert ret["subtotal_refund"] == 66
    assert ret["return_no"].startswith("RET-")
    assert inventory.on_hand(catalog.glass) == 9.5

    prep = returns.prepare_return(inv["id"])
    balance = prep["items"][0]
    assert balance["already_returned_base_qty"] == 0.5
    assert balance["remaining_base_qty"] == 0.5
    assert balance["base_unit"] == "sheet"
    assert balance["alt_unit"] == "sqft"


def test_over_return_in_alt_unit(catalog, invoices, returns, inventory):
    inv = _sell(invoices, catalog.thai, 2)
    item = inv["items"][0]
    assert inventory.on_hand(catalog.thai) == 3
    with pytest.raises(OverReturnError):
        returns.create_return(inv["id"], [{"invoice_item_id": item["id"], "qty": 50, "uom": "ft"}])
    assert inventory.on_hand(catalog.thai) == 3
    assert returns.list_returns(invoice_id=inv["id"]) == []


def test_sold_in_alt_returned_in_base(catalog, invoices, returns, inventory):
    inv = _sell(invoices, catalog.glass, 12, "sqft")
    item = inv["items"][0]
    assert item["base_qty"] == 2
    ret = returns.create_return(inv["id"], [{"invoice_item_id": item["id"], "qty": 1, "uom": "sheet"}])
    assert ret["items"][0]["refund_amount"] == 1800
    assert inventory.on_hand(catalog.glass) == 9


def test_conversion_uses_dimensions_at_sale(catalog, invoices, returns, inventory, products, reporting):
    inv = _sell(invoices, catalog.glass, 1, "sheet")
    assert (inv["items"][0]["width_in"], inv["items"][0]["height_in"]) == (24, 36)
    # sheet re-cut to 48x36 after the sale: 12 sqft per sheet from now on
    products.update_variant(catalog.glass, width_in=48)

    ret = returns.create_return(
        inv["id"], [{"invoice_item_id": inv["items"][0]["id"], "qty": 3, "uom": "sqft"}]
    )
    assert ret["items"][0]["base_qty"] == 0.5
    assert inventory.on_hand(catalog.glass) == 9.5
    assert returns.prepare_return(inv["id"])["items"][0]["remaining_base_qty"] == 0.5

    impact = reporting.profit_detail(inv["id"])["returns"][0]
    assert impact["qty_in_sale_uom"] == 0.5
    assert impact["impact"] == -684

    fresh = _sell(invoices, catalog.glass, 12, "sqft")
    assert fresh["items"][0]["base_qty"] == 1


def test_returns_accumulate_across_documents(catalog, invoices, returns):
    inv = _sell(invoices, catalog.pipe, 2)
    item_id = inv["items"][0]["id"]
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}])
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 19.999, "uom": "ft"}])
    remaining = returns.prepare_return(inv["id"])["items"][0]["remaining_base_qty"]
    assert remaining == pytest.approx(0.001)
    with pytest.raises(OverReturnError):
        returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1, "uom": "ft"}])
    assert len(returns.items_for_invoice(inv["id"])) == 2


def test_lines_in_one_batch_count_together(catalog, invoices, returns, inventory):
    inv = _sell(invoices, catalog.thai, 2)
    item_id = inv["items"][0]["id"]
    with pytest.raises(OverReturnError):
        returns.create_return(
            inv["id"],
            [
                {"invoice_item_id": item_id, "qty": 1},
                {"invoice_item_id": item_id, "qty": 22, "uom": "ft"},
            ],
        )
    assert inventory.on_hand(catalog.thai) == 3


def test_full_return_is_allowed(catalog, invoices, returns, inventory):
    inv = _sell(invoices, catalog.thai, 2)
    item_id = inv["items"][0]["id"]
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 42, "uom": "ft"}])
    assert inventory.on_hand(catalog.thai) == 5
    assert returns.prepare_return(inv["id"])["items"][0]["remaining_base_qty"] == 0


def test_refund_override_sets_line_amount(catalog, invoices, returns):
    inv = _sell(invoices, catalog.others, 4)
    item_id = inv["items"][0]["id"]
    ret = returns.create_return(
        inv["id"], [{"invoice_item_id": item_id, "qty": 3, "refund_override": 500, "note": "scratched"}]
    )
    line = ret["items"][0]
    assert line["list_rate"] == 220
    assert line["refund_override"] == 500
    assert line["refund_amount"] == 500
    assert line["effective_rate"] == pytest.approx(166.67)
    assert line["note"] == "scratched"
    assert ret["subtotal_refund"] == 500


def test_negative_override_rejected(catalog, invoices, returns):
    inv = _sell(invoices, catalog.others, 1)
    with pytest.raises(ValidationError):
        returns.create_return(
            inv["id"], [{"invoice_item_id": inv["items"][0]["id"], "qty": 1, "refund_override": -1}]
        )


def test_missing_alt_price_blocks_alt_return(catalog, invoices, returns):
    inv = _sell(invoices, catalog.glass_no_alt, 2)
    item_id = inv["items"][0]["id"]
    with pytest.raises(ConfigurationError):
        returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1, "uom": "sqft"}])
    # base unit still works
    ret = returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}])
    assert ret["subtotal_refund"] == 300


def test_fractional_base_return_rejected(catalog, invoices, returns):
    inv = _sell(invoices, catalog.glass, 2)
    with pytest.raises(ValidationError):
        returns.create_return(inv["id"], [{"invoice_item_id": inv["items"][0]["id"], "qty": 0.5}])


def test_line_from_another_invoice_is_not_found(catalog, invoices, returns):
    a = _sell(invoices, catalog.others, 1)
    b = _sell(invoices, catalog.others, 1)
    with pytest.raises(NotFoundError):
        returns.create_return(a["id"], [{"invoice_item_id": b["items"][0]["id"], "qty": 1}])
    with pytest.raises(NotFoundError):
        returns.create_return(9999, [{"invoice_item_id": 1, "qty": 1}])


def test_empty_return_rejected(catalog, invoices, returns):
    inv = _sell(invoices, catalog.others, 1)
    with pytest.raises(ValidationError):
        returns.create_return(inv["id"], [])


def test_refund_lowers_due_not_grand_total(catalog, invoices, returns):
    inv = _sell(invoices, catalog.glass, 2, discount=100)
    item_id = inv["items"][0]["id"]
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}])
    after = invoices.get_invoice(inv["id"])
    assert after["grand_total"] == 3500
    assert after["refund_total"] == 1800
    assert after["revised_grand_total"] == 1700
    assert after["due"] == 1700
    assert after["status"] == "UNPAID"
    assert after["remark"] == f"Return {returns.list_returns()[0]['return_no']}"


def test_new_discount_replaces_and_floors(catalog, invoices, returns):
    inv = _sell(invoices, catalog.glass, 2, discount=100)
    item_id = inv["items"][0]["id"]
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 6, "uom": "sqft"}], new_discount=50)
    after = invoices.get_invoice(inv["id"])
    assert after["discount_bdt"] == 50
    assert after["grand_total"] == 3550

    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 6, "uom": "sqft"}], new_discount=-10)
    after = invoices.get_invoice(inv["id"])
    assert after["discount_bdt"] == 0
    assert after["grand_total"] == 3600


def test_status_rederived_after_refund(catalog, invoices, returns):
    inv = _sell(invoices, catalog.glass, 1, paid_amount=1000)
    assert inv["status"] == "PARTIAL"
    returns.create_return(inv["id"], [{"invoice_item_id": inv["items"][0]["id"], "qty": 1}])
    after = invoices.get_invoice(inv["id"])
    assert after["status"] == "PAID"
    assert after["due"] == 0


def test_remark_appends_return_numbers(catalog, invoices, returns):
    inv = _sell(invoices, catalog.others, 3, remark="counter sale", invoice_date="2025-05-05")
    item_id = inv["items"][0]["id"]
    r1 = returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}], return_date="2025-05-06")
    r2 = returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}], return_date="2025-05-06")
    assert r1["return_no"] == "RET-20250506-0001"
    assert r2["return_no"] == "RET-20250506-0002"
    after = invoices.get_invoice(inv["id"])
    assert after["remark"] == f"counter sale | Return {r1['return_no']} | Return {r2['return_no']}"


def test_list_returns_filters(catalog, invoices, returns):
    inv = _sell(invoices, catalog.others, 3, customer={"name": "Selim", "phone": "0199"})
    item_id = inv["items"][0]["id"]
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}], return_date="2025-04-01")
    returns.create_return(inv["id"], [{"invoice_item_id": item_id, "qty": 1}], return_date="2025-04-03")
    assert len(returns.list_returns(q="Selim")) == 2
    assert len(returns.list_returns(q=inv["invoice_no"])) == 2
    assert len(returns.list_returns(date_from="2025-04-02")) == 1
    assert returns.list_returns(q="nobody") == []
    with pytest.raises(NotFoundError):
        returns.get_return(9999)
