# pos_inventory/database/seeders/default_data.py
"""Demo catalogue: one product per type with a couple of stocked variants."""

PRODUCTS = [
    # (name, type, category)
    ("Clear Glass", "Glass", "Glass"),
    ("Thai Aluminum Channel", "Thai Aluminum", "Thai"),
    ("SS Pipe Round", "SS Pipe", "SS"),
    ("Silicone Tube", "Others", "Accessory"),
]

# Glass: price_base per sheet, price_alt per sqft; stock in sheets
# Thai Aluminum: per bar / per ft; bar length 21 or 18.5 ft
# SS Pipe: per pipe (20 ft) / per ft
# Others: piece only
VARIANTS = {
    "Clear Glass": [
        dict(sku="GL-5MM-24x36", size_label="24x36", thickness_mm=5, width_in=24, height_in=36,
             price_base=1800.0, price_alt=22.0, cost_price=1500.0, on_hand=10.0,
             low_stock_threshold=5.0, group_name="5mm"),
        dict(sku="GL-8MM-36x48", size_label="36x48", thickness_mm=8, width_in=36, height_in=48,
             price_base=3200.0, price_alt=38.0, cost_price=2800.0, on_hand=6.5,
             low_stock_threshold=3.0, group_name="8mm"),
    ],
    "Thai Aluminum Channel": [
        dict(sku="AL-21-BLACK", size_label="1 inch", color="Black", rod_length_ft=21.0,
             price_base=1250.0, price_alt=68.0, cost_price=1000.0, on_hand=12.0,
             low_stock_threshold=4.0),
        dict(sku="AL-18.5-SILVER", size_label="3/4 inch", color="Silver", rod_length_ft=18.5,
             price_base=1100.0, price_alt=62.0, cost_price=900.0, on_hand=3.5,
             low_stock_threshold=5.0),
    ],
    "SS Pipe Round": [
        dict(sku="SS-1.2MM", thickness_mm=1.2, pipe_length_ft=20.0,
             price_base=2100.0, price_alt=120.0, cost_price=1800.0, on_hand=9.0,
             low_stock_threshold=4.0, group_name="1.2mm"),
    ],
    "Silicone Tube": [
        dict(sku="ACC-SILICONE-CLR", size_label="Clear 300ml",
             price_base=220.0, price_alt=None, cost_price=180.0, on_hand=25.0,
             low_stock_threshold=10.0),
    ],
}

_VARIANT_COLS = (
    "sku", "size_label", "thickness_mm", "width_in", "height_in", "color",
    "rod_length_ft", "pipe_length_ft", "price_base", "price_alt", "cost_price",
    "on_hand", "low_stock_threshold", "group_name",
)


def seed(conn):
    """Insert the demo catalogue once; opening stock is logged as a restock row."""
    row = conn.execute("SELECT COUNT(*) AS n FROM products").fetchone()
    if row and row[0] > 0:
        return

    for name, ptype, category in PRODUCTS:
        cur = conn.execute(
            "INSERT INTO products(name, type, category, active) VALUES (?, ?, ?, 1)",
            (name, ptype, category),
        )
        product_id = cur.lastrowid
        for v in VARIANTS[name]:
            values = [v.get(c) for c in _VARIANT_COLS]
            values[_VARIANT_COLS.index("group_name")] = v.get("group_name") or "Default"
            vcur = conn.execute(
                f"INSERT INTO variants(product_id, {', '.join(_VARIANT_COLS)}) "
                f"VALUES (?, {', '.join('?' for _ in _VARIANT_COLS)})",
                (product_id, *values),
            )
            conn.execute(
                "INSERT INTO restocks(variant_id, qty_base, cost_per_unit, note) "
                "VALUES (?, ?, ?, 'Opening stock')",
                (vcur.lastrowid, v["on_hand"], v["cost_price"]),
            )
    conn.commit()
