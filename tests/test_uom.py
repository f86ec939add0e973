"""
Unit-of-measure conversion and the quantity/money precision helpers.

These are pure functions: no database is involved.
"""

from __future__ import annotations

import pytest

from pos_inventory.errors import ConfigurationError, ValidationError
from pos_inventory.utils.helpers import quantize_qty, round_money
from pos_inventory.utils.uom import (
    GlassSpec,
    OthersSpec,
    SSPipeSpec,
    ThaiAluminumSpec,
    alt_unit_for_type,
    base_unit_for_type,
    convert,
    ensure_whole_base_qty,
    normalize_product_type,
    normalize_uom,
    price_for_uom,
    spec_for,
    to_base_qty,
    units_for_type,
)

GLASS = {"width_in": 24, "height_in": 36, "price_base": 1800, "price_alt": 22, "sku": "GL"}
THAI = {"rod_length_ft": 21, "price_base": 1250, "price_alt": 68}
PIPE = {"pipe_length_ft": 20, "price_base": 2100, "price_alt": 120}


def test_unit_pairs_per_type():
    assert units_for_type("Glass").base == "sheet"
    assert units_for_type("Glass").alt == "sqft"
    assert units_for_type("Thai Aluminum").base == "bar"
    assert units_for_type("SS Pipe").base == "pipe"
    assert units_for_type("SS Pipe").alt == "ft"
    assert units_for_type("Others").base == "piece"
    assert units_for_type("Others").alt is None
    assert base_unit_for_type("ThaiAluminum") == "bar"
    assert alt_unit_for_type("Glass") == "sqft"
    assert alt_unit_for_type("anything else") is None


def test_product_type_tokens_are_normalized():
    assert normalize_product_type("SSPipe") == "SS Pipe"
    assert normalize_product_type("ss pipe") == "SS Pipe"
    assert normalize_product_type("ThaiAluminum") == "Thai Aluminum"
    assert normalize_product_type("glass") == "Glass"
    assert normalize_product_type("widget") == "Others"
    assert normalize_product_type(None) == "Others"


def test_spec_for_builds_tagged_specs():
    assert spec_for("Glass", GLASS) == GlassSpec(width_in=24, height_in=36)
    assert spec_for("Thai Aluminum", THAI) == ThaiAluminumSpec(rod_length_ft=21)
    assert isinstance(spec_for("Others", {}), OthersSpec)
    # pipe length falls back to the 20 ft convention
    assert spec_for("SS Pipe", {"pipe_length_ft": None}) == SSPipeSpec(pipe_length_ft=20.0)


def test_glass_area_and_conversion():
    assert GlassSpec(width_in=24, height_in=36).area_sqft == pytest.approx(6.0)
    assert convert(GLASS, "Glass", "sqft", "sheet", 3) == pytest.approx(0.5)
    assert convert(GLASS, "Glass", "sheet", "sqft", 2) == pytest.approx(12.0)
    assert convert(GLASS, "Glass", "alt", "base", 6) == pytest.approx(1.0)


def test_length_based_conversions():
    assert convert(THAI, "Thai Aluminum", "ft", "bar", 42) == pytest.approx(2.0)
    assert to_base_qty(THAI, "Thai Aluminum", "ft", 50) == 2.38
    assert to_base_qty(PIPE, "SS Pipe", "ft", 20) == 1.0


def test_pipe_19_999_ft_does_not_round_up_to_a_full_pipe():
    assert to_base_qty(PIPE, "SS Pipe", "ft", 19.999) == 0.999


def test_identity_conversion():
    assert convert(GLASS, "Glass", "sheet", "sheet", 2) == 2
    assert convert({}, "Others", "piece", "base", 3) == 3


@pytest.mark.parametrize(
    "variant, ptype",
    [
        (GLASS, "Glass"),
        ({"width_in": 36, "height_in": 48}, "Glass"),
        (THAI, "Thai Aluminum"),
        ({"rod_length_ft": 18.5}, "Thai Aluminum"),
        (PIPE, "SS Pipe"),
    ],
)
@pytest.mark.parametrize("q", [0.5, 1, 2.25, 7, 13.333])
def test_round_trip_base_alt_base(variant, ptype, q):
    alt = convert(variant, ptype, "base", "alt", q)
    assert convert(variant, ptype, "alt", "base", alt) == pytest.approx(q, abs=1e-6)


def test_zero_or_missing_divisor_converts_to_zero():
    assert convert({"width_in": 0, "height_in": 36}, "Glass", "sqft", "sheet", 3) == 0.0
    assert convert({"rod_length_ft": None}, "Thai Aluminum", "ft", "bar", 10) == 0.0
    assert convert({}, "Glass", "sheet", "sqft", 1) == 0.0


def test_normalize_uom_tokens():
    assert normalize_uom("base", "Glass") == "sheet"
    assert normalize_uom(None, "Glass") == "sheet"
    assert normalize_uom("alt", "Thai Aluminum") == "ft"
    assert normalize_uom("SQFT", "Glass") == "sqft"
    assert normalize_uom("sq ft", "Glass") == "sqft"
    assert normalize_uom("feet", "SS Pipe") == "ft"
    assert normalize_uom("pcs", "Others") == "piece"


def test_alt_unit_on_others_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        normalize_uom("alt", "Others")


def test_unit_of_another_type_is_rejected():
    with pytest.raises(ValidationError):
        normalize_uom("ft", "Glass")
    with pytest.raises(ValidationError):
        normalize_uom("sqft", "Others")
    with pytest.raises(ValidationError):
        normalize_uom("litre", "Glass")


def test_base_unit_must_be_whole():
    with pytest.raises(ValidationError):
        ensure_whole_base_qty("sheet", "sheet", 2.5)
    ensure_whole_base_qty("sheet", "sheet", 2)
    ensure_whole_base_qty("sqft", "sheet", 2.5)


def test_price_for_uom():
    assert price_for_uom(GLASS, "Glass", "sheet") == 1800
    assert price_for_uom(GLASS, "Glass", "sqft") == 22
    with pytest.raises(ConfigurationError, match="GL"):
        price_for_uom({**GLASS, "price_alt": None}, "Glass", "sqft")


def test_quantize_qty_truncates_to_three_places():
    assert quantize_qty(0.99995) == 0.999
    assert quantize_qty(0.1 + 0.2) == 0.3
    assert quantize_qty(2.380952) == 2.38
    assert quantize_qty(-1.23456) == -1.234
    assert quantize_qty(0.0004) == 0.0


def test_round_money_is_half_up():
    assert round_money(2.675) == 2.68
    assert round_money(1.005) == 1.01
    assert round_money(66) == 66.0
    assert round_money(-0.005) == -0.01
