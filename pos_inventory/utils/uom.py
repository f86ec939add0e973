# pos_inventory/utils/uom.py
"""
Unit-of-measure conversion per product type.

Every product type is a small frozen dataclass carrying the physical
attributes its conversion needs:

    Glass          sheet <-> sqft   (width_in * height_in / 144 sqft per sheet)
    Thai Aluminum  bar   <-> ft     (rod_length_ft per bar)
    SS Pipe        pipe  <-> ft     (pipe_length_ft per pipe, 20 by convention)
    Others         piece            (no alternate unit)

Stock is always kept in the base unit. Conversions are unrounded; callers that
store a base quantity pass it through `helpers.quantize_qty` (see to_base_qty).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Optional

from ..constants import (
    DEFAULT_PIPE_LENGTH_FT,
    SQIN_PER_SQFT,
    TYPE_GLASS,
    TYPE_OTHERS,
    TYPE_SS_PIPE,
    TYPE_THAI_ALUMINUM,
)
from ..errors import ConfigurationError, ValidationError
from .helpers import quantize_qty
from .validators import is_whole_number, try_parse_float


@dataclass(frozen=True)
class UnitPair:
    base: str
    alt: Optional[str]


class ProductSpec:
    """Common conversion behaviour; subclasses supply `alt_per_base`."""

    product_type: ClassVar[str]
    units: ClassVar[UnitPair]

    @property
    def base_unit(self) -> str:
        return self.units.base

    @property
    def alt_unit(self) -> Optional[str]:
        return self.units.alt

    def alt_per_base(self) -> float:
        """Alternate units contained in one base unit (0.0 when undefined)."""
        return 0.0

    def convert(self, from_uom: str, to_uom: str, qty: float) -> float:
        q = float(qty)
        if from_uom == to_uom:
            return q
        factor = self.alt_per_base()
        if from_uom == self.base_unit and to_uom == self.alt_unit:
            return q * factor if factor > 0 else 0.0
        if from_uom == self.alt_unit and to_uom == self.base_unit:
            return q / factor if factor > 0 else 0.0
        raise ValidationError(
            f"Cannot convert {from_uom!r} to {to_uom!r} for {self.product_type}."
        )


@dataclass(frozen=True)
class GlassSpec(ProductSpec):
    product_type: ClassVar[str] = TYPE_GLASS
    units: ClassVar[UnitPair] = UnitPair("sheet", "sqft")

    width_in: float = 0.0
    height_in: float = 0.0

    @property
    def area_sqft(self) -> float:
        if self.width_in <= 0 or self.height_in <= 0:
            return 0.0
        return self.width_in * self.height_in / SQIN_PER_SQFT

    def alt_per_base(self) -> float:
        return self.area_sqft


@dataclass(frozen=True)
class ThaiAluminumSpec(ProductSpec):
    product_type: ClassVar[str] = TYPE_THAI_ALUMINUM
    units: ClassVar[UnitPair] = UnitPair("bar", "ft")

    rod_length_ft: float = 0.0

    def alt_per_base(self) -> float:
        return self.rod_length_ft if self.rod_length_ft > 0 else 0.0


@dataclass(frozen=True)
class SSPipeSpec(ProductSpec):
    product_type: ClassVar[str] = TYPE_SS_PIPE
    units: ClassVar[UnitPair] = UnitPair("pipe", "ft")

    pipe_length_ft: float = DEFAULT_PIPE_LENGTH_FT

    def alt_per_base(self) -> float:
        return self.pipe_length_ft if self.pipe_length_ft > 0 else 0.0


@dataclass(frozen=True)
class OthersSpec(ProductSpec):
    product_type: ClassVar[str] = TYPE_OTHERS
    units: ClassVar[UnitPair] = UnitPair("piece", None)


SPEC_CLASSES: Dict[str, type] = {
    cls.product_type: cls for cls in (GlassSpec, ThaiAluminumSpec, SSPipeSpec, OthersSpec)
}

_TYPE_ALIASES = {
    "glass": TYPE_GLASS,
    "thaialuminum": TYPE_THAI_ALUMINUM,
    "thaialuminium": TYPE_THAI_ALUMINUM,
    "sspipe": TYPE_SS_PIPE,
}

_UNIT_ALIASES = {
    "sheets": "sheet",
    "sq ft": "sqft",
    "sq.ft": "sqft",
    "sq. ft": "sqft",
    "square feet": "sqft",
    "bars": "bar",
    "pipes": "pipe",
    "feet": "ft",
    "foot": "ft",
    "pieces": "piece",
    "pcs": "piece",
    "pc": "piece",
}

_ALL_UNITS = {u for cls in SPEC_CLASSES.values() for u in (cls.units.base, cls.units.alt) if u}


def normalize_product_type(value: Any) -> str:
    """'SSPipe', 'ss pipe', 'SS_Pipe' -> 'SS Pipe'; anything unknown is 'Others'."""
    key = "".join(ch for ch in str(value or "").lower() if ch.isalnum())
    return _TYPE_ALIASES.get(key, TYPE_OTHERS)


def units_for_type(product_type: Any) -> UnitPair:
    return SPEC_CLASSES[normalize_product_type(product_type)].units


def base_unit_for_type(product_type: Any) -> str:
    return units_for_type(product_type).base


def alt_unit_for_type(product_type: Any) -> Optional[str]:
    return units_for_type(product_type).alt


def _num(variant: Mapping[str, Any] | None, name: str) -> Optional[float]:
    if variant is None:
        return None
    try:
        raw = variant[name]
    except (KeyError, IndexError):
        return None
    ok, val = try_parse_float(raw)
    return val if ok else None


def spec_for(product_type: Any, variant: Mapping[str, Any] | None) -> ProductSpec:
    """Build the tagged spec for a variant row (dict or sqlite3.Row)."""
    pt = normalize_product_type(product_type)
    if pt == TYPE_GLASS:
        return GlassSpec(
            width_in=_num(variant, "width_in") or 0.0,
            height_in=_num(variant, "height_in") or 0.0,
        )
    if pt == TYPE_THAI_ALUMINUM:
        return ThaiAluminumSpec(rod_length_ft=_num(variant, "rod_length_ft") or 0.0)
    if pt == TYPE_SS_PIPE:
        return SSPipeSpec(pipe_length_ft=_num(variant, "pipe_length_ft") or DEFAULT_PIPE_LENGTH_FT)
    return OthersSpec()


def normalize_uom(token: Any, product_type: Any) -> str:
    """
    Resolve 'base' / 'alt' or an explicit unit name to the canonical unit of
    the product type.

    Raises:
        ConfigurationError: 'alt' requested for a type without an alternate unit.
        ValidationError: unknown unit, or a unit that belongs to another type.
    """
    pt = normalize_product_type(product_type)
    units = SPEC_CLASSES[pt].units
    t = str(token if token is not None else "base").strip().lower()
    t = _UNIT_ALIASES.get(t, t)
    if t in ("", "base", units.base):
        return units.base
    if t == "alt":
        if units.alt is None:
            raise ConfigurationError(f"{pt} products have no alternate unit.")
        return units.alt
    if units.alt is not None and t == units.alt:
        return units.alt
    if t in _ALL_UNITS:
        raise ValidationError(f"Unit '{token}' is not valid for {pt} products.")
    raise ValidationError(f"Unknown unit '{token}'.")


def convert(
    variant: Mapping[str, Any] | None,
    product_type: Any,
    from_uom: Any,
    to_uom: Any,
    qty: float,
) -> float:
    """
    Convert `qty` between two units of the variant's product type.

    Unrounded. Returns 0.0 when the physical divisor (sheet area, rod or pipe
    length) is zero or missing.
    """
    spec = spec_for(product_type, variant)
    src = normalize_uom(from_uom, product_type)
    dst = normalize_uom(to_uom, product_type)
    return spec.convert(src, dst, qty)


def to_base_qty(variant: Mapping[str, Any] | None, product_type: Any, uom: Any, qty: float) -> float:
    """Convert to the base unit and quantize to 3 decimals."""
    return quantize_qty(convert(variant, product_type, uom, "base", qty))


def ensure_whole_base_qty(uom: str, base_unit: str, qty: float) -> None:
    if uom == base_unit and not is_whole_number(qty):
        raise ValidationError(f"Quantity in {base_unit} must be a whole number (got {qty:g}).")


def price_for_uom(variant: Mapping[str, Any], product_type: Any, uom: str) -> float:
    """
    Catalogue price per `uom` (canonical unit).

    Raises ConfigurationError when the alternate unit has no price configured.
    """
    units = units_for_type(product_type)
    if uom == units.base:
        return _num(variant, "price_base") or 0.0
    price = _num(variant, "price_alt")
    if price is None:
        label = _label_for_errors(variant)
        raise ConfigurationError(f"No {uom} price configured for {label}.")
    return price


def _label_for_errors(variant: Mapping[str, Any]) -> str:
    try:
        sku = variant["sku"]
    except (KeyError, IndexError):
        sku = None
    if sku:
        return str(sku)
    try:
        return f"variant #{variant['id']}"
    except (KeyError, IndexError):
        return "this variant"
