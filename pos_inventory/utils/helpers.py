# pos_inventory/utils/helpers.py
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
import logging
import math
from typing import Optional, Tuple, Union

from ..constants import MONEY_PLACES, QTY_PLACES

NumberLike = Union[float, int, str]

_log = logging.getLogger(__name__)

_MONEY_QUANT = Decimal(1).scaleb(-MONEY_PLACES)
_QTY_SCALE = 10 ** QTY_PLACES
# absorbs float noise such as 0.49999999999 before truncating
_QTY_TOLERANCE = 1e-6


def stamp_for(day: Optional[str] = None) -> Tuple[str, date]:
    """
    Build the `created_at` text for a new document.

    `day` is an optional ISO date (YYYY-MM-DD) used for back-dated documents;
    the current wall-clock time is kept so same-day rows still sort.
    Returns (created_at, business_day).
    """
    now = datetime.now()
    if day is None or str(day).strip() == "":
        d = now.date()
    else:
        try:
            d = date.fromisoformat(str(day).strip()[:10])
        except ValueError as e:
            raise ValueError(f"Invalid date {day!r}; expected YYYY-MM-DD.") from e
    return f"{d.isoformat()} {now.strftime('%H:%M:%S')}", d


def round_money(v: NumberLike) -> float:
    """Round half-up to cents. 2.675 -> 2.68 (binary floats would give 2.67)."""
    return float(Decimal(str(float(v))).quantize(_MONEY_QUANT, rounding=ROUND_HALF_UP))


def quantize_qty(v: NumberLike) -> float:
    """
    Quantize a stock quantity to 3 decimals, truncating toward zero.

    Truncation keeps a derived base quantity from ever rounding up into stock
    that was not actually sold or returned (19.999 ft of a 20 ft pipe is 0.999
    pipe, not 1).
    """
    x = float(v)
    q = math.floor(abs(x) * _QTY_SCALE + _QTY_TOLERANCE) / _QTY_SCALE
    if q == 0:
        return 0.0
    return math.copysign(q, x)


def fmt_money(
    v: NumberLike,
    places: int = 2,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError on parse failures.
    """
    try:
        x = float(v)
    except (TypeError, ValueError) as e:
        _log.debug("fmt_money: failed to parse %r as float: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    return f"{x:,.{places}f}"


def fmt_qty(v: NumberLike) -> str:
    """Quantities print without trailing zeros: 2 -> '2', 0.5 -> '0.5'."""
    try:
        return f"{float(v):g}"
    except (TypeError, ValueError):
        return str(v)
