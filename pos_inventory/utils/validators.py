# pos_inventory/utils/validators.py
import math


def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text is not None and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_float(x):
    """
    Best-effort parse to a finite float.

    Returns:
        (ok: bool, value: float|None)

    ok == False means parsing failed (or produced NaN/inf) and value is None.
    """
    if x is None or isinstance(x, bool):
        return False, None
    try:
        val = float(x)
    except (TypeError, ValueError):
        return False, None
    if not math.isfinite(val):
        return False, None
    return True, val


def is_whole_number(x, tol: float = 1e-9) -> bool:
    """
    True iff x parses to a float with no fractional part (2.0 yes, 2.5 no).
    """
    ok, val = try_parse_float(x)
    return bool(ok and val is not None and abs(val - round(val)) <= tol)
