# pos_inventory/errors.py
"""
Error taxonomy shared by every engine.

Each error carries the caller-visible `status` a transport layer should use
and a short machine-readable `kind`. All of them derive from DomainError so a
controller can catch one type and surface the message (toast/snackbar, HTTP
body) without knowing the details.
"""
from __future__ import annotations

import logging
import re
import sqlite3
from typing import Any

_log = logging.getLogger(__name__)


class DomainError(Exception):
    """Domain-level error the caller can surface directly."""

    status = 400
    kind = "domain_error"

    def __init__(self, message: str = "", **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainError):
    """Malformed or missing input; fixable by the caller."""

    kind = "validation_error"


class NotFoundError(DomainError):
    status = 404
    kind = "not_found"


class InsufficientStockError(DomainError):
    """A sale line needs more base units than the variant has on hand."""

    kind = "insufficient_stock"

    def __init__(
        self,
        sku: str,
        *,
        requested: float | None = None,
        available: float | None = None,
        message: str | None = None,
    ):
        if message is None:
            message = f"Insufficient stock for {sku}"
            if requested is not None and available is not None:
                message += f": requested {requested:g}, on hand {available:g}"
        super().__init__(message, sku=sku, requested=requested, available=available)
        self.sku = sku
        self.requested = requested
        self.available = available


class OverReturnError(DomainError):
    kind = "over_return"


class ConfigurationError(DomainError):
    """Catalogue data does not support the request (e.g. no alt price)."""

    kind = "configuration_error"


class DuplicateKeyError(DomainError):
    """A unique value (generated number, SKU, phone) already exists; retry the operation."""

    status = 409
    kind = "duplicate_key"


class InternalError(DomainError):
    status = 500
    kind = "internal_error"


# ---- sqlite3 translation ---------------------------------------------------

# Messages raised by schema triggers via RAISE(ABORT, ...)
TRIGGER_OVER_RETURN = "Return exceeds sold quantity"
TRIGGER_PAYMENT_NOT_POSITIVE = "Payment must be positive"
TRIGGER_PAYMENT_EXCEEDS_DUE = "Payment exceeds remaining due"

_UNIQUE_RX = re.compile(r"UNIQUE constraint failed: ([\w.,\s]+)")


def translate_integrity_error(exc: sqlite3.IntegrityError) -> DomainError:
    """Map a constraint/trigger failure onto the domain taxonomy."""
    msg = str(exc)
    m = _UNIQUE_RX.search(msg)
    if m:
        return DuplicateKeyError(f"Duplicate value for {m.group(1).strip()}; please retry.")
    if TRIGGER_OVER_RETURN in msg:
        return OverReturnError(msg)
    if TRIGGER_PAYMENT_NOT_POSITIVE in msg or TRIGGER_PAYMENT_EXCEEDS_DUE in msg:
        return ValidationError(msg)
    if "FOREIGN KEY constraint failed" in msg:
        return NotFoundError("Referenced record does not exist.")
    if "CHECK constraint failed" in msg or "NOT NULL constraint failed" in msg:
        return ValidationError(msg)
    _log.error("Unmapped integrity error: %s", msg)
    return InternalError("Unexpected datastore constraint failure.")


# ---- transport payloads ----------------------------------------------------

def ok_payload(data: Any) -> dict:
    return {"success": True, "data": data}


def error_payload(exc: BaseException) -> tuple[dict, int]:
    """
    Return ({error, kind, message}, status) for any exception.
    Non-domain exceptions are logged and reported generically.
    """
    if not isinstance(exc, DomainError):
        _log.error("Unhandled error", exc_info=exc)
        exc = InternalError("Internal error")
    body = {"error": True, "kind": exc.kind, "message": exc.message or exc.kind}
    if isinstance(exc, InsufficientStockError):
        body["sku"] = exc.sku
    return body, exc.status
