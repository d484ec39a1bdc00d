# Overview: Valuation rule for count items; pure decimal arithmetic.

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from ..validation import BadRequestError


CENTS = Decimal("0.01")

# Quantities are stored as Numeric(12, 3)
MAX_QUANTITY_PLACES = 3
MAX_QUANTITY = Decimal("999999999.999")

# Values are stored as Numeric(14, 2)
MAX_VALUE = Decimal("999999999999.99")

# Plain decimal notation only: no digit grouping, no exponent
QUANTITY_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$", re.ASCII)


def compute_value(quantity: Decimal, unit_value: Decimal) -> Decimal:
    """
    Snapshot value of a tally: quantity * unit_value, rounded half-up to cents.

    Both inputs go through Decimal(str(...)) so float unit values coming back
    from the database never introduce binary drift.
    """
    q = Decimal(str(quantity))
    u = Decimal(str(unit_value))
    value = (q * u).quantize(CENTS, rounding=ROUND_HALF_UP)
    if value > MAX_VALUE:
        raise BadRequestError(f"value cannot exceed {MAX_VALUE}")
    return value


def parse_quantity(raw: Any) -> Decimal:
    """
    Validate a client-supplied quantity and return it as a Decimal.

    Raises:
        BadRequestError: missing, non-numeric, negative, out of range or too precise
    """
    if raw is None:
        raise BadRequestError("quantity is required")
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        raise BadRequestError("quantity must be a number")

    if isinstance(raw, str) and not QUANTITY_PATTERN.match(raw.strip()):
        raise BadRequestError(f"quantity must be a number: {raw!r}")

    try:
        quantity = Decimal(str(raw).strip())
    except InvalidOperation:
        raise BadRequestError(f"quantity must be a number: {raw!r}")

    if not quantity.is_finite():
        raise BadRequestError("quantity must be a finite number")
    if quantity < 0:
        raise BadRequestError("quantity cannot be negative")
    if quantity > MAX_QUANTITY:
        raise BadRequestError(f"quantity cannot exceed {MAX_QUANTITY}")
    if quantity.as_tuple().exponent < -MAX_QUANTITY_PLACES:
        raise BadRequestError(f"quantity supports at most {MAX_QUANTITY_PLACES} decimal places")

    return quantity
