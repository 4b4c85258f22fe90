"""
Parsing utilities for operator input.

Prices and quantities reach the core as typed form text ("2.50", "$1,299.00",
"10") or as numbers from stored records. These helpers normalise both and the
``require_*`` variants turn failures into ValidationError for the caller.
"""
from __future__ import annotations
import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from loguru import logger

from .errors import ValidationError

Number = Union[str, int, float, Decimal, None]

_CURRENCY_CHARS = re.compile(r"[,₹$€£¥\s]")


def parse_decimal(s: Number, default: Optional[Decimal] = None) -> Optional[Decimal]:
    """
    Parse a money amount to Decimal.

    Handles:
    - Comma separators (1,234.56)
    - Currency symbols
    - Empty strings (returns default)
    """
    if s is None or isinstance(s, bool):
        return default
    if isinstance(s, Decimal):
        return s if s.is_finite() else default
    if isinstance(s, (int, float)):
        # str() keeps 2.1 as Decimal("2.1") instead of its binary expansion
        s = str(s)

    s = _CURRENCY_CHARS.sub("", str(s).strip())
    if not s or s.lower() in ("null", "none"):
        return default

    try:
        val = Decimal(s)
    except InvalidOperation:
        logger.debug(f"Could not parse decimal: {s}")
        return default
    return val if val.is_finite() else default


def parse_int(s: Number, default: Optional[int] = None) -> Optional[int]:
    """Parse a whole quantity. "12" and "12.0" are accepted, "12.5" is not."""
    val = parse_decimal(s)
    if val is None:
        return default
    if val != val.to_integral_value():
        logger.debug(f"Not a whole number: {s}")
        return default
    return int(val)


def parse_barcode(s: str | None) -> Optional[str]:
    """Strip a scanned or typed barcode; blank input gives None."""
    if s is None:
        return None
    s = str(s).strip()
    return s or None


def require_name(name: str | None, what: str = "product name") -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"Please enter a {what}")
    return name


def require_barcode(barcode: str | None) -> str:
    value = parse_barcode(barcode)
    if value is None:
        raise ValidationError("Please enter a barcode")
    return value


def require_price(value: Number, allow_zero: bool = False) -> Decimal:
    """Parse a price; it must be positive (or non-negative with allow_zero)."""
    price = parse_decimal(value)
    if price is None or price < 0 or (price == 0 and not allow_zero):
        raise ValidationError("Please enter a valid price")
    return price


def require_quantity(value: Number, allow_zero: bool = False) -> int:
    """Parse a quantity; it must be positive (or non-negative with allow_zero)."""
    quantity = parse_int(value)
    if quantity is None or quantity < 0 or (quantity == 0 and not allow_zero):
        raise ValidationError("Please enter a valid quantity")
    return quantity
