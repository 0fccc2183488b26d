from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Maximum amount: 99,999,999.99 (Numeric(10, 2))
MAX_AMOUNT = Decimal("99999999.99")


def to_decimal(value, *, field: str = "amount") -> Decimal:
    """
    Convert JSON input (str/int/float/Decimal) to Decimal.

    Floats go through str() so 0.1 stays 0.1. Booleans are rejected.
    Raises ValueError with the field name for anything unparseable.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{field} must be a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"{field} must be a number")
    else:
        raise ValueError(f"{field} must be a number")
    if not result.is_finite():
        raise ValueError(f"{field} must be a finite number")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round half-up to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def money_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(quantize_money(value))
