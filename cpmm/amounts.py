"""Conversion between human-readable token amounts and scaled integers.

Amounts leave user-input parsing as integers scaled by the token's decimals
and never go back through binary floating point. Formatting for display
always rounds toward zero so an estimate never promises more than the
ledger will deliver.
"""

from __future__ import annotations

import decimal
from decimal import ROUND_DOWN, Decimal, InvalidOperation

# 78 digits of precision: enough for uint256 values (up to ~10^77)
DECIMAL_HIGH_PREC_CONTEXT = decimal.Context(prec=78)

# Display precision used by the pool widgets
DISPLAY_FRACTION_DIGITS = 6


def parse_units(text: str | int | Decimal, decimals: int) -> int:
    """Parse a human amount ("1.5") into an integer scaled by ``decimals``.

    Args:
        text: Amount as a decimal string, int or Decimal
        decimals: Token decimals

    Returns:
        Scaled integer amount

    Raises:
        ValueError: If the text is not a non-negative number or carries more
            fractional digits than the token supports
    """
    if decimals < 0:
        raise ValueError(f"Decimals cannot be negative: {decimals}")
    if isinstance(text, float):
        raise ValueError("Amounts must not be given as float")

    try:
        value = Decimal(str(text).strip())
    except InvalidOperation as err:
        raise ValueError(f"Invalid amount: {text!r}") from err

    if not value.is_finite():
        raise ValueError(f"Invalid amount: {text!r}")
    if value < 0:
        raise ValueError(f"Amount cannot be negative: {text!r}")

    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        scaled = value.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(f"Amount {text!r} has more than {decimals} fractional digits")
        return int(scaled)


def to_decimal(amount: int, decimals: int) -> Decimal:
    """Exact Decimal value of a scaled integer amount."""
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return Decimal(amount).scaleb(-decimals)


def format_units(
    amount: int,
    decimals: int,
    max_fraction_digits: int | None = DISPLAY_FRACTION_DIGITS,
) -> str:
    """Format a scaled integer for display, truncating (never rounding up).

    Args:
        amount: Scaled integer amount
        decimals: Token decimals
        max_fraction_digits: Digits kept after the point; None keeps all

    Returns:
        Plain decimal string without exponent and without trailing zeros
    """
    value = to_decimal(amount, decimals)
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        if max_fraction_digits is not None and max_fraction_digits < decimals:
            value = value.quantize(Decimal(1).scaleb(-max_fraction_digits), rounding=ROUND_DOWN)
        text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def rate(amount_out: int, decimals_out: int, amount_in: int, decimals_in: int) -> Decimal:
    """Units of the output token per unit of the input token.

    Raises:
        ZeroDivisionError: If ``amount_in`` is zero
    """
    if amount_in == 0:
        raise ZeroDivisionError("Rate undefined for zero input amount")
    with decimal.localcontext(DECIMAL_HIGH_PREC_CONTEXT):
        return to_decimal(amount_out, decimals_out) / to_decimal(amount_in, decimals_in)


__all__ = [
    "DECIMAL_HIGH_PREC_CONTEXT",
    "DISPLAY_FRACTION_DIGITS",
    "parse_units",
    "to_decimal",
    "format_units",
    "rate",
]
