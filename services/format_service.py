"""
Format Service

pt-PT number formatting for basis labels, summaries and reports.

Matches what browsers produce with Intl.NumberFormat("pt-PT"):
- comma as decimal separator
- no-break space as thousands separator, only from 5 integer digits
  (1234 stays "1234", 12345 becomes "12 345")
- EUR amounts as "27 600,00 €"
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

NBSP = " "


def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _group_thousands(digits: str) -> str:
    """Insert no-break spaces every 3 digits (pt-PT minimum grouping is 2 groups)"""
    if len(digits) < 5:
        return digits
    groups = []
    while digits:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    return NBSP.join(groups)


def format_number_pt(value: Any, decimals: Optional[int] = None) -> str:
    """
    Format number the pt-PT way: 12 345,67

    Args:
        value: Number to format (None counts as 0)
        decimals: Fixed fraction digits; None means up to 3, trailing zeros dropped

    Returns:
        Formatted string
    """
    number = _to_decimal(value)
    places = 3 if decimals is None else decimals
    quantizer = Decimal(1).scaleb(-places)
    number = number.quantize(quantizer, rounding=ROUND_HALF_UP)

    negative = number < 0
    text = f"{abs(number):.{places}f}"
    if "." in text:
        int_part, frac_part = text.split(".")
    else:
        int_part, frac_part = text, ""

    if decimals is None:
        frac_part = frac_part.rstrip("0")

    formatted = _group_thousands(int_part)
    if frac_part:
        formatted = f"{formatted},{frac_part}"
    if negative and formatted.strip("0,") != "":
        formatted = f"-{formatted}"
    return formatted


def format_money_eur(value: Any) -> str:
    """Format EUR amount: 27 600,00 €"""
    return f"{format_number_pt(value, 2)}{NBSP}€"


def format_percent(value: Any, decimals: int = 2) -> str:
    """Format a human percentage (23 → "23,00%")"""
    return f"{format_number_pt(value, decimals)}%"
