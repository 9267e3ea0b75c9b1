"""
Conversion between human-readable token amounts and minor units
"""

from decimal import Decimal, InvalidOperation
from typing import Union

# USDC has 6 decimals
USDC_DECIMALS = 6

Amount = Union[str, int, Decimal]


def parse_amount(amount: Amount) -> Decimal:
    """Parse a human-readable amount such as "0.10" into a Decimal"""
    try:
        value = Decimal(str(amount).strip())
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {amount!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"Invalid amount: {amount!r}")
    return value


def to_minor_units(amount: Amount, decimals: int = USDC_DECIMALS) -> int:
    """
    Convert a human-readable amount to the token's smallest unit

    Raises ValueError when the amount carries more precision than the token.
    """
    scaled = parse_amount(amount) * Decimal(10 ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"Amount {amount} has more than {decimals} decimal places")
    return int(scaled)


def from_minor_units(raw_amount: int, decimals: int = USDC_DECIMALS) -> Decimal:
    """Convert an amount in the token's smallest unit to a Decimal"""
    return Decimal(int(raw_amount)) / Decimal(10 ** decimals)


def format_amount(value: Amount) -> str:
    """Render an amount without exponent or trailing zeros ("0.1", "10")"""
    normalized = parse_amount(value).normalize()
    return format(normalized, "f")
