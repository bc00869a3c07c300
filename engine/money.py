"""
Integer-cent money helpers.

Every amount in the engine is an ``int`` number of cents and every rate is an
``int`` number of basis points (1% == 100 bps). Nothing here touches floats.
"""
from typing import Iterable

BPS_DENOMINATOR = 10000


def to_cents(value) -> int:
    """
    Validate that a value is an integer amount of cents

    Args:
        value: Candidate amount (must be a non-bool int)

    Returns:
        The amount as int

    Raises:
        TypeError: if the value is a float, bool, str or anything non-integral
        ValueError: if the amount is negative
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Money amounts must be integer cents, got {type(value).__name__}")
    if value < 0:
        raise ValueError("Money amounts cannot be negative")
    return value


def round_half_up(numerator: int, denominator: int) -> int:
    """Integer division rounding .5 away from zero for non-negative operands"""
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (2 * numerator + denominator) // (2 * denominator)


def percent_of(amount_cents: int, rate_bps: int) -> int:
    """
    Apply a basis-point rate to an amount, rounding half up

    Args:
        amount_cents: Amount in cents
        rate_bps: Rate in basis points (700 = 7%)

    Returns:
        The rated amount in cents
    """
    return round_half_up(to_cents(amount_cents) * to_cents(rate_bps), BPS_DENOMINATOR)


def sum_cents(amounts: Iterable[int]) -> int:
    total = 0
    for amount in amounts:
        total += to_cents(amount)
    return total


def format_cents(amount_cents: int, symbol: str = "") -> str:
    """Render cents as a display string (e.g. 21400 -> '214.00')"""
    units, cents = divmod(to_cents(amount_cents), 100)
    return f"{symbol}{units}.{cents:02d}"
