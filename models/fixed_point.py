"""
18-decimal fixed-point helpers.

All balances, prices and ratios exchanged with the ledger are integers
scaled by WAD = 10**18. Multiplication and division truncate toward zero,
matching on-chain uint256 arithmetic.
"""

from __future__ import annotations

import math
from decimal import Decimal

WAD = 10 ** 18
PERCENT_BASE = 100


def to_wad(value: float | int | str | Decimal) -> int:
    """Convert a human-readable quantity to WAD units (exact for str/Decimal)."""
    return int(Decimal(str(value)) * WAD)


def from_wad(value: int) -> float:
    """Convert WAD units to float, for display and numpy series only."""
    return float(Decimal(int(value)) / WAD)


def wad_mul(a: int, b: int) -> int:
    return a * b // WAD


def wad_div(a: int, b: int) -> int:
    if b == 0:
        raise ZeroDivisionError("wad_div by zero")
    return a * WAD // b


def whole_percent(fraction: float) -> int:
    """
    Floor a sampled fraction to whole percentage points.

    0.459 -> 45. Amounts and prices are scaled by this integer, never by the
    continuous fraction, so sampled values are reproducible test oracles.
    """
    return int(math.floor(fraction * PERCENT_BASE))


def percent_of(amount: int, percent: int) -> int:
    return amount * percent // PERCENT_BASE
