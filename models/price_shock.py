"""
Price shock model for collateral crash and gain events.

new_price = price * (100 - floor(drop * 100)) / 100    (crash)
new_price = price * (100 + floor(gain * 100)) / 100    (gain)

The fraction is floored to whole percentage points before it touches the
price. This loses up to one point of resolution versus continuous math and
is kept on purpose: identical samples always give identical integer prices.
"""

from __future__ import annotations

from enum import Enum

from models.errors import require
from models.fixed_point import PERCENT_BASE, whole_percent


class ShockKind(str, Enum):
    CRASH = "crash"
    GAIN = "gain"


def shock_multiplier_percent(kind: ShockKind, fraction: float) -> int:
    """Whole-percent multiplier applied to the current price."""
    require(fraction >= 0.0, f"shock fraction must be non-negative, got {fraction}")
    points = whole_percent(fraction)
    if kind is ShockKind.CRASH:
        require(points <= PERCENT_BASE, f"crash fraction above 100%: {fraction}")
        return PERCENT_BASE - points
    return PERCENT_BASE + points


def apply_price_shock(current_price: int, kind: ShockKind, fraction: float) -> int:
    """Return the shocked price in WAD units. Pure; submission is the caller's job."""
    require(current_price >= 0, f"price must be non-negative, got {current_price}")
    return current_price * shock_multiplier_percent(ShockKind(kind), fraction) // PERCENT_BASE


def price_delta(current_price: int, new_price: int) -> int:
    """Signed change; the only fixed-point quantity allowed to be negative."""
    return new_price - current_price
