"""
Currency helpers.

Amounts are decimal numbers in the venue currency (no implied scaling).
Every stored amount is quantized to cents with ROUND_HALF_UP.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Any, Sequence

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def as_decimal(value: Any) -> Decimal:
    """Convert ints, floats and strings to Decimal without float artefacts."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


def to_money(value: Any) -> Decimal:
    """Quantize a value to cents."""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Any, percentage: Any) -> Decimal:
    """``amount × percentage / 100`` rounded to cents."""
    return to_money(as_decimal(amount) * as_decimal(percentage) / Decimal(100))


def clamp_money(value: Any, upper: Any) -> Decimal:
    """Clamp to ``[0, upper]`` and quantize."""
    value = to_money(value)
    upper = to_money(upper)
    if value < ZERO:
        return ZERO
    return min(value, upper)


def apportion(amount: Any, weights: Sequence[Any]) -> list[Decimal]:
    """
    Split ``amount`` across ``weights`` so the parts sum exactly to it.

    Uses the largest-remainder method on whole cents: every share is
    floored, then the leftover cents go to the shares with the largest
    fractional remainders (earliest index wins ties). When every weight is
    zero the amount is split evenly.
    """
    if not weights:
        return []

    total_cents = int((to_money(amount) / CENT).to_integral_value())
    sign = -1 if total_cents < 0 else 1
    total_cents = abs(total_cents)

    weights = [as_decimal(w) for w in weights]
    if any(w < 0 for w in weights):
        raise ValueError("weights cannot be negative")
    weight_sum = sum(weights, Decimal(0))
    if weight_sum == 0:
        weights = [Decimal(1)] * len(weights)
        weight_sum = Decimal(len(weights))

    exact = [Decimal(total_cents) * w / weight_sum for w in weights]
    floors = [int(x.to_integral_value(rounding=ROUND_FLOOR)) for x in exact]
    leftover = total_cents - sum(floors)

    order = sorted(range(len(exact)), key=lambda i: (-(exact[i] - floors[i]), i))
    for i in order[:leftover]:
        floors[i] += 1

    return [(Decimal(sign * cents) * CENT).quantize(CENT) for cents in floors]
