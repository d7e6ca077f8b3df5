"""Statistical distribution helpers for realistic data generation."""

import random
from decimal import ROUND_HALF_UP, Decimal

CENTS = Decimal("0.01")


def to_cents(value: float | Decimal) -> Decimal:
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def tiered_amount(rng: random.Random, tiers: list[tuple[float, float, float]]) -> Decimal:
    """Draw from a mixture of uniform tiers given as (probability, low, high)."""
    roll = rng.random()
    cumulative = 0.0
    for probability, low, high in tiers:
        cumulative += probability
        if roll < cumulative:
            return to_cents(rng.uniform(low, high))
    _, low, high = tiers[-1]
    return to_cents(rng.uniform(low, high))


def numeric_suffix(rng: random.Random, length: int = 6) -> str:
    return "".join(str(rng.randint(0, 9)) for _ in range(length))
