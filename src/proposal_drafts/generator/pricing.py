"""Representative pricing arithmetic for one template-based line item."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

SIZE_FACTORS: dict[int, float] = {
    1: 0.85,  # small
    2: 1.0,  # medium
    3: 1.35,  # large
}

# Average hourly labor rate per trade that maps to a market multiplier of 1.0.
BASELINE_LABOR_RATES: dict[str, float] = {
    "bathroom": 85.0,
    "kitchen": 90.0,
    "roofing": 65.0,
    "plumbing": 95.0,
    "electrical": 105.0,
    "hvac": 110.0,
    "painting": 55.0,
    "flooring": 70.0,
    "drywall": 60.0,
}
DEFAULT_BASELINE_LABOR_RATE = 85.0
MARKET_MULTIPLIER_MIN = 0.9
MARKET_MULTIPLIER_MAX = 1.15


@dataclass(slots=True, frozen=True)
class MarketAdjustment:
    multiplier: float
    basis: str


@dataclass(slots=True, frozen=True)
class PricingInputs:
    base_price_low: int
    base_price_high: int
    job_size: int
    user_multiplier: float
    trade_multiplier: float
    market_multiplier: float

    def to_json(self) -> dict[str, Any]:
        return {
            "base_price_low": self.base_price_low,
            "base_price_high": self.base_price_high,
            "job_size": self.job_size,
            "size_factor": size_factor(self.job_size),
            "user_multiplier": self.user_multiplier,
            "trade_multiplier": self.trade_multiplier,
            "market_multiplier": self.market_multiplier,
        }


def size_factor(job_size: int) -> float:
    return SIZE_FACTORS.get(job_size, 1.0)


def round_half_up(value: float) -> int:
    return int(math.floor(round(value, 6) + 0.5))


def percent_to_factor(value: Any) -> float:
    """Convert a stored percentage (110 means +10%) to a multiplier; junk means 1.0."""

    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        return 1.0
    return float(value) / 100.0


def trade_multiplier(trade_multipliers: Mapping[str, Any], trade_id: str) -> float:
    return percent_to_factor(trade_multipliers.get(trade_id))


def market_multiplier(
    trade_id: str,
    labor_rates: Mapping[str, Sequence[float]],
) -> MarketAdjustment:
    """Gentle regional nudge from observed labor rates, clamped to a narrow band."""

    rates = [rate for rate in labor_rates.get(trade_id, ()) if rate > 0]
    if not rates:
        return MarketAdjustment(multiplier=1.0, basis="none")
    average = sum(rates) / len(rates)
    baseline = BASELINE_LABOR_RATES.get(trade_id, DEFAULT_BASELINE_LABOR_RATE)
    raw = average / baseline
    clamped = max(MARKET_MULTIPLIER_MIN, min(MARKET_MULTIPLIER_MAX, raw))
    return MarketAdjustment(multiplier=clamped, basis="labor")


def compute_price_range(inputs: PricingInputs) -> tuple[int, int]:
    """Return ``(low, high)`` with the high end clamped to at least the low end."""

    factor = (
        size_factor(inputs.job_size)
        * inputs.user_multiplier
        * inputs.trade_multiplier
        * inputs.market_multiplier
    )
    low = round_half_up(inputs.base_price_low * factor)
    high = round_half_up(inputs.base_price_high * factor)
    return low, max(low, high)


def compute_duration_range(
    *,
    days_low: int | None,
    days_high: int | None,
    job_size: int,
) -> tuple[int | None, int | None]:
    factor = size_factor(job_size)
    low = max(1, math.ceil(round(days_low * factor, 6))) if days_low is not None else None
    high = max(1, math.ceil(round(days_high * factor, 6))) if days_high is not None else None
    if low is not None and high is not None:
        high = max(low, high)
    return low, high
