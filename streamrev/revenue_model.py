"""
revenue_model.py — Streams-per-Listener Revenue Estimator
===========================================================
Converts a monthly listener count into estimated monthly streams and
revenue.

**Adaptive path (track sample available)**

    hit_ratio        = hit_average / listeners
    hit_ratio_factor = min(1.5, 0.7 + hit_ratio / 15)
    coefficient      = 0.6 * hit_ratio_factor * size_multiplier(tier)
    ratio            = clamp(hit_ratio * coefficient, 0.5, 50)

**Fallback path (no track sample)**

    ratio = max(1.0, base(tier) + (U[0, 1) - 0.5) * variation(tier))

The jitter makes the fallback non-deterministic; pass a seeded
``random.Random`` or ``jitter=False`` for reproducible numbers.

**Revenue**

    streams = listeners * ratio
    revenue = streams * REVENUE_PER_STREAM_USD * USD_TO_EUR
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Tuple

from streamrev.track_extractor import TrackSample
from streamrev.utils import clamp, get_logger

logger = get_logger("streamrev.revenue_model")


# ── policy constants ───────────────────────────────────────────────────────

REVENUE_PER_STREAM_USD = 0.004
USD_TO_EUR = 0.92

BASE_COEFFICIENT = 0.6
HIT_FACTOR_INTERCEPT = 0.7
HIT_FACTOR_SLOPE_DIVISOR = 15.0
HIT_FACTOR_CAP = 1.5

ADAPTIVE_RATIO_FLOOR = 0.5
ADAPTIVE_RATIO_CEILING = 50.0
FALLBACK_RATIO_FLOOR = 1.0

MAX_LISTENERS = 100_000_000


@dataclass(frozen=True)
class AudienceTier:
    """Listener-count band with its coefficients."""

    name: str
    upper_bound: float         # exclusive
    size_multiplier: float     # adaptive path
    base_ratio: float          # fallback path
    variation: float           # fallback jitter width (± variation / 2)


AUDIENCE_TIERS: Tuple[AudienceTier, ...] = (
    AudienceTier("emerging", 50_000, 1.0, 4.0, 1.0),
    AudienceTier("growing", 500_000, 0.85, 6.5, 1.5),
    AudienceTier("established", 2_000_000, 0.7, 5.0, 1.0),
    AudienceTier("mainstream", float("inf"), 0.6, 3.0, 1.0),
)


@dataclass(frozen=True)
class RevenueEstimate:
    """Derived estimate; always recomputed from its inputs."""

    streams_per_listener: float
    monthly_streams: float
    monthly_revenue: float
    tier: str
    method: str                            # "adaptive" | "fallback"
    hit_ratio: Optional[float] = None
    adaptive_coefficient: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "ratio": self.streams_per_listener,
            "streams": self.monthly_streams,
            "revenue": self.monthly_revenue,
            "tier": self.tier,
            "method": self.method,
            "hit_ratio": self.hit_ratio,
            "adaptive_coefficient": self.adaptive_coefficient,
        }


# ── helpers ─────────────────────────────────────────────────────────────────

def validate_listeners(listeners: int) -> None:
    if not 0 < listeners < MAX_LISTENERS:
        raise ValueError(
            f"listeners must be in (0, {MAX_LISTENERS:,}), got {listeners}"
        )


def classify_audience(listeners: float) -> AudienceTier:
    for tier in AUDIENCE_TIERS:
        if listeners < tier.upper_bound:
            return tier
    return AUDIENCE_TIERS[-1]


def fallback_ratio_range(listeners: float) -> Tuple[float, float]:
    """Closed interval the fallback ratio can land in for *listeners*."""
    tier = classify_audience(listeners)
    half = tier.variation / 2
    return (
        max(FALLBACK_RATIO_FLOOR, tier.base_ratio - half),
        max(FALLBACK_RATIO_FLOOR, tier.base_ratio + half),
    )


def hit_ratio_factor(hit_ratio: float) -> float:
    return min(HIT_FACTOR_CAP, HIT_FACTOR_INTERCEPT + hit_ratio / HIT_FACTOR_SLOPE_DIVISOR)


# ── ratio models ────────────────────────────────────────────────────────────

def adaptive_ratio(listeners: int, sample: TrackSample) -> Tuple[float, float, float]:
    """
    Streams-per-listener from real track data.

    Returns ``(ratio, hit_ratio, adaptive_coefficient)``.
    """
    tier = classify_audience(listeners)
    hit_ratio = sample.hit_average / listeners
    factor = hit_ratio_factor(hit_ratio)
    coefficient = BASE_COEFFICIENT * factor * tier.size_multiplier
    ratio = clamp(hit_ratio * coefficient, ADAPTIVE_RATIO_FLOOR, ADAPTIVE_RATIO_CEILING)

    logger.debug(
        "Adaptive ratio (%s): hit ratio %.2f, hit factor %.2f, size %.2f, "
        "coefficient %.3f → %.2f streams/listener",
        tier.name, hit_ratio, factor, tier.size_multiplier, coefficient, ratio,
    )
    return ratio, hit_ratio, coefficient


def fallback_ratio(
    listeners: int,
    rng: random.Random | None = None,
    jitter: bool = True,
) -> float:
    """Tier base ratio with bounded symmetric jitter, floored at 1.0."""
    tier = classify_audience(listeners)
    offset = 0.0
    if jitter:
        rng = rng or random.Random()
        offset = (rng.random() - 0.5) * tier.variation
    ratio = max(FALLBACK_RATIO_FLOOR, tier.base_ratio + offset)

    logger.debug(
        "Fallback ratio (%s): base %.1f %+.2f → %.2f streams/listener",
        tier.name, tier.base_ratio, offset, ratio,
    )
    return ratio


# ── entry point ─────────────────────────────────────────────────────────────

def estimate_revenue(
    listeners: int,
    track_sample: TrackSample | None = None,
    *,
    rng: random.Random | None = None,
    jitter: bool = True,
) -> RevenueEstimate:
    """
    Estimate monthly streams and EUR revenue.

    Parameters
    ----------
    listeners : int
        Monthly listeners, ``0 < listeners < 100M``.
    track_sample : TrackSample, optional
        Enables the adaptive path; ``None`` uses the fallback curve.
    rng : random.Random, optional
        Jitter source for the fallback path.
    jitter : bool
        Set False to pin the fallback ratio to the tier base.
    """
    validate_listeners(listeners)
    tier = classify_audience(listeners)

    hit_ratio = coefficient = None
    if track_sample is not None and track_sample.count > 0:
        ratio, hit_ratio, coefficient = adaptive_ratio(listeners, track_sample)
        method = "adaptive"
    else:
        ratio = fallback_ratio(listeners, rng=rng, jitter=jitter)
        method = "fallback"

    monthly_streams = listeners * ratio
    monthly_revenue = monthly_streams * REVENUE_PER_STREAM_USD * USD_TO_EUR

    return RevenueEstimate(
        streams_per_listener=ratio,
        monthly_streams=monthly_streams,
        monthly_revenue=monthly_revenue,
        tier=tier.name,
        method=method,
        hit_ratio=hit_ratio,
        adaptive_coefficient=coefficient,
    )
