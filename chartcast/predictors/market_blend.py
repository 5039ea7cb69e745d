"""Tiered blending of prediction-market probabilities into rank forecasts.

A market price for "#1 this week" is strong evidence, so it is applied in
tiers: a heavy favorite overrides the heuristic forecast outright, weaker
prices pull it part of the way towards the market-implied rank, and long
shots are ignored. The blend runs at read time per region and always returns
a new forecast; stored base forecasts are never modified.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Optional, Tuple

from ..config import BlendThresholds
from ..mathutils import round_to
from ..models.forecast import Forecast, ForecastExplanation
from ..models.title import MarketProbabilityQuote
from .base import rank_percentiles

logger = logging.getLogger(__name__)

DEFAULT_Z = 1.28
MAX_BLEND_SLOT = 2

QuoteSource = Callable[[str, str, Optional[str]], Optional[MarketProbabilityQuote]]


TIER_ORDER = ("override", "strong", "moderate", "weak")
TIER_WEIGHTS = {"override": 1.0, "strong": 0.7, "moderate": 0.5, "weak": 0.3}


def _first_slot_tier(probability: float, thresholds: BlendThresholds) -> Optional[Tuple[str, float]]:
    pct = probability * 100.0
    if probability >= thresholds.override:
        return "override", 1.0
    if probability >= thresholds.strong:
        return "strong", 1.0 + (100.0 - pct) / 45.0
    if probability >= thresholds.moderate:
        return "moderate", 2.0 + (55.0 - pct) / 15.0
    if probability >= thresholds.weak:
        return "weak", 3.0 + (40.0 - pct) / 10.0
    return None


def blend_tier(
    probability: float, slot_rank: int, thresholds: BlendThresholds
) -> Optional[Tuple[str, float, float]]:
    """
    Tier for a quote: ``(tier, implied_rank, market_weight)``.

    Returns None for long shots. A quote on the #2 slot is priced as the
    same quote on #1 with the implied rank one position worse, and drops
    one tier: a #2 favorite is a strong blend rather than an override, and
    a weak #2 price is ignored.
    """
    found = _first_slot_tier(probability, thresholds)
    if found is None:
        return None
    name, implied = found
    shift = slot_rank - 1
    position = TIER_ORDER.index(name) + shift
    if position >= len(TIER_ORDER):
        return None
    name = TIER_ORDER[position]
    return name, implied + shift, TIER_WEIGHTS[name]


def apply_market_blend(
    forecast: Forecast,
    quote: Optional[MarketProbabilityQuote],
    thresholds: Optional[BlendThresholds] = None,
    z: float = DEFAULT_Z,
    region: Optional[str] = None,
) -> Forecast:
    """
    Blend a market quote into a rank forecast.

    Args:
        forecast: Stored base forecast
        quote: Market quote for the title, or None
        thresholds: Tier boundaries and sigma caps
        z: z-score used for the p10/p90 band
        region: Region the blended view is for (recorded in the explanation)

    Returns:
        A new Forecast; the input itself when there is nothing to apply
    """
    if forecast.target != "RANK" or quote is None:
        return forecast
    if quote.slot_rank > MAX_BLEND_SLOT:
        return forecast
    thresholds = thresholds or BlendThresholds()

    tier = blend_tier(quote.probability, quote.slot_rank, thresholds)
    if tier is None:
        return forecast
    name, implied, market_weight = tier

    base = float(forecast.p50)
    sigma = (forecast.p90 - forecast.p10) / (2.0 * z)
    if name == "override":
        center = implied
        sigma = min(sigma, thresholds.override_sigma_cap)
    else:
        center = market_weight * implied + (1.0 - market_weight) * base
        if name == "strong":
            sigma = min(sigma, thresholds.strong_sigma_cap)

    high = max(float(forecast.p90), implied)
    p10, p50, p90 = rank_percentiles(center, sigma, z, 1, high)

    explain = ForecastExplanation.from_dict(forecast.explain.to_dict())
    explain.applied_overrides.append(
        {
            "tier": name,
            "probability": quote.probability,
            "slot_rank": quote.slot_rank,
            "region": region if region is not None else quote.region,
            "implied_rank": round_to(implied, 2),
            "base_rank": forecast.p50,
            "blended_rank": round_to(center, 2),
        }
    )
    logger.debug(
        "Market %s blend for %s: p=%.2f slot=%d, %s -> %s",
        name,
        forecast.title_id,
        quote.probability,
        quote.slot_rank,
        forecast.p50,
        p50,
    )
    return dataclasses.replace(forecast, p10=p10, p50=p50, p90=p90, explain=explain)


def blend_for_region(
    forecast: Forecast,
    title_name: str,
    title_kind: str,
    quote_source: QuoteSource,
    region: Optional[str] = None,
    thresholds: Optional[BlendThresholds] = None,
    z: float = DEFAULT_Z,
) -> Forecast:
    """Look up the title's quote for ``region`` and blend it in."""
    quote = quote_source(title_name, title_kind, region)
    return apply_market_blend(forecast, quote, thresholds=thresholds, z=z, region=region)
