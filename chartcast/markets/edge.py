"""Model-implied #1 probabilities and their edge over market prices.

Momentum maps to a probability of taking the #1 slot through a sigmoid
centred on a momentum of 65. The rank forecast, acceleration and forecast
confidence then adjust it, and the gap between that model probability and
the market price is the edge. Only #1-slot quotes are priced.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

from ..data.signal_store import SignalStore
from ..mathutils import clamp, round_to
from ..models.forecast import Forecast
from ..predictors.market_blend import QuoteSource

logger = logging.getLogger(__name__)

SIGMOID_CENTER = 65.0
SIGMOID_SPREAD = 35.0
SIGMOID_STEEPNESS = 3.5
MAX_MOMENTUM_PROBABILITY = 0.85
MAX_RANKED_PROBABILITY = 0.90
MIN_MODEL_PROBABILITY = 0.01
MAX_ACCELERATION_BONUS = 0.05

# Additive bumps keyed by forecast p50.
P50_ADJUSTMENTS = {1: 0.18, 2: 0.08, 3: 0.03}
CONFIDENCE_FACTORS = {"low": 0.7, "medium": 0.85, "high": 1.0}

STRONG_EDGE = 20.0
MODERATE_EDGE = 10.0
DEFAULT_MIN_EDGE = 10.0


def momentum_to_probability(momentum: float) -> float:
    """Probability of finishing #1 implied by a momentum score alone.

    Momentum 65 maps to 0.425 and momentum 100 to about 0.825, so the
    result stays below ``MAX_MOMENTUM_PROBABILITY``.
    """
    momentum = clamp(momentum, 0.0, 100.0)
    normalized = (momentum - SIGMOID_CENTER) / SIGMOID_SPREAD
    sigmoid = 1.0 / (1.0 + math.exp(-SIGMOID_STEEPNESS * normalized))
    return min(MAX_MOMENTUM_PROBABILITY, sigmoid * MAX_MOMENTUM_PROBABILITY)


def rank_forecast_adjustment(base: float, p10: float, p50: float, p90: float) -> float:
    """Raise ``base`` for forecasts that put the title at or near #1."""
    adjustment = P50_ADJUSTMENTS.get(int(p50), 0.0)
    if p10 == 1 and p50 != 1:
        adjustment += 0.05
    if p90 <= 2:
        adjustment += 0.08
    elif p90 <= 3:
        adjustment += 0.03
    return min(MAX_RANKED_PROBABILITY, base + adjustment)


@dataclass
class ModelProbability:
    probability: float
    confidence: str
    momentum_component: float
    rank_forecast_component: float
    acceleration_bonus: float

    def to_dict(self) -> dict:
        return {
            "probability": round_to(self.probability, 4),
            "confidence": self.confidence,
            "momentum_component": round_to(self.momentum_component, 4),
            "rank_forecast_component": round_to(self.rank_forecast_component, 4),
            "acceleration_bonus": round_to(self.acceleration_bonus, 4),
        }


def model_probability(
    momentum: float,
    acceleration: float = 0.0,
    forecast: Optional[Forecast] = None,
    confidence: str = "high",
) -> ModelProbability:
    """
    Combine momentum, rank forecast and acceleration into one #1 probability.

    Args:
        momentum: Momentum score, 0-100
        acceleration: Week-over-week momentum change
        forecast: Optional RANK forecast used to adjust the momentum estimate
        confidence: Forecast confidence; low and medium shrink the result

    Returns:
        ModelProbability clamped to [0.01, 0.90], with its components
    """
    momentum_component = momentum_to_probability(momentum)
    probability = momentum_component
    if forecast is not None:
        probability = rank_forecast_adjustment(probability, forecast.p10, forecast.p50, forecast.p90)
    rank_component = probability - momentum_component

    if acceleration > 0:
        bonus = min(MAX_ACCELERATION_BONUS, acceleration / 200.0)
    else:
        bonus = max(-MAX_ACCELERATION_BONUS, acceleration / 200.0)
    probability += bonus

    probability *= CONFIDENCE_FACTORS.get(confidence, 1.0)
    probability = clamp(probability, MIN_MODEL_PROBABILITY, MAX_RANKED_PROBABILITY)

    return ModelProbability(
        probability=probability,
        confidence=confidence,
        momentum_component=momentum_component,
        rank_forecast_component=rank_component,
        acceleration_bonus=bonus,
    )


@dataclass
class EdgeSignal:
    edge: float
    edge_percent: float
    signal_strength: str
    direction: str


def calculate_edge(market_probability: float, model_prob: float) -> EdgeSignal:
    """Edge of the model over the market: BUY when the model is higher."""
    edge = model_prob - market_probability
    edge_percent = edge * 100.0
    magnitude = abs(edge_percent)
    if magnitude >= STRONG_EDGE:
        strength = "strong"
    elif magnitude >= MODERATE_EDGE:
        strength = "moderate"
    else:
        strength = "weak"
    return EdgeSignal(
        edge=edge,
        edge_percent=edge_percent,
        signal_strength=strength,
        direction="BUY" if edge > 0 else "AVOID",
    )


def edge_reasoning(
    direction: str,
    momentum: float,
    acceleration: float,
    forecast: Optional[Forecast],
    pattern: str,
    market_probability: float,
) -> str:
    """Up to three short reasons behind an edge, joined with `` | ``."""
    reasons: List[str] = []
    if direction == "BUY":
        if forecast is not None and forecast.p50 <= 2:
            reasons.append(f"Model forecasts #{forecast.p50:g} rank")
        if momentum >= 70:
            reasons.append(f"High momentum ({momentum:.0f})")
        elif momentum >= 55:
            reasons.append(f"Good momentum ({momentum:.0f})")
        if acceleration > 10:
            reasons.append("Trending up")
        if pattern in ("climbing_fast", "climbing_slow"):
            reasons.append("Climbing the chart")
        if forecast is not None and forecast.p90 <= 3:
            reasons.append(f"Even worst case is top {forecast.p90:g}")
        if market_probability < 0.1:
            reasons.append("Market undervaluing")
    else:
        if forecast is not None and forecast.p50 > 3:
            reasons.append(f"Model forecasts only #{forecast.p50:g}")
        if momentum < 40:
            reasons.append(f"Low momentum ({momentum:.0f})")
        elif momentum < 55:
            reasons.append(f"Moderate momentum ({momentum:.0f})")
        if acceleration < -10:
            reasons.append("Losing steam")
        if pattern in ("falling_fast", "falling_slow"):
            reasons.append("Falling down the chart")
        if forecast is not None and forecast.p10 > 2:
            reasons.append(f"Even best case is only #{forecast.p10:g}")
        if market_probability > 0.7:
            reasons.append("Market may be overconfident")

    if not reasons:
        return "Model sees upside potential" if direction == "BUY" else "Model sees downside risk"
    return " | ".join(reasons[:3])


@dataclass
class EdgeOpportunity:
    """A title whose model probability differs from its market price."""

    title_id: str
    title_name: str
    region: Optional[str]
    market_probability: float
    model: ModelProbability
    signal: EdgeSignal
    momentum_score: float
    acceleration_score: float
    forecast_p50: Optional[float]
    reasoning: str
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "title_id": self.title_id,
            "title_name": self.title_name,
            "region": self.region,
            "market_probability": self.market_probability,
            "model_probability": round_to(self.model.probability, 4),
            "edge": round_to(self.signal.edge, 4),
            "edge_percent": round_to(self.signal.edge_percent, 1),
            "signal_strength": self.signal.signal_strength,
            "direction": self.signal.direction,
            "momentum_score": self.momentum_score,
            "acceleration_score": self.acceleration_score,
            "forecast_p50": self.forecast_p50,
            "confidence": self.model.confidence,
            "components": self.model.to_dict(),
            "reasoning": self.reasoning,
            "url": self.url,
        }


def find_edges(
    forecasts: Sequence[Forecast],
    store: SignalStore,
    quote_source: QuoteSource,
    region: Optional[str] = None,
) -> List[EdgeOpportunity]:
    """
    Price every RANK forecast that has a momentum score against the market.

    Titles unknown to ``store``, titles without a #1-slot quote and forecasts
    without momentum (pre-release, tracker-only) are skipped.
    """
    opportunities = []
    for forecast in forecasts:
        if forecast.target != "RANK" or forecast.explain.momentum_score is None:
            continue
        title = store.get_title(forecast.title_id)
        if title is None:
            logger.debug("No title %s in store, skipping edge", forecast.title_id)
            continue
        quote = quote_source(title.canonical_name, title.kind, region)
        if quote is None or quote.slot_rank != 1:
            continue

        explain = forecast.explain
        model = model_probability(
            explain.momentum_score,
            explain.acceleration_score,
            forecast,
            explain.confidence,
        )
        signal = calculate_edge(quote.probability, model.probability)
        opportunities.append(
            EdgeOpportunity(
                title_id=forecast.title_id,
                title_name=title.canonical_name,
                region=region if region is not None else quote.region,
                market_probability=quote.probability,
                model=model,
                signal=signal,
                momentum_score=explain.momentum_score,
                acceleration_score=explain.acceleration_score,
                forecast_p50=forecast.p50,
                reasoning=edge_reasoning(
                    signal.direction,
                    explain.momentum_score,
                    explain.acceleration_score,
                    forecast,
                    explain.historical_pattern,
                    quote.probability,
                ),
                url=quote.url,
            )
        )
    return opportunities


def significant_edges(
    opportunities: Sequence[EdgeOpportunity], min_edge_percent: float = DEFAULT_MIN_EDGE
) -> List[EdgeOpportunity]:
    """Opportunities with ``|edge_percent| >= min_edge_percent``, largest first."""
    kept = [o for o in opportunities if abs(o.signal.edge_percent) >= min_edge_percent]
    return sorted(kept, key=lambda o: -abs(o.signal.edge_percent))
