"""Probability distribution over a market question's listed outcomes.

Each outcome name is resolved to a store title and scored with its tracker
momentum. Scores go through a temperature softmax together with a fixed
"field" strength standing for every unlisted title, and the percentages are
rounded to one decimal so that they add up to exactly 100.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from ..config import ForecastConfig
from ..data.signal_store import SignalStore
from ..data.title_name_resolver import TitleNameResolver
from ..mathutils import round_half_up
from ..models.forecast import MarketOutcome, MarketProbabilities
from ..predictors.tracker import tracker_strength

logger = logging.getLogger(__name__)

NEUTRAL_STRENGTH = 50.0
TOTAL_TENTHS = 1000


@dataclass(frozen=True)
class OutcomeScore:
    name: str
    strength: float
    confidence: str
    title_id: Optional[str] = None


def softmax_percentages(scores: Sequence[float], temperature: float) -> List[float]:
    """Softmax over ``scores`` as percentages, shifted by the max for stability."""
    if not scores:
        return []
    top = max(scores)
    weights = [math.exp((s - top) / temperature) for s in scores]
    total = sum(weights)
    return [w / total * 100.0 for w in weights]


def round_to_total(percentages: Sequence[float], drift_index: int) -> List[float]:
    """
    Round to one decimal so the values sum to exactly 100.

    Works in integer tenths; any rounding drift lands on ``drift_index``.
    """
    tenths = [round_half_up(p * 10.0) for p in percentages]
    tenths[drift_index] += TOTAL_TENTHS - sum(tenths)
    return [t / 10.0 for t in tenths]


class MarketProbabilityDistributor:
    """Turns a list of market outcome names into a probability distribution."""

    def __init__(
        self,
        store: SignalStore,
        config: Optional[ForecastConfig] = None,
        resolver: Optional[TitleNameResolver] = None,
    ):
        self.store = store
        self.config = config or ForecastConfig()
        self.resolver = resolver or TitleNameResolver(store.list_titles())

    def score_outcome(self, name: str, as_of: date) -> OutcomeScore:
        title_id = self.resolver.lookup(name)
        if title_id is None:
            return OutcomeScore(name, NEUTRAL_STRENGTH, "low")

        trend = tracker_strength(self.store, title_id, as_of, self.config)
        if trend is None:
            return OutcomeScore(name, NEUTRAL_STRENGTH, "low", title_id)
        confidence = "high" if trend.has_trend and trend.points >= 5 else "medium"
        return OutcomeScore(name, trend.momentum, confidence, title_id)

    def distribute(self, market_question: str, outcome_names: Sequence[str], as_of: date) -> MarketProbabilities:
        """
        Distribute 100 percentage points over the listed outcomes and the field.

        Args:
            market_question: Question text, echoed into the result
            outcome_names: Listed outcomes as the market names them
            as_of: Last day of tracker data to use

        Returns:
            MarketProbabilities whose outcome and field probabilities sum to 100
        """
        # Score everything up front so normalization sees one consistent snapshot.
        snapshot = [self.score_outcome(name, as_of) for name in outcome_names]
        if not snapshot:
            return MarketProbabilities(market_question=market_question, outcomes=[], field_probability=100.0)

        strengths = [s.strength for s in snapshot] + [self.config.field_strength]
        percentages = softmax_percentages(strengths, self.config.softmax_temperature)
        leader = max(range(len(snapshot)), key=lambda i: (percentages[i], -i))
        rounded = round_to_total(percentages, leader)

        outcomes = [
            MarketOutcome(
                name=score.name,
                probability=rounded[i],
                raw_score=score.strength,
                confidence=score.confidence,
                matched_title_id=score.title_id,
            )
            for i, score in enumerate(snapshot)
        ]
        logger.info(
            "Distributed %d outcomes for %r (field %.1f%%)", len(outcomes), market_question, rounded[-1]
        )
        return MarketProbabilities(
            market_question=market_question,
            outcomes=outcomes,
            field_probability=rounded[-1],
        )
