"""Forecasts for titles without weekly chart history.

New releases have no trajectory to extrapolate, so the forecaster falls back
through progressively weaker evidence:

1. the daily chart tracker, when the title is charting there with a trend;
2. the tracker's current rank alone;
3. a blend of creator track record, star power and pre-release interest.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, List, Optional, Tuple

from ..config import ForecastConfig
from ..data.providers import CastCreditsProvider
from ..data.signal_store import SignalStore
from ..features.feature_builder import SIGNAL_WINDOW_DAYS, average_signal, encyclopedia_scale
from ..knowledge.base import KnowledgeBase, default_knowledge_base, popularity_star_power
from ..knowledge.thesis import generate_market_thesis
from ..mathutils import round_half_up, round_to
from ..models.forecast import Forecast, ForecastExplanation
from ..models.title import CreatorRecord, Title
from .base import BaseForecaster
from .tracker import TrackerTrend, momentum_to_rank, tracker_trend

logger = logging.getLogger(__name__)

# Component weights for the no-tracker blend, renormalized over what is present.
BLEND_WEIGHTS = {
    "creator": 0.30,
    "star_power": 0.25,
    "search": 0.20,
    "encyclopedia": 0.15,
    "base": 0.10,
}
NEUTRAL_BASE = 50.0
HIGH_CONFIDENCE_HIT_RATE = 0.75
STAR_POWER_SIGNAL = 60.0

NO_TRACKER_UNCERTAINTY = 3.5
TRACKER_UNCERTAINTY = 2.0
TRACKER_UNCERTAINTY_FLOOR = 1.0
SIGNAL_UNCERTAINTY_STEP = 0.25
UNCERTAINTY_FLOOR = 0.5


@dataclass
class PreReleaseSignals:
    """Everything known about a title before it reaches the weekly chart."""

    creator: Optional[str] = None
    creator_record: Optional[CreatorRecord] = None
    cast: List[str] = field(default_factory=list)
    popularity_score: float = 0.0
    star_power: float = 0.0
    search: Optional[float] = None
    encyclopedia_views: Optional[float] = None

    @property
    def encyclopedia(self) -> Optional[float]:
        return encyclopedia_scale(self.encyclopedia_views)

    def present_count(self) -> int:
        """Signals that tighten the forecast range."""
        return sum(
            [
                self.creator_record is not None,
                self.star_power >= STAR_POWER_SIGNAL,
                self.search is not None,
                self.encyclopedia is not None,
            ]
        )

    def components(self) -> Dict[str, float]:
        values = {}
        if self.creator_record is not None:
            values["creator"] = self.creator_record.hit_rate * 100.0
        if self.star_power > 0:
            values["star_power"] = self.star_power
        if self.search is not None:
            values["search"] = self.search
        if self.encyclopedia is not None:
            values["encyclopedia"] = self.encyclopedia
        return values

    def to_dict(self) -> dict:
        return {
            "creator": self.creator,
            "creator_hit_rate": self.creator_record.hit_rate if self.creator_record else None,
            "creator_reason": self.creator_record.reason if self.creator_record else None,
            "cast": list(self.cast),
            "popularity_score": self.popularity_score,
            "star_power": self.star_power,
            "search": round_to(self.search, 2) if self.search is not None else None,
            "encyclopedia_views": self.encyclopedia_views,
        }


def blend_momentum(components: Dict[str, float]) -> Tuple[float, Dict[str, float]]:
    """Weighted mean of the present components plus the neutral base."""
    values = dict(components)
    values["base"] = NEUTRAL_BASE
    total_weight = sum(BLEND_WEIGHTS[name] for name in values)
    score = sum(values[name] * BLEND_WEIGHTS[name] for name in values) / total_weight
    contributions = {
        name: round_to(values[name] * BLEND_WEIGHTS[name] / total_weight, 2) for name in sorted(values)
    }
    return round_to(score, 2), contributions


def blend_confidence(signals: PreReleaseSignals) -> str:
    components = signals.components()
    if signals.creator_record is not None and signals.creator_record.hit_rate >= HIGH_CONFIDENCE_HIT_RATE:
        return "high"
    if len(components) >= 3:
        return "high"
    if components:
        return "medium"
    return "low"


def base_uncertainty(trend: Optional[TrackerTrend]) -> float:
    if trend is None:
        return NO_TRACKER_UNCERTAINTY
    if not trend.has_trend:
        return TRACKER_UNCERTAINTY
    u = TRACKER_UNCERTAINTY
    if trend.points >= 7:
        u -= 0.5
    if not trend.is_falling:
        u -= 0.5
    return max(TRACKER_UNCERTAINTY_FLOOR, u)


def rank_bounds(p50: int, uncertainty: float) -> Tuple[int, int, int]:
    p10 = max(1, round_half_up(p50 - uncertainty))
    p90 = round_half_up(p50 + uncertainty)
    return min(p10, p50), p50, max(p90, p50)


class PreReleaseForecaster(BaseForecaster):
    """Rank forecasts for titles that have not charted weekly yet."""

    def __init__(
        self,
        store: SignalStore,
        config: Optional[ForecastConfig] = None,
        kb: Optional[KnowledgeBase] = None,
        credits_provider: Optional[CastCreditsProvider] = None,
    ):
        super().__init__("pre_release")
        self.store = store
        self.config = config or ForecastConfig()
        self.kb = kb or default_knowledge_base()
        self.credits_provider = credits_provider

    def gather_signals(self, title: Title, as_of: date) -> PreReleaseSignals:
        signals = PreReleaseSignals(cast=list(title.cast))

        found = self.kb.creator_track_record(title.canonical_name)
        if found is not None:
            signals.creator, signals.creator_record = found

        if self.credits_provider is not None:
            credits = self.credits_provider.search_and_get_credits(title.canonical_name, title.kind)
            if credits is not None:
                signals.popularity_score = popularity_star_power(credits.popularities)
                if not signals.cast:
                    signals.cast = credits.cast_names
        signals.star_power = self.kb.star_power_score(signals.cast, signals.popularity_score)

        start = as_of - timedelta(days=SIGNAL_WINDOW_DAYS - 1)
        signals.search = average_signal(self.store, title.title_id, "SEARCH", "GLOBAL", start, as_of)
        if signals.search is None:
            signals.search = average_signal(self.store, title.title_id, "SEARCH", "US", start, as_of)
        signals.encyclopedia_views = average_signal(
            self.store, title.title_id, "ENCYCLOPEDIA", "GLOBAL", start, as_of
        )
        return signals

    def current_tracker_trend(self, title_id: str, as_of: date) -> Optional[TrackerTrend]:
        rows = self.store.get_tracker_history(
            title_id, self.config.tracker_region, self.config.tracker_days, as_of
        )
        return tracker_trend(rows, as_of, self.config.tracker_fresh_days)

    def forecast(self, title_id: str, week_start: date) -> Optional[Forecast]:
        title = self.store.get_title(title_id)
        if title is None:
            return None
        as_of = week_start - timedelta(days=1)

        signals = self.gather_signals(title, as_of)
        trend = self.current_tracker_trend(title_id, as_of)
        details = {"signals": signals.to_dict()}

        if trend is not None and trend.has_trend:
            momentum = trend.momentum
            p50 = momentum_to_rank(momentum)
            confidence = "high" if trend.points >= 5 else "medium"
            regime = "tracker_trend"
            details["tracker"] = trend.to_dict()
        elif trend is not None:
            momentum = trend.momentum
            p50 = trend.current_rank
            confidence = "medium"
            regime = "tracker_current"
            details["tracker"] = trend.to_dict()
        else:
            momentum, contributions = blend_momentum(signals.components())
            p50 = momentum_to_rank(momentum)
            confidence = blend_confidence(signals)
            regime = "pre_release"
            details["blend_contributions"] = contributions

        uncertainty = base_uncertainty(trend) - SIGNAL_UNCERTAINTY_STEP * signals.present_count()
        uncertainty = max(UNCERTAINTY_FLOOR, uncertainty)
        p10, p50, p90 = rank_bounds(p50, uncertainty)

        thesis = generate_market_thesis(
            self.kb,
            title.canonical_name,
            cast=signals.cast,
            genres=title.genres,
            popularity_score=signals.popularity_score,
            search_score=signals.search,
        )
        details["thesis"] = thesis.to_dict()
        logger.debug("Pre-release forecast for %s via %s: p50=%d", title_id, regime, p50)

        explain = ForecastExplanation(
            momentum_score=momentum,
            search_contribution=signals.search,
            encyclopedia_contribution=signals.encyclopedia_views,
            confidence=confidence,
            regime=regime,
            trend=trend.to_dict() if trend is not None else None,
            uncertainty=uncertainty,
            details=details,
        )
        return Forecast(
            title_id=title_id,
            week_start=week_start,
            target="RANK",
            p10=p10,
            p50=p50,
            p90=p90,
            explain=explain,
        )
