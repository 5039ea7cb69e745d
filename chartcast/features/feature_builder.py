"""Per-title weekly features and the momentum score.

Momentum blends three weak signals into one 0-100 number:

- search interest (already on a 0-100 scale),
- encyclopedia page views (log-scaled: 1k views ~ 30, 100k ~ 50, 1M ~ 60),
- week-over-week chart rank delta (-10..+10 mapped linearly onto 0..100).

Weights are renormalized over whichever components are present, so a title
with only search data still gets a score on the same scale.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import List, Optional

from ..config import ForecastConfig, MomentumWeights
from ..data.signal_store import SignalStore
from ..mathutils import clamp, round_half_up, round_to

logger = logging.getLogger(__name__)

SIGNAL_WINDOW_DAYS = 7
RANK_DELTA_RANGE = 10.0


@dataclass
class MomentumBreakdown:
    """Raw, normalized and weighted values behind one momentum score."""

    search_raw: Optional[float] = None
    encyclopedia_raw: Optional[float] = None
    rank_delta_raw: Optional[float] = None
    search_normalized: Optional[float] = None
    encyclopedia_normalized: Optional[float] = None
    rank_delta_normalized: Optional[float] = None
    weights: MomentumWeights = field(default_factory=MomentumWeights)
    search_contribution: float = 0.0
    encyclopedia_contribution: float = 0.0
    rank_delta_contribution: float = 0.0
    total_weight: float = 0.0
    total_score: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "search_raw": self.search_raw,
            "encyclopedia_raw": self.encyclopedia_raw,
            "rank_delta_raw": self.rank_delta_raw,
            "search_normalized": self.search_normalized,
            "encyclopedia_normalized": self.encyclopedia_normalized,
            "rank_delta_normalized": self.rank_delta_normalized,
            "weights": self.weights.to_dict(),
            "search_contribution": self.search_contribution,
            "encyclopedia_contribution": self.encyclopedia_contribution,
            "rank_delta_contribution": self.rank_delta_contribution,
            "total_weight": self.total_weight,
            "total_score": self.total_score,
        }


@dataclass
class TitleFeatures:
    """Derived features for one (title, week)."""

    title_id: str
    canonical_name: str
    kind: str
    week_start: date

    global_rank: Optional[int] = None
    regional_rank: Optional[int] = None
    global_views: Optional[float] = None
    global_hours_viewed: Optional[float] = None

    # Positive = climbing
    global_rank_delta: Optional[int] = None
    regional_rank_delta: Optional[int] = None
    views_growth_pct: Optional[float] = None

    search_global: Optional[float] = None
    search_us: Optional[float] = None
    encyclopedia_views: Optional[float] = None
    search_delta_pct: Optional[float] = None
    encyclopedia_delta_pct: Optional[float] = None

    momentum_score: Optional[float] = None
    acceleration_score: float = 0.0
    momentum_breakdown: Optional[MomentumBreakdown] = None

    @property
    def search_value(self) -> Optional[float]:
        return self.search_global if self.search_global is not None else self.search_us

    @property
    def has_interest_signal(self) -> bool:
        return self.search_value is not None or self.encyclopedia_views is not None

    def to_dict(self) -> dict:
        return {
            "title_id": self.title_id,
            "canonical_name": self.canonical_name,
            "kind": self.kind,
            "week_start": self.week_start.isoformat(),
            "global_rank": self.global_rank,
            "regional_rank": self.regional_rank,
            "global_views": self.global_views,
            "global_hours_viewed": self.global_hours_viewed,
            "global_rank_delta": self.global_rank_delta,
            "regional_rank_delta": self.regional_rank_delta,
            "views_growth_pct": self.views_growth_pct,
            "search_global": self.search_global,
            "search_us": self.search_us,
            "encyclopedia_views": self.encyclopedia_views,
            "search_delta_pct": self.search_delta_pct,
            "encyclopedia_delta_pct": self.encyclopedia_delta_pct,
            "momentum_score": self.momentum_score,
            "acceleration_score": self.acceleration_score,
            "momentum_breakdown": self.momentum_breakdown.to_dict() if self.momentum_breakdown else None,
        }


def rank_delta(current: Optional[int], previous: Optional[int]) -> Optional[int]:
    """Signed rank change; moving from #5 to #2 is ``+3``."""
    if current is None or previous is None:
        return None
    return previous - current


def growth_pct(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    if current is None or previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100.0


def normalize_to_scale(value: float, low: float, high: float) -> float:
    """Linear min-max onto 0-100, clamped. A degenerate range maps to 50."""
    if high == low:
        return 50.0
    return clamp((value - low) / (high - low) * 100.0, 0.0, 100.0)


def encyclopedia_scale(views: Optional[float]) -> Optional[float]:
    """``log10(views) * 10`` clamped to 0-100; ``None`` for non-positive input."""
    if views is None or views <= 0:
        return None
    return clamp(math.log10(views) * 10.0, 0.0, 100.0)


def calculate_momentum_with_breakdown(
    search_value: Optional[float],
    encyclopedia_value: Optional[float],
    delta: Optional[float],
    weights: MomentumWeights,
) -> MomentumBreakdown:
    """Weighted momentum over the present components.

    ``total_score`` is ``None`` when no component is present or every present
    component has zero weight.
    """
    breakdown = MomentumBreakdown(
        search_raw=search_value,
        encyclopedia_raw=encyclopedia_value,
        rank_delta_raw=delta,
        weights=weights,
    )
    score = 0.0
    total_weight = 0.0

    if search_value is not None:
        normalized = clamp(search_value, 0.0, 100.0)
        breakdown.search_normalized = round_to(normalized, 1)
        breakdown.search_contribution = round_to(normalized * weights.search, 2)
        score += normalized * weights.search
        total_weight += weights.search

    normalized = encyclopedia_scale(encyclopedia_value)
    if normalized is not None:
        breakdown.encyclopedia_normalized = round_to(normalized, 1)
        breakdown.encyclopedia_contribution = round_to(normalized * weights.encyclopedia, 2)
        score += normalized * weights.encyclopedia
        total_weight += weights.encyclopedia

    if delta is not None:
        normalized = normalize_to_scale(delta, -RANK_DELTA_RANGE, RANK_DELTA_RANGE)
        breakdown.rank_delta_normalized = round_to(normalized, 1)
        breakdown.rank_delta_contribution = round_to(normalized * weights.rank_delta, 2)
        score += normalized * weights.rank_delta
        total_weight += weights.rank_delta

    breakdown.total_weight = round_to(total_weight, 4)
    if total_weight > 0:
        breakdown.total_score = float(round_half_up(clamp(score / total_weight, 0.0, 100.0)))
    return breakdown


def calculate_acceleration(current: Optional[float], previous: Optional[float]) -> float:
    """Week-over-week momentum change, doubled and clamped to [-100, 100]."""
    if current is None or previous is None:
        return 0.0
    return clamp((current - previous) * 2.0, -100.0, 100.0)


class FeatureBuilder:
    """Builds :class:`TitleFeatures` from a signal store."""

    def __init__(self, store: SignalStore, config: Optional[ForecastConfig] = None):
        self.store = store
        self.config = config or ForecastConfig()

    def build_title_features(
        self,
        title_id: str,
        week_start: date,
        weights: Optional[MomentumWeights] = None,
        as_of: Optional[date] = None,
    ) -> Optional[TitleFeatures]:
        """
        Features for one title in the chart week starting ``week_start``.

        Args:
            title_id: Store title id
            week_start: Chart week the features describe
            weights: Momentum weights (config weights when omitted)
            as_of: Last day of the trailing signal window; the week end
                when omitted so reruns see the same window

        Returns:
            TitleFeatures, or None when the title is unknown or has no data
        """
        title = self.store.get_title(title_id)
        if title is None:
            return None
        weights = weights or self.config.weights
        as_of = as_of or week_start + timedelta(days=6)

        current_global = self._rank_at(title_id, "GLOBAL", week_start)
        current_regional = self._rank_at(title_id, "REGIONAL", week_start)
        previous_week = week_start - timedelta(days=7)
        previous_global = self._rank_at(title_id, "GLOBAL", previous_week)
        previous_regional = self._rank_at(title_id, "REGIONAL", previous_week)

        window_start = as_of - timedelta(days=SIGNAL_WINDOW_DAYS - 1)
        prior_end = window_start - timedelta(days=1)
        prior_start = prior_end - timedelta(days=SIGNAL_WINDOW_DAYS - 1)

        store = self.store
        search_global = average_signal(store, title_id, "SEARCH", "GLOBAL", window_start, as_of)
        search_us = average_signal(store, title_id, "SEARCH", "US", window_start, as_of)
        encyclopedia = average_signal(store, title_id, "ENCYCLOPEDIA", "GLOBAL", window_start, as_of)
        prior_search = average_signal(
            store, title_id, "SEARCH", "GLOBAL", prior_start, prior_end, fallback=False
        )
        prior_encyclopedia = average_signal(
            store, title_id, "ENCYCLOPEDIA", "GLOBAL", prior_start, prior_end, fallback=False
        )

        has_rank = any(
            obs is not None for obs in (current_global, current_regional, previous_global, previous_regional)
        )
        if not has_rank and search_global is None and search_us is None and encyclopedia is None:
            return None

        global_delta = rank_delta(
            current_global.rank if current_global else None,
            previous_global.rank if previous_global else None,
        )
        regional_delta = rank_delta(
            current_regional.rank if current_regional else None,
            previous_regional.rank if previous_regional else None,
        )
        primary_delta = global_delta if global_delta is not None else regional_delta
        search_value = search_global if search_global is not None else search_us

        breakdown = calculate_momentum_with_breakdown(search_value, encyclopedia, primary_delta, weights)
        momentum = breakdown.total_score
        previous_momentum = self.store.get_previous_momentum(title_id, week_start)

        return TitleFeatures(
            title_id=title_id,
            canonical_name=title.canonical_name,
            kind=title.kind,
            week_start=week_start,
            global_rank=current_global.rank if current_global else None,
            regional_rank=current_regional.rank if current_regional else None,
            global_views=current_global.views if current_global else None,
            global_hours_viewed=current_global.hours_viewed if current_global else None,
            global_rank_delta=global_delta,
            regional_rank_delta=regional_delta,
            views_growth_pct=growth_pct(
                current_global.views if current_global else None,
                previous_global.views if previous_global else None,
            ),
            search_global=search_global,
            search_us=search_us,
            encyclopedia_views=encyclopedia,
            search_delta_pct=growth_pct(search_global, prior_search),
            encyclopedia_delta_pct=growth_pct(encyclopedia, prior_encyclopedia),
            momentum_score=momentum,
            acceleration_score=calculate_acceleration(momentum, previous_momentum),
            momentum_breakdown=breakdown,
        )

    def build_all_features(self, week_start: date) -> List[TitleFeatures]:
        """Features for every title with a chart placement in ``week_start``."""
        features = []
        for title_id in self.store.titles_charting(week_start):
            feature = self.build_title_features(title_id, week_start)
            if feature is not None:
                features.append(feature)
        logger.info("Built features for %d titles (week %s)", len(features), week_start)
        return features

    def top_movers(self, week_start: date, limit: int = 10) -> List[TitleFeatures]:
        """Titles with positive momentum, strongest first."""
        movers = [f for f in self.build_all_features(week_start) if f.momentum_score and f.momentum_score > 0]
        movers.sort(key=lambda f: (-f.momentum_score, f.title_id))
        return movers[:limit]

    def breakouts(self, week_start: date) -> List[TitleFeatures]:
        """Titles above the breakout threshold that are still accelerating."""
        threshold = self.config.breakout_threshold
        found = [
            f
            for f in self.build_all_features(week_start)
            if f.momentum_score is not None and f.momentum_score >= threshold and f.acceleration_score > 0
        ]
        found.sort(key=lambda f: (-f.acceleration_score, f.title_id))
        return found

    def _rank_at(self, title_id: str, scope: str, week_start: date):
        rows = self.store.get_rank_history(title_id, scope, 1, week_start)
        matching = [obs for obs in rows if obs.week_start == week_start]
        if not matching:
            return None
        return min(matching, key=lambda obs: obs.rank)


def average_signal(
    store: SignalStore,
    title_id: str,
    source: str,
    geo: str,
    start: date,
    end: date,
    fallback: bool = True,
) -> Optional[float]:
    """Mean signal value in [start, end].

    With ``fallback`` an empty window falls back to the most recent seven
    rows regardless of date.
    """
    rows = store.get_interest_signal(title_id, source, geo, start, end)
    if not rows and fallback:
        # Signal feeds can lag the chart; use whatever is most recent.
        rows = store.get_interest_signal(title_id, source, geo)[-SIGNAL_WINDOW_DAYS:]
    if not rows:
        return None
    return sum(row.value for row in rows) / len(rows)
