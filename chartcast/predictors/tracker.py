"""Momentum from the secondary daily chart tracker.

The tracker publishes a daily top list well before the weekly chart lands,
so for new releases it is the freshest signal there is. Strength is scored
from the current tracker rank and the slope of the last two weeks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional, Sequence

from ..mathutils import clamp
from ..models.title import ChartTrackerObservation
from .trend import fit_linear_trend

# (upper bound on slope, label, momentum modifier); first match wins.
TREND_BANDS = (
    (-0.5, "rising_fast", 15.0),
    (-0.15, "rising", 8.0),
    (0.15, "stable", 0.0),
    (0.5, "falling", -10.0),
)
FALLING_FAST = ("falling_fast", -20.0)
SLOPE_WEIGHT = 15.0
MODIFIER_LIMIT = 50.0

# Minimum momentum for each predicted rank.
RANK_BANDS = (
    (85.0, 1),
    (75.0, 2),
    (65.0, 3),
    (55.0, 4),
    (45.0, 6),
    (35.0, 8),
    (25.0, 10),
    (15.0, 12),
    (5.0, 15),
)
FLOOR_RANK = 20


@dataclass(frozen=True)
class TrackerTrend:
    """Scored view of a title's recent tracker placements."""

    current_rank: int
    points: int
    slope: Optional[float]
    trend: str
    momentum: float

    @property
    def has_trend(self) -> bool:
        return self.slope is not None

    @property
    def is_falling(self) -> bool:
        return self.trend in ("falling", "falling_fast")

    def to_dict(self) -> dict:
        return {
            "current_rank": self.current_rank,
            "points": self.points,
            "slope": round(self.slope, 4) if self.slope is not None else None,
            "trend": self.trend,
            "momentum": self.momentum,
        }


def classify_slope(slope: float):
    for bound, label, modifier in TREND_BANDS:
        if (slope < bound) if bound < 0 else (slope <= bound):
            return label, modifier
    return FALLING_FAST


def base_rank_momentum(rank: int) -> float:
    if rank <= 10:
        return 100.0 - (rank - 1) * 5.0
    return max(0.0, 50.0 - (rank - 10) * 5.0)


def tracker_momentum(current_rank: int, slope: Optional[float]) -> float:
    """
    0-100 strength from the current tracker rank and (optional) daily slope.

    Ranks fall as a title climbs, so a negative slope raises momentum.
    Titles outside the top 10 are penalized; the top 3 get a bonus.
    """
    score = base_rank_momentum(current_rank)
    if slope is not None:
        _, band_modifier = classify_slope(slope)
        score += clamp(band_modifier - slope * SLOPE_WEIGHT, -MODIFIER_LIMIT, MODIFIER_LIMIT)
    if current_rank > 10:
        score -= min(30.0, (current_rank - 10) * 3.0)
    if current_rank <= 3:
        score += 10.0
    return clamp(score, 0.0, 100.0)


def momentum_to_rank(momentum: float) -> int:
    for threshold, rank in RANK_BANDS:
        if momentum >= threshold:
            return rank
    return FLOOR_RANK


def tracker_trend(
    observations: Sequence[ChartTrackerObservation], as_of: date, fresh_days: int
) -> Optional[TrackerTrend]:
    """
    Score a tracker window, or ``None`` when the title is not currently charting.

    "Currently charting" means the latest observation is within
    ``fresh_days`` of ``as_of``. A single point scores the current rank only.
    """
    rows: List[ChartTrackerObservation] = sorted(observations, key=lambda o: o.date)
    if not rows:
        return None
    latest = rows[-1]
    if latest.date < as_of - timedelta(days=fresh_days):
        return None

    if len(rows) < 2:
        return TrackerTrend(
            current_rank=latest.rank,
            points=1,
            slope=None,
            trend="current_only",
            momentum=tracker_momentum(latest.rank, None),
        )

    first_day = rows[0].date
    fit = fit_linear_trend([((o.date - first_day).days, o.rank) for o in rows])
    label, _ = classify_slope(fit.slope)
    return TrackerTrend(
        current_rank=latest.rank,
        points=len(rows),
        slope=fit.slope,
        trend=label,
        momentum=tracker_momentum(latest.rank, fit.slope),
    )


def tracker_strength(store, title_id: str, as_of: date, config) -> Optional[TrackerTrend]:
    """
    Tracker momentum for a title over the configured window, or ``None``.

    Unlike the pre-release path this does not require the title to still be
    charting: any placement inside the window counts.
    """
    rows = store.get_tracker_history(title_id, config.tracker_region, config.tracker_days, as_of)
    return tracker_trend(rows, as_of, config.tracker_days)
