"""Linear trend fitting over short rank/viewership series."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
from scipy import stats

DEFAULT_RESIDUAL_STD = 2.0
MIN_TREND_POINTS = 2


class InsufficientHistoryError(ValueError):
    """Raised when a trend is requested from fewer than two points."""


@dataclass(frozen=True)
class TrendFit:
    """OLS fit of value against index (or day offset)."""

    slope: float
    intercept: float
    pattern: str
    residual_std: float
    n_points: int

    def predict(self, x: float) -> float:
        return self.intercept + self.slope * x

    def to_dict(self) -> dict:
        return {
            "slope": round(self.slope, 4),
            "intercept": round(self.intercept, 4),
            "pattern": self.pattern,
            "residual_std": round(self.residual_std, 4),
            "points": self.n_points,
        }


def rank_pattern(slope: float) -> str:
    """Label a rank slope. Ranks shrink as a title climbs, so negative is good."""
    if slope < -0.5:
        return "climbing_fast"
    if slope < -0.1:
        return "climbing_slow"
    if slope <= 0.1:
        return "stable"
    if slope <= 0.5:
        return "falling_slow"
    return "falling_fast"


def growth_pattern(slope: float) -> str:
    """Label a log-viewership slope."""
    if slope > 0.1:
        return "growing"
    if slope < -0.1:
        return "declining"
    return "stable"


def fit_linear_trend(
    points: Sequence[Tuple[float, float]],
    default_std: float = DEFAULT_RESIDUAL_STD,
    labeler=rank_pattern,
) -> TrendFit:
    """
    Fit ``y = intercept + slope * x`` by ordinary least squares.

    Args:
        points: ``(x, y)`` pairs, at least two
        default_std: Residual spread reported when there are fewer than
            three points (two points always fit exactly)
        labeler: Maps the slope to a pattern label

    Returns:
        TrendFit with slope, intercept, pattern, residual std-dev and count

    Raises:
        InsufficientHistoryError: fewer than two points
    """
    if len(points) < MIN_TREND_POINTS:
        raise InsufficientHistoryError(
            f"Need at least {MIN_TREND_POINTS} points to fit a trend, got {len(points)}"
        )

    x = np.asarray([p[0] for p in points], dtype=float)
    y = np.asarray([p[1] for p in points], dtype=float)

    if np.ptp(x) == 0 or np.ptp(y) == 0:
        slope = 0.0
        intercept = float(np.mean(y))
    else:
        result = stats.linregress(x, y)
        slope = float(result.slope)
        intercept = float(result.intercept)

    if len(points) >= 3:
        residuals = y - (intercept + slope * x)
        residual_std = float(np.std(residuals, ddof=1))
    else:
        residual_std = float(default_std)
    if not np.isfinite(residual_std):
        residual_std = float(default_std)

    return TrendFit(
        slope=slope,
        intercept=intercept,
        pattern=labeler(slope),
        residual_std=residual_std,
        n_points=len(points),
    )


def fit_series(values: Sequence[float], default_std: float = DEFAULT_RESIDUAL_STD, labeler=rank_pattern) -> TrendFit:
    """Fit a trend over consecutive values indexed 0..n-1."""
    return fit_linear_trend(list(enumerate(values)), default_std=default_std, labeler=labeler)
