"""Forecasting models."""

from .base import BaseForecaster, rank_percentiles
from .history import RankHistoryForecaster, ViewershipForecaster
from .market_blend import apply_market_blend, blend_for_region
from .pre_release import PreReleaseForecaster
from .tracker import TrackerTrend, momentum_to_rank, tracker_momentum, tracker_strength, tracker_trend
from .trend import InsufficientHistoryError, TrendFit, fit_linear_trend

__all__ = [
    "BaseForecaster",
    "InsufficientHistoryError",
    "PreReleaseForecaster",
    "RankHistoryForecaster",
    "TrackerTrend",
    "TrendFit",
    "ViewershipForecaster",
    "apply_market_blend",
    "blend_for_region",
    "fit_linear_trend",
    "momentum_to_rank",
    "rank_percentiles",
    "tracker_momentum",
    "tracker_strength",
    "tracker_trend",
]
