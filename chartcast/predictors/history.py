"""Forecasts for titles with weekly chart history.

Rank: a linear trend over up to twelve weeks of ranks, nudged by the title's
momentum, with the spread of the fit residuals as uncertainty.
Viewership: the same idea on log views, since weekly views decay roughly
exponentially after release.
"""

from __future__ import annotations

import logging
import math
from datetime import date, timedelta
from typing import List, Optional

from ..config import ForecastConfig
from ..data.signal_store import SignalStore
from ..features.feature_builder import FeatureBuilder, TitleFeatures
from ..mathutils import clamp, round_half_up
from ..models.forecast import Forecast, ForecastExplanation
from ..models.title import RankObservation
from .base import BaseForecaster, rank_percentiles
from .trend import fit_series, growth_pattern

logger = logging.getLogger(__name__)

MOMENTUM_RANK_SCALE = 1.5
DEFAULT_LOG_VIEWS_STD = 0.3


def momentum_rank_adjustment(momentum: Optional[float]) -> Optional[float]:
    """Rank improvement implied by momentum: +1.5 at 100, 0 at 50, -1.5 at 0."""
    if momentum is None:
        return None
    return (momentum - 50.0) / 50.0 * MOMENTUM_RANK_SCALE


def history_confidence(n_points: int, has_signal: bool) -> str:
    if n_points >= 4 and has_signal:
        return "high"
    if n_points >= 4 or has_signal:
        return "medium"
    return "low"


def _explanation_base(features: Optional[TitleFeatures]) -> dict:
    if features is None:
        return {}
    return {
        "momentum_score": features.momentum_score,
        "acceleration_score": features.acceleration_score,
        "search_contribution": features.search_value,
        "encyclopedia_contribution": features.encyclopedia_views,
        "momentum_breakdown": features.momentum_breakdown.to_dict() if features.momentum_breakdown else None,
    }


class _HistoryForecaster(BaseForecaster):
    def __init__(
        self,
        name: str,
        store: SignalStore,
        config: Optional[ForecastConfig] = None,
        feature_builder: Optional[FeatureBuilder] = None,
    ):
        super().__init__(name)
        self.store = store
        self.config = config or ForecastConfig()
        self.feature_builder = feature_builder or FeatureBuilder(store, self.config)

    def _history(self, title_id: str, week_start: date, scopes: List[str]) -> List[RankObservation]:
        as_of = week_start - timedelta(days=1)
        for scope in scopes:
            rows = self.store.get_rank_history(title_id, scope, self.config.history_weeks, as_of)
            if rows:
                return rows
        return []

    def _latest_features(self, title_id: str, history: List[RankObservation]) -> Optional[TitleFeatures]:
        return self.feature_builder.build_title_features(title_id, history[-1].week_start)


class RankHistoryForecaster(_HistoryForecaster):
    """Next-week rank from the title's recent chart trajectory."""

    def __init__(self, store: SignalStore, config: Optional[ForecastConfig] = None, feature_builder=None):
        super().__init__("rank_history", store, config, feature_builder)

    def forecast(self, title_id: str, week_start: date) -> Optional[Forecast]:
        primary = self.config.primary_rank_scope
        fallback = "GLOBAL" if primary == "REGIONAL" else "REGIONAL"
        history = self._history(title_id, week_start, [primary, fallback])
        if len(history) < 2:
            return None

        fit = fit_series([obs.rank for obs in history])
        features = self._latest_features(title_id, history)
        momentum = features.momentum_score if features else None

        high = max(self.config.visible_top_n, max(obs.rank for obs in history))
        projected = fit.predict(len(history))
        # Clamp before the momentum nudge so an overshooting trend keeps it.
        base = clamp(projected, 1, high)
        adjustment = momentum_rank_adjustment(momentum)
        center = base - adjustment if adjustment is not None else base

        p10, p50, p90 = rank_percentiles(center, fit.residual_std, self.config.z_score, 1, high)

        has_signal = features is not None and features.has_interest_signal
        confidence = history_confidence(len(history), has_signal)
        trend = fit.to_dict()
        trend["scope"] = history[0].scope

        explain = ForecastExplanation(
            **_explanation_base(features),
            rank_trend_contribution=round(adjustment, 4) if adjustment is not None else None,
            historical_pattern=fit.pattern,
            confidence=confidence,
            regime="history",
            trend=trend,
            uncertainty=round(fit.residual_std, 4),
            details={
                "base_forecast": round(base, 4),
                "trend_forecast": round(projected, 4),
                "operating_range": [1, high],
                "features_week": history[-1].week_start.isoformat(),
            },
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


class ViewershipForecaster(_HistoryForecaster):
    """Next-week global views from a log-linear trend."""

    def __init__(self, store: SignalStore, config: Optional[ForecastConfig] = None, feature_builder=None):
        super().__init__("viewership", store, config, feature_builder)

    def forecast(self, title_id: str, week_start: date) -> Optional[Forecast]:
        history = self._history(title_id, week_start, ["GLOBAL"])
        with_views = [obs for obs in history if obs.views is not None and obs.views > 0]
        if len(with_views) < 2:
            return None

        fit = fit_series(
            [math.log(obs.views) for obs in with_views],
            default_std=DEFAULT_LOG_VIEWS_STD,
            labeler=growth_pattern,
        )
        features = self._latest_features(title_id, history)
        momentum = features.momentum_score if features else None

        log_forecast = fit.predict(len(with_views))
        if momentum is not None:
            log_forecast += math.log(1.0 + (momentum - 50.0) / 200.0)

        z = self.config.z_score
        sigma = fit.residual_std
        if not (math.isfinite(log_forecast) and math.isfinite(sigma)):
            return None
        try:
            p50 = round_half_up(math.exp(log_forecast))
            p10 = round_half_up(math.exp(log_forecast + z * sigma))
            p90 = round_half_up(math.exp(log_forecast - z * sigma))
        except OverflowError:
            logger.warning("Viewership forecast overflow for %s", title_id)
            return None

        n = len(with_views)
        confidence = "high" if n >= 6 else "medium" if n >= 3 else "low"

        explain = ForecastExplanation(
            **_explanation_base(features),
            historical_pattern=fit.pattern,
            confidence=confidence,
            regime="viewership",
            trend=fit.to_dict(),
            uncertainty=round(sigma, 4),
        )
        return Forecast(
            title_id=title_id,
            week_start=week_start,
            target="VIEWERSHIP",
            p10=p10,
            p50=p50,
            p90=p90,
            explain=explain,
        )
