"""Weekly batch: forecast every known title for the coming chart week."""

from __future__ import annotations

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pytz

from ..config import ForecastConfig
from ..data.loader import DataLoader
from ..data.providers import CachedMarketLookup, CastCreditsProvider, QuoteSource
from ..data.signal_store import SignalStore
from ..features.feature_builder import FeatureBuilder
from ..knowledge.base import KnowledgeBase
from ..models.forecast import MODEL_VERSION, Forecast
from ..predictors.history import RankHistoryForecaster, ViewershipForecaster
from ..predictors.market_blend import blend_for_region
from ..predictors.pre_release import PreReleaseForecaster

logger = logging.getLogger(__name__)

SUNDAY = 6


def next_week_start(now: Optional[datetime] = None, tz: str = "America/Los_Angeles") -> date:
    """
    Start (Sunday) of the next chart week in ``tz``.

    Naive datetimes are taken as UTC. On a Sunday this is the following Sunday.
    """
    zone = pytz.timezone(tz)
    if now is None:
        now = datetime.now(pytz.utc)
    elif now.tzinfo is None:
        now = pytz.utc.localize(now)
    local = now.astimezone(zone).date()
    days_ahead = (SUNDAY - local.weekday()) % 7 or 7
    return local + timedelta(days=days_ahead)


@dataclass
class TitleResult:
    title_id: str
    forecasts: List[Forecast] = field(default_factory=list)
    momentum: Optional[Tuple[date, float]] = None


@dataclass
class WeeklyRunResult:
    """Forecasts and per-title errors from one batch run."""

    week_start: date
    forecasts: List[Forecast] = field(default_factory=list)
    market_views: Dict[str, List[Forecast]] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        rank = [f for f in self.forecasts if f.target == "RANK"]
        return {
            "week_start": self.week_start.isoformat(),
            "week_end": (self.week_start + timedelta(days=6)).isoformat(),
            "model_version": MODEL_VERSION,
            "forecasts": [f.to_dict() for f in self.forecasts],
            "market_views": {
                region: [f.to_dict() for f in views] for region, views in sorted(self.market_views.items())
            },
            "errors": list(self.errors),
            "summary": {
                "rank_forecasts": len(rank),
                "viewership_forecasts": len(self.forecasts) - len(rank),
                "by_regime": _count_regimes(rank),
                "errors": len(self.errors),
            },
        }


def _count_regimes(forecasts: Sequence[Forecast]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for f in forecasts:
        counts[f.explain.regime] = counts.get(f.explain.regime, 0) + 1
    return dict(sorted(counts.items()))


class WeeklyForecastPipeline:
    """Runs every forecaster for every title, one thread-pool task per title."""

    def __init__(
        self,
        store: SignalStore,
        config: Optional[ForecastConfig] = None,
        kb: Optional[KnowledgeBase] = None,
        credits_provider: Optional[CastCreditsProvider] = None,
        market_source: Optional[QuoteSource] = None,
    ):
        self.store = store
        self.config = config or ForecastConfig()
        self.feature_builder = FeatureBuilder(store, self.config)
        self.rank_forecaster = RankHistoryForecaster(store, self.config, self.feature_builder)
        self.viewership_forecaster = ViewershipForecaster(store, self.config, self.feature_builder)
        self.pre_release_forecaster = PreReleaseForecaster(store, self.config, kb, credits_provider)
        self.market_lookup = CachedMarketLookup(
            market_source or store.get_market_probability, self.config.cache_ttl_seconds
        )

    def forecast_title(self, title_id: str, week_start: date) -> TitleResult:
        """Rank (history, else pre-release) and viewership forecasts for one title."""
        result = TitleResult(title_id)
        rank = self.rank_forecaster.forecast(title_id, week_start)
        if rank is None:
            rank = self.pre_release_forecaster.forecast(title_id, week_start)
        elif rank.explain.momentum_score is not None:
            features_week = date.fromisoformat(rank.explain.details["features_week"])
            result.momentum = (features_week, rank.explain.momentum_score)
        if rank is not None:
            result.forecasts.append(rank)

        views = self.viewership_forecaster.forecast(title_id, week_start)
        if views is not None:
            result.forecasts.append(views)
        return result

    def market_view(self, forecast: Forecast, region: Optional[str]) -> Forecast:
        title = self.store.get_title(forecast.title_id)
        if title is None:
            return forecast
        return blend_for_region(
            forecast,
            title.canonical_name,
            title.kind,
            self.market_lookup,
            region=region,
            thresholds=self.config.blend,
            z=self.config.z_score,
        )

    def run(self, week_start: Optional[date] = None, regions: Sequence[str] = ()) -> WeeklyRunResult:
        """
        Forecast all titles for ``week_start`` (the next chart week by default).

        Args:
            week_start: Target chart week
            regions: Regions to produce market-blended views for

        Returns:
            WeeklyRunResult; failed titles are listed in ``errors``
        """
        week_start = week_start or next_week_start(tz=self.config.timezone)
        title_ids = [t.title_id for t in self.store.list_titles()]
        run = WeeklyRunResult(week_start=week_start)
        logger.info("Forecasting %d titles for week %s", len(title_ids), week_start)

        results: Dict[str, TitleResult] = {}
        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {executor.submit(self.forecast_title, tid, week_start): tid for tid in title_ids}
            for future in as_completed(futures):
                tid = futures[future]
                try:
                    results[tid] = future.result()
                except Exception as exc:
                    logger.exception("Forecast failed for %s", tid)
                    run.errors.append(f"{tid}: {exc}")

        for tid in sorted(results):
            result = results[tid]
            run.forecasts.extend(result.forecasts)
            if result.momentum is not None:
                self.store.record_momentum(tid, *result.momentum)

        rank_forecasts = [f for f in run.forecasts if f.target == "RANK"]
        for region in regions:
            run.market_views[region] = [self.market_view(f, region) for f in rank_forecasts]

        run.errors.sort()
        logger.info(
            "Produced %d forecasts for week %s (%d errors)", len(run.forecasts), week_start, len(run.errors)
        )
        return run


def run_weekly_forecasts_to_file(
    config: ForecastConfig,
    snapshot_path: str,
    output_path: str,
    week_start: Optional[date] = None,
    regions: Sequence[str] = (),
    market_source: Optional[QuoteSource] = None,
    credits_provider: Optional[CastCreditsProvider] = None,
) -> Dict:
    """
    Load a JSON snapshot, run the weekly batch and write the JSON report.

    Market views read quotes from ``market_source`` when given, otherwise
    from the snapshot's own quotes.
    """
    store = DataLoader.load_store_from_json(snapshot_path)
    pipeline = WeeklyForecastPipeline(
        store, config, credits_provider=credits_provider, market_source=market_source
    )
    report = pipeline.run(week_start, regions).to_dict()
    with open(output_path, "w") as f:
        json.dump(report, f, indent=2)
    return report
