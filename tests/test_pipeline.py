"""Tests for the weekly batch pipeline."""

import json
from datetime import date, datetime, timedelta

import pytest
import pytz

from chartcast.config import ForecastConfig
from chartcast.data.loader import SAMPLE_WEEK_START, DataLoader, build_sample_snapshot
from chartcast.data.signal_store import SignalStore
from chartcast.models.title import MarketProbabilityQuote
from chartcast.pipeline.weekly import (
    WeeklyForecastPipeline,
    next_week_start,
    run_weekly_forecasts_to_file,
)

TARGET_WEEK = SAMPLE_WEEK_START + timedelta(days=7)


@pytest.fixture
def store():
    return DataLoader.store_from_dict(build_sample_snapshot())


@pytest.fixture
def pipeline(store):
    return WeeklyForecastPipeline(store, ForecastConfig(max_workers=2))


class TestNextWeekStart:
    def test_midweek(self):
        wednesday = pytz.utc.localize(datetime(2026, 10, 14, 20, 0))
        assert next_week_start(wednesday) == date(2026, 10, 18)

    def test_sunday_rolls_to_following_week(self):
        sunday_noon = pytz.utc.localize(datetime(2026, 10, 18, 19, 0))
        assert next_week_start(sunday_noon) == date(2026, 10, 25)

    def test_local_timezone_applies(self):
        # 03:00 UTC Sunday is still Saturday evening in Los Angeles.
        early_sunday = datetime(2026, 10, 18, 3, 0)
        assert next_week_start(early_sunday) == date(2026, 10, 18)
        assert next_week_start(early_sunday, tz="Europe/London") == date(2026, 10, 25)


class TestRun:
    def test_regimes(self, pipeline):
        run = pipeline.run(TARGET_WEEK)
        regimes = {f.title_id: f.explain.regime for f in run.forecasts if f.target == "RANK"}
        assert regimes == {
            "bridgerton": "history",
            "fool_me_once": "pre_release",
            "rebel_ridge": "tracker_trend",
            "the_night_agent": "history",
            "wednesday": "history",
        }
        assert run.errors == []

    def test_viewership_for_charting_titles(self, pipeline):
        run = pipeline.run(TARGET_WEEK)
        views = sorted(f.title_id for f in run.forecasts if f.target == "VIEWERSHIP")
        assert views == ["bridgerton", "the_night_agent", "wednesday"]

    def test_forecasts_are_ordered_and_valid(self, pipeline):
        run = pipeline.run(TARGET_WEEK)
        ids = [f.title_id for f in run.forecasts]
        assert ids == sorted(ids)
        for f in run.forecasts:
            assert f.week_start == TARGET_WEEK
            if f.target == "RANK":
                assert 1 <= f.p10 <= f.p50 <= f.p90

    def test_trajectories(self, pipeline):
        run = pipeline.run(TARGET_WEEK)
        rank = {f.title_id: f for f in run.forecasts if f.target == "RANK"}
        assert rank["wednesday"].p50 == 1
        assert rank["the_night_agent"].p50 > rank["wednesday"].p50
        assert rank["rebel_ridge"].p50 == 1

    def test_momentum_recorded_for_feature_week(self, pipeline, store):
        run = pipeline.run(TARGET_WEEK)
        wednesday = next(f for f in run.forecasts if f.title_id == "wednesday" and f.target == "RANK")
        assert wednesday.explain.details["features_week"] == SAMPLE_WEEK_START.isoformat()
        assert store.momentum_records[("wednesday", SAMPLE_WEEK_START)] == wednesday.explain.momentum_score
        assert ("fool_me_once", SAMPLE_WEEK_START) not in store.momentum_records

    def test_per_title_errors_are_collected(self, pipeline, monkeypatch):
        original = pipeline.rank_forecaster.forecast

        def flaky(title_id, week_start):
            if title_id == "bridgerton":
                raise RuntimeError("boom")
            return original(title_id, week_start)

        monkeypatch.setattr(pipeline.rank_forecaster, "forecast", flaky)
        run = pipeline.run(TARGET_WEEK)

        assert run.errors == ["bridgerton: boom"]
        assert "bridgerton" not in {f.title_id for f in run.forecasts}
        assert len([f for f in run.forecasts if f.target == "RANK"]) == 4

    def test_market_views(self, pipeline):
        run = pipeline.run(TARGET_WEEK, regions=["US"])
        base = {f.title_id: f for f in run.forecasts if f.target == "RANK"}
        views = {f.title_id: f for f in run.market_views["US"]}

        assert set(views) == set(base)
        bridgerton = views["bridgerton"]
        assert bridgerton.p50 == 1
        assert bridgerton.explain.applied_overrides[0]["tier"] == "override"
        assert bridgerton.explain.applied_overrides[0]["region"] == "US"
        assert base["bridgerton"].explain.applied_overrides == []
        assert views["fool_me_once"] is base["fool_me_once"]

    def test_report(self, pipeline):
        report = pipeline.run(TARGET_WEEK, regions=["US"]).to_dict()
        assert report["week_start"] == "2026-10-18"
        assert report["week_end"] == "2026-10-24"
        assert report["summary"] == {
            "rank_forecasts": 5,
            "viewership_forecasts": 3,
            "by_regime": {"history": 3, "pre_release": 1, "tracker_trend": 1},
            "errors": 0,
        }
        assert list(report["market_views"]) == ["US"]


def test_run_to_file(tmp_path):
    snapshot = tmp_path / "snapshot.json"
    output = tmp_path / "forecasts.json"
    DataLoader.create_sample_data(str(snapshot))

    report = run_weekly_forecasts_to_file(
        ForecastConfig(max_workers=1), str(snapshot), str(output), week_start=TARGET_WEEK
    )

    with open(output) as f:
        written = json.load(f)
    assert written == report
    assert len(written["forecasts"]) == 8
    assert written["market_views"] == {}


class ReadOnlyStore(SignalStore):
    """Delegates queries to another store without persisting momentum."""

    def __init__(self, inner):
        self.inner = inner

    def get_title(self, title_id):
        return self.inner.get_title(title_id)

    def list_titles(self):
        return self.inner.list_titles()

    def get_rank_history(self, title_id, scope, since_weeks, as_of):
        return self.inner.get_rank_history(title_id, scope, since_weeks, as_of)

    def get_interest_signal(self, title_id, source, geo, start=None, end=None):
        return self.inner.get_interest_signal(title_id, source, geo, start, end)

    def get_tracker_history(self, title_id, region, since_days, as_of):
        return self.inner.get_tracker_history(title_id, region, since_days, as_of)

    def get_market_probability(self, title_name, title_kind, region=None):
        return self.inner.get_market_probability(title_name, title_kind, region)

    def get_previous_momentum(self, title_id, week_start):
        return self.inner.get_previous_momentum(title_id, week_start)


class RecordingStore(ReadOnlyStore):
    def __init__(self, inner):
        super().__init__(inner)
        self.recorded = []

    def record_momentum(self, title_id, week_start, momentum):
        self.recorded.append((title_id, week_start, momentum))


class TestMomentumRecording:
    def test_any_store_receives_momentum(self, store):
        recording = RecordingStore(store)
        run = WeeklyForecastPipeline(recording, ForecastConfig(max_workers=1)).run(TARGET_WEEK)

        assert run.errors == []
        assert [r[0] for r in recording.recorded] == ["bridgerton", "the_night_agent", "wednesday"]
        assert all(week == SAMPLE_WEEK_START for _, week, _ in recording.recorded)

    def test_read_only_store_ignores_momentum(self, store):
        read_only = ReadOnlyStore(store)
        run = WeeklyForecastPipeline(read_only, ForecastConfig(max_workers=1)).run(TARGET_WEEK)

        assert run.errors == []
        assert ("wednesday", SAMPLE_WEEK_START) not in store.momentum_records


def test_market_views_use_external_source(store):
    calls = []

    def source(title_name, title_kind, region):
        calls.append((title_name, region))
        if title_name == "Fool Me Once":
            return MarketProbabilityQuote(title_name, 0.75, region=region)
        return None

    pipeline = WeeklyForecastPipeline(store, ForecastConfig(max_workers=1), market_source=source)
    run = pipeline.run(TARGET_WEEK, regions=["GB"])
    views = {f.title_id: f for f in run.market_views["GB"]}

    assert views["fool_me_once"].p50 == 1
    assert views["fool_me_once"].explain.applied_overrides[0]["region"] == "GB"
    assert views["bridgerton"].explain.applied_overrides == []
    assert ("Bridgerton", "GB") in calls
