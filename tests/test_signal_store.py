"""Tests for the in-memory signal store and the snapshot loader."""

import json
from datetime import date, timedelta

import pytest

from chartcast.data.loader import SAMPLE_WEEK_START, DataLoader, DataLoadError, build_sample_snapshot
from chartcast.data.signal_store import InMemorySignalStore
from chartcast.models.forecast import Forecast
from chartcast.models.title import MarketProbabilityQuote, RankObservation, Title

WEEK = SAMPLE_WEEK_START


@pytest.fixture
def store():
    return DataLoader.store_from_dict(build_sample_snapshot())


class TestQueries:
    def test_rank_history_window(self, store):
        rows = store.get_rank_history("wednesday", "GLOBAL", 3, WEEK)
        assert [r.week_start for r in rows] == [WEEK - timedelta(weeks=2), WEEK - timedelta(weeks=1), WEEK]
        assert [r.rank for r in rows] == [4, 2, 1]

    def test_rank_history_excludes_future_weeks(self, store):
        rows = store.get_rank_history("wednesday", "GLOBAL", 12, WEEK - timedelta(days=1))
        assert WEEK not in [r.week_start for r in rows]

    def test_interest_signal_range(self, store):
        rows = store.get_interest_signal("wednesday", "SEARCH", "GLOBAL", WEEK, WEEK + timedelta(days=6))
        assert len(rows) == 7
        assert rows == sorted(rows, key=lambda r: r.date)
        assert store.get_interest_signal("wednesday", "SEARCH", "US") == []

    def test_tracker_history(self, store):
        last_day = WEEK + timedelta(days=6)
        assert len(store.get_tracker_history("rebel_ridge", "world", 14, last_day)) == 10
        assert len(store.get_tracker_history("rebel_ridge", "world", 3, last_day)) == 3
        assert store.get_tracker_history("rebel_ridge", "us", 14, last_day) == []

    def test_titles_charting(self, store):
        assert store.titles_charting(WEEK) == ["bridgerton", "the_night_agent", "wednesday"]
        assert store.get_weeks_with_data()[-1] == WEEK


class TestMarketQuotes:
    def test_exact_region_preferred(self):
        store = InMemorySignalStore(
            quotes=[
                MarketProbabilityQuote("The Night Agent", 0.40),
                MarketProbabilityQuote("The Night Agent", 0.60, region="US"),
            ]
        )
        assert store.get_market_probability("The Night Agent", "SHOW", "US").probability == 0.60
        assert store.get_market_probability("The Night Agent", "SHOW", "GB").probability == 0.40
        assert store.get_market_probability("The Night Agent", "SHOW").probability == 0.40

    def test_name_variants_match(self, store):
        quote = store.get_market_probability("Bridgerton: Season 4", "SHOW", "US")
        assert quote.probability == 0.72

    def test_kind_filter(self, store):
        assert store.get_market_probability("Bridgerton", "MOVIE", "US") is None

    def test_lowest_slot_then_highest_probability(self):
        store = InMemorySignalStore(
            quotes=[
                MarketProbabilityQuote("Rebel Ridge", 0.50, slot_rank=2),
                MarketProbabilityQuote("Rebel Ridge", 0.20, slot_rank=1),
                MarketProbabilityQuote("Rebel Ridge", 0.30, slot_rank=1),
            ]
        )
        quote = store.get_market_probability("Rebel Ridge", "MOVIE")
        assert (quote.slot_rank, quote.probability) == (1, 0.30)


def test_momentum_round_trip(store):
    assert store.get_previous_momentum("wednesday", WEEK) == 58.0
    store.record_momentum("wednesday", WEEK, 64.0)
    store.record_momentum("wednesday", WEEK + timedelta(days=7), None)
    assert store.get_previous_momentum("wednesday", WEEK + timedelta(days=7)) == 64.0
    assert ("wednesday", WEEK + timedelta(days=7)) not in store.momentum_records


class TestLoader:
    def test_sample_file_round_trip(self, tmp_path):
        path = tmp_path / "snapshot.json"
        DataLoader.create_sample_data(str(path))
        store = DataLoader.load_store_from_json(str(path))

        assert [t.title_id for t in store.list_titles()] == [
            "bridgerton",
            "fool_me_once",
            "rebel_ridge",
            "the_night_agent",
            "wednesday",
        ]
        assert store.get_title("rebel_ridge").kind == "MOVIE"
        assert len(store.quotes) == 3

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(DataLoadError):
            DataLoader.load_store_from_json(str(path))

    def test_invalid_record(self):
        with pytest.raises(DataLoadError):
            DataLoader.store_from_dict({"rank_observations": [{"title_id": "x", "week_start": "2026-10-11", "rank": 0}]})
        with pytest.raises(DataLoadError):
            DataLoader.store_from_dict([])

    def test_rank_history_csv(self, tmp_path):
        path = tmp_path / "ranks.csv"
        path.write_text(
            "title_id,week_start,rank,scope,views\n"
            "wednesday,2026-10-04,2,global,5000000\n"
            "wednesday,2026-10-11,1,GLOBAL,\n"
            "bridgerton,2026-10-11,,GLOBAL,100\n"
        )
        rows = DataLoader.load_rank_history_csv(str(path))
        assert rows == [
            RankObservation("wednesday", date(2026, 10, 4), 2, "GLOBAL", 5000000.0),
            RankObservation("wednesday", date(2026, 10, 11), 1, "GLOBAL", None),
        ]

    def test_rank_history_csv_missing_columns(self, tmp_path):
        path = tmp_path / "ranks.csv"
        path.write_text("title_id,rank\nwednesday,1\n")
        with pytest.raises(DataLoadError):
            DataLoader.load_rank_history_csv(str(path))

    def test_forecast_report(self, tmp_path):
        forecast = Forecast("wednesday", date(2026, 10, 18), "RANK", 1, 2, 4)
        path = tmp_path / "report.json"
        path.write_text(json.dumps({"forecasts": [forecast.to_dict()]}))

        loaded = DataLoader.load_forecasts_from_json(str(path))
        assert loaded[0].to_dict() == forecast.to_dict()

    def test_bad_forecast_report(self, tmp_path):
        path = tmp_path / "report.json"
        path.write_text(json.dumps({"forecasts": [{"title_id": "x", "week_start": "2026-10-18", "target": "RANK", "p10": 5, "p50": 2, "p90": 3}]}))
        with pytest.raises(DataLoadError):
            DataLoader.load_forecasts_from_json(str(path))


def test_title_validation():
    with pytest.raises(ValueError):
        Title("x", "X", kind="PODCAST")
    with pytest.raises(ValueError):
        MarketProbabilityQuote("X", 1.5)
