"""Tests for model-vs-market edge pricing."""

from datetime import date

import pytest

from chartcast.data.loader import DataLoader, build_sample_snapshot
from chartcast.markets.edge import (
    calculate_edge,
    edge_reasoning,
    find_edges,
    model_probability,
    momentum_to_probability,
    rank_forecast_adjustment,
    significant_edges,
)
from chartcast.models.forecast import Forecast, ForecastExplanation
from chartcast.models.title import MarketProbabilityQuote

WEEK = date(2026, 10, 18)


def rank_forecast(title_id, p10, p50, p90, **explain):
    return Forecast(title_id, WEEK, "RANK", p10, p50, p90, explain=ForecastExplanation(**explain))


class TestMomentumToProbability:
    def test_center(self):
        assert momentum_to_probability(65) == pytest.approx(0.425)

    def test_bounds(self):
        assert momentum_to_probability(100) == pytest.approx(0.8251, abs=1e-4)
        assert momentum_to_probability(0) == pytest.approx(0.0013, abs=1e-4)
        assert momentum_to_probability(150) == momentum_to_probability(100)
        assert momentum_to_probability(-10) == momentum_to_probability(0)

    def test_increasing(self):
        values = [momentum_to_probability(m) for m in range(0, 101, 10)]
        assert values == sorted(values)
        assert max(values) < 0.85


class TestModelProbability:
    def test_rank_adjustment(self):
        assert rank_forecast_adjustment(0.4, 1, 1, 2) == pytest.approx(0.66)
        assert rank_forecast_adjustment(0.4, 1, 2, 4) == pytest.approx(0.53)
        assert rank_forecast_adjustment(0.4, 3, 5, 8) == pytest.approx(0.4)
        assert rank_forecast_adjustment(0.85, 1, 1, 1) == 0.90

    def test_acceleration_bonus_is_capped(self):
        result = model_probability(65, acceleration=20)
        assert result.acceleration_bonus == 0.05
        assert result.probability == pytest.approx(0.475)

        assert model_probability(65, acceleration=-4).acceleration_bonus == pytest.approx(-0.02)

    def test_confidence_shrinks(self):
        assert model_probability(65, 20, confidence="low").probability == pytest.approx(0.3325)

    def test_forecast_component(self):
        forecast = rank_forecast("wednesday", 1, 1, 2, confidence="medium")
        result = model_probability(65, 0.0, forecast, "medium")
        assert result.rank_forecast_component == pytest.approx(0.26)
        assert result.probability == pytest.approx(0.685 * 0.85)
        assert result.to_dict()["confidence"] == "medium"

    def test_clamped(self):
        assert model_probability(0, -50, confidence="low").probability == 0.01
        top = rank_forecast("wednesday", 1, 1, 1)
        assert model_probability(100, 50, top).probability == 0.90


class TestCalculateEdge:
    def test_strong_buy(self):
        signal = calculate_edge(0.30, 0.55)
        assert signal.edge == pytest.approx(0.25)
        assert signal.edge_percent == pytest.approx(25.0)
        assert (signal.signal_strength, signal.direction) == ("strong", "BUY")

    def test_moderate(self):
        assert calculate_edge(0.20, 0.35).signal_strength == "moderate"

    def test_weak_avoid(self):
        signal = calculate_edge(0.50, 0.42)
        assert (signal.signal_strength, signal.direction) == ("weak", "AVOID")

    def test_no_edge_is_avoid(self):
        assert calculate_edge(0.4, 0.4).direction == "AVOID"


class TestReasoning:
    def test_buy(self):
        forecast = rank_forecast("wednesday", 1, 1, 2)
        text = edge_reasoning("BUY", 80, 15, forecast, "climbing_slow", 0.3)
        assert text == "Model forecasts #1 rank | High momentum (80) | Trending up"

    def test_avoid(self):
        forecast = rank_forecast("the_night_agent", 4, 6, 9)
        text = edge_reasoning("AVOID", 30, -20, forecast, "falling_fast", 0.45)
        assert text == "Model forecasts only #6 | Low momentum (30) | Losing steam"

    def test_fallbacks(self):
        assert edge_reasoning("BUY", 50, 0, None, "stable", 0.5) == "Model sees upside potential"
        assert edge_reasoning("AVOID", 60, 0, None, "stable", 0.5) == "Model sees downside risk"


QUOTES = {
    "Wednesday": MarketProbabilityQuote("Wednesday", 0.30, url="https://markets.example/wednesday"),
    "The Night Agent": MarketProbabilityQuote("The Night Agent", 0.45),
    "Bridgerton": MarketProbabilityQuote("Bridgerton", 0.35),
    "Rebel Ridge": MarketProbabilityQuote("Rebel Ridge", 0.90, slot_rank=2),
}


def quote_source(title_name, title_kind, region):
    return QUOTES.get(title_name)


@pytest.fixture
def forecasts():
    return [
        rank_forecast(
            "wednesday", 1, 1, 2,
            momentum_score=80.0, acceleration_score=15.0, historical_pattern="climbing_slow", confidence="high",
        ),
        rank_forecast(
            "the_night_agent", 4, 6, 9,
            momentum_score=30.0, acceleration_score=-20.0, historical_pattern="falling_fast", confidence="medium",
        ),
        rank_forecast("bridgerton", 2, 3, 5, momentum_score=64.0, confidence="medium"),
        Forecast("bridgerton", WEEK, "VIEWERSHIP", 9e6, 7e6, 5e6),
        rank_forecast("fool_me_once", 2, 4, 8, regime="pre_release"),
        rank_forecast("rebel_ridge", 1, 2, 3, momentum_score=60.0),
        rank_forecast("not_in_store", 1, 1, 2, momentum_score=90.0),
    ]


class TestFindEdges:
    def test_prices_first_slot_quotes(self, forecasts):
        store = DataLoader.store_from_dict(build_sample_snapshot())
        edges = {e.title_id: e for e in find_edges(forecasts, store, quote_source, region="US")}

        assert sorted(edges) == ["bridgerton", "the_night_agent", "wednesday"]

        wednesday = edges["wednesday"]
        assert wednesday.model.probability == 0.90
        assert wednesday.signal.direction == "BUY"
        assert wednesday.signal.signal_strength == "strong"
        assert wednesday.region == "US"
        assert wednesday.url == "https://markets.example/wednesday"
        assert wednesday.reasoning.startswith("Model forecasts #1 rank")

        agent = edges["the_night_agent"]
        assert agent.model.probability == 0.01
        assert agent.signal.direction == "AVOID"
        assert agent.to_dict()["edge_percent"] == -44.0

        assert edges["bridgerton"].signal.signal_strength == "weak"

    def test_significant_edges_sorted_by_size(self, forecasts):
        store = DataLoader.store_from_dict(build_sample_snapshot())
        edges = significant_edges(find_edges(forecasts, store, quote_source))

        assert [e.title_id for e in edges] == ["wednesday", "the_night_agent"]
        assert [e.title_id for e in significant_edges(edges, min_edge_percent=50)] == ["wednesday"]
