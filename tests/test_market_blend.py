"""Tests for the tiered market blend."""

from datetime import date

import pytest

from chartcast.config import BlendThresholds
from chartcast.data.loader import DataLoader, build_sample_snapshot
from chartcast.models.forecast import Forecast, ForecastExplanation
from chartcast.models.title import MarketProbabilityQuote
from chartcast.predictors.market_blend import apply_market_blend, blend_for_region, blend_tier

WEEK = date(2026, 10, 18)


@pytest.fixture
def base_forecast():
    return Forecast(
        title_id="bridgerton",
        week_start=WEEK,
        target="RANK",
        p10=3,
        p50=5,
        p90=8,
        explain=ForecastExplanation(confidence="medium", regime="history"),
    )


def quote(probability, slot=1, region=None):
    return MarketProbabilityQuote("Bridgerton", probability, slot_rank=slot, region=region)


class TestTiers:
    def test_override_at_threshold(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.70))
        assert blended.p50 == 1
        assert blended.p10 == 1
        # sigma capped at 1.0: 1 + 1.28 rounds to 2
        assert blended.p90 == 2
        assert blended.explain.applied_overrides[0]["tier"] == "override"

    def test_just_below_override_does_not_force_first(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.69))
        assert blended.p50 != 1
        assert blended.p50 == 3
        assert blended.explain.applied_overrides[0]["tier"] == "strong"

    def test_moderate_tier(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.45))
        override = blended.explain.applied_overrides[0]
        assert override["tier"] == "moderate"
        assert override["implied_rank"] == pytest.approx(2.67)
        assert blended.p50 == 4

    def test_weak_tier(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.20))
        assert blended.explain.applied_overrides[0]["tier"] == "weak"
        assert blended.p50 == 5

    def test_long_shot_is_ignored(self, base_forecast):
        assert apply_market_blend(base_forecast, quote(0.09)) is base_forecast

    def test_second_slot_favorite_blends_instead_of_overriding(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.75, slot=2))
        override = blended.explain.applied_overrides[0]
        assert override["tier"] == "strong"
        assert override["implied_rank"] == 2.0
        assert override["blended_rank"] == 2.9
        assert blended.p50 == 3

    def test_second_slot_weak_price_is_ignored(self, base_forecast):
        assert apply_market_blend(base_forecast, quote(0.20, slot=2)) is base_forecast

    def test_lower_slots_are_ignored(self, base_forecast):
        assert apply_market_blend(base_forecast, quote(0.90, slot=3)) is base_forecast

    def test_custom_thresholds(self, base_forecast):
        thresholds = BlendThresholds(override=0.9, strong=0.6, moderate=0.4, weak=0.1)
        blended = apply_market_blend(base_forecast, quote(0.75), thresholds)
        assert blended.explain.applied_overrides[0]["tier"] == "strong"

    def test_blend_tier_shapes(self):
        thresholds = BlendThresholds()
        assert blend_tier(0.05, 1, thresholds) is None
        name, implied, weight = blend_tier(0.55, 1, thresholds)
        assert name == "strong"
        assert implied == pytest.approx(2.0)
        assert weight == 0.7

    def test_second_slot_drops_one_tier(self):
        thresholds = BlendThresholds()
        assert blend_tier(0.80, 2, thresholds) == ("strong", 2.0, 0.7)
        name, implied, weight = blend_tier(0.60, 2, thresholds)
        assert (name, weight) == ("moderate", 0.5)
        assert implied == pytest.approx(1.0 + 40.0 / 45.0 + 1.0)
        assert blend_tier(0.45, 2, thresholds)[0] == "weak"
        assert blend_tier(0.15, 2, thresholds) is None


class TestBlendContract:
    def test_base_forecast_is_not_mutated(self, base_forecast):
        before = base_forecast.to_dict()
        apply_market_blend(base_forecast, quote(0.80, region="US"), region="US")
        assert base_forecast.to_dict() == before
        assert base_forecast.explain.applied_overrides == []

    def test_override_records_region(self, base_forecast):
        blended = apply_market_blend(base_forecast, quote(0.80, region="US"), region="US")
        override = blended.explain.applied_overrides[0]
        assert override["region"] == "US"
        assert override["probability"] == 0.80
        assert override["slot_rank"] == 1
        assert override["blended_rank"] == 1.0

    def test_percentiles_stay_ordered(self, base_forecast):
        for p in (0.1, 0.25, 0.4, 0.5, 0.55, 0.6, 0.69, 0.7, 0.95):
            for slot in (1, 2):
                blended = apply_market_blend(base_forecast, quote(p, slot=slot))
                assert 1 <= blended.p10 <= blended.p50 <= blended.p90

    def test_viewership_passes_through(self):
        views = Forecast("bridgerton", WEEK, "VIEWERSHIP", 9e6, 7e6, 5e6)
        assert apply_market_blend(views, quote(0.9)) is views

    def test_no_quote_passes_through(self, base_forecast):
        assert apply_market_blend(base_forecast, None) is base_forecast


def test_blend_for_region_uses_store_quotes(base_forecast):
    store = DataLoader.store_from_dict(build_sample_snapshot())

    us = blend_for_region(base_forecast, "Bridgerton", "SHOW", store.get_market_probability, region="US")
    assert us.p50 == 1

    # No region-less Bridgerton quote, so other regions keep the base forecast.
    gb = blend_for_region(base_forecast, "Bridgerton", "SHOW", store.get_market_probability, region="GB")
    assert gb is base_forecast
