"""Tests for engine configuration."""

import json

import pytest

from chartcast.config import (
    CONFIG_ENV_VAR,
    BlendThresholds,
    ForecastConfig,
    MomentumWeights,
    load_config,
)


class TestDefaults:
    def test_momentum_weights(self):
        weights = MomentumWeights()
        assert (weights.search, weights.encyclopedia, weights.rank_delta) == (0.33, 0.33, 0.34)

    def test_blend_thresholds(self):
        blend = BlendThresholds()
        assert (blend.override, blend.strong, blend.moderate, blend.weak) == (0.70, 0.55, 0.40, 0.10)

    def test_engine_defaults(self):
        config = ForecastConfig()
        assert config.breakout_threshold == 60.0
        assert config.z_score == 1.28
        assert config.primary_rank_scope == "REGIONAL"
        assert config.max_workers >= 1


class TestValidation:
    def test_negative_weight(self):
        with pytest.raises(ValueError):
            MomentumWeights(search=-0.1)

    def test_unordered_thresholds(self):
        with pytest.raises(ValueError):
            BlendThresholds(strong=0.80)

    def test_sigma_caps(self):
        with pytest.raises(ValueError):
            BlendThresholds(override_sigma_cap=0)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"softmax_temperature": 0},
            {"z_score": -1},
            {"history_weeks": 1},
            {"max_workers": 0},
            {"primary_rank_scope": "LOCAL"},
            {"cache_ttl_seconds": -5},
        ],
    )
    def test_invalid_engine_values(self, kwargs):
        with pytest.raises(ValueError):
            ForecastConfig(**kwargs)


def test_dict_round_trip():
    config = ForecastConfig(
        weights=MomentumWeights(search=0.5, encyclopedia=0.2, rank_delta=0.3),
        max_workers=2,
    )
    data = config.to_dict()
    assert data["weights"] == {"search": 0.5, "encyclopedia": 0.2, "rank_delta": 0.3}
    assert ForecastConfig.from_dict(data) == config


class TestLoadConfig:
    def test_defaults_without_path(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == ForecastConfig(max_workers=ForecastConfig().max_workers)

    def test_partial_file(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "softmax_temperature": 8.0,
                    "blend": {"override": 0.8},
                    "max_workers": 3,
                    "colour": "blue",
                }
            )
        )
        config = load_config(str(path))
        assert config.softmax_temperature == 8.0
        assert config.blend.override == 0.8
        assert config.blend.strong == 0.55
        assert config.max_workers == 3
        assert "Ignoring unknown config key: colour" in caplog.text

    def test_env_var(self, tmp_path, monkeypatch):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"field_strength": 20.0, "max_workers": 1}))
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().field_strength == 20.0

    def test_non_object_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ValueError):
            load_config(str(path))
