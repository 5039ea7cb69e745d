"""Configuration knobs for the forecasting engine."""

from __future__ import annotations

import json
import logging
import multiprocessing
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CHARTCAST_CONFIG"


@dataclass(frozen=True)
class MomentumWeights:
    """Relative weights of the three momentum components.

    Weights need not sum to 1; they are renormalized over whichever
    components are present for a title.
    """

    search: float = 0.33
    encyclopedia: float = 0.33
    rank_delta: float = 0.34

    def __post_init__(self):
        for name in ("search", "encyclopedia", "rank_delta"):
            value = getattr(self, name)
            if value < 0:
                raise ValueError(f"Momentum weight '{name}' must be non-negative, got {value}")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class BlendThresholds:
    """Probability bands for the tiered market blend (#1 slot)."""

    override: float = 0.70
    strong: float = 0.55
    moderate: float = 0.40
    weak: float = 0.10
    override_sigma_cap: float = 1.0
    strong_sigma_cap: float = 1.5

    def __post_init__(self):
        if not 0.0 <= self.weak < self.moderate < self.strong < self.override <= 1.0:
            raise ValueError(
                "Blend thresholds must satisfy 0 <= weak < moderate < strong < override <= 1"
            )
        if self.override_sigma_cap <= 0 or self.strong_sigma_cap <= 0:
            raise ValueError("Sigma caps must be positive")

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ForecastConfig:
    """Engine-wide configuration."""

    weights: MomentumWeights = field(default_factory=MomentumWeights)
    blend: BlendThresholds = field(default_factory=BlendThresholds)
    breakout_threshold: float = 60.0
    z_score: float = 1.28
    softmax_temperature: float = 12.0
    field_strength: float = 15.0
    history_weeks: int = 12
    tracker_days: int = 14
    tracker_fresh_days: int = 3
    tracker_region: str = "world"
    visible_top_n: int = 10
    primary_rank_scope: str = "REGIONAL"
    cache_ttl_seconds: float = 300.0
    max_workers: Optional[int] = None
    timezone: str = "America/Los_Angeles"

    def __post_init__(self):
        if self.max_workers is None:
            self.max_workers = max(1, multiprocessing.cpu_count() - 1)
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")
        if self.softmax_temperature <= 0:
            raise ValueError(f"Softmax temperature must be positive, got {self.softmax_temperature}")
        if self.z_score <= 0:
            raise ValueError(f"z-score must be positive, got {self.z_score}")
        if self.history_weeks < 2:
            raise ValueError("history_weeks must allow at least two observations")
        if self.tracker_days < 1 or self.tracker_fresh_days < 0:
            raise ValueError("Tracker windows must be positive")
        if self.visible_top_n < 1:
            raise ValueError("visible_top_n must be >= 1")
        if self.primary_rank_scope not in ("GLOBAL", "REGIONAL"):
            raise ValueError(f"Invalid primary rank scope: {self.primary_rank_scope}")
        if self.cache_ttl_seconds < 0:
            raise ValueError("cache_ttl_seconds must be non-negative")

    def to_dict(self) -> dict:
        data = asdict(self)
        data["weights"] = self.weights.to_dict()
        data["blend"] = self.blend.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ForecastConfig":
        """Build a config from a (possibly partial) mapping; unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            if key not in known:
                logger.warning("Ignoring unknown config key: %s", key)
                continue
            if key == "weights":
                value = MomentumWeights(**value)
            elif key == "blend":
                value = BlendThresholds(**value)
            kwargs[key] = value
        return cls(**kwargs)


def load_config(path: Optional[str] = None) -> ForecastConfig:
    """Load configuration from a JSON file.

    The path falls back to the ``CHARTCAST_CONFIG`` environment variable.
    With neither set the defaults are returned.
    """
    path = path or os.getenv(CONFIG_ENV_VAR)
    if not path:
        return ForecastConfig()
    with open(path, "r") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a JSON object")
    return ForecastConfig.from_dict(data)
