"""Forecast and market-distribution output records."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

MODEL_VERSION = "2.0.0"

FORECAST_TARGETS = ("RANK", "VIEWERSHIP")
CONFIDENCE_LEVELS = ("low", "medium", "high")


@dataclass
class ForecastExplanation:
    """Structured "why this forecast" payload.

    Every intermediate value is kept so a presentation layer can render the
    explanation without recomputing anything.
    """

    momentum_score: Optional[float] = None
    acceleration_score: float = 0.0
    search_contribution: Optional[float] = None
    encyclopedia_contribution: Optional[float] = None
    rank_trend_contribution: Optional[float] = None
    historical_pattern: str = "insufficient_data"
    confidence: str = "low"
    regime: str = "history"
    momentum_breakdown: Optional[Dict[str, Any]] = None
    trend: Optional[Dict[str, float]] = None
    uncertainty: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)
    applied_overrides: List[Dict[str, Any]] = field(default_factory=list)

    def __post_init__(self):
        if self.confidence not in CONFIDENCE_LEVELS:
            raise ValueError(f"Invalid confidence level: {self.confidence}")

    def to_dict(self) -> dict:
        return {
            "momentum_score": self.momentum_score,
            "acceleration_score": self.acceleration_score,
            "search_contribution": self.search_contribution,
            "encyclopedia_contribution": self.encyclopedia_contribution,
            "rank_trend_contribution": self.rank_trend_contribution,
            "historical_pattern": self.historical_pattern,
            "confidence": self.confidence,
            "regime": self.regime,
            "momentum_breakdown": copy.deepcopy(self.momentum_breakdown),
            "trend": dict(self.trend) if self.trend else None,
            "uncertainty": self.uncertainty,
            "details": copy.deepcopy(self.details),
            "applied_overrides": copy.deepcopy(self.applied_overrides),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ForecastExplanation":
        return cls(
            momentum_score=data.get("momentum_score"),
            acceleration_score=data.get("acceleration_score", 0.0),
            search_contribution=data.get("search_contribution"),
            encyclopedia_contribution=data.get("encyclopedia_contribution"),
            rank_trend_contribution=data.get("rank_trend_contribution"),
            historical_pattern=data.get("historical_pattern", "insufficient_data"),
            confidence=data.get("confidence", "low"),
            regime=data.get("regime", "history"),
            momentum_breakdown=data.get("momentum_breakdown"),
            trend=data.get("trend"),
            uncertainty=data.get("uncertainty"),
            details=data.get("details") or {},
            applied_overrides=list(data.get("applied_overrides") or []),
        )


@dataclass
class Forecast:
    """Percentile forecast for one (title, week, target).

    For RANK targets lower is better, so ``p10 <= p50 <= p90``. For
    VIEWERSHIP targets ``p10`` is the optimistic high-count bound, so
    ``p10 >= p50 >= p90``.
    """

    title_id: str
    week_start: date
    target: str
    p10: float
    p50: float
    p90: float
    explain: ForecastExplanation = field(default_factory=ForecastExplanation)
    model_version: str = MODEL_VERSION

    def __post_init__(self):
        """Validate target and percentile ordering."""
        if self.target not in FORECAST_TARGETS:
            raise ValueError(f"Invalid forecast target: {self.target}")
        if self.target == "RANK":
            if not 1 <= self.p10 <= self.p50 <= self.p90:
                raise ValueError(
                    f"Rank percentiles must satisfy 1 <= p10 <= p50 <= p90, got "
                    f"({self.p10}, {self.p50}, {self.p90})"
                )
        elif not self.p10 >= self.p50 >= self.p90 >= 0:
            raise ValueError(
                f"Viewership percentiles must satisfy p10 >= p50 >= p90 >= 0, got "
                f"({self.p10}, {self.p50}, {self.p90})"
            )

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    def to_dict(self) -> dict:
        """Convert forecast to dictionary."""
        return {
            "title_id": self.title_id,
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "target": self.target,
            "p10": self.p10,
            "p50": self.p50,
            "p90": self.p90,
            "model_version": self.model_version,
            "explain": self.explain.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Forecast":
        """Create forecast from dictionary."""
        return cls(
            title_id=str(data["title_id"]),
            week_start=date.fromisoformat(str(data["week_start"])[:10]),
            target=data["target"],
            p10=data["p10"],
            p50=data["p50"],
            p90=data["p90"],
            explain=ForecastExplanation.from_dict(data.get("explain") or {}),
            model_version=data.get("model_version", MODEL_VERSION),
        )


@dataclass
class MarketOutcome:
    """One listed outcome of a market question."""

    name: str
    probability: float
    raw_score: float
    confidence: str = "low"
    matched_title_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "probability": self.probability,
            "raw_score": self.raw_score,
            "confidence": self.confidence,
            "matched_title_id": self.matched_title_id,
        }


@dataclass
class MarketProbabilities:
    """Probability distribution over one market question's outcomes."""

    market_question: str
    outcomes: List[MarketOutcome] = field(default_factory=list)
    field_probability: float = 0.0
    total: float = 100.0

    def to_dict(self) -> dict:
        return {
            "market_question": self.market_question,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "field_probability": self.field_probability,
            "total": self.total,
        }
