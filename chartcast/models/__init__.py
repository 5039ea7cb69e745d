"""Domain records for titles, raw signals and forecasts."""

from .forecast import (
    MODEL_VERSION,
    Forecast,
    ForecastExplanation,
    MarketOutcome,
    MarketProbabilities,
)
from .title import (
    ChartTrackerObservation,
    CreatorRecord,
    DailyInterestSignal,
    MarketProbabilityQuote,
    RankObservation,
    Title,
)

__all__ = [
    "MODEL_VERSION",
    "ChartTrackerObservation",
    "CreatorRecord",
    "DailyInterestSignal",
    "Forecast",
    "ForecastExplanation",
    "MarketOutcome",
    "MarketProbabilities",
    "MarketProbabilityQuote",
    "RankObservation",
    "Title",
]
