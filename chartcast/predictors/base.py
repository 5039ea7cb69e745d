"""Base forecaster interface and shared percentile helpers."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional, Tuple

from ..mathutils import clamp, round_half_up
from ..models.forecast import Forecast


class BaseForecaster(ABC):
    """Abstract base class for all forecasting models."""

    def __init__(self, name: str):
        """
        Initialize forecaster.

        Args:
            name: Name of the forecasting model
        """
        self.name = name

    @abstractmethod
    def forecast(self, title_id: str, week_start: date) -> Optional[Forecast]:
        """
        Forecast one title for the chart week starting ``week_start``.

        Args:
            title_id: Store title id
            week_start: Target week start (a Sunday)

        Returns:
            Forecast, or None when this model has too little data
        """
        pass


def rank_percentiles(
    center: float, sigma: float, z: float, low: float, high: float
) -> Tuple[int, int, int]:
    """
    Integer rank percentiles around ``center``.

    Each value is clamped into ``[low, high]`` and rounded half-up; the
    result is re-ordered so ``p10 <= p50 <= p90``.
    """
    p50 = round_half_up(clamp(center, low, high))
    p10 = round_half_up(clamp(center - z * sigma, low, high))
    p90 = round_half_up(clamp(center + z * sigma, low, high))
    return min(p10, p50), p50, max(p90, p50)
