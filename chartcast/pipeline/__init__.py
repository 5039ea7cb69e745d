"""Batch orchestration."""

from .weekly import WeeklyForecastPipeline, WeeklyRunResult, next_week_start, run_weekly_forecasts_to_file

__all__ = ["WeeklyForecastPipeline", "WeeklyRunResult", "next_week_start", "run_weekly_forecasts_to_file"]
