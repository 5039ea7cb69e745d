"""Chart momentum forecaster: next-week chart rank and viewership forecasts."""

__version__ = "2.0.0"
