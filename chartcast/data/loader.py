"""Data loader for signal snapshots and forecast reports."""

import json
import logging
import math
from datetime import date, timedelta
from typing import Dict, List

import pandas as pd

from ..models.forecast import Forecast
from ..models.title import (
    ChartTrackerObservation,
    DailyInterestSignal,
    MarketProbabilityQuote,
    RankObservation,
    Title,
)
from .signal_store import InMemorySignalStore

logger = logging.getLogger(__name__)

SAMPLE_WEEK_START = date(2026, 10, 11)


class DataLoadError(ValueError):
    """Raised when a snapshot or report file cannot be parsed."""


class DataLoader:
    """Loads signal snapshots and forecast reports from JSON/CSV files."""

    @staticmethod
    def load_store_from_json(file_path: str) -> InMemorySignalStore:
        """
        Load a signal snapshot into an in-memory store.

        Args:
            file_path: Path to JSON snapshot

        Returns:
            InMemorySignalStore over the snapshot's records
        """
        try:
            with open(file_path, "r") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise DataLoadError(f"Malformed snapshot {file_path}: {exc}") from exc
        return DataLoader.store_from_dict(data)

    @staticmethod
    def store_from_dict(data: Dict) -> InMemorySignalStore:
        if not isinstance(data, dict):
            raise DataLoadError("Snapshot must be a JSON object")
        try:
            titles = [Title.from_dict(t) for t in data.get("titles", [])]
            ranks = [RankObservation.from_dict(r) for r in data.get("rank_observations", [])]
            signals = [DailyInterestSignal.from_dict(s) for s in data.get("interest_signals", [])]
            tracker = [ChartTrackerObservation.from_dict(t) for t in data.get("tracker", [])]
            quotes = [MarketProbabilityQuote.from_dict(q) for q in data.get("market_quotes", [])]
            momentum = {
                (str(m["title_id"]), date.fromisoformat(str(m["week_start"])[:10])): float(m["momentum"])
                for m in data.get("momentum", [])
            }
        except (KeyError, TypeError, ValueError) as exc:
            raise DataLoadError(f"Invalid snapshot record: {exc}") from exc

        logger.info(
            "Loaded snapshot: %d titles, %d rank rows, %d signal rows, %d tracker rows, %d quotes",
            len(titles),
            len(ranks),
            len(signals),
            len(tracker),
            len(quotes),
        )
        return InMemorySignalStore(
            titles=titles,
            ranks=ranks,
            signals=signals,
            tracker=tracker,
            quotes=quotes,
            momentum=momentum,
        )

    @staticmethod
    def load_rank_history_csv(file_path: str) -> List[RankObservation]:
        """
        Load weekly chart rows from a CSV export.

        Required columns: ``title_id``, ``week_start``, ``rank``. Optional:
        ``scope``, ``views``, ``hours_viewed``. Rows with a missing rank are
        dropped.
        """
        df = pd.read_csv(file_path)
        missing = {"title_id", "week_start", "rank"} - set(df.columns)
        if missing:
            raise DataLoadError(f"CSV {file_path} missing columns: {sorted(missing)}")

        df = df.dropna(subset=["rank"])
        if "scope" not in df.columns:
            df["scope"] = "GLOBAL"
        observations = []
        for row in df.to_dict("records"):
            observations.append(
                RankObservation(
                    title_id=str(row["title_id"]),
                    week_start=pd.Timestamp(row["week_start"]).date(),
                    rank=int(row["rank"]),
                    scope=str(row["scope"]).upper(),
                    views=_optional_float(row.get("views")),
                    hours_viewed=_optional_float(row.get("hours_viewed")),
                )
            )
        return observations

    @staticmethod
    def load_forecasts_from_json(file_path: str) -> List[Forecast]:
        """Load forecasts from a report written by ``run_weekly_forecasts_to_file``."""
        try:
            with open(file_path, "r") as f:
                data = json.load(f)
            rows = data.get("forecasts", []) if isinstance(data, dict) else data
            return [Forecast.from_dict(row) for row in rows]
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise DataLoadError(f"Invalid forecast report {file_path}: {exc}") from exc

    @staticmethod
    def save_json(payload: Dict, file_path: str) -> None:
        with open(file_path, "w") as f:
            json.dump(payload, f, indent=2)

    @staticmethod
    def create_sample_data(output_path: str) -> None:
        """
        Create a sample signal snapshot for trying the CLI.

        Args:
            output_path: Path to save sample data
        """
        DataLoader.save_json(build_sample_snapshot(), output_path)


def _optional_float(value):
    if value is None:
        return None
    value = float(value)
    return None if math.isnan(value) else value


def build_sample_snapshot(week_start: date = SAMPLE_WEEK_START) -> Dict:
    """Deterministic snapshot with one title per forecasting regime."""
    titles = [
        {"title_id": "wednesday", "canonical_name": "Wednesday", "kind": "SHOW",
         "cast": ["Jenna Ortega", "Catherine Zeta-Jones"], "genres": ["Comedy", "Mystery"],
         "aliases": ["Wednesday: Season 2"]},
        {"title_id": "the_night_agent", "canonical_name": "The Night Agent", "kind": "SHOW",
         "cast": ["Gabriel Basso"], "genres": ["Action", "Thriller"], "aliases": []},
        {"title_id": "bridgerton", "canonical_name": "Bridgerton", "kind": "SHOW",
         "cast": ["Luke Thompson", "Yerin Ha"], "genres": ["Romance", "Drama"],
         "aliases": ["Bridgerton: Season 4"]},
        {"title_id": "fool_me_once", "canonical_name": "Fool Me Once", "kind": "SHOW",
         "cast": ["Michelle Keegan", "Richard Armitage"], "genres": ["Thriller"], "aliases": []},
        {"title_id": "rebel_ridge", "canonical_name": "Rebel Ridge", "kind": "MOVIE",
         "cast": ["Aaron Pierre", "Don Johnson"], "genres": ["Action", "Thriller"], "aliases": []},
    ]

    trajectories = {
        "wednesday": ([9, 7, 5, 4, 2, 1], 6.1e6),
        "the_night_agent": ([1, 2, 3, 5, 7, 9], 8.4e6),
        "bridgerton": ([6, 5, 4, 4, 3, 2], 5.2e6),
    }
    ranks = []
    for title_id, (trajectory, peak_views) in trajectories.items():
        weeks = len(trajectory)
        for i, rank in enumerate(trajectory):
            ws = week_start - timedelta(weeks=weeks - 1 - i)
            views = round(peak_views / rank ** 0.5)
            for scope, offset in (("GLOBAL", 0), ("REGIONAL", 1 if rank > 1 else 0)):
                ranks.append({
                    "title_id": title_id,
                    "week_start": ws.isoformat(),
                    "rank": rank + offset,
                    "scope": scope,
                    "views": views if scope == "GLOBAL" else None,
                    "hours_viewed": views * 2 if scope == "GLOBAL" else None,
                })

    signals = []
    search_levels = {"wednesday": 70, "the_night_agent": 35, "bridgerton": 55, "fool_me_once": 40}
    encyclopedia_levels = {"wednesday": 90000, "the_night_agent": 20000, "bridgerton": 45000}
    last_day = week_start + timedelta(days=6)
    for day_offset in range(14):
        day = last_day - timedelta(days=day_offset)
        for title_id, level in search_levels.items():
            signals.append({"title_id": title_id, "date": day.isoformat(), "source": "SEARCH",
                            "geo": "GLOBAL", "value": max(0, level - day_offset)})
        for title_id, level in encyclopedia_levels.items():
            signals.append({"title_id": title_id, "date": day.isoformat(), "source": "ENCYCLOPEDIA",
                            "geo": "GLOBAL", "value": level - day_offset * 1000})

    tracker = []
    for day_offset, rank in enumerate([14, 12, 11, 9, 8, 6, 5, 4, 3, 3]):
        day = last_day - timedelta(days=9 - day_offset)
        tracker.append({"title_id": "rebel_ridge", "date": day.isoformat(), "rank": rank, "region": "world"})

    quotes = [
        {"title_name": "Bridgerton", "probability": 0.72, "slot_rank": 1, "region": "US",
         "url": None, "title_kind": "SHOW"},
        {"title_name": "The Night Agent", "probability": 0.45, "slot_rank": 1, "region": None,
         "url": None, "title_kind": "SHOW"},
        {"title_name": "Wednesday", "probability": 0.30, "slot_rank": 2, "region": "US",
         "url": None, "title_kind": "SHOW"},
    ]

    return {
        "titles": titles,
        "rank_observations": ranks,
        "interest_signals": signals,
        "tracker": tracker,
        "market_quotes": quotes,
        "momentum": [
            {"title_id": "wednesday", "week_start": (week_start - timedelta(days=7)).isoformat(), "momentum": 58.0},
        ],
    }
