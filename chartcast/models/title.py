"""Title and raw signal records consumed by the forecasting engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Tuple

TITLE_KINDS = ("SHOW", "MOVIE")
RANK_SCOPES = ("GLOBAL", "REGIONAL")
SIGNAL_SOURCES = ("SEARCH", "ENCYCLOPEDIA")
SIGNAL_GEOS = ("GLOBAL", "US")


def _parse_date(value) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class Title:
    """Identity for one piece of content."""

    title_id: str
    canonical_name: str
    kind: str = "SHOW"
    cast: Tuple[str, ...] = ()
    genres: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate title data."""
        if not self.title_id:
            raise ValueError("Title id must be non-empty")
        if self.kind not in TITLE_KINDS:
            raise ValueError(f"Invalid title kind: {self.kind}")

    def to_dict(self) -> dict:
        """Convert title to dictionary."""
        return {
            "title_id": self.title_id,
            "canonical_name": self.canonical_name,
            "kind": self.kind,
            "cast": list(self.cast),
            "genres": list(self.genres),
            "aliases": list(self.aliases),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Title":
        """Create title from dictionary."""
        return cls(
            title_id=str(data["title_id"]),
            canonical_name=data.get("canonical_name") or data.get("name", ""),
            kind=data.get("kind", "SHOW"),
            cast=tuple(data.get("cast", ())),
            genres=tuple(data.get("genres", ())),
            aliases=tuple(data.get("aliases", ())),
        )


@dataclass(frozen=True)
class RankObservation:
    """One weekly chart placement for a title."""

    title_id: str
    week_start: date
    rank: int
    scope: str = "GLOBAL"
    views: Optional[float] = None
    hours_viewed: Optional[float] = None

    def __post_init__(self):
        if self.rank < 1:
            raise ValueError(f"Rank must be a positive integer, got {self.rank}")
        if self.scope not in RANK_SCOPES:
            raise ValueError(f"Invalid rank scope: {self.scope}")

    def to_dict(self) -> dict:
        return {
            "title_id": self.title_id,
            "week_start": self.week_start.isoformat(),
            "rank": self.rank,
            "scope": self.scope,
            "views": self.views,
            "hours_viewed": self.hours_viewed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "RankObservation":
        return cls(
            title_id=str(data["title_id"]),
            week_start=_parse_date(data["week_start"]),
            rank=int(data["rank"]),
            scope=data.get("scope", "GLOBAL"),
            views=data.get("views"),
            hours_viewed=data.get("hours_viewed"),
        )


@dataclass(frozen=True)
class DailyInterestSignal:
    """One daily search-interest or encyclopedia-traffic value.

    Search values are already on a 0-100 scale; encyclopedia values are raw
    daily page views and are log-normalized by the feature builder.
    """

    title_id: str
    date: date
    source: str
    value: float
    geo: str = "GLOBAL"

    def __post_init__(self):
        if self.source not in SIGNAL_SOURCES:
            raise ValueError(f"Invalid signal source: {self.source}")
        if self.geo not in SIGNAL_GEOS:
            raise ValueError(f"Invalid signal geo: {self.geo}")

    def to_dict(self) -> dict:
        return {
            "title_id": self.title_id,
            "date": self.date.isoformat(),
            "source": self.source,
            "geo": self.geo,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "DailyInterestSignal":
        return cls(
            title_id=str(data["title_id"]),
            date=_parse_date(data["date"]),
            source=data["source"],
            value=float(data["value"]),
            geo=data.get("geo", "GLOBAL"),
        )


@dataclass(frozen=True)
class ChartTrackerObservation:
    """One daily rank from the secondary chart-tracking feed."""

    title_id: str
    date: date
    rank: int
    region: str = "world"

    def __post_init__(self):
        if self.rank < 1:
            raise ValueError(f"Tracker rank must be a positive integer, got {self.rank}")

    def to_dict(self) -> dict:
        return {
            "title_id": self.title_id,
            "date": self.date.isoformat(),
            "rank": self.rank,
            "region": self.region,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChartTrackerObservation":
        return cls(
            title_id=str(data["title_id"]),
            date=_parse_date(data["date"]),
            rank=int(data["rank"]),
            region=data.get("region", "world"),
        )


@dataclass(frozen=True)
class MarketProbabilityQuote:
    """Point-in-time implied probability that a title holds a rank slot."""

    title_name: str
    probability: float
    slot_rank: int = 1
    region: Optional[str] = None
    url: Optional[str] = None
    title_kind: Optional[str] = None

    def __post_init__(self):
        if not 0.0 <= self.probability <= 1.0:
            raise ValueError(f"Probability must be between 0 and 1, got {self.probability}")
        if self.slot_rank < 1:
            raise ValueError(f"Slot rank must be a positive integer, got {self.slot_rank}")

    def to_dict(self) -> dict:
        return {
            "title_name": self.title_name,
            "probability": self.probability,
            "slot_rank": self.slot_rank,
            "region": self.region,
            "url": self.url,
            "title_kind": self.title_kind,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarketProbabilityQuote":
        return cls(
            title_name=data.get("title_name", ""),
            probability=float(data["probability"]),
            slot_rank=int(data.get("slot_rank", 1)),
            region=data.get("region"),
            url=data.get("url"),
            title_kind=data.get("title_kind"),
        )


@dataclass(frozen=True)
class CreatorRecord:
    """Track record of a known creator, showrunner, author or studio."""

    hit_rate: float
    show_count: int = 0
    notable_titles: Tuple[str, ...] = field(default_factory=tuple)
    reason: str = ""
    content_type: str = "TV"

    def __post_init__(self):
        if not 0.0 <= self.hit_rate <= 1.0:
            raise ValueError(f"Hit rate must be between 0 and 1, got {self.hit_rate}")

    def to_dict(self) -> dict:
        return {
            "hit_rate": self.hit_rate,
            "show_count": self.show_count,
            "notable_titles": list(self.notable_titles),
            "reason": self.reason,
            "content_type": self.content_type,
        }
