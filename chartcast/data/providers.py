"""Best-effort HTTP providers for market quotes and cast credits.

Every provider degrades to ``None`` on any failure (missing configuration,
network error, unexpected payload). Callers treat ``None`` as "no data".
"""

from __future__ import annotations

import logging
import os
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import requests

from ..models.title import MarketProbabilityQuote
from .normalize import matching_key

logger = logging.getLogger(__name__)

MARKET_URL_ENV = "CHARTCAST_MARKET_URL"
TMDB_KEY_ENV = "TMDB_API_KEY"
TMDB_BASE_URL = "https://api.themoviedb.org/3"
DEFAULT_TIMEOUT = 10

QuoteSource = Callable[[str, str, Optional[str]], Optional[MarketProbabilityQuote]]


@dataclass
class CastCredits:
    """Billed cast of a title with popularity scores, top-billed first."""

    tmdb_id: int
    name: str
    cast: List[Tuple[str, float]] = field(default_factory=list)

    @property
    def cast_names(self) -> List[str]:
        return [name for name, _ in self.cast]

    @property
    def popularities(self) -> List[float]:
        return [popularity for _, popularity in self.cast]


class MarketQuoteProvider:
    """Fetches implied probabilities from a prediction-market quote endpoint.

    The endpoint is a URL template taken from ``CHARTCAST_MARKET_URL`` with
    ``{title}``, ``{kind}`` and ``{region}`` placeholders. It must return either
    one quote object or ``{"quotes": [...]}``.
    """

    def __init__(self, url_template: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.url_template = url_template or os.getenv(MARKET_URL_ENV)
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def __call__(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        return self.get_market_probability(title_name, title_kind, region)

    def get_market_probability(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        if not self.url_template:
            return None
        url = self.url_template.format(title=title_name, kind=title_kind, region=region or "")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except Exception as exc:
            logger.warning("Market quote fetch failed for %r: %s", title_name, exc)
            return None
        return self._pick_quote(payload, title_name, title_kind, region)

    @staticmethod
    def _pick_quote(
        payload, title_name: str, title_kind: str, region: Optional[str]
    ) -> Optional[MarketProbabilityQuote]:
        rows = payload.get("quotes") if isinstance(payload, dict) and "quotes" in payload else [payload]
        if not isinstance(rows, list):
            return None
        key = matching_key(title_name)
        quotes = []
        for row in rows:
            if not isinstance(row, dict):
                continue
            row = dict(row)
            row.setdefault("title_name", title_name)
            row.setdefault("title_kind", title_kind)
            try:
                quote = MarketProbabilityQuote.from_dict(row)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed market quote %s: %s", row, exc)
                continue
            if matching_key(quote.title_name) != key:
                continue
            if region is not None and quote.region not in (None, region):
                continue
            quotes.append(quote)
        if not quotes:
            return None
        return sorted(quotes, key=lambda q: (q.slot_rank, -q.probability))[0]


class CastCreditsProvider:
    """Looks up a title's billed cast (with popularity) on TMDB."""

    def __init__(self, api_key: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT):
        self.api_key = api_key or os.getenv(TMDB_KEY_ENV)
        self.timeout = timeout
        self.session = requests.Session()

    def search_and_get_credits(self, query: str, kind: str = "SHOW") -> Optional[CastCredits]:
        if not self.api_key:
            return None
        search_type = "movie" if kind == "MOVIE" else "tv"
        try:
            response = self.session.get(
                f"{TMDB_BASE_URL}/search/{search_type}",
                params={"api_key": self.api_key, "query": query, "include_adult": "false"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            results = response.json().get("results") or []
            if not results:
                return None
            best = results[0]
            tmdb_id = int(best["id"])
            credits_path = f"movie/{tmdb_id}/credits" if kind == "MOVIE" else f"tv/{tmdb_id}/aggregate_credits"
            response = self.session.get(
                f"{TMDB_BASE_URL}/{credits_path}",
                params={"api_key": self.api_key},
                timeout=self.timeout,
            )
            response.raise_for_status()
            cast_rows = response.json().get("cast") or []
        except Exception as exc:
            logger.warning("Cast credits lookup failed for %r: %s", query, exc)
            return None

        cast = [
            (str(row.get("name", "")), float(row.get("popularity") or 0.0))
            for row in cast_rows[:15]
            if row.get("name")
        ]
        return CastCredits(
            tmdb_id=tmdb_id,
            name=best.get("title") or best.get("name") or query,
            cast=cast,
        )


class CachedMarketLookup:
    """Thread-safe TTL cache in front of any market quote source.

    Misses and failures are cached too, so a dead endpoint is hit at most
    once per key per TTL window.
    """

    def __init__(
        self,
        source: QuoteSource,
        ttl_seconds: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[Tuple[str, str, Optional[str]], Tuple[float, Optional[MarketProbabilityQuote]]] = {}

    def __call__(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        return self.get(title_name, title_kind, region)

    def get(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        key = (matching_key(title_name), title_kind, region)
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]

        try:
            quote = self.source(title_name, title_kind, region)
        except Exception as exc:
            logger.warning("Market lookup failed for %r (%s): %s", title_name, region, exc)
            quote = None

        with self._lock:
            self._entries[key] = (now, quote)
        return quote

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def configured_market_provider(url_template: Optional[str] = None) -> Optional[MarketQuoteProvider]:
    """Market quote provider for ``url_template`` or ``$CHARTCAST_MARKET_URL``; None when neither is set."""
    provider = MarketQuoteProvider(url_template)
    return provider if provider.url_template else None


def configured_credits_provider(api_key: Optional[str] = None) -> Optional[CastCreditsProvider]:
    """TMDB credits provider when an API key is given or ``$TMDB_API_KEY`` is set."""
    provider = CastCreditsProvider(api_key)
    return provider if provider.api_key else None
