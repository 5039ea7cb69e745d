"""Read-only access to stored signals.

The engine never talks to a database directly; it consumes the
:class:`SignalStore` interface. :class:`InMemorySignalStore` backs it with
plain record lists (usually loaded from a JSON snapshot by ``DataLoader``).
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from ..models.title import (
    ChartTrackerObservation,
    DailyInterestSignal,
    MarketProbabilityQuote,
    RankObservation,
    Title,
)
from .normalize import matching_key, normalize_title

logger = logging.getLogger(__name__)


class SignalStore(ABC):
    """Abstract signal source consumed by the forecasting engine."""

    @abstractmethod
    def get_title(self, title_id: str) -> Optional[Title]:
        pass

    @abstractmethod
    def list_titles(self) -> List[Title]:
        pass

    @abstractmethod
    def get_rank_history(
        self, title_id: str, scope: str, since_weeks: int, as_of: date
    ) -> List[RankObservation]:
        """
        Weekly rank observations in ``(as_of - since_weeks weeks, as_of]``.

        Returns:
            Observations sorted by ``week_start`` ascending
        """

    @abstractmethod
    def get_interest_signal(
        self,
        title_id: str,
        source: str,
        geo: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailyInterestSignal]:
        """Daily values for one source/geo, sorted by date ascending (bounds inclusive)."""

    @abstractmethod
    def get_tracker_history(
        self, title_id: str, region: str, since_days: int, as_of: date
    ) -> List[ChartTrackerObservation]:
        """Tracker ranks in ``(as_of - since_days, as_of]`` sorted by date ascending."""

    @abstractmethod
    def get_market_probability(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        pass

    @abstractmethod
    def get_previous_momentum(self, title_id: str, week_start: date) -> Optional[float]:
        """Momentum recorded for the week before ``week_start``, if any."""

    def record_momentum(self, title_id: str, week_start: date, momentum: Optional[float]) -> None:
        """Persist a title's momentum for ``week_start``. Read-only stores ignore it."""

    def get_weeks_with_data(self) -> List[date]:
        return []

    def titles_charting(self, week_start: date) -> List[str]:
        """Ids of titles with a rank observation (any scope) for ``week_start``."""
        ids = []
        for title in self.list_titles():
            for scope in ("GLOBAL", "REGIONAL"):
                rows = self.get_rank_history(title.title_id, scope, 1, week_start)
                if any(obs.week_start == week_start for obs in rows):
                    ids.append(title.title_id)
                    break
        return ids


class InMemorySignalStore(SignalStore):
    """Signal store over in-memory record lists.

    Momentum values produced by a run can be written back with
    :meth:`record_momentum` so that the next week's acceleration lookup
    finds them. Writes are guarded by a lock; reads are lock-free.
    """

    def __init__(
        self,
        titles: Iterable[Title] = (),
        ranks: Iterable[RankObservation] = (),
        signals: Iterable[DailyInterestSignal] = (),
        tracker: Iterable[ChartTrackerObservation] = (),
        quotes: Iterable[MarketProbabilityQuote] = (),
        momentum: Optional[Dict[Tuple[str, date], float]] = None,
    ):
        self._titles: Dict[str, Title] = {t.title_id: t for t in titles}

        self._ranks: Dict[Tuple[str, str], List[RankObservation]] = defaultdict(list)
        for obs in ranks:
            self._ranks[(obs.title_id, obs.scope)].append(obs)
        for rows in self._ranks.values():
            rows.sort(key=lambda o: o.week_start)

        self._signals: Dict[Tuple[str, str, str], List[DailyInterestSignal]] = defaultdict(list)
        for sig in signals:
            self._signals[(sig.title_id, sig.source, sig.geo)].append(sig)
        for rows in self._signals.values():
            rows.sort(key=lambda s: s.date)

        self._tracker: Dict[Tuple[str, str], List[ChartTrackerObservation]] = defaultdict(list)
        for obs in tracker:
            self._tracker[(obs.title_id, obs.region)].append(obs)
        for rows in self._tracker.values():
            rows.sort(key=lambda o: o.date)

        self._quotes: List[MarketProbabilityQuote] = list(quotes)
        self._momentum: Dict[Tuple[str, date], float] = dict(momentum or {})
        self._lock = threading.Lock()

    def get_title(self, title_id: str) -> Optional[Title]:
        return self._titles.get(title_id)

    def list_titles(self) -> List[Title]:
        return sorted(self._titles.values(), key=lambda t: t.title_id)

    def get_rank_history(
        self, title_id: str, scope: str, since_weeks: int, as_of: date
    ) -> List[RankObservation]:
        cutoff = as_of - timedelta(weeks=since_weeks)
        return [
            obs
            for obs in self._ranks.get((title_id, scope), [])
            if cutoff < obs.week_start <= as_of
        ]

    def get_interest_signal(
        self,
        title_id: str,
        source: str,
        geo: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailyInterestSignal]:
        rows = self._signals.get((title_id, source, geo), [])
        return [
            sig
            for sig in rows
            if (start is None or sig.date >= start) and (end is None or sig.date <= end)
        ]

    def get_tracker_history(
        self, title_id: str, region: str, since_days: int, as_of: date
    ) -> List[ChartTrackerObservation]:
        cutoff = as_of - timedelta(days=since_days)
        return [
            obs
            for obs in self._tracker.get((title_id, region), [])
            if cutoff < obs.date <= as_of
        ]

    def get_market_probability(
        self, title_name: str, title_kind: str, region: Optional[str] = None
    ) -> Optional[MarketProbabilityQuote]:
        """Best quote for a title: exact region first, then region-less quotes.

        Among candidates the lowest slot wins, then the highest probability.
        """
        key = normalize_title(title_name, title_kind).normalized or matching_key(title_name)
        candidates = [
            q
            for q in self._quotes
            if normalize_title(q.title_name, title_kind).normalized == key
            and (q.title_kind is None or q.title_kind == title_kind)
        ]
        if not candidates:
            return None
        regional = [q for q in candidates if region is not None and q.region == region]
        pool = regional or [q for q in candidates if q.region is None]
        if not pool:
            return None
        return sorted(pool, key=lambda q: (q.slot_rank, -q.probability))[0]

    def get_previous_momentum(self, title_id: str, week_start: date) -> Optional[float]:
        return self._momentum.get((title_id, week_start - timedelta(days=7)))

    def record_momentum(self, title_id: str, week_start: date, momentum: Optional[float]) -> None:
        if momentum is None:
            return
        with self._lock:
            self._momentum[(title_id, week_start)] = float(momentum)

    def get_weeks_with_data(self) -> List[date]:
        weeks = {obs.week_start for rows in self._ranks.values() for obs in rows}
        return sorted(weeks)

    def titles_charting(self, week_start: date) -> List[str]:
        ids = {
            obs.title_id
            for rows in self._ranks.values()
            for obs in rows
            if obs.week_start == week_start
        }
        return sorted(ids)

    @property
    def quotes(self) -> List[MarketProbabilityQuote]:
        return list(self._quotes)

    @property
    def momentum_records(self) -> Dict[Tuple[str, date], float]:
        return dict(self._momentum)
