"""
Resolution of free-form title names to store title ids.

Market questions, tracker feeds and chart exports never agree on naming:

  Market outcome:  "Wednesday Season 2"
  Chart export:    "Wednesday: Season 2"
  Tracker feed:    "Wednesday"

`TitleNameResolver` indexes every known title (canonical name plus aliases)
under its normalized matching key and resolves arbitrary strings with a
multi-pass strategy (exact id -> key -> alias -> containment -> fuzzy).
"""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set

from ..models.title import Title
from .normalize import matching_key, normalize_title, normalize_title_id

logger = logging.getLogger(__name__)

FUZZY_THRESHOLD = 0.80


@dataclass
class MatchResult:
    """Result of a title name resolution attempt."""

    title_id: str
    display_name: str
    confidence: float  # 0.0 to 1.0
    method: str  # "exact_id", "key", "alias", "containment", "fuzzy", "unresolved"

    @property
    def resolved(self) -> bool:
        return self.method not in ("unresolved", "empty")


class TitleNameResolver:
    """
    Resolves arbitrary title name strings to store title ids.

    Resolution order:
    1. Exact title id match
    2. Matching key of the canonical name (season and format markers removed)
    3. Matching key of a registered alias
    4. Key containment (longest unambiguous match wins)
    5. SequenceMatcher fuzzy match (threshold=0.80)

    Thread-safe for reads after construction.
    """

    def __init__(self, titles: Iterable[Title] = ()):
        self._id_to_display: Dict[str, str] = {}
        self._canonical_keys: Dict[str, str] = {}
        self._alias_keys: Dict[str, str] = {}
        self._all_ids: Set[str] = set()
        for title in titles:
            self.add_title(title)

    def add_title(self, title: Title) -> None:
        self._all_ids.add(title.title_id)
        self._id_to_display[title.title_id] = title.canonical_name
        key = normalize_title(title.canonical_name, title.kind).normalized
        if key:
            self._canonical_keys.setdefault(key, title.title_id)
        for alias in title.aliases:
            self.add_alias(title.title_id, alias)

    def add_alias(self, title_id: str, alias: str) -> None:
        """Add a runtime alias mapping."""
        key = normalize_title(alias).normalized
        if key:
            self._alias_keys[key] = title_id
        if title_id not in self._all_ids:
            self._all_ids.add(title_id)
            self._id_to_display[title_id] = alias

    def resolve(self, name: str) -> MatchResult:
        """
        Resolve a title name to a store title id.

        Args:
            name: Any title string from any source

        Returns:
            MatchResult with title_id, display_name, confidence, method
        """
        if not name or not name.strip():
            return MatchResult("", "", 0.0, "empty")

        raw = name.strip()

        if raw in self._all_ids:
            return MatchResult(raw, self._id_to_display[raw], 1.0, "exact_id")

        key = normalize_title(raw).normalized
        if key in self._canonical_keys:
            tid = self._canonical_keys[key]
            return MatchResult(tid, self._id_to_display[tid], 0.99, "key")

        if key in self._alias_keys:
            tid = self._alias_keys[key]
            return MatchResult(tid, self._id_to_display[tid], 0.98, "alias")

        # Also try the raw key so "Part 2" style outcomes can hit an alias
        # that was registered with its season marker.
        raw_key = matching_key(raw)
        if raw_key != key and raw_key in self._alias_keys:
            tid = self._alias_keys[raw_key]
            return MatchResult(tid, self._id_to_display[tid], 0.97, "alias")

        candidates = []
        for known_key, known_id in self._known_keys():
            if len(known_key) < 4 or not key:
                continue
            if known_key in key or key in known_key:
                candidates.append((known_id, len(known_key)))
        if len({c[0] for c in candidates}) == 1:
            tid = candidates[0][0]
            return MatchResult(tid, self._id_to_display[tid], 0.90, "containment")
        if candidates:
            candidates.sort(key=lambda c: (-c[1], c[0]))
            tid = candidates[0][0]
            return MatchResult(tid, self._id_to_display[tid], 0.85, "containment")

        best_score = 0.0
        best_id = ""
        for known_key, known_id in self._known_keys():
            score = difflib.SequenceMatcher(None, key, known_key).ratio()
            if score > best_score:
                best_score = score
                best_id = known_id

        if best_score >= FUZZY_THRESHOLD and best_id:
            return MatchResult(best_id, self._id_to_display[best_id], best_score, "fuzzy")

        return MatchResult(normalize_title_id(raw), raw, best_score, "unresolved")

    def resolve_batch(self, names: List[str], warn_threshold: float = 0.85) -> List[MatchResult]:
        """Resolve a list of names. Logs warnings for low-confidence matches."""
        results = []
        for name in names:
            result = self.resolve(name)
            if result.resolved and result.confidence < warn_threshold:
                logger.warning(
                    "Low-confidence title match: %r -> %s (%.2f, %s)",
                    name,
                    result.title_id,
                    result.confidence,
                    result.method,
                )
            results.append(result)
        return results

    def get_display_name(self, title_id: str) -> str:
        return self._id_to_display.get(title_id, title_id)

    def lookup(self, name: str) -> Optional[str]:
        """Title id for ``name`` or ``None`` when it cannot be resolved."""
        result = self.resolve(name)
        return result.title_id if result.resolved else None

    def _known_keys(self):
        # Sorted so that ties are broken the same way on every run.
        items = list(self._canonical_keys.items()) + list(self._alias_keys.items())
        return sorted(items)

    @property
    def known_titles(self) -> Set[str]:
        return set(self._all_ids)
