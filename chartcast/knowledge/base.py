"""Creator and cast knowledge base.

Curated, deploy-versioned tables (``knowledge/data/*.json``) of creator hit
rates, notable cast tiers, known source material and genre appeal. All
lookups are pure: the tables are loaded once and exposed read-only.
"""

from __future__ import annotations

import functools
import json
import logging
import os
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..data.normalize import matching_key, strip_accents
from ..mathutils import round_half_up
from ..models.title import CreatorRecord

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(__file__), "data")

# Top-billed cast counts more towards popularity-based star power.
BILLING_WEIGHTS = (1.0, 0.8, 0.6, 0.4, 0.3, 0.2, 0.1, 0.1, 0.05, 0.05)


@dataclass(frozen=True)
class NotableCastMember:
    name: str
    tier: str
    known_for: str

    def to_dict(self) -> dict:
        return {"name": self.name, "tier": self.tier, "known_for": self.known_for}


@dataclass(frozen=True)
class GenreAppeal:
    genre: str
    appeal: str
    reason: str


def _phrase_text(value: str) -> str:
    s = strip_accents(value or "").lower()
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return f" {s.strip()} "


def _contains_phrase(text: str, phrase: str) -> bool:
    needle = _phrase_text(phrase)
    return needle.strip() != "" and needle in _phrase_text(text)


def _load_json(path: str) -> Dict:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class KnowledgeBase:
    """Read-only lookups over the curated creator/cast tables."""

    def __init__(self, data_dir: str = DATA_DIR):
        creators = _load_json(os.path.join(data_dir, "creators.json"))
        cast = _load_json(os.path.join(data_dir, "cast.json"))
        appeal = _load_json(os.path.join(data_dir, "appeal.json"))

        self.version = creators.get("version", "unknown")
        self.creators: Mapping[str, CreatorRecord] = MappingProxyType(
            {
                name: CreatorRecord(
                    hit_rate=float(row["hit_rate"]),
                    show_count=int(row.get("show_count", 0)),
                    notable_titles=tuple(row.get("notable_titles", ())),
                    reason=row.get("reason", ""),
                    content_type=row.get("content_type", "TV"),
                )
                for name, row in creators.get("creators", {}).items()
            }
        )
        self.title_creators: Mapping[str, str] = MappingProxyType(dict(creators.get("title_creators", {})))
        self.tier_boosts: Mapping[str, float] = MappingProxyType(
            {tier: float(v) for tier, v in cast.get("tier_boosts", {}).items()}
        )
        self._cast_by_key: Mapping[str, NotableCastMember] = MappingProxyType(
            {
                matching_key(name): NotableCastMember(name, row["tier"], row.get("known_for", ""))
                for name, row in cast.get("cast", {}).items()
            }
        )
        self.source_material: Mapping[str, str] = MappingProxyType(dict(appeal.get("source_material", {})))
        self.genre_appeal: Mapping[str, GenreAppeal] = MappingProxyType(
            {
                genre: GenreAppeal(genre, row["appeal"], row.get("reason", ""))
                for genre, row in appeal.get("genre_appeal", {}).items()
            }
        )

        missing = sorted({c for c in self.title_creators.values() if c not in self.creators})
        if missing:
            logger.warning("Title map references unknown creators: %s", ", ".join(missing))

    def creator_track_record(self, title_name: str) -> Optional[Tuple[str, CreatorRecord]]:
        """
        Creator behind a title and their record, if known.

        Title phrases are matched on word boundaries and the longest matching
        phrase wins ("Monsters: Menendez" hits "Monsters", not "Monster").
        Falls back to a creator name appearing in the title itself.
        """
        if not title_name:
            return None
        matches = [
            (phrase, creator)
            for phrase, creator in self.title_creators.items()
            if creator in self.creators and _contains_phrase(title_name, phrase)
        ]
        if matches:
            phrase, creator = max(matches, key=lambda m: (len(_phrase_text(m[0])), m[0]))
            return creator, self.creators[creator]

        for creator, record in self.creators.items():
            if _contains_phrase(title_name, creator):
                return creator, record
        return None

    def creator_momentum_boost(self, title_name: str) -> Tuple[int, Optional[str], Optional[str]]:
        """Momentum boost (0-45) granted by a known creator: ``(boost, creator, reason)``."""
        found = self.creator_track_record(title_name)
        if found is None:
            return 0, None, None
        creator, record = found
        return round_half_up(record.hit_rate * 45), creator, record.reason

    def notable_cast(self, cast: Iterable[str]) -> List[NotableCastMember]:
        members = []
        for name in cast:
            member = self._cast_by_key.get(matching_key(name))
            if member is not None:
                members.append(member)
        return members

    def star_power_score(self, cast: Iterable[str], popularity_score: float = 0.0) -> float:
        """Popularity score plus tier boosts for every notable cast member, capped at 100."""
        score = float(popularity_score)
        for member in self.notable_cast(cast):
            score += self.tier_boosts.get(member.tier, 0.0)
        return min(100.0, score)

    def source_material_for(self, title_name: str) -> Optional[str]:
        if not title_name:
            return None
        if title_name in self.source_material:
            return self.source_material[title_name]
        for key, description in self.source_material.items():
            if _contains_phrase(title_name, key) or _contains_phrase(key, title_name):
                return description
        return None

    def genre_appeal_for(self, genres: Sequence[str]) -> Optional[GenreAppeal]:
        """First listed genre with a known appeal (specific genres before generic ones)."""
        for genre in genres:
            exact = self.genre_appeal.get(genre.strip().lower())
            if exact is not None:
                return GenreAppeal(genre, exact.appeal, exact.reason)
            for key, appeal in self.genre_appeal.items():
                if _contains_phrase(genre, key) or _contains_phrase(key, genre):
                    return GenreAppeal(genre, appeal.appeal, appeal.reason)
        return None


def popularity_star_power(popularities: Sequence[float]) -> float:
    """Billing-weighted mean popularity of the top ten cast, capped at 100."""
    top = list(popularities)[: len(BILLING_WEIGHTS)]
    if not top:
        return 0.0
    weights = BILLING_WEIGHTS[: len(top)]
    total = sum(p * w for p, w in zip(top, weights))
    return float(min(100, round_half_up(total / sum(weights))))


@functools.lru_cache(maxsize=1)
def default_knowledge_base() -> KnowledgeBase:
    return KnowledgeBase()
