"""Market thesis: a structured account of why a title might chart.

Collects the qualitative signals traders price in (star power, source
material, genre appeal, pre-release buzz, creator track record) and grades
the overall case. Used to enrich pre-release forecast explanations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .base import KnowledgeBase, NotableCastMember

SIGNAL_STRENGTHS = ("STRONG", "MODERATE", "WEAK")


@dataclass
class MarketSignal:
    type: str
    strength: str
    description: str
    details: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "strength": self.strength,
            "description": self.description,
            "details": self.details,
        }


@dataclass
class MarketThesis:
    summary: str
    confidence: str
    signals: List[MarketSignal] = field(default_factory=list)
    notable_cast: List[NotableCastMember] = field(default_factory=list)
    star_power_score: float = 0.0

    def to_dict(self) -> dict:
        return {
            "summary": self.summary,
            "confidence": self.confidence,
            "signals": [s.to_dict() for s in self.signals],
            "notable_cast": [c.to_dict() for c in self.notable_cast],
            "star_power_score": self.star_power_score,
        }


def star_power_signal(notable: Sequence[NotableCastMember]) -> Optional[MarketSignal]:
    a_list = [c for c in notable if c.tier == "A_LIST"]
    recognizable = [c for c in notable if c.tier == "NOTABLE"]

    if len(a_list) >= 2:
        return MarketSignal(
            "STAR_POWER",
            "STRONG",
            f"A-list ensemble cast with {len(a_list)} major stars",
            ", ".join(f"{c.name} ({c.known_for})" for c in a_list),
        )
    if len(a_list) == 1:
        return MarketSignal("STAR_POWER", "STRONG", f"Led by {a_list[0].name}", a_list[0].known_for)
    if len(recognizable) >= 2:
        return MarketSignal(
            "STAR_POWER",
            "MODERATE",
            f"Recognizable cast with {len(recognizable)} notable actors",
            ", ".join(c.name for c in notable),
        )
    if len(recognizable) == 1:
        return MarketSignal("STAR_POWER", "WEAK", f"Features {recognizable[0].name}", recognizable[0].known_for)
    return None


def buzz_signal(search_score: Optional[float], trailer_views: Optional[float] = None) -> Optional[MarketSignal]:
    if search_score is not None and search_score >= 80:
        return MarketSignal("BUZZ", "STRONG", "High pre-release search interest", f"Search score: {search_score:.0f}/100")
    if trailer_views is not None and trailer_views >= 10_000_000:
        return MarketSignal("BUZZ", "STRONG", "Trailer has 10M+ views", f"{trailer_views / 1e6:.1f}M trailer views")
    if trailer_views is not None and trailer_views >= 1_000_000:
        return MarketSignal("BUZZ", "MODERATE", "Trailer has 1M+ views", f"{trailer_views / 1e6:.1f}M trailer views")
    if search_score is not None and search_score >= 50:
        return MarketSignal("BUZZ", "MODERATE", "Moderate pre-release interest", f"Search score: {search_score:.0f}/100")
    return None


def generate_market_thesis(
    kb: KnowledgeBase,
    title_name: str,
    cast: Sequence[str] = (),
    genres: Sequence[str] = (),
    popularity_score: float = 0.0,
    search_score: Optional[float] = None,
    trailer_views: Optional[float] = None,
) -> MarketThesis:
    """Assemble the thesis for one title from knowledge-base lookups and buzz inputs."""
    notable = kb.notable_cast(cast)
    signals: List[MarketSignal] = []

    signal = star_power_signal(notable)
    if signal:
        signals.append(signal)

    source = kb.source_material_for(title_name)
    if source:
        signals.append(MarketSignal("SOURCE_MATERIAL", "STRONG", f"Based on {source}"))

    appeal = kb.genre_appeal_for(genres)
    if appeal:
        strength = {"HIGH": "STRONG", "MEDIUM": "MODERATE"}.get(appeal.appeal, "WEAK")
        signals.append(MarketSignal("GENRE", strength, appeal.reason, appeal.genre))

    signal = buzz_signal(search_score, trailer_views)
    if signal:
        signals.append(signal)

    found = kb.creator_track_record(title_name)
    if found:
        creator, record = found
        if record.hit_rate >= 0.75:
            strength = "STRONG"
        elif record.hit_rate >= 0.5:
            strength = "MODERATE"
        else:
            strength = "WEAK"
        signals.append(
            MarketSignal(
                "TRACK_RECORD",
                strength,
                f"{creator} hit rate {record.hit_rate:.0%}",
                record.reason,
            )
        )

    strong = sum(1 for s in signals if s.strength == "STRONG")
    if strong >= 2 or (strong >= 1 and len(signals) >= 3):
        confidence = "HIGH"
    elif len(signals) >= 2 or strong >= 1:
        confidence = "MEDIUM"
    else:
        confidence = "LOW"

    if not signals:
        summary = "Limited data available to explain market pricing."
    elif strong >= 2:
        summary = ". ".join([s.description for s in signals if s.strength == "STRONG"][:2]) + "."
    else:
        summary = signals[0].description + "."
        if len(signals) > 1:
            summary += f" Also: {signals[1].description[0].lower()}{signals[1].description[1:]}."

    return MarketThesis(
        summary=summary,
        confidence=confidence,
        signals=signals,
        notable_cast=notable,
        star_power_score=kb.star_power_score(cast, popularity_score),
    )
