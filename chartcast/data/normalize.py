"""Shared title name normalization used by the resolver, loader and knowledge base.

Chart feeds, market questions and encyclopedia pages spell the same title in
different ways ("Wednesday: Season 2", "Wednesday (Limited Series)",
"Wednesday S2").  Everything that compares title names goes through this
module so the variants collapse to one matching key.
"""

from __future__ import annotations

import hashlib
import html as _html
import re
import unicodedata
from dataclasses import dataclass
from typing import Iterable, List, NamedTuple, Optional

_BRACKETED_SUFFIXES = [
    re.compile(r"\s*\((?:Limited Series|Miniseries|Mini-Series|TV Series|Series)\)\s*$", re.IGNORECASE),
    re.compile(r"\s*\((?:Film|Movie|Documentary|Docuseries)\)\s*$", re.IGNORECASE),
    re.compile(r"\s*\((?:Part|Volume) \d+\)\s*$", re.IGNORECASE),
]

# Ordered: the separator forms must win over the bare forms.
_SEASON_PATTERNS = [
    re.compile(r"^(.+?)\s*[:-]\s*Season\s+(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+Season\s+(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s*[:-]\s*S(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+S(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s*[:-]\s*Part\s+(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+Part\s+(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s*[:-]\s*Volume\s+(\d+)$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+Volume\s+(\d+)$", re.IGNORECASE),
]

_ROMAN_NUMERALS = {
    "I": 1, "II": 2, "III": 3, "IV": 4, "V": 5,
    "VI": 6, "VII": 7, "VIII": 8, "IX": 9, "X": 10,
    "XI": 11, "XII": 12, "XIII": 13, "XIV": 14, "XV": 15,
}

# Sequel numeral at the end of the title or right before a colon/dash.
_ROMAN_RE = re.compile(r"\b([IVX]+)\b(?=\s*$|\s*[:-])")


class SeasonInfo(NamedTuple):
    base_name: str
    season_number: int


@dataclass(frozen=True)
class NormalizedTitle:
    """Result of :func:`normalize_title`."""

    canonical: str
    normalized: str
    season: Optional[int]
    original: str
    title_key: str


def normalize_text(text: str) -> str:
    """Trim, collapse whitespace, unify dashes/quotes, strip edge punctuation.

    Examples::

        >>> normalize_text("  Hello    World ")
        'Hello World'
        >>> normalize_text(": Hello World -")
        'Hello World'
    """
    if not text:
        return ""
    s = _html.unescape(str(text)).strip()
    s = re.sub(r"\s+", " ", s)
    s = re.sub("[–—]", "-", s)
    s = re.sub("[‘’]", "'", s)
    s = re.sub("[“”]", '"', s)
    s = re.sub(r"^[:\-,.\s]+", "", s)
    s = re.sub(r"[:\-,.\s]+$", "", s)
    return s


def remove_bracketed_suffixes(title: str) -> str:
    """Drop trailing format markers such as ``(Limited Series)`` or ``(Part 2)``."""
    result = title
    for pattern in _BRACKETED_SUFFIXES:
        result = pattern.sub("", result)
    return result.strip()


def extract_season_info(title: str) -> Optional[SeasonInfo]:
    """Split ``"Show: Season 2"`` style names into base name and number."""
    for pattern in _SEASON_PATTERNS:
        match = pattern.match(title)
        if match:
            return SeasonInfo(normalize_text(match.group(1)), int(match.group(2)))
    return None


def convert_roman_numerals(title: str) -> str:
    """Rewrite a trailing sequel numeral as Arabic (``Rocky IV`` -> ``Rocky 4``)."""

    def _replace(match):
        value = _ROMAN_NUMERALS.get(match.group(1))
        return str(value) if value is not None else match.group(0)

    return _ROMAN_RE.sub(_replace, title, count=1)


def strip_accents(text: str) -> str:
    s = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in s if not unicodedata.combining(ch))


def matching_key(title: str) -> str:
    """Lowercase alphanumeric-only form used for equality matching."""
    return re.sub(r"[^a-z0-9]", "", strip_accents(title or "").lower())


def title_key(canonical: str, kind: str = "SHOW") -> str:
    """Deterministic 16-hex-char key for a canonical title and its kind."""
    payload = f"{matching_key(canonical)}:{kind}"
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


def normalize_title_id(name: str) -> str:
    """Convert a display name to an underscore-delimited identifier.

    Examples::

        >>> normalize_title_id("Squid Game: Season 2")
        'squid_game_season_2'
        >>> normalize_title_id("Amélie")
        'amelie'
    """
    if not name:
        return ""
    s = strip_accents(_html.unescape(str(name))).lower()
    s = re.sub(r"[^a-z0-9]", "_", s)
    s = re.sub(r"_+", "_", s)
    return s.strip("_")


def normalize_title(title: str, kind: str = "SHOW") -> NormalizedTitle:
    """Full pipeline: text cleanup, suffixes, accents, numerals, season split."""
    processed = remove_bracketed_suffixes(normalize_text(title))
    processed = convert_roman_numerals(strip_accents(processed))
    season = extract_season_info(processed)
    canonical = season.base_name if season else processed
    return NormalizedTitle(
        canonical=canonical,
        normalized=matching_key(canonical),
        season=season.season_number if season else None,
        original=title,
        title_key=title_key(canonical, kind),
    )


def titles_match(first: str, second: str) -> bool:
    """True when both names reduce to the same matching key."""
    return matching_key(remove_bracketed_suffixes(normalize_text(first))) == matching_key(
        remove_bracketed_suffixes(normalize_text(second))
    )


def merge_aliases(existing: Optional[Iterable[str]], alias: str) -> List[str]:
    """Append ``alias`` unless an existing alias has the same matching key."""
    aliases = list(existing or [])
    cleaned = normalize_text(alias)
    key = matching_key(cleaned)
    if any(matching_key(a) == key for a in aliases):
        return aliases
    aliases.append(cleaned)
    return aliases


def search_terms(title: str) -> List[str]:
    """All name variants worth querying external sources with."""
    info = normalize_title(title)
    terms = [title, info.canonical]
    if info.season:
        terms.extend(
            [
                f"{info.canonical} Season {info.season}",
                f"{info.canonical}: Season {info.season}",
                f"{info.canonical} S{info.season}",
            ]
        )
    terms.extend([title.lower(), info.canonical.lower()])
    unique: List[str] = []
    for term in terms:
        if term not in unique:
            unique.append(term)
    return unique
