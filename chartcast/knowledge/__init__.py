"""Curated creator/cast knowledge and market thesis generation."""

from .base import KnowledgeBase, NotableCastMember, default_knowledge_base, popularity_star_power
from .thesis import MarketSignal, MarketThesis, generate_market_thesis

__all__ = [
    "KnowledgeBase",
    "MarketSignal",
    "MarketThesis",
    "NotableCastMember",
    "default_knowledge_base",
    "generate_market_thesis",
    "popularity_star_power",
]
