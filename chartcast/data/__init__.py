"""Signal access, title name handling and external providers."""

from .loader import DataLoadError, DataLoader
from .signal_store import InMemorySignalStore, SignalStore
from .title_name_resolver import MatchResult, TitleNameResolver

__all__ = [
    "DataLoadError",
    "DataLoader",
    "InMemorySignalStore",
    "MatchResult",
    "SignalStore",
    "TitleNameResolver",
]
