"""Server-side helpers: orchestration, lookups, caches and HTTP routes."""

from .cache_store import ResultCache, SQLiteResultCache, make_fingerprint
from .lookup_sources import LookupAggregator, build_default_sources
from .processing import TrackAnalyzer

__all__ = [
    "LookupAggregator",
    "ResultCache",
    "SQLiteResultCache",
    "TrackAnalyzer",
    "build_default_sources",
    "make_fingerprint",
]
