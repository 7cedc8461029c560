"""Data models and protocols."""

from core.models.normalization import clean_query_text, normalize_for_matching
from core.models.protocols import CatalogClient, MatchStoreProtocol, ScoreTraceHook
from core.models.release_models import (
    AlbumSnapshot,
    ArtistRef,
    CandidateRelease,
    CanonicalRelease,
    MatchResult,
    Platform,
    TrackSnapshot,
)
from core.models.search_strategy import ResultType, SearchQuery, SearchStrategy

__all__ = [
    "AlbumSnapshot",
    "ArtistRef",
    "CandidateRelease",
    "CanonicalRelease",
    "CatalogClient",
    "MatchResult",
    "MatchStoreProtocol",
    "Platform",
    "ResultType",
    "ScoreTraceHook",
    "SearchQuery",
    "SearchStrategy",
    "TrackSnapshot",
    "clean_query_text",
    "normalize_for_matching",
]
