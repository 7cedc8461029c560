"""Catalog API clients and the reconciliation pipeline.

This package contains the clients for the supported catalogs and the
components that reconcile releases between them:
- Discogs: source catalog of canonical releases
- Deezer / Spotify: target catalogs searched for equivalents
- Scoring: weighted album and track-set similarity
- Search strategies and match dispatcher: candidate search and matching
- Orchestrator: main coordination layer
"""

from .api_base import BaseCatalogClient, EnhancedRateLimiter
from .deezer import DeezerClient
from .discogs import DiscogsClient
from .match_dispatcher import BatchReport, MatchDispatcher, MatchOutcome, MatchState
from .orchestrator import CatalogOrchestrator
from .release_scoring import LoggingTraceHook, ReleaseScorer, is_same_upc
from .request_executor import ApiRequestExecutor
from .search_strategies import SearchStrategyEngine
from .spotify import SpotifyClient

__all__ = [
    "ApiRequestExecutor",
    "BaseCatalogClient",
    "BatchReport",
    "CatalogOrchestrator",
    "DeezerClient",
    "DiscogsClient",
    "EnhancedRateLimiter",
    "LoggingTraceHook",
    "MatchDispatcher",
    "MatchOutcome",
    "MatchState",
    "ReleaseScorer",
    "SearchStrategyEngine",
    "SpotifyClient",
    "is_same_upc",
]
