"""Catalog reconciliation orchestrator.

Coordination layer that wires the reconciliation components together:
- HTTP session management and connection pooling
- One rate limiter per catalog, shared by every request to that catalog
- Catalog clients, scoring, strategy engine, match store and dispatcher
- Batch reconciliation of Discogs releases and collection folders
- Cross-catalog UPC / ISRC lookups
"""

from __future__ import annotations

import asyncio
import ssl
from typing import TYPE_CHECKING, Any, TypeVar

import aiohttp
import certifi

from core.exceptions import HTTP_NO_CONTENT, CatalogApiError, RetryExhaustionError
from core.models.release_models import Platform
from services.api.api_base import EnhancedRateLimiter
from services.api.deezer import DeezerClient
from services.api.discogs import DiscogsClient
from services.api.match_dispatcher import MatchDispatcher, MatchOutcome, MatchState
from services.api.release_scoring import LoggingTraceHook, ReleaseScorer
from services.api.request_executor import ApiRequestExecutor, platform_label
from services.api.search_strategies import SearchStrategyEngine
from services.api.spotify import SpotifyClient
from services.persistence.match_store import create_match_store

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Sequence
    from types import TracebackType

    from core.models.config_models import AppConfig
    from core.models.protocols import CatalogClient, MatchStoreProtocol
    from core.models.release_models import CandidateRelease, CanonicalRelease, TrackSnapshot


T = TypeVar("T")


class CatalogOrchestrator:
    """Owns the HTTP session and every reconciliation collaborator.

    Use as an async context manager, or call ``initialize()`` and ``close()``.
    """

    def __init__(
        self,
        config: AppConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        store: MatchStoreProtocol | None = None,
        trace_scores: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the orchestrator with configuration, loggers and an optional store.

        Args:
            config: Validated application configuration
            console_logger: Logger for console output
            error_logger: Logger for errors and warnings
            store: Match store; built from ``config.store`` when omitted
            trace_scores: Log every scoring contribution at DEBUG level
            sleep: Coroutine used for retry backoff and item pacing

        """
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.session: aiohttp.ClientSession | None = None

        self.rate_limiters = {
            platform: EnhancedRateLimiter.from_config(config.connectors.for_platform(platform)) for platform in Platform
        }
        self.executor = ApiRequestExecutor(
            connectors=config.connectors,
            rate_limiters=self.rate_limiters,
            console_logger=console_logger,
            error_logger=error_logger,
            sleep=sleep,
        )

        self.discogs_client = DiscogsClient(
            executor=self.executor,
            settings=config.connectors.discogs,
            auth=config.auth,
            console_logger=console_logger,
            error_logger=error_logger,
        )
        self.clients: dict[Platform, CatalogClient] = self._create_target_clients()

        trace_hook = LoggingTraceHook(console_logger) if trace_scores else None
        self.scorer = ReleaseScorer(config.scoring, config.matching.various_artists_names, trace_hook)
        self.engine = SearchStrategyEngine(
            matching=config.matching,
            console_logger=console_logger,
            error_logger=error_logger,
        )
        self.store = store if store is not None else create_match_store(config.store, error_logger)
        self.dispatcher = MatchDispatcher(
            clients=self.clients,
            engine=self.engine,
            scorer=self.scorer,
            store=self.store,
            matching=config.matching,
            console_logger=console_logger,
            error_logger=error_logger,
            sleep=sleep,
        )

    def _create_target_clients(self) -> dict[Platform, CatalogClient]:
        """Create target catalog clients; Spotify needs a bearer token."""
        connectors = self.config.connectors
        auth = self.config.auth
        clients: dict[Platform, CatalogClient] = {
            Platform.DEEZER: DeezerClient(
                executor=self.executor,
                settings=connectors.deezer,
                console_logger=self.console_logger,
                error_logger=self.error_logger,
                access_token=auth.deezer_access_token or None,
            ),
        }
        if auth.spotify_token:
            clients[Platform.SPOTIFY] = SpotifyClient(
                executor=self.executor,
                settings=connectors.spotify,
                console_logger=self.console_logger,
                error_logger=self.error_logger,
                token=auth.spotify_token,
            )
        else:
            self.console_logger.warning("Spotify token not configured; Spotify is disabled")
        return clients

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    def _create_client_session(self) -> aiohttp.ClientSession:
        """Create a new aiohttp ClientSession with proper SSL configuration."""
        timeout = aiohttp.ClientTimeout(total=45, connect=15, sock_connect=15, sock_read=30)

        # certifi bundle keeps certificate validation portable
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2

        connector = aiohttp.TCPConnector(limit_per_host=10, limit=50, ttl_dns_cache=300, ssl=ssl_context)
        headers: dict[str, str] = {
            "User-Agent": self.config.auth.user_agent,
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
        }
        return aiohttp.ClientSession(timeout=timeout, connector=connector, headers=headers)

    async def initialize(self, force: bool = False) -> None:
        """Open the HTTP session (again when ``force`` is set)."""
        if self.session is not None and not self.session.closed and not force:
            return
        if force and self.session is not None and not self.session.closed:
            await self.session.close()

        self.session = self._create_client_session()
        self.executor.set_session(self.session)
        self.console_logger.info(
            "Catalog session initialized with User-Agent: %s%s",
            self.config.auth.user_agent,
            " (forced)" if force else "",
        )

    def _log_statistics(self) -> None:
        self.console_logger.info("--- API Call Statistics ---")
        total_calls = 0
        for platform, stats in self.executor.get_stats().items():
            limiter_stats = self.rate_limiters[platform].get_stats()
            total_calls += int(stats["requests"])
            self.console_logger.info(
                "API: %-12s | Requests: %-5d | Avg Wait: %.3fs | Avg Duration: %.3fs",
                platform_label(platform),
                stats["requests"],
                limiter_stats["avg_wait_time"],
                stats["avg_duration"],
            )
        if total_calls == 0:
            self.console_logger.info("No API calls were made during this session.")
        self.console_logger.info("---------------------------")

    async def close(self) -> None:
        """Close the HTTP session and log API usage statistics."""
        if self.session is None or self.session.closed:
            return
        self._log_statistics()
        await self.session.close()
        self.executor.set_session(None)
        self.console_logger.info("Catalog session closed")

    async def __aenter__(self) -> CatalogOrchestrator:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    async def _fully_matched(self, release_id: str, platforms: Sequence[Platform]) -> bool:
        existing = await self.store.find_all(release_id)
        return all(platform in existing for platform in platforms)

    async def reconcile_releases(
        self,
        release_ids: Sequence[str],
        platforms: Sequence[Platform] | None = None,
    ) -> list[MatchOutcome]:
        """Fetch Discogs releases and reconcile them on the target platforms.

        Releases already matched on every requested platform are not fetched
        again. Releases that cannot be fetched are reported as ``FATAL``
        outcomes on every platform.
        """
        targets = list(platforms or self.config.matching.target_platforms)
        unique_ids = list(dict.fromkeys(str(release_id) for release_id in release_ids))

        outcomes: list[MatchOutcome] = []
        pending: list[str] = []
        for release_id in unique_ids:
            if await self._fully_matched(release_id, targets):
                self.console_logger.debug("Release %s already matched on %s", release_id, ", ".join(targets))
                outcomes.extend(
                    MatchOutcome(release_id, platform, MatchState.MATCHED, already_matched=True) for platform in targets
                )
            else:
                pending.append(release_id)

        results = await asyncio.gather(
            *(self.discogs_client.fetch_release(release_id) for release_id in pending),
            return_exceptions=True,
        )

        canonicals: list[CanonicalRelease] = []
        for release_id, result in zip(pending, results, strict=True):
            if isinstance(result, CatalogApiError | RetryExhaustionError):
                self.error_logger.error("[%s] Cannot fetch release %s: %s", Platform.DISCOGS, release_id, result)
                outcomes.extend(
                    MatchOutcome(release_id, platform, MatchState.FATAL, error=str(result)) for platform in targets
                )
            elif isinstance(result, BaseException):
                raise result
            else:
                canonicals.append(result)

        if canonicals:
            outcomes.extend(await self.dispatcher.dispatch(canonicals, targets))
        return outcomes

    async def reconcile_collection(
        self,
        username: str,
        folder_id: int = 0,
        platforms: Sequence[Platform] | None = None,
    ) -> list[MatchOutcome]:
        """Reconcile every release of a Discogs collection folder."""
        items = await self.discogs_client.fetch_folder_items(username, folder_id)
        return await self.reconcile_releases([item.id for item in items], platforms)

    # ------------------------------------------------------------------
    # Cross-catalog lookups
    # ------------------------------------------------------------------
    async def _lookup_everywhere(
        self,
        source: Platform,
        lookup: Callable[[CatalogClient], Awaitable[T | None]],
        label: str,
    ) -> dict[Platform, T]:
        platforms = [platform for platform in self.clients if platform is not source]
        results = await asyncio.gather(*(lookup(self.clients[p]) for p in platforms), return_exceptions=True)

        found: dict[Platform, T] = {}
        last_error: Exception | None = None
        for platform, result in zip(platforms, results, strict=True):
            if isinstance(result, CatalogApiError | RetryExhaustionError):
                self.error_logger.warning("[%s] %s lookup failed: %s", platform, label, result)
                last_error = result
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                found[platform] = result

        if found:
            return found
        if last_error is not None:
            raise last_error
        raise CatalogApiError("No content", HTTP_NO_CONTENT)

    async def cross_album_upc(self, source: Platform, query: str, upc: str) -> dict[Platform, CandidateRelease]:
        """Find the album with ``upc`` on every platform except ``source``.

        Raises:
            CatalogApiError: No platform had a match (status 204), or the last lookup error

        """
        return await self._lookup_everywhere(source, lambda client: client.search_album_upc(query, upc), "UPC")

    async def cross_track_isrc(self, source: Platform, query: str, isrc: str) -> dict[Platform, TrackSnapshot]:
        """Find the track with ``isrc`` on every platform except ``source``.

        Raises:
            CatalogApiError: No platform had a match (status 204), or the last lookup error

        """
        return await self._lookup_everywhere(source, lambda client: client.search_track_isrc(query, isrc), "ISRC")

    def get_stats(self) -> dict[str, Any]:
        """Request statistics per platform."""
        return {str(platform): stats for platform, stats in self.executor.get_stats().items()}
