"""Base classes and utilities for catalog connectors.

This module provides functionality shared by every connector:
- Rate limiting with a moving window, one limiter per connector instance
- A base client binding the shared request executor to one platform
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from core.exceptions import CatalogApiError, RetryExhaustionError
from core.models.normalization import normalize_for_matching

if TYPE_CHECKING:
    from core.models.config_models import ConnectorConfig
    from core.models.release_models import CandidateRelease, Platform, TrackSnapshot
    from services.api.pagination import Pager
    from services.api.request_executor import ApiRequestExecutor


class EnhancedRateLimiter:
    """Rate limiter using a moving window approach for API calls.

    Tracks call timestamps within a sliding window and delays new calls once
    the window is full. Each connector owns its own instance, so there is no
    process-wide pacing state shared between catalogs.

    Attributes:
        requests_per_window: Maximum number of requests allowed in the time window
        window_seconds: Size of the time window in seconds
        call_times: Timestamps of recent API calls
        lock: Asyncio lock serializing acquisitions

    """

    def __init__(self, requests_per_window: int, window_seconds: float) -> None:
        """Initialize the rate limiter.

        Args:
            requests_per_window: Maximum requests allowed in the time window
            window_seconds: Duration of the time window in seconds

        Raises:
            ValueError: If parameters are not positive numbers

        """
        if requests_per_window <= 0:
            msg = "requests_per_window must be a positive integer"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be a positive number"
            raise ValueError(msg)

        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.call_times: list[float] = []
        self.lock = asyncio.Lock()
        self.total_requests = 0
        self.total_wait_time = 0.0

    @classmethod
    def from_config(cls, connector: ConnectorConfig) -> EnhancedRateLimiter:
        """Build a limiter from connector settings."""
        return cls(connector.requests_per_window, connector.window_seconds)

    async def acquire(self) -> float:
        """Acquire permission to make an API call, waiting if necessary.

        Returns:
            float: The amount of time (in seconds) that was spent waiting

        """
        async with self.lock:
            wait_time = await self._wait_if_needed()
            self.call_times.append(time.monotonic())
            self.total_requests += 1
            self.total_wait_time += wait_time
            return wait_time

    def release(self) -> None:
        """Release method for symmetry with acquire (no-op for a moving window)."""

    def _prune(self, now: float) -> None:
        cutoff = now - self.window_seconds
        self.call_times = [t for t in self.call_times if t > cutoff]

    async def _wait_if_needed(self) -> float:
        """Wait if necessary to comply with rate limits.

        Returns:
            float: Time waited in seconds

        """
        now = time.monotonic()
        self._prune(now)

        if len(self.call_times) < self.requests_per_window:
            return 0.0

        wait_time = max(0.0, self.call_times[0] + self.window_seconds - now)
        if wait_time > 0:
            # Small buffer so the oldest call is outside the window on wake-up
            wait_time += 0.01
            await asyncio.sleep(wait_time)
            self._prune(time.monotonic())
        return wait_time

    def get_stats(self) -> dict[str, Any]:
        """Get current rate limiter statistics."""
        now = time.monotonic()
        current_calls = [t for t in self.call_times if t > now - self.window_seconds]

        return {
            "requests_per_window": self.requests_per_window,
            "window_seconds": self.window_seconds,
            "current_calls_in_window": len(current_calls),
            "available_capacity": max(0, self.requests_per_window - len(current_calls)),
            "window_utilization": len(current_calls) / self.requests_per_window,
            "total_requests": self.total_requests,
            "avg_wait_time": self.total_wait_time / max(1, self.total_requests),
        }


class BaseCatalogClient:
    """Base class for catalog connectors.

    Binds the shared request executor to one platform and its connector
    settings, so subclasses only build paths and translate JSON.
    """

    platform: Platform

    def __init__(
        self,
        *,
        executor: ApiRequestExecutor,
        settings: ConnectorConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        """Initialize base catalog client.

        Args:
            executor: Shared request executor
            settings: Connector settings of this platform
            console_logger: Logger for console output
            error_logger: Logger for error messages

        """
        self.executor = executor
        self.settings = settings
        self.console_logger = console_logger
        self.error_logger = error_logger

    @property
    def page_size(self) -> int:
        """Fixed page size of this connector."""
        return self.settings.page_size

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    @staticmethod
    def _filter_exact_name(candidates: list[CandidateRelease], text: str) -> list[CandidateRelease]:
        """Keep candidates whose name is contained, case-insensitively, in the query text."""
        query = normalize_for_matching(text)
        return [c for c in candidates if (name := normalize_for_matching(c.name)) and name in query]

    def _auth_headers(self) -> dict[str, str]:
        """Per-request authentication headers (none by default)."""
        return {}

    def _auth_params(self) -> dict[str, str]:
        """Per-request authentication query parameters (none by default)."""
        return {}

    async def request(self, path: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET one resource with rate limiting and rate-limit retries."""
        merged = {**(params or {}), **self._auth_params()}
        return await self.executor.fetch(
            self.platform,
            self._url(path),
            params=merged or None,
            headers=self._auth_headers(),
        )

    async def request_all(self, path: str, pager: Pager, params: dict[str, str] | None = None) -> list[dict[str, Any]]:
        """GET every page of a collection, best-effort."""
        merged = {**(params or {}), **self._auth_params()}
        return await self.executor.fetch_all(
            self.platform,
            self._url(path),
            pager,
            params=merged,
            headers=self._auth_headers(),
        )

    async def fetch_album(self, album_id: str) -> CandidateRelease:
        """Fetch album metadata and its full track list."""
        raise NotImplementedError

    async def fetch_album_tracks(self, album_id: str) -> list[TrackSnapshot]:
        """Fetch every track of an album."""
        raise NotImplementedError

    async def _album_with_tracks(self, path: str, album_id: str) -> tuple[dict[str, Any], list[TrackSnapshot]]:
        """Request the album at ``path`` and its tracks concurrently.

        When either request fails the other one is cancelled and the first
        failure is raised on its own, not wrapped in an ``ExceptionGroup``.
        """
        try:
            async with asyncio.TaskGroup() as task_group:
                album_task = task_group.create_task(self.request(path))
                tracks_task = task_group.create_task(self.fetch_album_tracks(album_id))
        except ExceptionGroup as group:
            raise group.exceptions[0] from None
        return album_task.result(), tracks_task.result()

    async def _hydrate(self, candidates: list[CandidateRelease]) -> list[CandidateRelease]:
        """Replace search hits by their full albums.

        Search results lack barcodes, release dates and track lists. A hit
        whose album cannot be fetched is kept as returned by the search.
        """
        albums = await asyncio.gather(*(self.fetch_album(c.id) for c in candidates), return_exceptions=True)
        hydrated: list[CandidateRelease] = []
        for candidate, album in zip(candidates, albums, strict=True):
            if isinstance(album, (CatalogApiError, RetryExhaustionError)):
                self.error_logger.warning(
                    "[%s] Album %s could not be fetched, keeping search data: %s", self.platform, candidate.id, album
                )
                hydrated.append(candidate)
            elif isinstance(album, BaseException):
                raise album
            else:
                hydrated.append(album)
        return hydrated
