"""API Request Executor module.

Handles HTTP request execution for the catalog connectors: single-attempt
fetches with response classification, the rate-limit retry loop and
best-effort pagination.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import urllib.parse
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import HTTP_SERVER_ERROR, HTTP_TOO_MANY_REQUESTS, CatalogApiError, RateLimitError, RetryExhaustionError
from core.models.release_models import Platform

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from core.models.config_models import ConnectorsConfig
    from services.api.api_base import EnhancedRateLimiter
    from services.api.pagination import Pager


# Constants
WAIT_TIME_LOG_THRESHOLD = 0.1
HTTP_OK = 200
HTTP_FORBIDDEN = 403
HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_REQUEST_TIMEOUT = 408
HTTP_SERVICE_UNAVAILABLE = 503
API_RESPONSE_LOG_LIMIT = 500

# Deezer reports failures inside HTTP 200 bodies as {"error": {"code": N, ...}}
DEEZER_ERROR_STATUS: dict[int, int] = {
    4: HTTP_TOO_MANY_REQUESTS,
    200: HTTP_FORBIDDEN,
    300: HTTP_FORBIDDEN,  # expired token
    500: HTTP_BAD_REQUEST,
    501: HTTP_BAD_REQUEST,
    600: HTTP_BAD_REQUEST,
    700: HTTP_SERVICE_UNAVAILABLE,
    800: HTTP_NOT_FOUND,
}


def platform_label(platform: Platform) -> str:
    """Human-readable platform name used as error message prefix."""
    return platform.value.capitalize()


class ApiRequestExecutor:
    """Executes catalog HTTP requests with rate limiting and rate-limit retries.

    Handles all low-level HTTP communication including:
    - Rate limiting through the connector-owned limiter
    - Response parsing and classification (success, rate limited, terminal)
    - The bounded retry loop on rate-limit signals
    - Best-effort paginated collection
    """

    def __init__(
        self,
        *,
        connectors: ConnectorsConfig,
        rate_limiters: dict[Platform, EnhancedRateLimiter],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the API request executor.

        Args:
            connectors: Per-platform connector settings (page size, retry limit, backoff, timeout)
            rate_limiters: Mapping of platforms to their rate limiters
            console_logger: Logger for info/debug messages
            error_logger: Logger for errors/warnings
            sleep: Coroutine used for retry backoff
        """
        self.connectors = connectors
        self.rate_limiters = rate_limiters
        self.console_logger = console_logger
        self.error_logger = error_logger
        self._sleep = sleep

        # Session managed externally, set via set_session()
        self.session: aiohttp.ClientSession | None = None

        self.request_counts: dict[Platform, int] = dict.fromkeys(Platform, 0)
        self.api_call_durations: dict[Platform, list[float]] = {platform: [] for platform in Platform}

    def set_session(self, session: aiohttp.ClientSession | None) -> None:
        """Set the aiohttp session for making requests."""
        self.session = session

    @staticmethod
    def _build_log_url(url: str, params: dict[str, str] | None) -> str:
        """Build URL string for logging purposes."""
        return url + (f"?{urllib.parse.urlencode(params or {}, safe=':/')}" if params else "")

    def _ensure_session(self) -> aiohttp.ClientSession:
        """Return the session, raise if it is not available."""
        if self.session is None or self.session.closed:
            msg = "HTTP session not initialized or closed"
            raise RuntimeError(msg)
        return self.session

    async def fetch_once(
        self,
        platform: Platform,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Perform exactly one GET request and classify the outcome.

        Args:
            platform: Catalog the request goes to
            url: Request URL
            params: Query parameters
            headers: Headers merged over the session headers

        Returns:
            Parsed JSON body

        Raises:
            RateLimitError: HTTP 429 or a service code mapped to 429
            CatalogApiError: Any other failure (terminal)

        """
        session = self._ensure_session()
        limiter = self.rate_limiters.get(platform)
        if limiter is None:
            msg = f"No rate limiter configured for API: {platform}"
            raise CatalogApiError(msg)

        settings = self.connectors.for_platform(platform)
        request_headers = dict(session.headers) | (headers or {})
        request_timeout = aiohttp.ClientTimeout(total=settings.request_timeout_seconds)
        log_url = self._build_log_url(url, params)
        label = platform_label(platform)

        wait_time = await limiter.acquire()
        if wait_time > WAIT_TIME_LOG_THRESHOLD:
            self.console_logger.debug("[%s] Waited %.3fs for rate limiting", platform, wait_time)

        start_time = time.monotonic()
        self.request_counts[platform] += 1
        try:
            self.console_logger.debug("[%s] ** REQUEST ** %s", platform, log_url)
            async with session.get(url, params=params, headers=request_headers, timeout=request_timeout) as response:
                elapsed = time.monotonic() - start_time
                self.api_call_durations[platform].append(elapsed)
                return await self._process_response(response, platform, log_url, elapsed)
        except TimeoutError as e:
            self.api_call_durations[platform].append(time.monotonic() - start_time)
            msg = f"{label}: Timeout after {settings.request_timeout_seconds:g}s"
            raise CatalogApiError(msg, HTTP_REQUEST_TIMEOUT) from e
        except aiohttp.ClientError as e:
            self.api_call_durations[platform].append(time.monotonic() - start_time)
            msg = f"{label}: {e}"
            raise CatalogApiError(msg, HTTP_SERVER_ERROR) from e
        finally:
            limiter.release()

    async def _process_response(
        self,
        response: aiohttp.ClientResponse,
        platform: Platform,
        log_url: str,
        elapsed: float,
    ) -> dict[str, Any]:
        """Parse the response body and classify it."""
        status = response.status
        label = platform_label(platform)
        text = await self._read_response_text(response, platform)
        snippet = text[:API_RESPONSE_LOG_LIMIT]

        self.console_logger.debug(
            "[%s] ** RESPONSE ** %s - Status: %d (%.3fs)",
            platform,
            log_url,
            status,
            elapsed,
        )

        body = self._parse_json(text)

        if status == HTTP_TOO_MANY_REQUESTS or self._is_discogs_quota_exhausted(platform, response):
            retry_after = self._parse_retry_after(response.headers.get("Retry-After"))
            msg = f"{label}: {self._body_message(body) or 'Rate limit reached'}"
            raise RateLimitError(msg, retry_after=retry_after)

        if status != HTTP_OK:
            self.error_logger.warning(
                "[%s] API request failed with status %d. URL: %s. Snippet: %s",
                platform,
                status,
                log_url,
                snippet,
            )
            msg = f"{label}: {self._body_message(body) or snippet or 'Something went wrong...'}"
            raise CatalogApiError(msg, status)

        if not isinstance(body, dict):
            msg = f"{label}: Invalid json"
            raise CatalogApiError(msg, HTTP_SERVER_ERROR)

        if body.get("error"):
            raise self._embedded_error(platform, body["error"])

        return body

    async def _read_response_text(self, response: aiohttp.ClientResponse, platform: Platform) -> str:
        """Read the response body as text."""
        try:
            text: str = await response.text(encoding="utf-8", errors="ignore")
        except (aiohttp.ClientError, UnicodeDecodeError, RuntimeError) as e:
            msg = f"{platform_label(platform)}: Failed to read response body: {e}"
            raise CatalogApiError(msg, HTTP_SERVER_ERROR) from e
        return text

    @staticmethod
    def _parse_json(text: str) -> Any:
        try:
            return json.loads(text) if text else None
        except json.JSONDecodeError:
            return None

    @staticmethod
    def _body_message(body: Any) -> str | None:
        """Extract a service error message from an error body."""
        if not isinstance(body, dict):
            return None
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str):
            return body.get("error_description") or error
        message = body.get("message")
        return str(message) if message else None

    @staticmethod
    def _is_discogs_quota_exhausted(platform: Platform, response: aiohttp.ClientResponse) -> bool:
        return (
            platform is Platform.DISCOGS
            and response.status != HTTP_OK
            and response.headers.get("X-Discogs-Ratelimit-Remaining") == "0"
        )

    @staticmethod
    def _parse_retry_after(value: str | None) -> float | None:
        if not value:
            return None
        try:
            seconds = float(value)
        except ValueError:
            return None
        return seconds if seconds >= 0 else None

    @staticmethod
    def _embedded_error(platform: Platform, error: Any) -> CatalogApiError:
        """Map an error object embedded in an HTTP 200 body."""
        label = platform_label(platform)
        if not isinstance(error, dict):
            return CatalogApiError(f"{label}: {error}", HTTP_SERVER_ERROR)

        message = f"{label}: {error.get('message') or 'Something went wrong...'}"
        code = error.get("code", error.get("status"))
        try:
            code = int(code)
        except (TypeError, ValueError):
            return CatalogApiError(message, HTTP_SERVER_ERROR)

        status = DEEZER_ERROR_STATUS.get(code, code) if platform is Platform.DEEZER else code
        if status == HTTP_TOO_MANY_REQUESTS:
            return RateLimitError(message)
        return CatalogApiError(message, status)

    def _backoff_delay(self, error: RateLimitError, backoff: float) -> float:
        """Fixed backoff, or the server-provided wait capped at twice the backoff."""
        if error.retry_after is None:
            return backoff
        return min(error.retry_after, backoff * 2)

    async def fetch(
        self,
        platform: Platform,
        url: str,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Fetch one resource, retrying on rate-limit signals.

        Terminal errors propagate immediately. Rate-limit errors are retried
        after the connector backoff until ``retry_limit`` attempts were made.

        Raises:
            CatalogApiError: Terminal failure of an attempt
            RetryExhaustionError: Every attempt was rate limited

        """
        settings = self.connectors.for_platform(platform)
        backoff = settings.retry_backoff_seconds
        max_attempts = settings.retry_limit
        last_error: RateLimitError | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                return await self.fetch_once(platform, url, params=params, headers=headers)
            except RateLimitError as e:
                last_error = e
                if attempt >= max_attempts:
                    break
                delay = self._backoff_delay(e, backoff)
                self.console_logger.warning(
                    "[%s] Rate limited, retrying %d/%d in %.2fs",
                    platform,
                    attempt,
                    max_attempts - 1,
                    delay,
                )
                await self._sleep(delay)

        log_url = self._build_log_url(url, params)
        self.error_logger.error(
            "[%s] Request failed after %d attempts for URL: %s. Last exception: %s",
            platform,
            max_attempts,
            log_url,
            last_error,
        )
        msg = f"{platform_label(platform)}: rate limit retries exhausted after {max_attempts} attempts"
        raise RetryExhaustionError(msg, attempts=max_attempts, last_error=last_error)

    async def fetch_all(
        self,
        platform: Platform,
        url: str,
        pager: Pager,
        params: dict[str, str] | None = None,
        headers: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch every page of a collection, best-effort.

        Items are accumulated in page order. A failure on a later page returns
        the items collected so far; a failure before anything was collected
        propagates.

        Raises:
            CatalogApiError: First page failed
            RetryExhaustionError: First page stayed rate limited

        """
        page_size = self.connectors.for_platform(platform).page_size
        items: list[dict[str, Any]] = []
        offset = 0

        while True:
            page_params = {**(params or {}), **pager.page_params(offset, page_size)}
            try:
                body = await self.fetch(platform, url, params=page_params, headers=headers)
            except (CatalogApiError, RetryExhaustionError) as e:
                if not items:
                    raise
                self.error_logger.warning(
                    "[%s] Pagination interrupted at offset %d, returning %d collected items: %s",
                    platform,
                    offset,
                    len(items),
                    e,
                )
                return items

            page_items = pager.extract_items(body)
            items.extend(page_items)
            if not page_items or not pager.has_next(body):
                return items
            offset += page_size

    def get_stats(self) -> dict[Platform, dict[str, float]]:
        """Request count and average duration per platform."""
        stats: dict[Platform, dict[str, float]] = {}
        for platform, count in self.request_counts.items():
            durations = self.api_call_durations.get(platform, [])
            stats[platform] = {
                "requests": count,
                "avg_duration": sum(durations) / len(durations) if durations else 0.0,
            }
        return stats
