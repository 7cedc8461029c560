"""Search strategy engine.

Turns a canonical release into the queries of each search strategy and runs
them against one target catalog. Sub-queries of one strategy run
concurrently; strategies themselves are sequenced by the match dispatcher.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, TypeVar

from core.exceptions import CatalogApiError, RetryExhaustionError
from core.models.normalization import clean_query_text
from core.models.search_strategy import ResultType, SearchQuery, SearchStrategy

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Iterable

    from core.models.config_models import MatchingConfig
    from core.models.protocols import CatalogClient
    from core.models.release_models import CandidateRelease, CanonicalRelease, TrackSnapshot

T = TypeVar("T")

# Failures of a single sub-query that do not abort the strategy
RECOVERABLE_ERRORS = (CatalogApiError, RetryExhaustionError)


def _join(*parts: str) -> str:
    return " ".join(part for part in parts if part)


def _dedupe_by_id(candidates: Iterable[CandidateRelease]) -> list[CandidateRelease]:
    seen: dict[str, CandidateRelease] = {}
    for candidate in candidates:
        seen.setdefault(candidate.id, candidate)
    return list(seen.values())


class SearchStrategyEngine:
    """Produces match candidates for one (canonical release, target catalog) pair."""

    def __init__(
        self,
        *,
        matching: MatchingConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        """Initialize the engine.

        Args:
            matching: Strategy count and track sample sizes
            console_logger: Logger for console output
            error_logger: Logger for skipped sub-query failures

        """
        self.matching = matching
        self.console_logger = console_logger
        self.error_logger = error_logger

    def strategies(self) -> list[SearchStrategy]:
        """Strategies to run, in order."""
        return SearchStrategy.ordered(self.matching.strategy_count)

    @staticmethod
    def _album_artist(canonical: CanonicalRelease) -> str:
        return clean_query_text(canonical.artists[0].name) if canonical.artists else ""

    def _track_query(self, track: TrackSnapshot, canonical: CanonicalRelease) -> str:
        artist = clean_query_text(track.artists[0].name) if track.artists else self._album_artist(canonical)
        return _join(artist, clean_query_text(track.name))

    def queries(self, strategy: SearchStrategy, canonical: CanonicalRelease) -> list[SearchQuery]:
        """Build the queries of ``strategy`` for ``canonical``.

        Empty query texts are dropped; duplicate texts are issued once.
        """
        album = clean_query_text(canonical.name)
        artist = self._album_artist(canonical)

        match strategy:
            case SearchStrategy.EXACT:
                queries = [SearchQuery(_join(artist, album))]
            case SearchStrategy.PER_TRACK:
                sample = canonical.tracks[: self.matching.album_search_track_sample]
                queries = [SearchQuery(self._track_query(track, canonical)) for track in sample if track.name]
            case SearchStrategy.ARTIST:
                queries = [SearchQuery(artist)]
            case SearchStrategy.TITLE_ONLY:
                queries = [SearchQuery(album, exact_name=True)]
            case SearchStrategy.BROAD_TITLE:
                queries = [SearchQuery(album, ranked=True)]
            case SearchStrategy.TRACK_DRIVEN:
                sample = canonical.tracks[: self.matching.track_search_sample]
                queries = [
                    SearchQuery(self._track_query(track, canonical), result_type=ResultType.TRACK)
                    for track in sample
                    if track.name
                ]

        return list(dict.fromkeys(query for query in queries if query.text))

    async def candidates(
        self,
        strategy: SearchStrategy,
        canonical: CanonicalRelease,
        client: CatalogClient,
    ) -> list[CandidateRelease]:
        """Run ``strategy`` against ``client`` and return its candidates.

        Raises:
            CatalogApiError: Every sub-query of the strategy failed
            RetryExhaustionError: Every sub-query of the strategy stayed rate limited

        """
        queries = self.queries(strategy, canonical)
        if not queries:
            self.console_logger.debug("[%s] %s: no query for release %s", client.platform, strategy.name, canonical.id)
            return []

        if strategy is SearchStrategy.TRACK_DRIVEN:
            return await self._track_driven(queries, client)

        results = await self._gather_tolerant(
            (client.search_by_query(q.text, q.result_type, exact_name=q.exact_name, ranked=q.ranked) for q in queries),
            f"[{client.platform}] {strategy.name}",
        )
        candidates = _dedupe_by_id(candidate for result in results for candidate in result)
        self.console_logger.debug(
            "[%s] %s: %d queries, %d candidates",
            client.platform,
            strategy.name,
            len(queries),
            len(candidates),
        )
        return candidates

    async def _track_driven(self, queries: list[SearchQuery], client: CatalogClient) -> list[CandidateRelease]:
        """Search tracks, then fetch every distinct parent album with its track list."""
        label = f"[{client.platform}] {SearchStrategy.TRACK_DRIVEN.name}"
        track_results = await self._gather_tolerant((client.search_tracks(q.text) for q in queries), label)

        album_ids = list(dict.fromkeys(t.album_id for tracks in track_results for t in tracks if t.album_id))
        if not album_ids:
            return []

        albums = await self._gather_tolerant((client.fetch_album(album_id) for album_id in album_ids), label)
        self.console_logger.debug("%s: %d parent albums fetched", label, len(albums))
        return _dedupe_by_id(albums)

    async def _gather_tolerant(self, calls: Iterable[Awaitable[T]], label: str) -> list[T]:
        """Await all calls concurrently, skipping recoverable failures unless all of them fail."""
        outcomes = await asyncio.gather(*calls, return_exceptions=True)
        results: list[T] = []
        errors: list[BaseException] = []
        for outcome in outcomes:
            if isinstance(outcome, RECOVERABLE_ERRORS):
                self.error_logger.warning("%s: sub-query failed, skipping: %s", label, outcome)
                errors.append(outcome)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                results.append(outcome)

        if errors and not results:
            raise errors[-1]
        return results
