"""Tests for the search strategy engine."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from core.exceptions import CatalogApiError, RetryExhaustionError
from core.models.config_models import MatchingConfig
from core.models.search_strategy import ResultType, SearchQuery, SearchStrategy
from services.api.search_strategies import SearchStrategyEngine

from tests.factories import candidate_release, canonical_release, track
from tests.mocks.protocol_mocks import FakeCatalogClient


@pytest.fixture
def engine() -> SearchStrategyEngine:
    return SearchStrategyEngine(
        matching=MatchingConfig(album_search_track_sample=2, track_search_sample=2),
        console_logger=MagicMock(),
        error_logger=MagicMock(),
    )


@pytest.fixture
def discovery():
    return canonical_release(
        "2473",
        "Discovery (Remastered)",
        artists=("Daft Punk",),
        tracks=(
            track("One More Time", "5:20"),
            track("Aerodynamic", "3:27", ("Daft Punk", "Romanthony")),
            track("Digital Love", "4:58"),
        ),
    )


class TestQueries:
    """Tests for per-strategy query construction."""

    def test_exact(self, engine: SearchStrategyEngine, discovery) -> None:
        assert engine.queries(SearchStrategy.EXACT, discovery) == [SearchQuery("Daft Punk Discovery")]

    def test_per_track_uses_track_sample(self, engine: SearchStrategyEngine, discovery) -> None:
        queries = engine.queries(SearchStrategy.PER_TRACK, discovery)

        assert [q.text for q in queries] == ["Daft Punk One More Time", "Daft Punk Aerodynamic"]
        assert all(q.result_type is ResultType.ALBUM for q in queries)

    def test_artist(self, engine: SearchStrategyEngine, discovery) -> None:
        assert engine.queries(SearchStrategy.ARTIST, discovery) == [SearchQuery("Daft Punk")]

    def test_title_only_filters_exact_names(self, engine: SearchStrategyEngine, discovery) -> None:
        assert engine.queries(SearchStrategy.TITLE_ONLY, discovery) == [SearchQuery("Discovery", exact_name=True)]

    def test_broad_title_is_ranked(self, engine: SearchStrategyEngine, discovery) -> None:
        assert engine.queries(SearchStrategy.BROAD_TITLE, discovery) == [SearchQuery("Discovery", ranked=True)]

    def test_track_driven_searches_tracks(self, engine: SearchStrategyEngine, discovery) -> None:
        queries = engine.queries(SearchStrategy.TRACK_DRIVEN, discovery)

        assert [q.result_type for q in queries] == [ResultType.TRACK, ResultType.TRACK]

    def test_empty_queries_dropped(self, engine: SearchStrategyEngine) -> None:
        """A release without artists or tracks yields no artist or track queries."""
        release = canonical_release(name="Discovery", artists=())

        assert engine.queries(SearchStrategy.ARTIST, release) == []
        assert engine.queries(SearchStrategy.PER_TRACK, release) == []

    def test_duplicate_queries_issued_once(self, engine: SearchStrategyEngine) -> None:
        release = canonical_release(name="Intro", artists=("A",), tracks=(track("Intro"), track("Intro")))

        assert len(engine.queries(SearchStrategy.PER_TRACK, release)) == 1

    def test_strategy_count_truncates(self) -> None:
        engine = SearchStrategyEngine(matching=MatchingConfig(strategy_count=2), console_logger=MagicMock(), error_logger=MagicMock())

        assert engine.strategies() == [SearchStrategy.EXACT, SearchStrategy.PER_TRACK]


class TestCandidates:
    """Tests for running strategies against a catalog."""

    @pytest.mark.asyncio
    async def test_candidates_deduplicated_by_id(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()
        shared = candidate_release("1", "Discovery")
        client.albums_by_query["Daft Punk One More Time"] = [shared]
        client.albums_by_query["Daft Punk Aerodynamic"] = [shared, candidate_release("2", "Alive 1997")]

        candidates = await engine.candidates(SearchStrategy.PER_TRACK, discovery, client)

        assert [c.id for c in candidates] == ["1", "2"]

    @pytest.mark.asyncio
    async def test_failed_sub_query_is_skipped(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()
        client.albums_by_query["Daft Punk Aerodynamic"] = [candidate_release("2", "Discovery")]
        client.errors_by_query["Daft Punk One More Time"] = CatalogApiError("Deezer: boom", 500)

        candidates = await engine.candidates(SearchStrategy.PER_TRACK, discovery, client)

        assert [c.id for c in candidates] == ["2"]
        engine.error_logger.warning.assert_called_once()  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_all_sub_queries_failing_raises(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()
        client.errors_by_query["Daft Punk One More Time"] = CatalogApiError("Deezer: boom", 500)
        client.errors_by_query["Daft Punk Aerodynamic"] = RetryExhaustionError("Deezer: rate limited", attempts=10)

        with pytest.raises(RetryExhaustionError):
            await engine.candidates(SearchStrategy.PER_TRACK, discovery, client)

    @pytest.mark.asyncio
    async def test_unexpected_errors_propagate(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()
        client.errors_by_query["Daft Punk Discovery"] = KeyError("boom")

        with pytest.raises(KeyError):
            await engine.candidates(SearchStrategy.EXACT, discovery, client)

    @pytest.mark.asyncio
    async def test_no_query_no_call(self, engine: SearchStrategyEngine) -> None:
        client = FakeCatalogClient()

        assert await engine.candidates(SearchStrategy.ARTIST, canonical_release(artists=()), client) == []
        assert client.fetch_count == 0

    @pytest.mark.asyncio
    async def test_track_driven_fetches_distinct_parent_albums(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()
        client.tracks_by_query["Daft Punk One More Time"] = [track("One More Time", album_id="302127")]
        client.tracks_by_query["Daft Punk Aerodynamic"] = [
            track("Aerodynamic", album_id="302127"),
            track("Aerodynamic (Live)", album_id="999"),
        ]
        client.albums_by_id["302127"] = candidate_release("302127", "Discovery", tracks=(track("One More Time"),))
        client.albums_by_id["999"] = candidate_release("999", "Alive 2007")

        candidates = await engine.candidates(SearchStrategy.TRACK_DRIVEN, discovery, client)

        assert [c.id for c in candidates] == ["302127", "999"]
        fetched = [argument for operation, argument in client.calls if operation == "fetch_album"]
        assert fetched == ["302127", "999"]

    @pytest.mark.asyncio
    async def test_track_driven_without_parent_albums(self, engine: SearchStrategyEngine, discovery) -> None:
        client = FakeCatalogClient()

        assert await engine.candidates(SearchStrategy.TRACK_DRIVEN, discovery, client) == []
        assert all(operation == "search_track" for operation, _ in client.calls)
