"""Service Protocol Definitions.

This module defines protocols (interfaces) for the collaborators of the
reconciliation engine: catalog connectors, the match store and the optional
score trace hook. Depending on these protocols instead of concrete classes
keeps the dispatcher testable with plain mocks.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from core.models.release_models import (
        ArtistRef,
        CandidateRelease,
        MatchResult,
        Platform,
        TrackSnapshot,
    )
    from core.models.search_strategy import ResultType


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class CatalogClient(Protocol):
    """Protocol defining the interface of a target catalog connector.

    Connectors fetch and normalize; they never score.
    """

    platform: Platform

    async def search_by_query(
        self,
        text: str,
        result_type: ResultType,
        *,
        exact_name: bool = False,
        ranked: bool = False,
    ) -> list[CandidateRelease]:
        """Search albums and return them as candidates without track lists.

        Args:
            text: Cleaned query text
            result_type: Must be ``ResultType.ALBUM``
            exact_name: Keep only results whose name is contained in ``text``
            ranked: Ask the service for its default relevance ranking

        """
        ...

    async def search_tracks(self, text: str) -> list[TrackSnapshot]:
        """Search tracks; each snapshot carries its parent album id."""
        ...

    async def fetch_album(self, album_id: str) -> CandidateRelease:
        """Fetch one album together with its full track list."""
        ...

    async def fetch_album_tracks(self, album_id: str) -> list[TrackSnapshot]:
        """Fetch every track of an album (paginated)."""
        ...

    async def fetch_artist(self, artist_id: str) -> ArtistRef:
        """Fetch one artist."""
        ...

    async def search_album_upc(self, query: str, upc: str) -> CandidateRelease | None:
        """Page through album results and return the first with a matching barcode."""
        ...

    async def search_track_isrc(self, query: str, isrc: str) -> TrackSnapshot | None:
        """Page through track results and return the first with the given ISRC."""
        ...


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class MatchStoreProtocol(Protocol):
    """Keyed upsert/find interface over persisted match results.

    At most one result exists per ``(canonical_id, platform)``; concurrent
    writers for the same key resolve last-write-wins.
    """

    async def find(self, canonical_id: str, platform: Platform) -> MatchResult | None:
        """Return the stored result for the key, if any."""
        ...

    async def upsert(self, result: MatchResult) -> None:
        """Insert or replace the result stored under ``result.key``."""
        ...

    async def find_all(self, canonical_id: str) -> dict[Platform, MatchResult]:
        """Return every stored result of one canonical item, keyed by platform."""
        ...


class ScoreTraceHook(Protocol):
    """Observer notified of every scoring contribution."""

    def on_component(self, label: str, value: float) -> None:
        """Receive one labelled score contribution."""
        ...
