"""Mock implementations of protocol interfaces for testing.

These mocks implement the protocols defined in core.models.protocols.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.models.release_models import ArtistRef, CandidateRelease, Platform, TrackSnapshot
from core.models.search_strategy import ResultType

if TYPE_CHECKING:
    from collections.abc import Iterable


class FakeCatalogClient:
    """In-memory catalog implementing ``CatalogClient``.

    Album searches return the candidates registered for the exact query text
    (or ``default_albums``); errors registered for a query are raised instead.
    """

    def __init__(
        self,
        platform: Platform = Platform.DEEZER,
        *,
        default_albums: Iterable[CandidateRelease] = (),
        delay: float = 0.0,
    ) -> None:
        self.platform = platform
        self.default_albums = list(default_albums)
        self.albums_by_query: dict[str, list[CandidateRelease]] = {}
        self.tracks_by_query: dict[str, list[TrackSnapshot]] = {}
        self.albums_by_id: dict[str, CandidateRelease] = {}
        self.errors_by_query: dict[str, Exception] = {}
        self.upc_results: dict[str, CandidateRelease] = {}
        self.isrc_results: dict[str, TrackSnapshot] = {}
        self.lookup_error: Exception | None = None
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    @property
    def fetch_count(self) -> int:
        return len(self.calls)

    async def _record(self, operation: str, argument: str) -> None:
        self.calls.append((operation, argument))
        if self.delay:
            await asyncio.sleep(self.delay)
        if argument in self.errors_by_query:
            raise self.errors_by_query[argument]

    async def search_by_query(
        self,
        text: str,
        result_type: ResultType = ResultType.ALBUM,
        *,
        exact_name: bool = False,
        ranked: bool = False,
    ) -> list[CandidateRelease]:
        await self._record("search_album", text)
        candidates = self.albums_by_query.get(text, self.default_albums)
        if exact_name:
            return [c for c in candidates if c.name.lower() in text.lower()]
        return list(candidates)

    async def search_tracks(self, text: str) -> list[TrackSnapshot]:
        await self._record("search_track", text)
        return list(self.tracks_by_query.get(text, []))

    async def fetch_album(self, album_id: str) -> CandidateRelease:
        await self._record("fetch_album", album_id)
        return self.albums_by_id[album_id]

    async def fetch_album_tracks(self, album_id: str) -> list[TrackSnapshot]:
        await self._record("fetch_album_tracks", album_id)
        return list(self.albums_by_id[album_id].tracks)

    async def fetch_artist(self, artist_id: str) -> ArtistRef:
        await self._record("fetch_artist", artist_id)
        return ArtistRef(id=artist_id, name=f"Artist {artist_id}")

    async def search_album_upc(self, query: str, upc: str) -> CandidateRelease | None:
        await self._record("search_album_upc", query)
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.upc_results.get(upc)

    async def search_track_isrc(self, query: str, isrc: str) -> TrackSnapshot | None:
        await self._record("search_track_isrc", query)
        if self.lookup_error is not None:
            raise self.lookup_error
        return self.isrc_results.get(isrc)
