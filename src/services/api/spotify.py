"""Spotify Web API client.

Every request carries the bearer token issued by the (external) auth layer.
Spotify search pages nest their items under the searched type
(``{"albums": {"items": [...]}}``); the pager handles that shape.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypedDict

from core.exceptions import CatalogApiError, RetryExhaustionError
from core.models.normalization import remove_parentheses, seconds_to_duration
from core.models.release_models import AlbumSnapshot, ArtistRef, CandidateRelease, Platform, TrackSnapshot
from core.models.search_strategy import ResultType
from services.api.api_base import BaseCatalogClient
from services.api.pagination import OffsetPager
from services.api.release_scoring import is_same_upc

if TYPE_CHECKING:
    from core.models.config_models import ConnectorConfig
    from services.api.request_executor import ApiRequestExecutor

SPOTIFY_WEB_URL = "https://open.spotify.com"


# Spotify Type Definitions
class SpotifyArtist(TypedDict, total=False):
    """Simplified artist object."""

    id: str
    name: str
    external_urls: dict[str, str]


class SpotifyAlbum(TypedDict, total=False):
    """Album object from /v1/albums/{id} or search results."""

    id: str
    name: str
    release_date: str
    total_tracks: int
    external_ids: dict[str, str]
    external_urls: dict[str, str]
    artists: list[SpotifyArtist]


class SpotifyTrack(TypedDict, total=False):
    """Track object from /v1/albums/{id}/tracks, /v1/tracks/{id} or search results."""

    id: str
    name: str
    duration_ms: int
    external_ids: dict[str, str]
    external_urls: dict[str, str]
    artists: list[SpotifyArtist]
    album: SpotifyAlbum


def _spotify_link(data: dict[str, Any], kind: str) -> str | None:
    link = (data.get("external_urls") or {}).get("spotify")
    if link:
        return str(link)
    return f"{SPOTIFY_WEB_URL}/{kind}/{data['id']}" if data.get("id") else None


class SpotifyClient(BaseCatalogClient):
    """Spotify catalog connector."""

    platform = Platform.SPOTIFY

    def __init__(
        self,
        *,
        executor: ApiRequestExecutor,
        settings: ConnectorConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        token: str,
    ) -> None:
        """Initialize Spotify client.

        Args:
            executor: Shared request executor
            settings: Spotify connector settings
            console_logger: Logger for console output
            error_logger: Logger for error messages
            token: Bearer access token

        """
        super().__init__(
            executor=executor,
            settings=settings,
            console_logger=console_logger,
            error_logger=error_logger,
        )
        self.token = token

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------
    @staticmethod
    def _artist(data: SpotifyArtist | dict[str, Any]) -> ArtistRef:
        return ArtistRef(id=data.get("id"), name=data.get("name") or "", link=_spotify_link(dict(data), "artist"))

    def _album(self, data: SpotifyAlbum | dict[str, Any]) -> AlbumSnapshot:
        return AlbumSnapshot(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            release_date=data.get("release_date"),
            link=_spotify_link(dict(data), "album"),
            upc=(data.get("external_ids") or {}).get("upc") or None,
            nb_tracks=int(data.get("total_tracks") or 0),
            artists=tuple(self._artist(artist) for artist in data.get("artists") or []),
        )

    def _track(self, data: SpotifyTrack | dict[str, Any], album: SpotifyAlbum | dict[str, Any] | None = None) -> TrackSnapshot:
        # Playlist-style items wrap the track object
        track = data.get("track") if isinstance(data.get("track"), dict) else data
        parent = track.get("album") or album or {}
        duration_ms = track.get("duration_ms")
        return TrackSnapshot(
            id=track.get("id"),
            name=track.get("name") or "",
            duration=seconds_to_duration(duration_ms / 1000) if duration_ms else None,
            isrc=(track.get("external_ids") or {}).get("isrc") or None,
            link=_spotify_link(track, "track"),
            artists=tuple(self._artist(artist) for artist in track.get("artists") or []),
            album_id=parent.get("id"),
            album_name=parent.get("name"),
        )

    @staticmethod
    def _search_items(body: dict[str, Any], key: str) -> list[dict[str, Any]]:
        page = body.get(key) or {}
        return [item for item in page.get("items") or [] if isinstance(item, dict)]

    # ------------------------------------------------------------------
    # CatalogClient
    # ------------------------------------------------------------------
    async def search_by_query(
        self,
        text: str,
        result_type: ResultType = ResultType.ALBUM,
        *,
        exact_name: bool = False,
        ranked: bool = False,
    ) -> list[CandidateRelease]:
        """Search albums and return each hit as its full album.

        Spotify has a single ranking, so ``ranked`` is ignored.
        """
        if result_type is not ResultType.ALBUM:
            msg = f"search_by_query only returns albums, got {result_type}"
            raise ValueError(msg)

        body = await self.request("/v1/search", {"type": "album", "q": text, "limit": str(self.page_size)})
        candidates = [CandidateRelease(self.platform, self._album(item)) for item in self._search_items(body, "albums")]
        self.console_logger.debug("[%s] Album search '%s' returned %d results", self.platform, text, len(candidates))
        if exact_name:
            candidates = self._filter_exact_name(candidates, text)
        return await self._hydrate(candidates)

    async def search_tracks(self, text: str) -> list[TrackSnapshot]:
        """Search tracks; each result carries its parent album id."""
        body = await self.request("/v1/search", {"type": "track", "q": text, "limit": str(self.page_size)})
        return [self._track(item) for item in self._search_items(body, "tracks")]

    async def fetch_album(self, album_id: str) -> CandidateRelease:
        """Fetch album metadata and its full track list."""
        data, tracks = await self._album_with_tracks(f"/v1/albums/{album_id}", album_id)
        return CandidateRelease(self.platform, self._album(data), tuple(tracks))

    async def fetch_album_tracks(self, album_id: str) -> list[TrackSnapshot]:
        """Fetch every track of an album."""
        items = await self.request_all(f"/v1/albums/{album_id}/tracks", OffsetPager.spotify())
        parent = {"id": album_id}
        return [self._track(item, parent) for item in items]

    async def fetch_artist(self, artist_id: str) -> ArtistRef:
        """Fetch one artist."""
        return self._artist(await self.request(f"/v1/artists/{artist_id}"))

    # ------------------------------------------------------------------
    # Identifier lookups
    # ------------------------------------------------------------------
    async def search_album_upc(self, query: str, upc: str) -> CandidateRelease | None:
        """Find an album by barcode among the search results for ``query``.

        Raises:
            CatalogApiError: Nothing was found and a request failed

        """
        cleaned = remove_parentheses(query)
        limit = self.page_size
        offset, total = 0, limit
        last_error: Exception | None = None

        while offset < total:
            params = {"type": "album", "q": cleaned, "limit": str(limit), "offset": str(offset)}
            try:
                body = await self.request("/v1/search", params)
                total = int((body.get("albums") or {}).get("total") or 0)
                albums = await asyncio.gather(
                    *(self.request(f"/v1/albums/{item['id']}") for item in self._search_items(body, "albums") if item.get("id"))
                )
                for album in albums:
                    if is_same_upc((album.get("external_ids") or {}).get("upc"), upc):
                        return await self.fetch_album(str(album["id"]))
            except (CatalogApiError, RetryExhaustionError) as e:
                self.error_logger.warning("[%s] UPC scan failed at offset %d: %s", self.platform, offset, e)
                last_error = e
            offset += limit

        if last_error is not None:
            raise last_error
        return None

    async def search_track_isrc(self, query: str, isrc: str) -> TrackSnapshot | None:
        """Find a track by ISRC among the search results for ``query``.

        Search results usually carry ``external_ids``; the full track is only
        fetched when they do not.

        Raises:
            CatalogApiError: Nothing was found and a request failed

        """
        limit = max(1, self.page_size // 2)
        offset, total = 0, limit
        last_error: Exception | None = None

        while offset < total:
            params = {"type": "track", "q": query, "limit": str(limit), "offset": str(offset)}
            try:
                body = await self.request("/v1/search", params)
                total = int((body.get("tracks") or {}).get("total") or 0)
                items = self._search_items(body, "tracks")
                missing = [item["id"] for item in items if not item.get("external_ids") and item.get("id")]
                fetched = await asyncio.gather(*(self.request(f"/v1/tracks/{track_id}") for track_id in missing))
                for track in [item for item in items if item.get("external_ids")] + list(fetched):
                    if (track.get("external_ids") or {}).get("isrc") == isrc:
                        return self._track(track)
            except (CatalogApiError, RetryExhaustionError) as e:
                self.error_logger.warning("[%s] ISRC scan failed at offset %d: %s", self.platform, offset, e)
                last_error = e
            offset += limit

        if last_error is not None:
            raise last_error
        return None
