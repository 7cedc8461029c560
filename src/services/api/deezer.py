"""Deezer API client.

Deezer is searched anonymously; an access token is only appended when one is
configured. Album and track JSON is translated into the shared release
snapshots here and nowhere else.
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
    from collections.abc import Callable

    from core.models.config_models import ConnectorConfig
    from services.api.request_executor import ApiRequestExecutor

DEEZER_WEB_URL = "https://www.deezer.com"


# Deezer Type Definitions
class DeezerArtist(TypedDict, total=False):
    """Artist object as embedded in albums and tracks."""

    id: int
    name: str
    link: str


class DeezerAlbum(TypedDict, total=False):
    """Album object from /album/{id} or search results."""

    id: int
    title: str
    upc: str
    link: str
    nb_tracks: int
    release_date: str
    artist: DeezerArtist
    contributors: list[DeezerArtist]


class DeezerTrack(TypedDict, total=False):
    """Track object from /album/{id}/tracks or /search/track."""

    id: int
    title: str
    isrc: str
    duration: int
    link: str
    artist: DeezerArtist
    contributors: list[DeezerArtist]
    album: DeezerAlbum


def _str_id(value: Any) -> str | None:
    return None if value is None else str(value)


class DeezerClient(BaseCatalogClient):
    """Deezer catalog connector."""

    platform = Platform.DEEZER

    def __init__(
        self,
        *,
        executor: ApiRequestExecutor,
        settings: ConnectorConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        access_token: str | None = None,
    ) -> None:
        """Initialize Deezer client.

        Args:
            executor: Shared request executor
            settings: Deezer connector settings
            console_logger: Logger for console output
            error_logger: Logger for error messages
            access_token: Optional user token appended as ``access_token`` parameter

        """
        super().__init__(
            executor=executor,
            settings=settings,
            console_logger=console_logger,
            error_logger=error_logger,
        )
        self.access_token = access_token

    def _auth_params(self) -> dict[str, str]:
        return {"access_token": self.access_token} if self.access_token else {}

    # ------------------------------------------------------------------
    # Translation
    # ------------------------------------------------------------------
    @staticmethod
    def _artist(data: DeezerArtist | dict[str, Any]) -> ArtistRef:
        artist_id = _str_id(data.get("id"))
        return ArtistRef(
            id=artist_id,
            name=data.get("name") or "",
            link=data.get("link") or (f"{DEEZER_WEB_URL}/artist/{artist_id}" if artist_id else None),
        )

    def _artists(self, data: DeezerAlbum | DeezerTrack | dict[str, Any]) -> tuple[ArtistRef, ...]:
        """Contributors when listed, otherwise the main artist."""
        contributors = data.get("contributors") or []
        if contributors:
            return tuple(self._artist(artist) for artist in contributors)
        artist = data.get("artist")
        return (self._artist(artist),) if artist else ()

    def _album(self, data: DeezerAlbum | dict[str, Any]) -> AlbumSnapshot:
        album_id = str(data.get("id", ""))
        return AlbumSnapshot(
            id=album_id,
            name=data.get("title") or "",
            release_date=data.get("release_date"),
            link=data.get("link") or f"{DEEZER_WEB_URL}/album/{album_id}",
            upc=data.get("upc") or None,
            nb_tracks=int(data.get("nb_tracks") or 0),
            artists=self._artists(data),
        )

    def _track(self, data: DeezerTrack | dict[str, Any]) -> TrackSnapshot:
        album = data.get("album") or {}
        duration = data.get("duration")
        return TrackSnapshot(
            id=_str_id(data.get("id")),
            name=data.get("title") or "",
            duration=seconds_to_duration(duration) if duration else None,
            isrc=data.get("isrc") or None,
            link=data.get("link"),
            artists=self._artists(data),
            album_id=_str_id(album.get("id")),
            album_name=album.get("title"),
        )

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

        ``ranked`` asks for Deezer's relevance ordering.
        """
        if result_type is not ResultType.ALBUM:
            msg = f"search_by_query only returns albums, got {result_type}"
            raise ValueError(msg)

        params = {"q": text, "limit": str(self.page_size)}
        if ranked:
            params["order"] = "RANKING"
        body = await self.request("/search/album", params)
        candidates = [CandidateRelease(self.platform, self._album(item)) for item in body.get("data") or []]
        self.console_logger.debug("[%s] Album search '%s' returned %d results", self.platform, text, len(candidates))
        if exact_name:
            candidates = self._filter_exact_name(candidates, text)
        return await self._hydrate(candidates)

    async def search_tracks(self, text: str) -> list[TrackSnapshot]:
        """Search tracks; each result carries its parent album id."""
        body = await self.request("/search/track", {"q": text, "limit": str(self.page_size)})
        return [self._track(item) for item in body.get("data") or []]

    async def fetch_album(self, album_id: str) -> CandidateRelease:
        """Fetch album metadata and its full track list."""
        data, tracks = await self._album_with_tracks(f"/album/{album_id}", album_id)
        return CandidateRelease(self.platform, self._album(data), tuple(tracks))

    async def fetch_album_tracks(self, album_id: str) -> list[TrackSnapshot]:
        """Fetch every track of an album."""
        items = await self.request_all(f"/album/{album_id}/tracks", OffsetPager.deezer())
        return [self._track(item) for item in items]

    async def fetch_artist(self, artist_id: str) -> ArtistRef:
        """Fetch one artist."""
        return self._artist(await self.request(f"/artist/{artist_id}"))

    # ------------------------------------------------------------------
    # Identifier lookups
    # ------------------------------------------------------------------
    async def search_album_upc(self, query: str, upc: str) -> CandidateRelease | None:
        """Find an album by barcode among the search results for ``query``.

        Album search is tried first; when it yields nothing the generic
        ``/search`` endpoint is scanned through the albums of its tracks.

        Raises:
            CatalogApiError: Nothing was found and a request failed

        """
        cleaned = remove_parentheses(query)
        last_error: Exception | None = None

        for path, album_of in (("/search/album", lambda item: item), ("/search", lambda item: item.get("album"))):
            found, error = await self._scan_albums_by_upc(path, cleaned, upc, album_of)
            if found is not None:
                return await self.fetch_album(found)
            last_error = error or last_error

        if last_error is not None:
            raise last_error
        return None

    async def _scan_albums_by_upc(
        self,
        path: str,
        query: str,
        upc: str,
        album_of: Callable[[dict[str, Any]], dict[str, Any] | None],
    ) -> tuple[str | None, Exception | None]:
        """Page through search results and return the id of the album with ``upc``."""
        limit = max(1, self.page_size // 2)
        index, total = 0, limit
        last_error: Exception | None = None

        while index < total:
            try:
                body = await self.request(path, {"q": query, "limit": str(limit), "index": str(index)})
                total = int(body.get("total") or 0)
                album_ids = list(
                    dict.fromkeys(
                        str(album["id"]) for item in body.get("data") or [] if (album := album_of(item)) and "id" in album
                    )
                )
                albums = await asyncio.gather(*(self.request(f"/album/{album_id}") for album_id in album_ids))
                for album in albums:
                    if is_same_upc(album.get("upc"), upc):
                        return str(album["id"]), None
            except (CatalogApiError, RetryExhaustionError) as e:
                self.error_logger.warning("[%s] UPC scan of %s failed at index %d: %s", self.platform, path, index, e)
                last_error = e
            index += limit

        return None, last_error

    async def search_track_isrc(self, query: str, isrc: str) -> TrackSnapshot | None:
        """Find a track by ISRC among the search results for ``query``.

        Raises:
            CatalogApiError: Nothing was found and a request failed

        """
        limit = max(1, self.page_size // 2)
        index, total = 0, limit
        last_error: Exception | None = None

        while index < total:
            try:
                body = await self.request("/search/track", {"q": query, "limit": str(limit), "index": str(index)})
                total = int(body.get("total") or 0)
                tracks = await asyncio.gather(
                    *(self.request(f"/track/{item['id']}") for item in body.get("data") or [] if "id" in item)
                )
                for track in tracks:
                    if track.get("isrc") == isrc:
                        return self._track(track)
            except (CatalogApiError, RetryExhaustionError) as e:
                self.error_logger.warning("[%s] ISRC scan failed at index %d: %s", self.platform, index, e)
                last_error = e
            index += limit

        if last_error is not None:
            raise last_error
        return None
