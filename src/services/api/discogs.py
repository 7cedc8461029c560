"""Discogs API client.

Discogs is the source catalog: it provides the canonical releases that are
reconciled against the target catalogs. Requests are signed with an OAuth1
PLAINTEXT header built from the consumer credentials and the user token.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any, TypedDict

from core.models.normalization import duration_to_seconds, seconds_to_duration
from core.models.release_models import AlbumSnapshot, ArtistRef, CanonicalRelease, Platform, TrackSnapshot
from services.api.api_base import BaseCatalogClient
from services.api.pagination import PageNumberPager

if TYPE_CHECKING:
    from core.models.config_models import AuthConfig, ConnectorConfig
    from services.api.request_executor import ApiRequestExecutor

DISCOGS_WEB_URL = "https://www.discogs.com"
VARIOUS_ARTIST_NAME = "Various"

_YEAR_ONLY = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^\d{4}-\d{2}$")
_YEAR_MONTH_ZERO_DAY = re.compile(r"^\d{4}-\d{2}-00$")
_NON_DIGITS = re.compile(r"[^0-9]")


# Discogs Type Definitions
class DiscogsArtist(TypedDict, total=False):
    """Artist credit on a release or a track."""

    id: int
    name: str
    resource_url: str


class DiscogsTrack(TypedDict, total=False):
    """Entry of a release tracklist."""

    position: str
    type_: str
    title: str
    duration: str
    artists: list[DiscogsArtist]
    extraartists: list[DiscogsArtist]


class DiscogsIdentifier(TypedDict, total=False):
    """Release identifier (barcode, matrix number, ...)."""

    type: str
    value: str


class DiscogsRelease(TypedDict, total=False):
    """Release object from /releases/{id}."""

    id: int
    title: str
    released: str
    uri: str
    artists: list[DiscogsArtist]
    tracklist: list[DiscogsTrack]
    identifiers: list[DiscogsIdentifier]


def normalize_release_date(released: str | None, today: date | None = None) -> str:
    """Normalize a Discogs ``released`` value to ``YYYY-MM-DD``.

    ``YYYY`` becomes ``YYYY-01-01``, ``YYYY-MM`` becomes ``YYYY-MM-01`` and a
    zero day becomes ``01``. Anything that is still not a valid date falls
    back to today's date.
    """
    value = (released or "").strip()
    if _YEAR_ONLY.match(value):
        value = f"{value}-01-01"
    elif _YEAR_MONTH.match(value):
        value = f"{value}-01"
    elif _YEAR_MONTH_ZERO_DAY.match(value):
        value = f"{value[:-2]}01"

    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        return (today or datetime.now(UTC).date()).isoformat()


def extract_barcode(identifiers: list[DiscogsIdentifier] | list[dict[str, Any]] | None) -> str | None:
    """Digits of the first ``Barcode`` identifier, if any."""
    for identifier in identifiers or []:
        if identifier.get("type") == "Barcode":
            digits = _NON_DIGITS.sub("", str(identifier.get("value") or ""))
            return digits or None
    return None


def _artist(data: DiscogsArtist | dict[str, Any]) -> ArtistRef:
    artist_id = data.get("id")
    return ArtistRef(
        id=None if artist_id is None else str(artist_id),
        name=data.get("name") or "",
        link=f"{DISCOGS_WEB_URL}/artist/{artist_id}" if artist_id is not None else None,
    )


def _track_artists(track: DiscogsTrack | dict[str, Any]) -> list[ArtistRef]:
    return [_artist(a) for a in (track.get("artists") or []) + (track.get("extraartists") or [])]


def _track(data: DiscogsTrack | dict[str, Any]) -> TrackSnapshot:
    seconds = duration_to_seconds(data.get("duration"))
    return TrackSnapshot(
        id=None,
        name=data.get("title") or data.get("name") or "",
        duration=seconds_to_duration(seconds) if seconds else None,
        artists=tuple(_track_artists(data)),
    )


def _release_artists(release: DiscogsRelease | dict[str, Any], tracklist: list[dict[str, Any]]) -> tuple[ArtistRef, ...]:
    """Release artists; "Various" releases list the artists credited on their tracks."""
    artists = release.get("artists") or []
    if tracklist and any(a.get("name") == VARIOUS_ARTIST_NAME for a in artists):
        credited = [artist for track in tracklist for artist in _track_artists(track)]
        return tuple(dict.fromkeys(credited))
    return tuple(_artist(a) for a in artists)


def release_from_json(release: DiscogsRelease | dict[str, Any], today: date | None = None) -> CanonicalRelease:
    """Translate a ``/releases/{id}`` body into a canonical release."""
    release_id = str(release.get("id", ""))
    tracklist = [t for t in release.get("tracklist") or [] if t.get("type_", "track") != "heading"]
    album = AlbumSnapshot(
        id=release_id,
        name=release.get("title") or "",
        release_date=normalize_release_date(release.get("released"), today),
        link=release.get("uri") or f"{DISCOGS_WEB_URL}/release/{release_id}",
        upc=extract_barcode(release.get("identifiers")),
        nb_tracks=len(tracklist),
        artists=_release_artists(release, tracklist),
    )
    return CanonicalRelease(album=album, tracks=tuple(_track(t) for t in tracklist))


def collection_item_from_json(item: dict[str, Any]) -> CanonicalRelease:
    """Translate a collection folder entry (``basic_information``) into a track-less release."""
    info = item.get("basic_information") or {}
    release_id = str(info.get("id", item.get("id", "")))
    year = info.get("year")
    album = AlbumSnapshot(
        id=release_id,
        name=info.get("title") or "",
        release_date=str(year) if year else None,
        link=f"{DISCOGS_WEB_URL}/release/{release_id}",
        artists=tuple(_artist(a) for a in info.get("artists") or []),
    )
    return CanonicalRelease(album=album)


class DiscogsClient(BaseCatalogClient):
    """Discogs API client for fetching canonical releases."""

    platform = Platform.DISCOGS

    def __init__(
        self,
        *,
        executor: ApiRequestExecutor,
        settings: ConnectorConfig,
        auth: AuthConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        """Initialize Discogs client.

        Args:
            executor: Shared request executor
            settings: Discogs connector settings
            auth: Consumer and user credentials
            console_logger: Logger for console output
            error_logger: Logger for error messages

        """
        super().__init__(
            executor=executor,
            settings=settings,
            console_logger=console_logger,
            error_logger=error_logger,
        )
        self.auth = auth

    def _auth_headers(self) -> dict[str, str]:
        """OAuth1 PLAINTEXT authorization header, regenerated for every request."""
        timestamp = int(time.time())
        fields = {
            "oauth_consumer_key": self.auth.discogs_consumer_key,
            "oauth_nonce": f"{secrets.token_hex(8)}{timestamp}",
            "oauth_token": self.auth.discogs_token,
            "oauth_token_secret": self.auth.discogs_token_secret,
            "oauth_signature": f"{self.auth.discogs_consumer_secret}&{self.auth.discogs_token_secret}",
            "oauth_signature_method": "PLAINTEXT",
            "oauth_timestamp": str(timestamp),
        }
        return {
            "Authorization": "OAuth " + ",".join(f"{key}={value}" for key, value in fields.items()),
            "User-Agent": self.auth.user_agent,
        }

    async def fetch_release(self, release_id: str) -> CanonicalRelease:
        """Fetch one release and normalize it into a canonical release."""
        self.console_logger.debug("[%s] Fetching details for release ID %s", self.platform, release_id)
        return release_from_json(await self.request(f"/releases/{release_id}"))

    async def fetch_folder_items(self, username: str, folder_id: int = 0) -> list[CanonicalRelease]:
        """List a collection folder, most recently added first."""
        items = await self.request_all(
            f"/users/{username}/collection/folders/{folder_id}/releases",
            PageNumberPager("releases"),
        )
        # Entries without date_added sort last
        items.sort(key=lambda item: (item.get("date_added") is not None, item.get("date_added") or ""), reverse=True)
        self.console_logger.info("[%s] Folder %s of %s holds %d releases", self.platform, folder_id, username, len(items))
        return [collection_item_from_json(item) for item in items]
