"""Release models shared by connectors, scoring and the match dispatcher.

Connectors translate service-specific JSON into these shapes; everything
downstream (strategies, scoring, persistence) only ever sees them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

__all__ = [
    "AlbumSnapshot",
    "ArtistRef",
    "CandidateRelease",
    "CanonicalRelease",
    "MatchResult",
    "Platform",
    "TrackSnapshot",
]

MAX_VALIDITY_PERCENT = 100.0


class Platform(StrEnum):
    """Catalog services known to the reconciliation engine."""

    DISCOGS = "discogs"
    DEEZER = "deezer"
    SPOTIFY = "spotify"


@dataclass(frozen=True, slots=True)
class ArtistRef:
    """Artist as referenced by an album or a track."""

    id: str | None
    name: str
    link: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted artist shape."""
        return {"id": self.id, "name": self.name, "link": self.link}

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> ArtistRef:
        """Rebuild from a persisted artist document."""
        return cls(id=data.get("id"), name=data.get("name") or "", link=data.get("link"))


@dataclass(frozen=True, slots=True)
class TrackSnapshot:
    """Track as listed by a catalog. ``duration`` is ``mm:ss`` or ``None``."""

    id: str | None
    name: str
    duration: str | None = None
    isrc: str | None = None
    link: str | None = None
    artists: tuple[ArtistRef, ...] = ()
    album_id: str | None = None
    album_name: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted track shape."""
        return {
            "id": self.id,
            "name": self.name,
            "isrc": self.isrc,
            "duration": self.duration,
            "link": self.link,
            "artists": [artist.to_document() for artist in self.artists],
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> TrackSnapshot:
        """Rebuild from a persisted track document."""
        return cls(
            id=data.get("id"),
            name=data.get("name") or "",
            duration=data.get("duration"),
            isrc=data.get("isrc"),
            link=data.get("link"),
            artists=tuple(ArtistRef.from_document(a) for a in data.get("artists") or []),
        )


@dataclass(frozen=True, slots=True)
class AlbumSnapshot:
    """Album-level metadata of a release."""

    id: str
    name: str
    release_date: str | None = None
    link: str | None = None
    upc: str | None = None
    nb_tracks: int = 0
    artists: tuple[ArtistRef, ...] = ()

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted album shape."""
        return {
            "id": self.id,
            "name": self.name,
            "release_date": self.release_date,
            "link": self.link,
            "upc": self.upc,
            "nb_tracks": self.nb_tracks,
            "artists": [artist.to_document() for artist in self.artists],
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> AlbumSnapshot:
        """Rebuild from a persisted album document."""
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            release_date=data.get("release_date"),
            link=data.get("link"),
            upc=data.get("upc"),
            nb_tracks=int(data.get("nb_tracks") or 0),
            artists=tuple(ArtistRef.from_document(a) for a in data.get("artists") or []),
        )


@dataclass(frozen=True, slots=True)
class CanonicalRelease:
    """Reference release from the source catalog. Immutable once fetched."""

    album: AlbumSnapshot
    tracks: tuple[TrackSnapshot, ...] = ()
    source: Platform = Platform.DISCOGS

    @property
    def id(self) -> str:
        """Source catalog identifier."""
        return self.album.id

    @property
    def name(self) -> str:
        """Release title."""
        return self.album.name

    @property
    def upc(self) -> str | None:
        """Barcode, when the source catalog has one."""
        return self.album.upc

    @property
    def nb_tracks(self) -> int:
        """Declared track count."""
        return self.album.nb_tracks

    @property
    def release_date(self) -> str | None:
        """ISO date or year string."""
        return self.album.release_date

    @property
    def artists(self) -> tuple[ArtistRef, ...]:
        """Album-level artists, in catalog order."""
        return self.album.artists


@dataclass(frozen=True, slots=True)
class CandidateRelease:
    """Release proposed by a target catalog for comparison."""

    source: Platform
    album: AlbumSnapshot
    tracks: tuple[TrackSnapshot, ...] = ()

    @property
    def id(self) -> str:
        """Target catalog identifier."""
        return self.album.id

    @property
    def name(self) -> str:
        """Release title."""
        return self.album.name

    @property
    def upc(self) -> str | None:
        """Barcode, when the target catalog exposes one."""
        return self.album.upc

    @property
    def nb_tracks(self) -> int:
        """Declared track count."""
        return self.album.nb_tracks

    @property
    def release_date(self) -> str | None:
        """ISO date or year string."""
        return self.album.release_date

    @property
    def artists(self) -> tuple[ArtistRef, ...]:
        """Album-level artists, in catalog order."""
        return self.album.artists


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Persisted winner for one ``(canonical_id, platform)`` pair."""

    canonical_id: str
    platform: Platform
    validity_score: float
    album: AlbumSnapshot
    tracks: tuple[TrackSnapshot, ...] = field(default_factory=tuple)

    @property
    def validity_percent(self) -> str:
        """Score clamped to 100 and formatted with two decimals."""
        return f"{min(self.validity_score, MAX_VALIDITY_PERCENT):.2f}"

    @property
    def key(self) -> tuple[str, Platform]:
        """Store key."""
        return self.canonical_id, self.platform

    def to_document(self) -> dict[str, Any]:
        """Serialize to the persisted match document."""
        return {
            "validity_score": self.validity_score,
            "validity_percent": self.validity_percent,
            "album": self.album.to_document(),
            "tracks": [track.to_document() for track in self.tracks],
        }

    @classmethod
    def from_document(cls, canonical_id: str, platform: Platform, data: dict[str, Any]) -> MatchResult:
        """Rebuild from a persisted match document."""
        return cls(
            canonical_id=canonical_id,
            platform=platform,
            validity_score=float(data.get("validity_score") or 0.0),
            album=AlbumSnapshot.from_document(data.get("album") or {}),
            tracks=tuple(TrackSnapshot.from_document(t) for t in data.get("tracks") or []),
        )

    @classmethod
    def from_candidate(cls, canonical_id: str, candidate: CandidateRelease, score: float) -> MatchResult:
        """Build the persisted result for a winning candidate."""
        return cls(
            canonical_id=canonical_id,
            platform=candidate.source,
            validity_score=score,
            album=candidate.album,
            tracks=candidate.tracks,
        )
