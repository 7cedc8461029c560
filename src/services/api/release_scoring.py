"""Release similarity scoring.

This module contains the weighted similarity functions that compare a
canonical release with a candidate release from a target catalog. Scores are
additive: every factor contributes a positive or negative amount, so a
perfect barcode match on top of perfect metadata can exceed 100.

The scorer performs no I/O. Each contribution is reported to an optional
``ScoreTraceHook`` for debugging.
"""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import TYPE_CHECKING

from core.models.config_models import ScoringWeights
from core.models.normalization import duration_to_seconds, normalize_for_matching, normalize_title, tokenize

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from core.models.protocols import ScoreTraceHook
    from core.models.release_models import ArtistRef, CandidateRelease, CanonicalRelease, TrackSnapshot

__all__ = [
    "LoggingTraceHook",
    "ReleaseScorer",
    "is_same_upc",
]

UPC_PREFIX_LENGTH = 10
DAYS_PER_MONTH = 30.4375
_DATE_PATTERN = re.compile(r"^(\d{4})(?:-(\d{1,2}))?(?:-(\d{1,2}))?")


def is_same_upc(upc1: str | None, upc2: str | None) -> bool:
    """Tolerant barcode equality.

    Barcodes are equal when the raw strings match, when they match after
    stripping leading zeros, or when the first 10 characters of the
    zero-stripped forms match (UPC-A vs EAN-13, truncated storage).

    Examples:
        >>> is_same_upc("00012345678905", "12345678905")
        True
        >>> is_same_upc("123", "999")
        False

    """
    if not upc1 or not upc2:
        return False
    raw1, raw2 = upc1.strip(), upc2.strip()
    if not raw1 or not raw2:
        return False
    if raw1 == raw2:
        return True

    short1, short2 = raw1.lstrip("0"), raw2.lstrip("0")
    if not short1 or not short2:
        return False
    return short1 == short2 or short1[:UPC_PREFIX_LENGTH] == short2[:UPC_PREFIX_LENGTH]


def parse_release_date(value: str | None) -> date | None:
    """Parse ``YYYY``, ``YYYY-MM`` or ``YYYY-MM-DD``; missing parts default to 1."""
    if not value:
        return None
    match = _DATE_PATTERN.match(value.strip())
    if not match:
        return None
    year, month, day = match.groups()
    try:
        return date(int(year), max(1, int(month or 1)), max(1, int(day or 1)))
    except ValueError:
        return None


class LoggingTraceHook:
    """Trace hook writing each score contribution as a DEBUG line."""

    def __init__(self, console_logger: logging.Logger, prefix: str = "score") -> None:
        self.console_logger = console_logger
        self.prefix = prefix

    def on_component(self, label: str, value: float) -> None:
        """Log one contribution."""
        self.console_logger.debug("[%s] %s: %+.2f", self.prefix, label, value)


class ReleaseScorer:
    """Weighted album and track-set similarity.

    Attributes:
        weights: Empirically tuned scoring weights
        various_artists_names: Normalized names that mark a compilation
        trace_hook: Optional observer of every contribution

    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        various_artists_names: Iterable[str] | None = None,
        trace_hook: ScoreTraceHook | None = None,
    ) -> None:
        """Initialize the scorer.

        Args:
            weights: Scoring weights; defaults to the tuned constants
            various_artists_names: Artist names identifying various-artists releases
            trace_hook: Optional observer notified of every contribution

        """
        self.weights = weights or ScoringWeights()
        self.various_artists_names = frozenset(
            normalize_for_matching(name) for name in (various_artists_names or ("various", "various artists", "va"))
        )
        self.trace_hook = trace_hook

    def _trace(self, label: str, value: float) -> float:
        if self.trace_hook is not None:
            self.trace_hook.on_component(label, value)
        return value

    # ------------------------------------------------------------------
    # Album comparison
    # ------------------------------------------------------------------
    def compare_albums(
        self,
        canonical: CanonicalRelease,
        candidate: CandidateRelease,
        pool_size: int,
    ) -> float:
        """Score how likely ``candidate`` is the same release as ``canonical``.

        Args:
            canonical: Reference release
            candidate: Release proposed by a target catalog
            pool_size: Number of candidates in the pool being scored

        Returns:
            Unbounded similarity score

        """
        w = self.weights
        score = self._trace("base", w.base_pool_weight / max(1, pool_size))

        if is_same_upc(canonical.upc, candidate.upc):
            score += self._trace("upc", w.upc_match_bonus)

        score += self._score_title(canonical, candidate)
        score += self._score_release_date(canonical.release_date, candidate.release_date)
        score += self._score_track_count(canonical, candidate)
        score += self._score_artists(canonical.artists, candidate.artists)
        return score

    def _score_title(self, canonical: CanonicalRelease, candidate: CandidateRelease) -> float:
        w = self.weights
        canonical_title = normalize_title(canonical.name)
        candidate_title = normalize_title(candidate.name)

        # No title on either side is no evidence either way
        if not canonical_title or not candidate_title:
            return 0.0
        if canonical_title == candidate_title:
            return self._trace("title.exact", w.title_exact_bonus)

        canonical_tokens = tokenize(canonical_title)
        candidate_tokens = tokenize(candidate_title)
        canonical_coverage = self._token_coverage(canonical_tokens, candidate_tokens)
        candidate_coverage = self._token_coverage(candidate_tokens, canonical_tokens)

        score = self._trace("title.canonical_coverage", w.title_canonical_coverage_bonus * canonical_coverage)
        score += self._trace("title.candidate_coverage", w.title_candidate_coverage_bonus * candidate_coverage)

        track_titles = {normalize_title(track.name) for track in canonical.tracks}
        if candidate_title and candidate_title in track_titles:
            score += self._trace("title.in_tracklist", w.title_in_tracklist_bonus)

        if canonical_coverage == 0 and candidate_coverage == 0:
            score += self._trace("title.no_overlap", w.title_no_overlap_penalty)
        return score

    def _token_coverage(self, tokens: Sequence[str], other: Sequence[str]) -> float:
        """Share of ``tokens`` found in ``other``; partial containment counts for less."""
        if not tokens or not other:
            return 0.0
        other_set = set(other)
        matched = 0.0
        for token in tokens:
            if token in other_set:
                matched += 1
            elif any(self._is_partial_token_match(token, candidate) for candidate in other_set):
                matched += self.weights.partial_token_weight
        return matched / len(tokens)

    def _is_partial_token_match(self, token: str, other: str) -> bool:
        if not (token in other or other in token):
            return False
        shorter, longer = sorted((len(token), len(other)))
        return shorter / longer >= self.weights.partial_token_min_ratio

    def _score_release_date(self, canonical_date: str | None, candidate_date: str | None) -> float:
        w = self.weights
        first = parse_release_date(canonical_date)
        second = parse_release_date(candidate_date)
        if first is None or second is None:
            return 0.0
        if first == second:
            return self._trace("date.exact", w.date_exact_bonus)

        months = abs((first - second).days) / DAYS_PER_MONTH
        if months >= w.date_window_months:
            return self._trace("date.proximity", 0.0)
        return self._trace("date.proximity", w.date_proximity_bonus * (1 - months / w.date_window_months))

    def _score_track_count(self, canonical: CanonicalRelease, candidate: CandidateRelease) -> float:
        bonus = self.weights.track_count_bonus
        canonical_count = canonical.nb_tracks or len(canonical.tracks)
        candidate_count = candidate.nb_tracks or len(candidate.tracks)
        delta = abs(canonical_count - candidate_count)

        score = 0.0
        for label, count in (("track_count.canonical", canonical_count), ("track_count.candidate", candidate_count)):
            if count > 0:
                score += self._trace(label, bonus * max(0.0, (count - delta) / count))
        return score

    def _score_artists(self, canonical_artists: Sequence[ArtistRef], candidate_artists: Sequence[ArtistRef]) -> float:
        w = self.weights
        canonical_names = self._artist_names(canonical_artists)
        candidate_names = self._artist_names(candidate_artists)

        if not canonical_names or not candidate_names:
            return self._trace("artists.missing", w.missing_artists_penalty)

        canonical_ratio = self._artist_coverage(canonical_names, candidate_names)
        candidate_ratio = self._artist_coverage(candidate_names, canonical_names)

        if canonical_ratio == 0 and candidate_ratio == 0:
            if self._is_various(canonical_names) or self._is_various(candidate_names):
                return self._trace("artists.various", w.various_artists_bonus)
            return self._trace("artists.no_overlap", w.artist_no_overlap_penalty)

        score = self._trace("artists.canonical_overlap", w.artist_canonical_overlap_bonus * canonical_ratio)
        score += self._trace("artists.candidate_overlap", w.artist_candidate_overlap_bonus * candidate_ratio)
        return score

    @staticmethod
    def _artist_names(artists: Iterable[ArtistRef]) -> list[str]:
        return [name for name in (normalize_for_matching(artist.name) for artist in artists) if name]

    @staticmethod
    def _artist_coverage(names: Sequence[str], other: Sequence[str]) -> float:
        """Share of ``names`` contained in (or containing) a name of ``other``."""
        if not names or not other:
            return 0.0
        matched = sum(1 for name in names if any(name in o or o in name for o in other))
        return matched / len(names)

    def _is_various(self, names: Iterable[str]) -> bool:
        return any(name in self.various_artists_names for name in names)

    # ------------------------------------------------------------------
    # Track-set comparison
    # ------------------------------------------------------------------
    def compare_tracks(
        self,
        canonical: CanonicalRelease,
        candidate: CandidateRelease,
        pool_size: int,
    ) -> float:
        """Score how well the candidate's track list covers the canonical one.

        A canonical track matches a candidate track when the normalized titles
        are equal or contain each other and the durations are within the
        tolerance (or the canonical duration is unknown). Tracks without
        artists fall back to their album's artists for the overlap ratio.
        """
        w = self.weights
        score = self._trace("tracks.base", w.track_base_pool_weight / max(1, pool_size))
        if not canonical.tracks:
            return score

        used: set[int] = set()
        artist_ratios: list[float] = []
        for track in canonical.tracks:
            index = self._find_track(track, candidate.tracks, used)
            if index is None:
                continue
            used.add(index)
            matched = candidate.tracks[index]
            canonical_names = self._artist_names(track.artists or canonical.artists)
            candidate_names = self._artist_names(matched.artists or candidate.artists)
            ratio = (
                self._artist_coverage(canonical_names, candidate_names)
                + self._artist_coverage(candidate_names, canonical_names)
            ) / 2
            artist_ratios.append(ratio)

        matched_ratio = len(artist_ratios) / len(canonical.tracks)
        score += self._trace("tracks.matched", w.track_match_weight * matched_ratio)
        if artist_ratios:
            score += self._trace("tracks.artists", w.track_artist_weight * sum(artist_ratios) / len(artist_ratios))
        return score

    def _find_track(self, track: TrackSnapshot, candidates: Sequence[TrackSnapshot], used: set[int]) -> int | None:
        title = normalize_title(track.name)
        if not title:
            return None
        seconds = duration_to_seconds(track.duration)
        for index, other in enumerate(candidates):
            if index in used:
                continue
            if seconds is not None:
                other_seconds = duration_to_seconds(other.duration)
                if other_seconds is None or abs(seconds - other_seconds) > self.weights.duration_tolerance_seconds:
                    continue
            other_title = normalize_title(other.name)
            if other_title and (title == other_title or title in other_title or other_title in title):
                return index
        return None
