"""Tests for release similarity scoring."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from hypothesis import given
from hypothesis import strategies as st

from core.models.config_models import ScoringWeights
from services.api.release_scoring import LoggingTraceHook, ReleaseScorer, is_same_upc, parse_release_date

from tests.factories import candidate_release, canonical_release, track

digits = st.text(alphabet="0123456789", min_size=1, max_size=14)
significant_digits = st.builds(lambda head, tail: head + tail, st.sampled_from("123456789"), st.text(alphabet="0123456789", max_size=13))


class RecordingHook:
    """Trace hook collecting every contribution."""

    def __init__(self) -> None:
        self.components: list[tuple[str, float]] = []

    def on_component(self, label: str, value: float) -> None:
        self.components.append((label, value))

    def total(self, prefix: str) -> float:
        return sum(value for label, value in self.components if label.startswith(prefix))


@pytest.fixture
def hook() -> RecordingHook:
    return RecordingHook()


@pytest.fixture
def scorer(hook: RecordingHook) -> ReleaseScorer:
    return ReleaseScorer(trace_hook=hook)


class TestIsSameUpc:
    """Tests for tolerant barcode equality."""

    def test_leading_zeros_ignored(self) -> None:
        assert is_same_upc("00012345678905", "12345678905")

    def test_different_barcodes(self) -> None:
        assert not is_same_upc("123", "999")

    def test_first_ten_characters_match(self) -> None:
        """UPC-A vs EAN-13 style length differences match on the first 10 significant digits."""
        assert is_same_upc("7243849714", "724384971423")

    @pytest.mark.parametrize(("first", "second"), [(None, "123"), ("123", None), ("", ""), ("000", "0")])
    def test_missing_or_zero_only_values(self, first: str | None, second: str | None) -> None:
        assert not is_same_upc(first, second)

    @given(significant_digits, st.integers(min_value=0, max_value=5))
    def test_zero_padding_never_matters(self, upc: str, padding: int) -> None:
        assert is_same_upc("0" * padding + upc, upc)

    @given(digits, digits)
    def test_symmetric(self, first: str, second: str) -> None:
        assert is_same_upc(first, second) == is_same_upc(second, first)


class TestParseReleaseDate:
    """Tests for partial date parsing."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("2001", (2001, 1, 1)), ("2001-03", (2001, 3, 1)), ("2001-03-12", (2001, 3, 12)), ("2001-03-00", (2001, 3, 1))],
    )
    def test_partial_dates(self, value: str, expected: tuple[int, int, int]) -> None:
        parsed = parse_release_date(value)
        assert parsed is not None
        assert (parsed.year, parsed.month, parsed.day) == expected

    @pytest.mark.parametrize("value", [None, "", "unknown", "2001-13-01"])
    def test_unparseable(self, value: str | None) -> None:
        assert parse_release_date(value) is None


class TestCompareAlbums:
    """Tests for album comparison."""

    @pytest.mark.parametrize(("pool_size", "clears_threshold"), [(1, True), (3, True), (7, True), (8, False), (10, False)])
    def test_upc_without_artists_takes_missing_artist_penalty(self, pool_size: int, clears_threshold: bool) -> None:
        """An identical barcode with no other metadata only clears the threshold in small pools."""
        canonical = canonical_release(name="", artists=(), upc="724384971423", nb_tracks=0)
        candidate = candidate_release(name="", artists=(), upc="724384971423", nb_tracks=0)

        score = ReleaseScorer().compare_albums(canonical, candidate, pool_size)

        assert score == pytest.approx(100 + 30 / pool_size - 30)
        assert (score > 74) is clears_threshold

    @pytest.mark.parametrize("pool_size", [1, 3, 10])
    def test_upc_with_artists_scores_above_base(self, pool_size: int) -> None:
        """With artist lists present the barcode keeps its full weight on top of the base."""
        canonical = canonical_release(name="", artists=("Daft Punk",), upc="724384971423", nb_tracks=0)
        candidate = candidate_release(name="", artists=("Daft Punk",), upc="724384971423", nb_tracks=0)

        assert ReleaseScorer().compare_albums(canonical, candidate, pool_size) >= 100 + 30 / pool_size

    def test_missing_artists_on_both_sides(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        scorer.compare_albums(canonical_release(name="Discovery", artists=()), candidate_release(name="Discovery", artists=()), 1)

        assert [(label, value) for label, value in hook.components if label.startswith("artists")] == [("artists.missing", -30)]

    def test_parenthetical_qualifier_counts_as_exact_title(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        """'Abbey Road (Remastered)' vs 'Abbey Road' earns the exact-title bonus."""
        canonical = canonical_release(name="Abbey Road (Remastered)", artists=("The Beatles",))
        candidate = candidate_release(name="Abbey Road", artists=("The Beatles",))

        scorer.compare_albums(canonical, candidate, 1)

        assert hook.total("title") >= 40

    def test_ep_suffix_is_ignored(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        scorer.compare_albums(canonical_release(name="Alive EP"), candidate_release(name="Alive - EP"), 1)

        assert hook.total("title") == 40

    def test_partial_title_overlap(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        """Shared tokens award coverage from both sides."""
        scorer.compare_albums(canonical_release(name="Random Access Memories"), candidate_release(name="Random Access"), 1)

        # 2/3 of canonical tokens and 2/2 of candidate tokens are shared
        assert hook.total("title") == pytest.approx(20 * 2 / 3 + 25)

    def test_title_without_overlap_is_penalized(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        scorer.compare_albums(canonical_release(name="Discovery"), candidate_release(name="Homework"), 1)

        assert hook.total("title") == -40

    def test_single_named_after_track_gets_tracklist_bonus(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        canonical = canonical_release(name="Discovery", tracks=(track("One More Time"), track("Aerodynamic")))

        scorer.compare_albums(canonical, candidate_release(name="One More Time"), 1)

        assert ("title.in_tracklist", 10) in hook.components

    @pytest.mark.parametrize(
        ("first", "second", "expected"),
        [
            ("2001-03-12", "2001-03-12", 20.0),
            ("2001-03-12", "2005-03-12", 0.0),
            (None, "2001-03-12", 0.0),
        ],
    )
    def test_release_date_contribution(
        self,
        scorer: ReleaseScorer,
        hook: RecordingHook,
        first: str | None,
        second: str | None,
        expected: float,
    ) -> None:
        scorer.compare_albums(canonical_release(release_date=first), candidate_release(release_date=second), 1)

        assert hook.total("date") == pytest.approx(expected)

    def test_release_date_decays_linearly(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        """A release about a year apart keeps roughly half of the proximity bonus."""
        scorer.compare_albums(canonical_release(release_date="2001-01-01"), candidate_release(release_date="2002-01-01"), 1)

        assert 7.0 < hook.total("date") < 8.0

    @pytest.mark.parametrize(("canonical_count", "candidate_count", "expected"), [(14, 14, 20.0), (14, 7, 5.0), (0, 0, 0.0)])
    def test_track_count_contribution(
        self,
        scorer: ReleaseScorer,
        hook: RecordingHook,
        canonical_count: int,
        candidate_count: int,
        expected: float,
    ) -> None:
        scorer.compare_albums(
            canonical_release(nb_tracks=canonical_count),
            candidate_release(nb_tracks=candidate_count),
            1,
        )

        assert hook.total("track_count") == pytest.approx(expected)

    @pytest.mark.parametrize(
        ("canonical_artists", "candidate_artists", "expected"),
        [
            (("Daft Punk",), ("Daft Punk",), 35.0),
            (("Daft Punk",), ("Justice",), -30.0),
            (("Various",), ("Justice",), 20.0),
            (("Daft Punk",), (), -30.0),
            ((), (), -30.0),
            (("Daft Punk", "Romanthony"), ("Daft Punk",), 20 * 0.5 + 15),
        ],
    )
    def test_artist_contribution(
        self,
        scorer: ReleaseScorer,
        hook: RecordingHook,
        canonical_artists: tuple[str, ...],
        candidate_artists: tuple[str, ...],
        expected: float,
    ) -> None:
        scorer.compare_albums(
            canonical_release(artists=canonical_artists),
            candidate_release(artists=candidate_artists),
            1,
        )

        assert hook.total("artists") == pytest.approx(expected)

    def test_custom_weights_are_used(self) -> None:
        """Weights come from configuration."""
        weights = ScoringWeights(upc_match_bonus=500)
        canonical = canonical_release(name="", artists=(), upc="724384971423", nb_tracks=0)
        candidate = candidate_release(name="", artists=(), upc="724384971423", nb_tracks=0)

        assert ReleaseScorer(weights).compare_albums(canonical, candidate, 1) == pytest.approx(500)

    def test_scoring_without_hook(self) -> None:
        """The trace hook is optional."""
        score = ReleaseScorer().compare_albums(canonical_release(), candidate_release(), 2)

        assert score > 0


class TestCompareTracks:
    """Tests for track-set comparison."""

    def test_identical_track_lists(self) -> None:
        tracks = (track("One More Time", "5:20", ("Daft Punk",)), track("Aerodynamic", "3:27", ("Daft Punk",)))
        canonical = canonical_release(tracks=tracks)
        candidate = candidate_release(tracks=tracks)

        assert ReleaseScorer().compare_tracks(canonical, candidate, 1) == pytest.approx(30 + 60 + 40)

    def test_duration_outside_tolerance_does_not_match(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        canonical = canonical_release(tracks=(track("One More Time", "5:20"),))
        candidate = candidate_release(tracks=(track("One More Time", "5:31"),))

        scorer.compare_tracks(canonical, candidate, 1)

        assert hook.total("tracks.matched") == 0

    def test_unknown_canonical_duration_matches_by_title(self) -> None:
        canonical = canonical_release(tracks=(track("One More Time (Radio Edit)", None),))
        candidate = candidate_release(tracks=(track("One More Time", "3:55"),))

        score = ReleaseScorer().compare_tracks(canonical, candidate, 1)

        # Album artists stand in for missing track artists
        assert score == pytest.approx(30 + 60 + 40)

    def test_each_candidate_track_is_used_once(self, scorer: ReleaseScorer, hook: RecordingHook) -> None:
        canonical = canonical_release(tracks=(track("Intro", "1:00"), track("Intro", "1:00")))
        candidate = candidate_release(tracks=(track("Intro", "1:00"),))

        scorer.compare_tracks(canonical, candidate, 1)

        assert hook.total("tracks.matched") == pytest.approx(30)

    def test_base_only_without_canonical_tracks(self) -> None:
        assert ReleaseScorer().compare_tracks(canonical_release(), candidate_release(tracks=(track("A"),)), 3) == pytest.approx(10)


class TestLoggingTraceHook:
    """Tests for the logging trace hook."""

    def test_logs_each_contribution_at_debug(self) -> None:
        logger = MagicMock()
        scorer = ReleaseScorer(trace_hook=LoggingTraceHook(logger))

        scorer.compare_albums(canonical_release(name="Discovery"), candidate_release(name="Discovery"), 1)

        assert logger.debug.call_count >= 2
        assert any(call.args[2] == "title.exact" for call in logger.debug.call_args_list)
