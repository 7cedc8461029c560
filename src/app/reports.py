"""Console reports of reconciliation outcomes and lookups."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

from core.logger import get_shared_console
from services.api.match_dispatcher import MatchState

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rich.console import Console

    from core.models.release_models import CandidateRelease, Platform, TrackSnapshot
    from services.api.match_dispatcher import MatchOutcome

STATE_COLORS: dict[MatchState, str] = {
    MatchState.MATCHED: "green",
    MatchState.UNMATCHED: "yellow",
    MatchState.TIMED_OUT: "magenta",
    MatchState.FATAL: "red",
}


def _state_cell(outcome: MatchOutcome) -> str:
    color = STATE_COLORS.get(outcome.state, "white")
    label = outcome.state.value.replace("_", " ")
    if outcome.already_matched:
        label += " (stored)"
    return f"[{color}]{label}[/{color}]"


def render_outcomes(outcomes: Sequence[MatchOutcome], console: Console | None = None) -> Table:
    """Print one row per (release, platform) outcome and return the table."""
    table = Table(title="Reconciliation results", show_lines=False)
    table.add_column("Release", overflow="fold")
    table.add_column("Platform")
    table.add_column("State")
    table.add_column("Strategy")
    table.add_column("Score", justify="right")
    table.add_column("Error", overflow="fold")

    for outcome in sorted(outcomes, key=lambda o: (o.canonical_id, o.platform.value)):
        table.add_row(
            outcome.canonical_id,
            outcome.platform.value,
            _state_cell(outcome),
            outcome.strategy.name.lower() if outcome.strategy else "",
            f"{outcome.score:.2f}" if outcome.score is not None else "",
            outcome.error or "",
        )

    (console or get_shared_console()).print(table)
    return table


def render_album_lookup(found: Mapping[Platform, CandidateRelease], console: Console | None = None) -> Table:
    """Print the albums found by a UPC lookup."""
    table = Table(title="UPC lookup", show_lines=False)
    for column in ("Platform", "Album ID", "Name", "UPC", "Tracks", "Link"):
        table.add_column(column, overflow="fold")
    for platform, album in found.items():
        table.add_row(platform.value, album.id, album.name, album.upc or "", str(album.nb_tracks), album.album.link or "")

    (console or get_shared_console()).print(table)
    return table


def render_track_lookup(found: Mapping[Platform, TrackSnapshot], console: Console | None = None) -> Table:
    """Print the tracks found by an ISRC lookup."""
    table = Table(title="ISRC lookup", show_lines=False)
    for column in ("Platform", "Track ID", "Name", "Duration", "Album", "Link"):
        table.add_column(column, overflow="fold")
    for platform, track in found.items():
        table.add_row(
            platform.value,
            track.id or "",
            track.name,
            track.duration or "",
            track.album_name or track.album_id or "",
            track.link or "",
        )

    (console or get_shared_console()).print(table)
    return table
