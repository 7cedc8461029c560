"""Search strategies for proposing match candidates from a target catalog.

Strategies are tried strictly in declaration order; each one is only run
after the previous one failed to produce a candidate above the threshold.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, StrEnum

__all__ = [
    "ResultType",
    "SearchQuery",
    "SearchStrategy",
]


class ResultType(StrEnum):
    """Kind of object a catalog search returns."""

    ALBUM = "album"
    TRACK = "track"


class SearchStrategy(Enum):
    """Ordered search strategies (value is the 1-based rank)."""

    EXACT = 1  # artist + album
    PER_TRACK = 2  # track artist + track name, album results
    ARTIST = 3  # artist alone
    TITLE_ONLY = 4  # album alone, exact-name filtering
    BROAD_TITLE = 5  # album alone, service ranking
    TRACK_DRIVEN = 6  # track results -> parent albums

    @property
    def rank(self) -> int:
        """1-based position in the strategy sequence."""
        return self.value

    @classmethod
    def ordered(cls, limit: int | None = None) -> list[SearchStrategy]:
        """Return strategies in execution order, optionally truncated."""
        strategies = sorted(cls, key=lambda strategy: strategy.value)
        return strategies if limit is None else strategies[: max(0, limit)]


@dataclass(frozen=True, slots=True)
class SearchQuery:
    """One query issued by a strategy."""

    text: str
    result_type: ResultType = ResultType.ALBUM
    exact_name: bool = False
    ranked: bool = False
