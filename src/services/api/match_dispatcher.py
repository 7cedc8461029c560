"""Match dispatcher.

Drives every ``(canonical release, target platform)`` pair through the search
strategies in order until one of them produces a candidate above the
confidence threshold. Pairs run concurrently; the strategies of one pair run
strictly in sequence under a per-pair deadline.
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from core.exceptions import CatalogApiError, MatchStoreError, RetryExhaustionError
from core.models.release_models import MatchResult
from core.models.search_strategy import SearchStrategy

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Sequence

    from core.models.config_models import MatchingConfig
    from core.models.protocols import CatalogClient, MatchStoreProtocol
    from core.models.release_models import CandidateRelease, CanonicalRelease, Platform
    from services.api.release_scoring import ReleaseScorer
    from services.api.search_strategies import SearchStrategyEngine

    CompareFunc = Callable[[CanonicalRelease, CandidateRelease, int], float]

FATAL_ERRORS = (CatalogApiError, RetryExhaustionError, MatchStoreError)


class MatchState(StrEnum):
    """Lifecycle of one (canonical release, platform) pair."""

    PENDING = "pending"
    SEARCHING = "searching"
    MATCHED = "matched"
    UNMATCHED = "unmatched"
    TIMED_OUT = "timed_out"
    FATAL = "fatal"


@dataclass(slots=True)
class MatchOutcome:
    """Result of reconciling one canonical release on one platform."""

    canonical_id: str
    platform: Platform
    state: MatchState = MatchState.PENDING
    strategy: SearchStrategy | None = None
    score: float | None = None
    error: str | None = None
    already_matched: bool = False

    @property
    def retryable(self) -> bool:
        """Timed out pairs may be retried; every other terminal state is final."""
        return self.state is MatchState.TIMED_OUT


@dataclass(slots=True)
class BatchReport:
    """Counts of terminal states over one dispatched batch."""

    by_state: Counter[MatchState] = field(default_factory=Counter)
    by_platform: dict[Platform, Counter[MatchState]] = field(default_factory=dict)
    elapsed: float = 0.0

    @classmethod
    def from_outcomes(cls, outcomes: Sequence[MatchOutcome], elapsed: float = 0.0) -> BatchReport:
        """Aggregate outcomes per state and per platform."""
        report = cls(elapsed=elapsed)
        for outcome in outcomes:
            report.by_state[outcome.state] += 1
            report.by_platform.setdefault(outcome.platform, Counter())[outcome.state] += 1
        return report

    @property
    def total(self) -> int:
        """Number of outcomes in the batch."""
        return sum(self.by_state.values())

    def log(self, console_logger: logging.Logger) -> None:
        """Write the summary at INFO level."""
        console_logger.info(
            "Batch finished in %.1fs: %d pairs, %d matched, %d unmatched, %d timed out, %d fatal",
            self.elapsed,
            self.total,
            self.by_state[MatchState.MATCHED],
            self.by_state[MatchState.UNMATCHED],
            self.by_state[MatchState.TIMED_OUT],
            self.by_state[MatchState.FATAL],
        )
        for platform, counts in self.by_platform.items():
            console_logger.info(
                "[%s] matched=%d unmatched=%d timed_out=%d fatal=%d",
                platform,
                counts[MatchState.MATCHED],
                counts[MatchState.UNMATCHED],
                counts[MatchState.TIMED_OUT],
                counts[MatchState.FATAL],
            )


class MatchDispatcher:
    """Runs the strategy state machine for every pair of a batch."""

    def __init__(
        self,
        *,
        clients: dict[Platform, CatalogClient],
        engine: SearchStrategyEngine,
        scorer: ReleaseScorer,
        store: MatchStoreProtocol,
        matching: MatchingConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            clients: Target catalog clients by platform
            engine: Search strategy engine producing candidates
            scorer: Release scorer
            store: Match store used for idempotence and persistence
            matching: Threshold, deadline and pacing settings
            console_logger: Logger for progress messages
            error_logger: Logger for failures
            sleep: Coroutine used for inter-item pacing

        """
        self.clients = clients
        self.engine = engine
        self.scorer = scorer
        self.store = store
        self.matching = matching
        self.console_logger = console_logger
        self.error_logger = error_logger
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def compare_for(self, strategy: SearchStrategy) -> CompareFunc:
        """Comparison used for the candidates of ``strategy``."""
        if strategy is SearchStrategy.TRACK_DRIVEN:
            return self._compare_album_and_tracks
        return self.scorer.compare_albums

    def _compare_album_and_tracks(self, canonical: CanonicalRelease, candidate: CandidateRelease, pool_size: int) -> float:
        score = self.scorer.compare_albums(canonical, candidate, pool_size)
        if candidate.tracks:
            score += self.scorer.compare_tracks(canonical, candidate, pool_size)
        return score

    @staticmethod
    def _best_candidate(
        canonical: CanonicalRelease,
        candidates: Sequence[CandidateRelease],
        compare: CompareFunc,
    ) -> tuple[CandidateRelease | None, float | None]:
        best: CandidateRelease | None = None
        best_score: float | None = None
        for candidate in candidates:
            score = compare(canonical, candidate, len(candidates))
            if best_score is None or score > best_score:
                best, best_score = candidate, score
        return best, best_score

    async def _evaluate(
        self,
        canonical: CanonicalRelease,
        platform: Platform,
        candidates: Sequence[CandidateRelease],
        compare: CompareFunc,
    ) -> tuple[bool, float | None]:
        winner, score = self._best_candidate(canonical, candidates, compare)
        if winner is None or score is None or score <= self.matching.confidence_threshold:
            return False, score

        await self.store.upsert(MatchResult.from_candidate(canonical.id, winner, score))
        self.console_logger.info(
            "[%s] Release %s '%s' matched album %s (score %.2f)",
            platform,
            canonical.id,
            canonical.name,
            winner.id,
            score,
        )
        return True, score

    async def check_results(
        self,
        canonical: CanonicalRelease,
        platform: Platform,
        candidates: Sequence[CandidateRelease],
        compare: CompareFunc,
    ) -> bool:
        """Persist the best candidate when its score exceeds the threshold.

        Returns:
            True when a match was written, False otherwise (nothing is written)

        """
        matched, _ = await self._evaluate(canonical, platform, candidates, compare)
        return matched

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    async def reconcile(self, canonical: CanonicalRelease, platform: Platform) -> MatchOutcome:
        """Reconcile one canonical release on one target platform.

        Never raises for catalog, retry or store failures: those end in the
        ``FATAL`` state, a missed deadline in ``TIMED_OUT``.
        """
        outcome = MatchOutcome(canonical.id, platform)
        client = self.clients.get(platform)
        if client is None:
            outcome.state = MatchState.FATAL
            outcome.error = f"No client configured for {platform}"
            self.error_logger.error("[%s] %s", platform, outcome.error)
            return outcome

        try:
            existing = await self.store.find(canonical.id, platform)
            if existing is not None:
                self.console_logger.debug("[%s] Release %s already matched, skipping", platform, canonical.id)
                outcome.state = MatchState.MATCHED
                outcome.score = existing.validity_score
                outcome.already_matched = True
                return outcome

            async with asyncio.timeout(self.matching.item_deadline_seconds):
                await self._run_strategies(canonical, client, outcome)
        except TimeoutError:
            outcome.state = MatchState.TIMED_OUT
            outcome.error = f"Deadline of {self.matching.item_deadline_ms} ms exceeded"
            self.error_logger.warning(
                "[%s] Release %s timed out during %s",
                platform,
                canonical.id,
                outcome.strategy.name if outcome.strategy else "setup",
            )
        except FATAL_ERRORS as e:
            outcome.state = MatchState.FATAL
            outcome.error = str(e)
            self.error_logger.error("[%s] Release %s failed: %s", platform, canonical.id, e)
        return outcome

    async def _run_strategies(self, canonical: CanonicalRelease, client: CatalogClient, outcome: MatchOutcome) -> None:
        for strategy in self.engine.strategies():
            outcome.state = MatchState.SEARCHING
            outcome.strategy = strategy
            candidates = await self.engine.candidates(strategy, canonical, client)
            if not candidates:
                continue

            matched, score = await self._evaluate(canonical, client.platform, candidates, self.compare_for(strategy))
            if score is not None and (outcome.score is None or score > outcome.score):
                outcome.score = score
            if matched:
                outcome.state = MatchState.MATCHED
                outcome.score = score
                return
            self.console_logger.debug(
                "[%s] %s: best score %.2f for release %s below threshold",
                client.platform,
                strategy.name,
                score or 0.0,
                canonical.id,
            )

        outcome.state = MatchState.UNMATCHED
        self.console_logger.info("[%s] No match for release %s '%s'", client.platform, canonical.id, canonical.name)

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------
    async def _paced(self, index: int, canonical: CanonicalRelease, platform: Platform) -> MatchOutcome:
        delay = index * self.matching.item_pacing_ms / 1000
        if delay > 0:
            await self._sleep(delay)
        return await self.reconcile(canonical, platform)

    async def dispatch(
        self,
        canonicals: Sequence[CanonicalRelease],
        platforms: Sequence[Platform] | None = None,
    ) -> list[MatchOutcome]:
        """Reconcile every release on every platform concurrently.

        A failing pair never aborts its siblings; unexpected exceptions are
        reported as ``FATAL`` outcomes.
        """
        targets = list(platforms or self.matching.target_platforms)
        pairs = [(index, canonical, platform) for index, canonical in enumerate(canonicals) for platform in targets]
        start = time.monotonic()

        results = await asyncio.gather(
            *(self._paced(index, canonical, platform) for index, canonical, platform in pairs),
            return_exceptions=True,
        )

        outcomes: list[MatchOutcome] = []
        for (_, canonical, platform), result in zip(pairs, results, strict=True):
            if isinstance(result, MatchOutcome):
                outcomes.append(result)
                continue
            if not isinstance(result, Exception):
                raise result
            self.error_logger.error(
                "[%s] Unexpected failure for release %s",
                platform,
                canonical.id,
                exc_info=(type(result), result, result.__traceback__),
            )
            outcomes.append(MatchOutcome(canonical.id, platform, MatchState.FATAL, error=str(result) or type(result).__name__))

        BatchReport.from_outcomes(outcomes, time.monotonic() - start).log(self.console_logger)
        return outcomes
