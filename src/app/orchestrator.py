"""Command orchestrator for the release reconciler.

This module routes parsed CLI commands to the catalog orchestrator and prints
their results.
"""

import argparse
import logging

from app.reports import render_album_lookup, render_outcomes, render_track_lookup
from core.exceptions import HTTP_NO_CONTENT, CatalogApiError, RetryExhaustionError
from core.models.config_models import AppConfig
from core.models.release_models import Platform
from services.api.match_dispatcher import MatchOutcome
from services.api.orchestrator import CatalogOrchestrator


class Orchestrator:
    """Runs one CLI command against the catalogs."""

    def __init__(
        self,
        config: AppConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        trace_scores: bool = False,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Validated application configuration
            console_logger: Logger for console output
            error_logger: Logger for errors
            trace_scores: Log every scoring contribution

        """
        self.config = config
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.catalogs = CatalogOrchestrator(config, console_logger, error_logger, trace_scores=trace_scores)

    async def run_command(self, args: argparse.Namespace) -> list[MatchOutcome] | None:
        """Execute the appropriate command based on arguments.

        Returns:
            Outcomes of reconciliation commands, None for lookups

        """
        async with self.catalogs:
            match args.command:
                case "reconcile":
                    return await self._run_reconcile(args)
                case "collection":
                    return await self._run_collection(args)
                case "lookup-upc" | "upc":
                    await self._run_lookup_upc(args)
                case "lookup-isrc" | "isrc":
                    await self._run_lookup_isrc(args)
                case _:
                    msg = f"Unknown command: {args.command}"
                    raise ValueError(msg)
        return None

    @staticmethod
    def _platforms(args: argparse.Namespace) -> list[Platform] | None:
        names = getattr(args, "platform", None)
        return [Platform(name) for name in names] if names else None

    async def _run_reconcile(self, args: argparse.Namespace) -> list[MatchOutcome]:
        """Reconcile the given Discogs releases."""
        outcomes = await self.catalogs.reconcile_releases(args.release_id, self._platforms(args))
        render_outcomes(outcomes)
        return outcomes

    async def _run_collection(self, args: argparse.Namespace) -> list[MatchOutcome]:
        """Reconcile a Discogs collection folder."""
        self.console_logger.info("Reconciling folder %s of %s", args.folder, args.username)
        outcomes = await self.catalogs.reconcile_collection(args.username, args.folder, self._platforms(args))
        render_outcomes(outcomes)
        return outcomes

    async def _run_lookup_upc(self, args: argparse.Namespace) -> None:
        """Look up an album by barcode on every other platform."""
        try:
            found = await self.catalogs.cross_album_upc(Platform(args.source), args.query, args.upc)
        except (CatalogApiError, RetryExhaustionError) as e:
            self._report_lookup_miss("UPC", args.upc, e)
            return
        render_album_lookup(found)

    async def _run_lookup_isrc(self, args: argparse.Namespace) -> None:
        """Look up a track by ISRC on every other platform."""
        try:
            found = await self.catalogs.cross_track_isrc(Platform(args.source), args.query, args.isrc)
        except (CatalogApiError, RetryExhaustionError) as e:
            self._report_lookup_miss("ISRC", args.isrc, e)
            return
        render_track_lookup(found)

    def _report_lookup_miss(self, kind: str, value: str, error: CatalogApiError | RetryExhaustionError) -> None:
        if error.status == HTTP_NO_CONTENT:
            self.console_logger.info("No platform has %s %s", kind, value)
        else:
            self.error_logger.error("%s lookup for %s failed (%d): %s", kind, value, error.status, error)
