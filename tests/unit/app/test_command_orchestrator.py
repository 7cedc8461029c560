"""Tests for the CLI command orchestrator."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.cli import CLI
from app.orchestrator import Orchestrator
from core.exceptions import HTTP_NO_CONTENT, CatalogApiError
from core.models.config_models import AppConfig
from core.models.release_models import Platform
from services.api.match_dispatcher import MatchOutcome, MatchState

from tests.factories import candidate_release, track


@pytest.fixture
def orchestrator(app_config: AppConfig, mock_console_logger: MagicMock, mock_error_logger: MagicMock) -> Orchestrator:
    orch = Orchestrator(app_config, mock_console_logger, mock_error_logger)
    catalogs = MagicMock()
    catalogs.reconcile_releases = AsyncMock(return_value=[MatchOutcome("2473", Platform.DEEZER, MatchState.MATCHED)])
    catalogs.reconcile_collection = AsyncMock(return_value=[])
    catalogs.cross_album_upc = AsyncMock(return_value={Platform.DEEZER: candidate_release("302127", "Discovery")})
    catalogs.cross_track_isrc = AsyncMock(return_value={Platform.SPOTIFY: track("One More Time", isrc="GBDUW0000053")})
    orch.catalogs = catalogs
    return orch


def parse(*argv: str):
    return CLI().parse_args(list(argv))


class TestRunCommand:
    """Tests for command routing."""

    @pytest.mark.asyncio
    async def test_reconcile(self, orchestrator: Orchestrator) -> None:
        with patch("app.orchestrator.render_outcomes") as render:
            outcomes = await orchestrator.run_command(parse("reconcile", "--release-id", "2473", "--platform", "deezer"))

        assert outcomes is not None
        assert outcomes[0].state is MatchState.MATCHED
        orchestrator.catalogs.reconcile_releases.assert_awaited_once_with(["2473"], [Platform.DEEZER])  # type: ignore[attr-defined]
        render.assert_called_once_with(outcomes)

    @pytest.mark.asyncio
    async def test_session_is_opened_and_closed(self, orchestrator: Orchestrator) -> None:
        with patch("app.orchestrator.render_outcomes"):
            await orchestrator.run_command(parse("reconcile", "--release-id", "2473"))

        orchestrator.catalogs.__aenter__.assert_awaited_once()  # type: ignore[attr-defined]
        orchestrator.catalogs.__aexit__.assert_awaited_once()  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_collection(self, orchestrator: Orchestrator) -> None:
        with patch("app.orchestrator.render_outcomes"):
            await orchestrator.run_command(parse("collection", "--username", "someone", "--folder", "2"))

        orchestrator.catalogs.reconcile_collection.assert_awaited_once_with("someone", 2, None)  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_upc_lookup(self, orchestrator: Orchestrator) -> None:
        with patch("app.orchestrator.render_album_lookup") as render:
            result = await orchestrator.run_command(parse("upc", "--query", "Daft Punk Discovery", "--upc", "724384971423"))

        assert result is None
        orchestrator.catalogs.cross_album_upc.assert_awaited_once_with(  # type: ignore[attr-defined]
            Platform.DISCOGS, "Daft Punk Discovery", "724384971423"
        )
        render.assert_called_once()

    @pytest.mark.asyncio
    async def test_isrc_lookup(self, orchestrator: Orchestrator) -> None:
        with patch("app.orchestrator.render_track_lookup") as render:
            await orchestrator.run_command(parse("lookup-isrc", "--query", "One More Time", "--isrc", "GBDUW0000053", "--source", "deezer"))

        orchestrator.catalogs.cross_track_isrc.assert_awaited_once_with(  # type: ignore[attr-defined]
            Platform.DEEZER, "One More Time", "GBDUW0000053"
        )
        render.assert_called_once()


class TestLookupMisses:
    """Tests for lookup failures."""

    @pytest.mark.asyncio
    async def test_no_content_is_informational(self, orchestrator: Orchestrator) -> None:
        orchestrator.catalogs.cross_album_upc = AsyncMock(side_effect=CatalogApiError("No content", HTTP_NO_CONTENT))  # type: ignore[method-assign]

        await orchestrator.run_command(parse("upc", "--query", "x", "--upc", "1"))

        orchestrator.console_logger.info.assert_called()  # type: ignore[attr-defined]
        orchestrator.error_logger.error.assert_not_called()  # type: ignore[attr-defined]

    @pytest.mark.asyncio
    async def test_service_error_is_logged(self, orchestrator: Orchestrator) -> None:
        orchestrator.catalogs.cross_track_isrc = AsyncMock(side_effect=CatalogApiError("Spotify: down", 503))  # type: ignore[method-assign]

        await orchestrator.run_command(parse("isrc", "--query", "x", "--isrc", "1"))

        orchestrator.error_logger.error.assert_called_once()  # type: ignore[attr-defined]
