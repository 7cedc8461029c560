"""Pytest configuration and shared fixtures for the release reconciler.

This module ensures the project root and ``src`` are on sys.path, allowing
imports of the application packages and of ``tests.*`` helpers.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
for path in (PROJECT_ROOT, PROJECT_ROOT / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from core.core_config import build_config  # noqa: E402
from core.models.config_models import AppConfig  # noqa: E402

from tests.factories import MINIMAL_CONFIG_DATA  # noqa: E402


@pytest.fixture
def mock_console_logger() -> MagicMock:
    """Mock console logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def mock_error_logger() -> MagicMock:
    """Mock error logger for testing."""
    return MagicMock(spec=logging.Logger)


@pytest.fixture
def app_config() -> AppConfig:
    """Validated configuration built from the minimal test data."""
    return build_config(MINIMAL_CONFIG_DATA)


@pytest.fixture
def recorded_sleeps() -> list[float]:
    """Delays passed to the injected sleep coroutine."""
    return []


@pytest.fixture
def fake_sleep(recorded_sleeps: list[float]) -> AsyncMock:
    """Sleep replacement that records delays and returns immediately."""

    async def _sleep(delay: float) -> None:
        recorded_sleeps.append(delay)

    return AsyncMock(side_effect=_sleep)
