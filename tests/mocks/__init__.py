"""Mock infrastructure for release reconciler tests."""

from __future__ import annotations

from tests.mocks.http_mock import FakeResponse, FakeSession, RoutedExecutor, RoutedSession, StalledPagesExecutor
from tests.mocks.protocol_mocks import FakeCatalogClient

__all__ = [
    "FakeCatalogClient",
    "FakeResponse",
    "FakeSession",
    "RoutedExecutor",
    "RoutedSession",
    "StalledPagesExecutor",
]
