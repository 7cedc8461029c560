"""Tests for the match store backends."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING
from unittest.mock import MagicMock, patch

import pytest

from core.exceptions import MatchStoreError
from core.models.config_models import StoreConfig
from core.models.release_models import MatchResult, Platform
from services.persistence import InMemoryMatchStore, JsonFileMatchStore, create_match_store

from tests.factories import candidate_release, track

if TYPE_CHECKING:
    from pathlib import Path


def result(platform: Platform = Platform.DEEZER, score: float = 130.0, album_id: str = "302127") -> MatchResult:
    candidate = candidate_release(album_id, "Discovery", platform=platform, artists=("Daft Punk",), tracks=(track("One More Time"),))
    return MatchResult.from_candidate("2473", candidate, score)


class TestInMemoryMatchStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_upsert_and_find(self) -> None:
        store = InMemoryMatchStore()

        await store.upsert(result())

        found = await store.find("2473", Platform.DEEZER)
        assert found is not None
        assert found.validity_score == 130.0
        assert await store.find("2473", Platform.SPOTIFY) is None

    @pytest.mark.asyncio
    async def test_last_write_wins(self) -> None:
        store = InMemoryMatchStore()

        await store.upsert(result(score=80.0, album_id="1"))
        await store.upsert(result(score=95.0, album_id="2"))

        found = await store.find("2473", Platform.DEEZER)
        assert len(store) == 1
        assert found is not None
        assert found.album.id == "2"

    @pytest.mark.asyncio
    async def test_find_all(self) -> None:
        store = InMemoryMatchStore()
        await store.upsert(result(Platform.DEEZER))
        await store.upsert(result(Platform.SPOTIFY))

        assert set(await store.find_all("2473")) == {Platform.DEEZER, Platform.SPOTIFY}
        assert await store.find_all("other") == {}


class TestJsonFileMatchStore:
    """Tests for the JSON file store."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        store = JsonFileMatchStore(tmp_path / "matches.json")

        assert await store.find("2473", Platform.DEEZER) is None
        assert not (tmp_path / "matches.json").exists()

    @pytest.mark.asyncio
    async def test_document_layout(self, tmp_path: Path) -> None:
        path = tmp_path / "data" / "matches.json"
        store = JsonFileMatchStore(path)

        await store.upsert(result(Platform.DEEZER))
        await store.upsert(result(Platform.SPOTIFY, score=90.0))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"2473"}
        assert set(data["2473"]) == {"deezer", "spotify"}
        assert data["2473"]["spotify"]["validity_percent"] == "90.00"
        assert not path.with_suffix(".json.tmp").exists()

    @pytest.mark.asyncio
    async def test_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "matches.json"
        await JsonFileMatchStore(path).upsert(result())

        reopened = JsonFileMatchStore(path)

        found = await reopened.find("2473", Platform.DEEZER)
        assert found is not None
        assert found.album.name == "Discovery"
        assert [t.name for t in found.tracks] == ["One More Time"]
        assert set(await reopened.find_all("2473")) == {Platform.DEEZER}

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "matches.json"
        path.write_text("{not json", encoding="utf-8")
        error_logger = MagicMock()

        with pytest.raises(MatchStoreError, match="Cannot read"):
            await JsonFileMatchStore(path, error_logger).find("2473", Platform.DEEZER)
        error_logger.exception.assert_called_once()

    @pytest.mark.asyncio
    async def test_non_object_root(self, tmp_path: Path) -> None:
        path = tmp_path / "matches.json"
        path.write_text("[1, 2]", encoding="utf-8")

        with pytest.raises(MatchStoreError, match="JSON object"):
            await JsonFileMatchStore(path).find_all("2473")

    @pytest.mark.asyncio
    async def test_empty_file_is_empty_store(self, tmp_path: Path) -> None:
        path = tmp_path / "matches.json"
        path.write_text("", encoding="utf-8")

        assert await JsonFileMatchStore(path).find_all("2473") == {}

    @pytest.mark.asyncio
    async def test_failed_write_leaves_store_unchanged(self, tmp_path: Path) -> None:
        """A result whose write fails is neither cached nor reported by later lookups."""
        path = tmp_path / "matches.json"
        store = JsonFileMatchStore(path, MagicMock())
        await store.upsert(result(Platform.DEEZER))
        before = path.read_text(encoding="utf-8")
        fresh = JsonFileMatchStore(tmp_path / "fresh.json", MagicMock())

        with patch("services.persistence.match_store.Path.replace", side_effect=OSError("disk full")):
            with pytest.raises(MatchStoreError, match="Cannot write"):
                await store.upsert(result(Platform.SPOTIFY, score=120.0))
            with pytest.raises(MatchStoreError, match="Cannot write"):
                await fresh.upsert(result())

        assert await store.find("2473", Platform.SPOTIFY) is None
        assert set(await store.find_all("2473")) == {Platform.DEEZER}
        assert path.read_text(encoding="utf-8") == before
        assert await fresh.find("2473", Platform.DEEZER) is None


class TestCreateMatchStore:
    """Tests for backend selection."""

    def test_memory(self) -> None:
        assert isinstance(create_match_store(StoreConfig(backend="memory")), InMemoryMatchStore)

    def test_json(self, tmp_path: Path) -> None:
        store = create_match_store(StoreConfig(backend="json", path=str(tmp_path / "m.json")))

        assert isinstance(store, JsonFileMatchStore)
        assert store.path == tmp_path / "m.json"
