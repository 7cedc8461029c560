"""Match store implementations.

Both stores keep at most one ``MatchResult`` per ``(canonical_id, platform)``
key with last-write-wins semantics. The JSON store persists one document per
canonical id, keyed by platform name:

    {"12345": {"deezer": {...match...}, "spotify": {...match...}}}
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles

from core.exceptions import MatchStoreError
from core.models.release_models import MatchResult, Platform

if TYPE_CHECKING:
    from core.models.config_models import StoreConfig
    from core.models.protocols import MatchStoreProtocol


class InMemoryMatchStore:
    """Dictionary-backed store for tests and one-shot runs."""

    def __init__(self) -> None:
        self._results: dict[tuple[str, Platform], MatchResult] = {}
        self._lock = asyncio.Lock()

    async def find(self, canonical_id: str, platform: Platform) -> MatchResult | None:
        """Return the stored result for the key, if any."""
        async with self._lock:
            return self._results.get((canonical_id, platform))

    async def upsert(self, result: MatchResult) -> None:
        """Insert or replace the result stored under ``result.key``."""
        async with self._lock:
            self._results[result.key] = result

    async def find_all(self, canonical_id: str) -> dict[Platform, MatchResult]:
        """Return every stored result of one canonical item."""
        async with self._lock:
            return {platform: result for (item_id, platform), result in self._results.items() if item_id == canonical_id}

    def __len__(self) -> int:
        return len(self._results)


class JsonFileMatchStore:
    """JSON-file store written atomically with aiofiles.

    The file is loaded lazily on first access and rewritten after every upsert.
    """

    def __init__(self, path: str | Path, error_logger: logging.Logger | None = None) -> None:
        """Initialize the store.

        Args:
            path: Location of the JSON document file
            error_logger: Logger for read/write failures

        """
        self.path = Path(path)
        self.error_logger = error_logger or logging.getLogger(__name__)
        self._documents: dict[str, dict[str, Any]] | None = None
        self._lock = asyncio.Lock()

    async def _load(self) -> dict[str, dict[str, Any]]:
        if self._documents is not None:
            return self._documents
        if not self.path.exists():
            self._documents = {}
            return self._documents

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
            data = json.loads(content) if content.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            self.error_logger.exception("Failed to load match store %s", self.path)
            msg = f"Cannot read match store {self.path}: {e}"
            raise MatchStoreError(msg) from e

        if not isinstance(data, dict):
            msg = f"Match store {self.path} does not hold a JSON object"
            raise MatchStoreError(msg)
        self._documents = {str(key): value for key, value in data.items() if isinstance(value, dict)}
        return self._documents

    async def _save(self, documents: dict[str, dict[str, Any]]) -> None:
        temp_file = self.path.with_suffix(f"{self.path.suffix}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(temp_file, "w", encoding="utf-8") as f:
                await f.write(json.dumps(documents, indent=2, ensure_ascii=False))
            temp_file.replace(self.path)
        except OSError as e:
            self.error_logger.exception("Failed to write match store %s", self.path)
            msg = f"Cannot write match store {self.path}: {e}"
            raise MatchStoreError(msg) from e

    async def find(self, canonical_id: str, platform: Platform) -> MatchResult | None:
        """Return the stored result for the key, if any."""
        async with self._lock:
            document = (await self._load()).get(canonical_id) or {}
            data = document.get(platform.value)
            return MatchResult.from_document(canonical_id, platform, data) if data else None

    async def upsert(self, result: MatchResult) -> None:
        """Insert or replace the result stored under ``result.key``."""
        async with self._lock:
            documents = dict(await self._load())
            documents[result.canonical_id] = {**documents.get(result.canonical_id, {}), result.platform.value: result.to_document()}
            # the cache only changes once the file is on disk
            await self._save(documents)
            self._documents = documents

    async def find_all(self, canonical_id: str) -> dict[Platform, MatchResult]:
        """Return every stored result of one canonical item."""
        async with self._lock:
            document = (await self._load()).get(canonical_id) or {}
            return {
                platform: MatchResult.from_document(canonical_id, platform, document[platform.value])
                for platform in Platform
                if document.get(platform.value)
            }


def create_match_store(config: StoreConfig, error_logger: logging.Logger | None = None) -> MatchStoreProtocol:
    """Build the configured store backend."""
    if config.backend == "json":
        return JsonFileMatchStore(config.path, error_logger)
    return InMemoryMatchStore()
