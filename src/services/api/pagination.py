"""Pagination schemes of the supported catalogs.

A pager turns an integer item offset into the query parameters of one page
and tells the paginated fetcher which items a page holds and whether another
page follows. The fetcher itself only ever advances the offset by the
connector's fixed page size.
"""

from __future__ import annotations

from typing import Any, Protocol

__all__ = [
    "OffsetPager",
    "PageNumberPager",
    "Pager",
]


class Pager(Protocol):
    """Pagination scheme of one catalog collection."""

    def page_params(self, offset: int, page_size: int) -> dict[str, str]:
        """Query parameters selecting the page that starts at ``offset``."""
        ...

    def extract_items(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """Items carried by one page, in service order."""
        ...

    def has_next(self, body: dict[str, Any]) -> bool:
        """Whether the service signals another page after this one."""
        ...


def _as_items(value: Any) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


class OffsetPager:
    """Offset/limit pagination with a ``next`` link.

    Deezer pages look like ``{"data": [...], "next": "..."}`` and take an
    ``index`` parameter; Spotify pages look like ``{"items": [...], "next": ...}``
    and take ``offset``, optionally nested under a single top-level key such as
    ``{"albums": {"items": [...], "next": ...}}`` for search results.
    """

    def __init__(self, *, offset_param: str, items_key: str) -> None:
        """Initialize the pager.

        Args:
            offset_param: Query parameter carrying the item offset
            items_key: Key of the item list inside a page

        """
        self.offset_param = offset_param
        self.items_key = items_key

    @classmethod
    def deezer(cls) -> OffsetPager:
        """Pager for Deezer collections."""
        return cls(offset_param="index", items_key="data")

    @classmethod
    def spotify(cls) -> OffsetPager:
        """Pager for Spotify collections."""
        return cls(offset_param="offset", items_key="items")

    def page_params(self, offset: int, page_size: int) -> dict[str, str]:
        """Return ``{offset_param: offset, "limit": page_size}``."""
        return {self.offset_param: str(offset), "limit": str(page_size)}

    def _page(self, body: dict[str, Any]) -> dict[str, Any]:
        if self.items_key in body:
            return body
        for value in body.values():
            if isinstance(value, dict) and self.items_key in value:
                return value
        return {}

    def extract_items(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """Return the page items, looking one level down when they are nested."""
        return _as_items(self._page(body).get(self.items_key))

    def has_next(self, body: dict[str, Any]) -> bool:
        """Return True when the page carries a non-empty ``next`` link."""
        return bool(self._page(body).get("next"))


class PageNumberPager:
    """1-based page-number pagination (Discogs).

    Pages look like ``{"pagination": {"page": 1, "pages": 3, ...}, "releases": [...]}``.
    When ``items_key`` is not given, the first key other than ``pagination``
    holds the items.
    """

    def __init__(self, items_key: str | None = None) -> None:
        """Initialize the pager with an optional explicit items key."""
        self.items_key = items_key

    def page_params(self, offset: int, page_size: int) -> dict[str, str]:
        """Convert the item offset to ``page``/``per_page`` parameters."""
        return {"page": str(offset // page_size + 1), "per_page": str(page_size)}

    def extract_items(self, body: dict[str, Any]) -> list[dict[str, Any]]:
        """Return the items of the page."""
        key = self.items_key or next((k for k in body if k != "pagination"), None)
        return _as_items(body.get(key)) if key is not None else []

    def has_next(self, body: dict[str, Any]) -> bool:
        """Return True while ``pagination.page < pagination.pages``."""
        pagination = body.get("pagination")
        if not isinstance(pagination, dict):
            return False
        try:
            return int(pagination.get("page", 0)) < int(pagination.get("pages", 0))
        except (TypeError, ValueError):
            return False
