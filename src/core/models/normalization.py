"""Unified text normalization for release, artist and track matching.

Every comparison of titles or artist names goes through these helpers so
that query cleaning and scoring agree on what "the same name" means.
"""

from __future__ import annotations

import re

_PARENTHESES_PATTERN = re.compile(r"\([^()]*\)")
_EP_SUFFIX_PATTERN = re.compile(r"(?:\s*[-–]\s*|\s+)ep\s*$", re.IGNORECASE)
_WHITESPACE_PATTERN = re.compile(r"\s+")
_TOKEN_SPLIT_PATTERN = re.compile(r"[^\w]+")


def normalize_for_matching(text: str | None) -> str:
    """Normalize text for case-insensitive matching.

    Examples:
        >>> normalize_for_matching("  Daft Punk  ")
        'daft punk'

    """
    return text.strip().lower() if text else ""


def remove_parentheses(text: str | None) -> str:
    """Remove every ``(...)`` qualifier and collapse whitespace.

    Examples:
        >>> remove_parentheses("Abbey Road (Remastered)")
        'Abbey Road'

    """
    if not text:
        return ""
    stripped = _PARENTHESES_PATTERN.sub("", text)
    return _WHITESPACE_PATTERN.sub(" ", stripped).strip()


def strip_ep_suffix(text: str | None) -> str:
    """Remove a trailing ``EP`` marker (``"Foo EP"``, ``"Foo - EP"``)."""
    if not text:
        return ""
    return _EP_SUFFIX_PATTERN.sub("", text).strip()


def clean_query_text(text: str | None) -> str:
    """Prepare a title or artist name for use as search query text."""
    return strip_ep_suffix(remove_parentheses(text))


def normalize_title(text: str | None) -> str:
    """Title form used by the scorer: no qualifiers, no EP suffix, lowercase."""
    return normalize_for_matching(clean_query_text(text))


def tokenize(text: str | None) -> list[str]:
    """Split a normalized title into word tokens."""
    return [token for token in _TOKEN_SPLIT_PATTERN.split(normalize_for_matching(text)) if token]


def duration_to_seconds(duration: str | None) -> int | None:
    """Convert ``mm:ss`` (or ``hh:mm:ss``) into seconds; ``None`` when unknown."""
    if not duration:
        return None
    parts = duration.strip().split(":")
    try:
        values = [int(part) for part in parts]
    except ValueError:
        return None
    seconds = 0
    for value in values:
        seconds = seconds * 60 + value
    return seconds


def seconds_to_duration(seconds: int | float | None) -> str | None:
    """Format seconds as ``mm:ss``; ``None`` for missing values."""
    if seconds is None:
        return None
    total = int(seconds)
    return f"{total // 60:02d}:{total % 60:02d}"
