"""Core exceptions for configuration, catalog access and retry handling.

This module contains shared exception classes to avoid circular imports
between the configuration loader, the request executor and the dispatcher.
"""

from __future__ import annotations

from typing import Any

HTTP_NO_CONTENT = 204
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


class ConfigurationError(Exception):
    """Raised when configuration loading or parsing fails."""

    def __init__(self, message: str, config_path: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Error description
            config_path: Path to the config file that caused the error

        """
        super().__init__(message)
        self.config_path = config_path


class CatalogApiError(Exception):
    """Terminal failure returned by a catalog service.

    Carries an HTTP-like status so the surrounding API layer can map it
    to a status/message pair without inspecting the message text.
    """

    def __init__(self, message: str, status: int = HTTP_SERVER_ERROR) -> None:
        """Initialize the catalog error.

        Args:
            message: Error description, prefixed with the platform name by connectors
            status: HTTP-like status code

        """
        super().__init__(message)
        self.message = message
        self.status = status

    def to_payload(self) -> dict[str, Any]:
        """Return the ``{"code", "message"}`` pair exposed to API callers."""
        return {"code": self.status, "message": self.message}


class RateLimitError(CatalogApiError):
    """Raised when a catalog signals that the request quota is exhausted."""

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        """Initialize the rate limit error.

        Args:
            message: Error description
            retry_after: Server-provided wait time in seconds, if any

        """
        super().__init__(message, HTTP_TOO_MANY_REQUESTS)
        self.retry_after = retry_after


class RetryError(Exception):
    """Base exception for retry-related errors."""


class RetryExhaustionError(RetryError):
    """Raised when retry attempts are exhausted."""

    def __init__(self, message: str, attempts: int, last_error: Exception | None = None) -> None:
        """Initialize retry exhaustion error.

        Args:
            message: Error description
            attempts: Number of retry attempts made
            last_error: The last error that occurred before giving up

        """
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error

    @property
    def status(self) -> int:
        """Status of the last observed error (429 when it was a rate limit)."""
        if isinstance(self.last_error, CatalogApiError):
            return self.last_error.status
        return HTTP_SERVER_ERROR


class MatchStoreError(Exception):
    """Raised when the match store cannot read or write a document."""
