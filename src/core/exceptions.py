"""Core exceptions for configuration, fetching and repair handling.

This module contains shared exception classes to avoid circular imports
between the configuration loader, the service adapters and the sync engine.
"""

from __future__ import annotations


class ScrobbleSyncError(Exception):
    """Base exception for all scrobble-sync errors."""


class ConfigurationError(ScrobbleSyncError):
    """Raised when configuration loading or parsing fails.

    Also used when no primary service is configured for a refresh.
    """

    def __init__(self, message: str, config_path: str | None = None) -> None:
        """Initialize the configuration error.

        Args:
            message: Error description
            config_path: Path to the config file that caused the error

        """
        super().__init__(message)
        self.config_path = config_path


class FetchError(ScrobbleSyncError):
    """Raised by a service adapter on network, auth or API failure."""

    def __init__(self, service: str, message: str, *, status: int | None = None) -> None:
        """Initialize the fetch error.

        Args:
            service: Identifier of the service that failed
            message: Error description
            status: HTTP status code, when the failure came from a response

        """
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status = status


class BackfillError(ScrobbleSyncError):
    """Raised when replaying a play to a target service fails."""

    def __init__(self, message: str, last_error: Exception | None = None) -> None:
        """Initialize the backfill error.

        Args:
            message: Error description
            last_error: Underlying adapter error

        """
        super().__init__(message)
        self.last_error = last_error


class DeleteError(ScrobbleSyncError):
    """Raised when one service of a delete fan-out fails."""

    def __init__(self, service: str, message: str) -> None:
        """Initialize the delete error.

        Args:
            service: Identifier of the service that failed
            message: Error description

        """
        super().__init__(f"{service}: {message}")
        self.service = service
