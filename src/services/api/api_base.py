"""Base classes and utilities for listening-history service adapters.

This module provides common functionality for all service adapters including:
- Rate limiting with moving window approach
- Shared access to the request executor and loggers
- Conversion helpers for loosely typed API payloads
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING, Any

from core.models.protocols import ServiceCapabilities

if TYPE_CHECKING:
    import logging

    from core.models.track_models import ScrobbleIdentifier, ScrobbleService, TrackRecord
    from services.api.request_executor import ApiRequestExecutor


class EnhancedRateLimiter:
    """Advanced rate limiter using a moving window approach for API calls.

    This rate limiter tracks API calls within a sliding time window to ensure
    compliance with API rate limits. It uses a moving window algorithm that's
    more accurate than simple token bucket approaches.

    Attributes:
        requests_per_window: Maximum number of requests allowed in the time window
        window_seconds: Size of the time window in seconds
        call_times: List of timestamps for recent API calls
        lock: Asyncio lock for thread-safe operations

    """

    def __init__(self, requests_per_window: int, window_seconds: float) -> None:
        """Initialize the rate limiter.

        Args:
            requests_per_window: Maximum requests allowed in the time window
            window_seconds: Duration of the time window in seconds

        Raises:
            ValueError: If parameters are not positive numbers

        """
        if requests_per_window <= 0:
            msg = "requests_per_window must be a positive integer"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = "window_seconds must be a positive number"
            raise ValueError(msg)

        self.requests_per_window = requests_per_window
        self.window_seconds = window_seconds
        self.call_times: list[float] = []
        self.lock = asyncio.Lock()
        self.total_requests = 0
        self.total_wait_time = 0.0

    async def acquire(self) -> float:
        """Acquire permission to make an API call, waiting if necessary.

        Returns:
            float: The amount of time (in seconds) that was spent waiting

        """
        async with self.lock:
            wait_time = await self._wait_if_needed()
            self.call_times.append(time.monotonic())
            self.total_requests += 1
            self.total_wait_time += wait_time
            return wait_time

    async def _wait_if_needed(self) -> float:
        now = time.monotonic()
        cutoff = now - self.window_seconds
        self.call_times = [t for t in self.call_times if t > cutoff]

        if len(self.call_times) < self.requests_per_window:
            return 0.0

        wait_time = max(0.0, self.call_times[0] + self.window_seconds - now)
        if wait_time > 0:
            # Small buffer to avoid edge cases at the window boundary
            wait_time += 0.01
            await asyncio.sleep(wait_time)
            cutoff = time.monotonic() - self.window_seconds
            self.call_times = [t for t in self.call_times if t > cutoff]
        return wait_time

    def get_stats(self) -> dict[str, Any]:
        """Get current rate limiter statistics."""
        cutoff = time.monotonic() - self.window_seconds
        current_calls = [t for t in self.call_times if t > cutoff]
        return {
            "requests_per_window": self.requests_per_window,
            "window_seconds": self.window_seconds,
            "current_calls_in_window": len(current_calls),
            "available_capacity": max(0, self.requests_per_window - len(current_calls)),
            "total_requests": self.total_requests,
            "avg_wait_time": self.total_wait_time / max(1, self.total_requests),
        }


class BaseScrobbleClient:
    """Base class for service adapter implementations.

    Subclasses set ``service`` and ``capabilities`` and implement the
    operations of ``TrackFetcherProtocol``. Optional operations default to
    raising ``NotImplementedError`` so a missing capability is never a silent
    no-op.
    """

    service: ScrobbleService
    capabilities: ServiceCapabilities = ServiceCapabilities()

    def __init__(
        self,
        executor: ApiRequestExecutor,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        """Initialize base client.

        Args:
            executor: Shared HTTP request executor
            console_logger: Logger for console output
            error_logger: Logger for error messages

        """
        self.executor = executor
        self.console_logger = console_logger
        self.error_logger = error_logger

    def __repr__(self) -> str:
        return f"{type(self).__name__}(service={self.service.value!r})"

    async def get_recent_tracks_by_time_range(
        self,
        username: str,
        min_ts: int | None,
        max_ts: int | None,
        limit: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Time range listing, only available with ``supports_time_range_query``."""
        msg = f"{self.service.display_name} does not support time range queries"
        raise NotImplementedError(msg)

    async def update_love(self, session_key: str, artist: str, track: str, loved: bool) -> None:
        """Love/unlove, only available with ``supports_love``."""
        msg = f"{self.service.display_name} does not support loving tracks"
        raise NotImplementedError(msg)

    async def delete_scrobble(self, session_key: str, identifier: ScrobbleIdentifier) -> None:
        """Play removal, only available with ``supports_delete``."""
        msg = f"{self.service.display_name} does not support deleting scrobbles"
        raise NotImplementedError(msg)

    @staticmethod
    def _as_list(value: Any) -> list[Any]:
        """Wrap single-object payloads that APIs return instead of one-element lists."""
        if value is None:
            return []
        if isinstance(value, list):
            return value
        return [value]

    @staticmethod
    def _as_int(value: Any) -> int | None:
        """Convert a loosely typed timestamp or counter, None when impossible."""
        try:
            return int(value)
        except (TypeError, ValueError):
            return None
