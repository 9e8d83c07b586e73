"""Tests for the moving-window rate limiter."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from services.api.api_base import EnhancedRateLimiter


class TestEnhancedRateLimiter:
    """Tests for EnhancedRateLimiter."""

    @pytest.mark.parametrize(("requests", "window"), [(0, 1.0), (-1, 1.0), (1, 0), (1, -2.5)])
    def test_rejects_non_positive_settings(self, requests: int, window: float) -> None:
        """Both settings must be positive."""
        with pytest.raises(ValueError, match="must be a positive"):
            EnhancedRateLimiter(requests, window)

    @pytest.mark.asyncio
    async def test_under_limit_does_not_wait(self) -> None:
        """Calls within capacity return immediately."""
        limiter = EnhancedRateLimiter(3, 60)
        waits = [await limiter.acquire() for _ in range(3)]
        assert waits == [0.0, 0.0, 0.0]
        stats = limiter.get_stats()
        assert stats["total_requests"] == 3
        assert stats["available_capacity"] == 0

    @pytest.mark.asyncio
    async def test_over_limit_waits_for_window(self) -> None:
        """The call after a full window waits until the oldest call expires."""
        limiter = EnhancedRateLimiter(1, 60)
        await limiter.acquire()
        with patch("services.api.api_base.asyncio.sleep", new=AsyncMock()) as sleep:
            waited = await limiter.acquire()
        assert waited > 59
        sleep.assert_awaited_once()
        assert limiter.total_wait_time == waited
