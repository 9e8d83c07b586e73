"""Tests for ApiRequestExecutor - HTTP request execution with retry and rate limiting."""

import json
import logging
from typing import TYPE_CHECKING, Any, cast
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from core.exceptions import FetchError
from services.api.request_executor import (
    HTTP_SERVER_ERROR,
    HTTP_TOO_MANY_REQUESTS,
    ApiRequestExecutor,
)

if TYPE_CHECKING:
    from services.api.api_base import EnhancedRateLimiter


@pytest.fixture
def console_logger() -> logging.Logger:
    """Create a test console logger."""
    return logging.getLogger("test.api.console")


@pytest.fixture
def error_logger() -> logging.Logger:
    """Create a test error logger."""
    return logging.getLogger("test.api.error")


@pytest.fixture
def mock_rate_limiter() -> AsyncMock:
    """Create a mock rate limiter."""
    limiter = AsyncMock()
    limiter.acquire = AsyncMock(return_value=0.0)
    return limiter


@pytest.fixture
def executor(mock_rate_limiter: AsyncMock, console_logger: logging.Logger, error_logger: logging.Logger) -> ApiRequestExecutor:
    """Create an ApiRequestExecutor instance."""
    return ApiRequestExecutor(
        rate_limiters=cast(dict[str, "EnhancedRateLimiter"], {"Last.fm": mock_rate_limiter}),
        console_logger=console_logger,
        error_logger=error_logger,
        user_agent="TestAgent/1.0",
        default_max_retries=2,
        default_retry_delay=0.01,
    )


def _create_mock_response(status: int, body: Any) -> MagicMock:
    """Create a mock HTTP response."""
    response = MagicMock()
    response.status = status
    response.ok = 200 <= status < 300
    text = body if isinstance(body, str) else json.dumps(body)
    response.text = AsyncMock(return_value=text)
    return response


def _session_returning(*responses: MagicMock | Exception) -> MagicMock:
    """Mock session whose request() yields the given responses in order."""
    session = MagicMock(spec=aiohttp.ClientSession)
    session.closed = False
    contexts = []
    for response in responses:
        cm = MagicMock()
        if isinstance(response, Exception):
            cm.__aenter__ = AsyncMock(side_effect=response)
        else:
            cm.__aenter__ = AsyncMock(return_value=response)
        cm.__aexit__ = AsyncMock(return_value=False)
        contexts.append(cm)
    session.request.side_effect = contexts
    return session


class TestExecuteRequest:
    """Tests for execute_request."""

    @pytest.mark.asyncio
    async def test_success_returns_payload(self, executor: ApiRequestExecutor, mock_rate_limiter: AsyncMock) -> None:
        """A 200 JSON response is returned as a dict."""
        session = _session_returning(_create_mock_response(200, {"ok": True}))
        executor.set_session(session)

        result = await executor.execute_request("Last.fm", "GET", "https://api.example/", params={"a": "1"})

        assert result == {"ok": True}
        mock_rate_limiter.acquire.assert_awaited_once()
        _, kwargs = session.request.call_args
        assert kwargs["params"] == {"a": "1"}
        assert kwargs["headers"]["User-Agent"] == "TestAgent/1.0"
        assert executor.request_counts["Last.fm"] == 1

    @pytest.mark.asyncio
    async def test_headers_override_merged(self, executor: ApiRequestExecutor) -> None:
        """Extra headers are added to the User-Agent."""
        session = _session_returning(_create_mock_response(200, {}))
        executor.set_session(session)

        await executor.execute_request("Last.fm", "POST", "https://api.example/", headers_override={"Authorization": "Token t"})

        _, kwargs = session.request.call_args
        assert kwargs["headers"] == {"User-Agent": "TestAgent/1.0", "Authorization": "Token t"}

    @pytest.mark.asyncio
    async def test_retries_on_server_error(self, executor: ApiRequestExecutor) -> None:
        """5xx responses are retried until success."""
        session = _session_returning(
            _create_mock_response(HTTP_SERVER_ERROR, "oops"),
            _create_mock_response(HTTP_TOO_MANY_REQUESTS, "slow down"),
            _create_mock_response(200, {"done": 1}),
        )
        executor.set_session(session)

        with patch("services.api.request_executor.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await executor.execute_request("Last.fm", "GET", "https://api.example/")

        assert result == {"done": 1}
        assert session.request.call_count == 3
        assert sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_fetch_error(self, executor: ApiRequestExecutor) -> None:
        """After the last attempt a FetchError with the status is raised."""
        session = _session_returning(*(_create_mock_response(503, "down") for _ in range(3)))
        executor.set_session(session)

        with patch("services.api.request_executor.asyncio.sleep", new=AsyncMock()), pytest.raises(FetchError) as exc_info:
            await executor.execute_request("Last.fm", "GET", "https://api.example/")

        assert exc_info.value.status == 503
        assert exc_info.value.service == "Last.fm"

    @pytest.mark.asyncio
    async def test_client_error_retried(self, executor: ApiRequestExecutor) -> None:
        """Connection errors are retried like server errors."""
        session = _session_returning(aiohttp.ClientError("reset"), _create_mock_response(200, {"x": 1}))
        executor.set_session(session)

        with patch("services.api.request_executor.asyncio.sleep", new=AsyncMock()):
            assert await executor.execute_request("Last.fm", "GET", "https://api.example/") == {"x": 1}

    @pytest.mark.asyncio
    async def test_client_error_status_not_retried(self, executor: ApiRequestExecutor) -> None:
        """4xx responses fail at once with the API's message."""
        session = _session_returning(_create_mock_response(401, {"message": "Invalid token"}))
        executor.set_session(session)

        with pytest.raises(FetchError, match="Invalid token") as exc_info:
            await executor.execute_request("Last.fm", "GET", "https://api.example/")

        assert exc_info.value.status == 401
        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_no_session(self, executor: ApiRequestExecutor) -> None:
        """Requests without a session fail."""
        with pytest.raises(FetchError, match="session not initialized"):
            await executor.execute_request("Last.fm", "GET", "https://api.example/")

    @pytest.mark.asyncio
    async def test_unknown_api_name(self, executor: ApiRequestExecutor) -> None:
        """Every API needs its own rate limiter."""
        executor.set_session(_session_returning())
        with pytest.raises(FetchError, match="no rate limiter"):
            await executor.execute_request("Unknown", "GET", "https://api.example/")


class TestParseJson:
    """Tests for _parse_json."""

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("", {}),
            ("not json", {}),
            ('{"a": 1}', {"a": 1}),
            ("[1, 2]", {"items": [1, 2]}),
        ],
    )
    def test_parse(self, text: str, expected: dict[str, Any]) -> None:
        """Bodies are normalized to dicts."""
        assert ApiRequestExecutor._parse_json(text) == expected
