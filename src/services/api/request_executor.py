"""API Request Executor module.

Handles HTTP request execution with retry logic, rate limiting
and response processing for the listening-history service APIs.
"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
import urllib.parse
from typing import TYPE_CHECKING, Any

import aiohttp

from core.exceptions import FetchError

if TYPE_CHECKING:
    from services.api.api_base import EnhancedRateLimiter


# Constants
WAIT_TIME_LOG_THRESHOLD = 0.1
HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500
API_RESPONSE_LOG_LIMIT = 500
SECURE_RANDOM = secrets.SystemRandom()


class RetryableStatusError(Exception):
    """Response status that warrants another attempt (429 or 5xx)."""

    def __init__(self, status: int, snippet: str) -> None:
        super().__init__(f"HTTP {status}: {snippet}")
        self.status = status
        self.snippet = snippet


class ApiRequestExecutor:
    """Executes HTTP requests with retry logic and rate limiting.

    Handles all low-level HTTP communication including:
    - Request preparation (headers, timeouts)
    - Rate limiting coordination
    - Retry with exponential backoff
    - Response parsing and validation

    Every failure surfaces as :class:`FetchError` carrying the API name.
    """

    def __init__(
        self,
        *,
        rate_limiters: dict[str, EnhancedRateLimiter],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        user_agent: str,
        default_max_retries: int,
        default_retry_delay: float,
    ) -> None:
        """Initialize the API request executor.

        Args:
            rate_limiters: Dict mapping API names to rate limiters
            console_logger: Logger for info/debug messages
            error_logger: Logger for errors/warnings
            user_agent: User-Agent header for requests
            default_max_retries: Default retry count for failed requests
            default_retry_delay: Base delay between retries (seconds)
        """
        self.rate_limiters = rate_limiters
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.user_agent = user_agent
        self.default_max_retries = default_max_retries
        self.default_retry_delay = default_retry_delay

        # Session managed externally, set via set_session()
        self.session: aiohttp.ClientSession | None = None

        self.request_counts: dict[str, int] = {}
        self.api_call_durations: dict[str, list[float]] = {}

    def set_session(self, session: aiohttp.ClientSession | None) -> None:
        """Set the aiohttp session for making requests."""
        self.session = session

    async def execute_request(
        self,
        api_name: str,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
        json_body: Any = None,
        headers_override: dict[str, str] | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ) -> dict[str, Any]:
        """Execute an API request with rate limiting and retry logic.

        Args:
            api_name: Name of the API (e.g., 'Last.fm', 'MusicBrainz')
            method: HTTP method
            url: Request URL
            params: Query parameters
            data: Form body
            json_body: JSON body
            headers_override: Additional headers to merge
            max_retries: Override default retry count
            base_delay: Override default retry delay

        Returns:
            Parsed JSON response dict (empty for bodies without JSON)

        Raises:
            FetchError: When the request cannot be completed
        """
        session = self._ensure_session(api_name)
        limiter = self.rate_limiters.get(api_name)
        if limiter is None:
            raise FetchError(api_name, "no rate limiter configured")

        request_headers = {"User-Agent": self.user_agent}
        if headers_override:
            request_headers |= headers_override

        retry_attempts = max_retries if isinstance(max_retries, int) and max_retries >= 0 else self.default_max_retries
        retry_delay = base_delay if isinstance(base_delay, (int, float)) and base_delay >= 0 else self.default_retry_delay
        log_url = self._build_log_url(url, params)

        last_error: Exception | None = None
        for attempt in range(retry_attempts + 1):
            try:
                return await self._execute_single_request(
                    session,
                    api_name,
                    method,
                    url,
                    params=params,
                    data=data,
                    json_body=json_body,
                    request_headers=request_headers,
                    limiter=limiter,
                    attempt=attempt,
                    log_url=log_url,
                )
            except (RetryableStatusError, TimeoutError, aiohttp.ClientError) as e:
                last_error = e
                if attempt >= retry_attempts:
                    break
                delay = self._backoff_delay(retry_delay, attempt)
                self.console_logger.warning(
                    "[%s] Request failed (%s), retrying %d/%d in %.2fs",
                    api_name,
                    e,
                    attempt + 1,
                    retry_attempts,
                    delay,
                )
                await asyncio.sleep(delay)

        self.error_logger.error("[%s] Request to %s failed after %d attempts: %s", api_name, log_url, retry_attempts + 1, last_error)
        status = last_error.status if isinstance(last_error, RetryableStatusError) else None
        raise FetchError(api_name, f"request failed: {last_error}", status=status) from last_error

    @staticmethod
    def _backoff_delay(base_delay: float, attempt: int) -> float:
        """Exponential backoff with a small random jitter."""
        return base_delay * (2**attempt) + SECURE_RANDOM.uniform(0, base_delay / 2)

    @staticmethod
    def _build_log_url(url: str, params: dict[str, str] | None) -> str:
        """Build URL string for logging purposes."""
        return url + (f"?{urllib.parse.urlencode(params or {}, safe=':/')}" if params else "")

    def _ensure_session(self, api_name: str) -> aiohttp.ClientSession:
        """Return the active session, raise if not available."""
        if self.session is None or self.session.closed:
            msg = "HTTP session not initialized or closed"
            raise FetchError(api_name, msg)
        return self.session

    async def _execute_single_request(
        self,
        session: aiohttp.ClientSession,
        api_name: str,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None,
        data: dict[str, str] | None,
        json_body: Any,
        request_headers: dict[str, str],
        limiter: EnhancedRateLimiter,
        attempt: int,
        log_url: str,
    ) -> dict[str, Any]:
        """Perform a single request attempt.

        Raises:
            RetryableStatusError: On 429 or 5xx responses
            FetchError: On other non-success responses
        """
        start_time = time.monotonic()
        wait_time = await limiter.acquire()
        if wait_time > WAIT_TIME_LOG_THRESHOLD:
            self.console_logger.debug("[%s] Waited %.3fs for rate limiting", api_name, wait_time)

        self.request_counts[api_name] = self.request_counts.get(api_name, 0) + 1

        async with session.request(
            method,
            url,
            params=params,
            data=data,
            json=json_body,
            headers=request_headers,
        ) as response:
            elapsed = time.monotonic() - start_time
            self.api_call_durations.setdefault(api_name, []).append(elapsed)
            return await self._process_response(response, api_name, attempt, log_url, elapsed)

    async def _process_response(
        self,
        response: aiohttp.ClientResponse,
        api_name: str,
        attempt: int,
        log_url: str,
        elapsed: float,
    ) -> dict[str, Any]:
        """Process HTTP response and determine the next action."""
        response_status = response.status
        response_text = await response.text(encoding="utf-8", errors="ignore")
        snippet = response_text[:API_RESPONSE_LOG_LIMIT]

        self.console_logger.debug(
            "[%s] Request (Attempt %d): %s - Status: %d (%.3fs)",
            api_name,
            attempt + 1,
            log_url,
            response_status,
            elapsed,
        )
        if self.console_logger.isEnabledFor(logging.DEBUG):
            self.console_logger.debug("[%s] Response snippet: %s", api_name, snippet)

        # Handle rate limiting and server errors
        if response_status == HTTP_TOO_MANY_REQUESTS or response_status >= HTTP_SERVER_ERROR:
            raise RetryableStatusError(response_status, snippet)

        payload = self._parse_json(response_text)

        if not response.ok:
            self.error_logger.warning(
                "[%s] API request failed with status %d. URL: %s. Snippet: %s",
                api_name,
                response_status,
                log_url,
                snippet,
            )
            message = self._error_message(payload) or snippet or f"HTTP {response_status}"
            raise FetchError(api_name, message, status=response_status)

        return payload

    @staticmethod
    def _parse_json(text: str) -> dict[str, Any]:
        """Parse a JSON object body; anything else yields an empty dict."""
        if not text.strip():
            return {}
        try:
            parsed = json.loads(text)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {"items": parsed}

    @staticmethod
    def _error_message(payload: dict[str, Any]) -> str | None:
        """Extract the error text APIs put into JSON error bodies."""
        for key in ("message", "error"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return value
        return None
