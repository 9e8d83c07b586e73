"""Dependency Injection Container Module.

Builds the application services from the configuration and owns their
lifecycle: the shared aiohttp session, the service adapters, the backfill
queue and the coordinator, delete fan-out and scrobble dispatcher that use
them. Nothing here is a process-wide singleton; each container is explicit.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import aiohttp

from core.logger import LogFormat
from core.models.track_models import ScrobbleService
from core.tracks.blacklist import Blacklist

from .api import ApiRequestExecutor, EnhancedRateLimiter, LastFmClient, LibreFmClient, ListenBrainzClient
from .api.listenbrainz import MUSICBRAINZ_API_NAME
from .backfill_queue import BackfillQueue
from .coordinator import ServiceCoordinator
from .delete_fanout import DeleteFanout
from .scrobble_dispatcher import ScrobbleDispatcher

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from core.logger import SafeQueueListener
    from core.models.protocols import TrackFetcherProtocol
    from core.models.track_models import AppConfig, BackfillEvent, ServicesSnapshot

# MusicBrainz allows one request per second per client
MUSICBRAINZ_REQUESTS_PER_SECOND = 1


class DependencyContainer:
    """Dependency injection container for the application."""

    def __init__(
        self,
        config: AppConfig,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        sync_logger: logging.Logger,
        *,
        logging_listener: SafeQueueListener | None = None,
        fetchers: Mapping[ScrobbleService, TrackFetcherProtocol] | None = None,
    ) -> None:
        """Initialize the dependency container.

        Args:
            config: Validated application configuration
            console_logger: Logger for console output
            error_logger: Logger for error messages
            sync_logger: Logger for backfill and delete outcomes
            logging_listener: Optional queue listener stopped on shutdown
            fetchers: Pre-built adapters; when given no HTTP session is created

        """
        self._config = config
        self._console_logger = console_logger
        self._error_logger = error_logger
        self._sync_logger = sync_logger
        self._listener = logging_listener

        self._snapshot: ServicesSnapshot = config.services_snapshot()
        self._fetchers: dict[ScrobbleService, TrackFetcherProtocol] = dict(fetchers or {})
        self._prebuilt_fetchers = fetchers is not None
        self._session: aiohttp.ClientSession | None = None
        self._executor: ApiRequestExecutor | None = None
        self._blacklist = Blacklist(config.blacklist)
        self._backfill_queue: BackfillQueue | None = None
        self._coordinator: ServiceCoordinator | None = None
        self._delete_fanout: DeleteFanout | None = None
        self._dispatcher: ScrobbleDispatcher | None = None
        self.backfill_events: list[BackfillEvent] = []

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def snapshot(self) -> ServicesSnapshot:
        """Get the services snapshot taken at construction."""
        return self._snapshot

    @property
    def fetchers(self) -> Mapping[ScrobbleService, TrackFetcherProtocol]:
        """Get the service adapters keyed by service."""
        return self._fetchers

    @property
    def blacklist(self) -> Blacklist:
        """Get the blacklist."""
        return self._blacklist

    @property
    def backfill_queue(self) -> BackfillQueue:
        """Get the backfill queue."""
        if self._backfill_queue is None:
            msg = "Backfill queue not initialized"
            raise RuntimeError(msg)
        return self._backfill_queue

    @property
    def coordinator(self) -> ServiceCoordinator:
        """Get the service coordinator."""
        if self._coordinator is None:
            msg = "Service coordinator not initialized"
            raise RuntimeError(msg)
        return self._coordinator

    @property
    def delete_fanout(self) -> DeleteFanout:
        """Get the delete fan-out."""
        if self._delete_fanout is None:
            msg = "Delete fan-out not initialized"
            raise RuntimeError(msg)
        return self._delete_fanout

    @property
    def dispatcher(self) -> ScrobbleDispatcher:
        """Get the scrobble dispatcher."""
        if self._dispatcher is None:
            msg = "Scrobble dispatcher not initialized"
            raise RuntimeError(msg)
        return self._dispatcher

    @property
    def console_logger(self) -> logging.Logger:
        """Get the console logger."""
        return self._console_logger

    @property
    def error_logger(self) -> logging.Logger:
        """Get the error logger."""
        return self._error_logger

    def _build_executor(self) -> ApiRequestExecutor:
        http = self._config.http
        rate_limiters = {
            service.value: EnhancedRateLimiter(http.requests_per_window, http.window_seconds) for service in ScrobbleService
        }
        rate_limiters[MUSICBRAINZ_API_NAME] = EnhancedRateLimiter(MUSICBRAINZ_REQUESTS_PER_SECOND, 1.0)
        return ApiRequestExecutor(
            rate_limiters=rate_limiters,
            console_logger=self._console_logger,
            error_logger=self._error_logger,
            user_agent=f"{http.user_agent} ( {http.musicbrainz_contact} )",
            default_max_retries=http.max_retries,
            default_retry_delay=http.retry_delay_seconds,
        )

    def _build_fetcher(self, service: ScrobbleService, executor: ApiRequestExecutor) -> TrackFetcherProtocol:
        max_age = self._config.backfill.restricted_max_age_days
        if service == ScrobbleService.LASTFM:
            return LastFmClient(executor, self._console_logger, self._error_logger, self._config.lastfm, max_age)
        if service == ScrobbleService.LIBREFM:
            return LibreFmClient(executor, self._console_logger, self._error_logger, self._config.librefm, max_age)
        return ListenBrainzClient(executor, self._console_logger, self._error_logger)

    def _record_backfill_event(self, event: BackfillEvent) -> None:
        self.backfill_events.append(event)

    async def initialize(self) -> None:
        """Create the HTTP session, adapters and engine components."""
        self._console_logger.debug("Initializing %s...", LogFormat.entity("DependencyContainer"))

        if not self._prebuilt_fetchers:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._config.http.timeout_seconds))
            self._executor = self._build_executor()
            self._executor.set_session(self._session)
            for credential in self._snapshot.enabled:
                self._fetchers[credential.service] = self._build_fetcher(credential.service, self._executor)

        backfill = self._config.backfill
        self._backfill_queue = BackfillQueue(
            self._fetchers,
            self._console_logger,
            self._error_logger,
            delay_seconds=backfill.delay_seconds,
            sync_love=backfill.sync_love,
            blacklist=self._blacklist,
            on_backfilled=self._record_backfill_event,
            sync_logger=self._sync_logger,
        )
        self._coordinator = ServiceCoordinator(
            self._fetchers,
            self._snapshot,
            self._console_logger,
            self._error_logger,
            backfill_queue=self._backfill_queue,
            sync_config=self._config.sync,
            blacklist=self._blacklist,
            backfill_enabled=backfill.enabled,
        )
        self._delete_fanout = DeleteFanout(
            self._fetchers,
            self._snapshot,
            self._console_logger,
            self._error_logger,
            sync_logger=self._sync_logger,
        )
        self._dispatcher = ScrobbleDispatcher(
            self._fetchers,
            self._snapshot,
            self._console_logger,
            self._error_logger,
            blacklist=self._blacklist,
        )

        enabled = ", ".join(service.display_name for service in self._fetchers) or "none"
        self._console_logger.info("Services initialized (enabled: %s)", enabled)

    async def close(self) -> None:
        """Stop the backfill worker, then close the HTTP session."""
        self._console_logger.debug("Closing %s...", LogFormat.entity("DependencyContainer"))

        if self._backfill_queue is not None:
            await self._backfill_queue.close()

        if self._session is not None and not self._session.closed:
            try:
                await self._session.close()
            except (OSError, RuntimeError, asyncio.CancelledError) as e:
                self._console_logger.warning("Failed to close HTTP session: %s", e)
        self._session = None

        self._console_logger.debug("%s closed.", LogFormat.entity("DependencyContainer"))

    def shutdown(self) -> None:
        """Stop the logging listener."""
        if self._listener is not None:
            self._console_logger.debug("Stopping logging listener...")
            self._listener.stop()
            self._listener = None
