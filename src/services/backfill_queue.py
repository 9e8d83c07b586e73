"""Serialized, rate-limited replay of plays missing from a service.

Producers only append to an ``asyncio.Queue``; a single worker task started on
the first enqueue removes items one at a time, replays each through the
target adapter and sleeps a fixed delay before taking the next one. Outcomes
are tallied and never retried within the run.
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING

from core.exceptions import BackfillError, FetchError
from core.models.track_models import BackfillEvent, BackfillOutcome, BackfillStats

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Iterable, Mapping

    from core.models.protocols import TrackFetcherProtocol
    from core.models.track_models import BackfillTask, ScrobbleService
    from core.tracks.blacklist import Blacklist

DEFAULT_DELAY_SECONDS = 0.5


class BackfillQueue:
    """Single-consumer queue replaying plays to the services that lack them."""

    def __init__(
        self,
        fetchers: Mapping[ScrobbleService, TrackFetcherProtocol],
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        sync_love: bool = True,
        blacklist: Blacklist | None = None,
        on_backfilled: Callable[[BackfillEvent], None] | None = None,
        sync_logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the queue.

        Args:
            fetchers: Adapters keyed by service, used for the replay calls
            console_logger: Logger for progress messages
            error_logger: Logger for failed replays
            delay_seconds: Pause after each processed task
            sync_love: Push the loved state after a successful replay
            blacklist: Plays that must never be replayed
            on_backfilled: Callback receiving an event per successful replay
            sync_logger: Logger for the per-task outcome log

        """
        self.fetchers = fetchers
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.sync_logger = sync_logger or console_logger
        self.delay_seconds = delay_seconds
        self.sync_love = sync_love
        self.blacklist = blacklist
        self.on_backfilled = on_backfilled

        self.stats = BackfillStats()
        self._queue: asyncio.Queue[BackfillTask] = asyncio.Queue()
        self._pending: set[tuple[ScrobbleService, str, str, int | None]] = set()
        self._worker: asyncio.Task[None] | None = None

    @property
    def pending_count(self) -> int:
        """Number of tasks enqueued but not yet processed."""
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        """Whether the worker task is alive."""
        return self._worker is not None and not self._worker.done()

    def enqueue(self, task: BackfillTask) -> bool:
        """Append a task without waiting for it to be processed.

        Returns:
            False when the same play is already pending for the same service
            or the play is blacklisted, True otherwise

        """
        if self.blacklist is not None and self.blacklist.is_blacklisted(task.track.artist, task.track.name):
            self.console_logger.debug("Skipping blacklisted backfill %s", task.track.describe())
            return False
        if task.key in self._pending:
            self.stats.skipped_duplicates += 1
            return False

        self._pending.add(task.key)
        self._queue.put_nowait(task)
        self._ensure_worker()
        return True

    def enqueue_many(self, tasks: Iterable[BackfillTask]) -> int:
        """Enqueue several tasks; returns how many were accepted."""
        accepted = sum(1 for task in tasks if self.enqueue(task))
        if accepted:
            self.console_logger.info("Queued %d backfill task(s), %d pending", accepted, self.pending_count)
        return accepted

    def _ensure_worker(self) -> None:
        if not self.is_running:
            self._worker = asyncio.create_task(self._run(), name="backfill-worker")

    async def _run(self) -> None:
        while True:
            task = await self._queue.get()
            try:
                self.stats.record(await self._process(task))
            finally:
                self._pending.discard(task.key)
                self._queue.task_done()
            await asyncio.sleep(self.delay_seconds)

    async def _process(self, task: BackfillTask) -> BackfillOutcome:
        """Replay one task; every failure becomes a failed outcome."""
        service_name = task.target_service.display_name
        try:
            await self._replay(task)
        except BackfillError as e:
            self.error_logger.warning("%s", e)
            self.sync_logger.info("FAILED %s -> %s (%s)", task.track.describe(), service_name, task.reason)
            return BackfillOutcome(task=task, succeeded=False, error=str(e.last_error or e))
        except Exception as e:
            self.error_logger.error("Backfill of %s to %s failed: %s", task.track.describe(), service_name, e, exc_info=e)
            self.sync_logger.info("FAILED %s -> %s (%s)", task.track.describe(), service_name, task.reason)
            return BackfillOutcome(task=task, succeeded=False, error=str(e))

        self.sync_logger.info("BACKFILLED %s -> %s (%s)", task.track.describe(), service_name, task.reason)
        self.console_logger.info("Backfilled %s to %s", task.track.describe(), service_name)
        await self._sync_love(task)
        self._publish(task)
        return BackfillOutcome(task=task, succeeded=True)

    async def _replay(self, task: BackfillTask) -> None:
        """Issue the "record this play" call.

        Raises:
            BackfillError: When no adapter exists or the adapter call fails

        """
        fetcher = self.fetchers.get(task.target_service)
        if fetcher is None:
            msg = f"Backfill of {task.track.describe()} failed: no adapter for {task.target_service.display_name}"
            raise BackfillError(msg)
        try:
            await fetcher.scrobble(task.target_credential.token, task.track)
        except FetchError as e:
            msg = f"Backfill of {task.track.describe()} to {task.target_service.display_name} failed"
            raise BackfillError(msg, last_error=e) from e

    async def _sync_love(self, task: BackfillTask) -> None:
        if not (self.sync_love and task.track.loved):
            return
        fetcher = self.fetchers.get(task.target_service)
        if fetcher is None or not fetcher.capabilities.supports_love:
            return
        try:
            await fetcher.update_love(task.target_credential.token, task.track.artist, task.track.name, True)
        except Exception as e:
            self.error_logger.warning("Love sync of %s to %s failed: %s", task.track.describe(), task.target_service.display_name, e)

    def _publish(self, task: BackfillTask) -> None:
        if self.on_backfilled is None or task.track.played_at is None:
            return
        event = BackfillEvent(
            artist=task.track.artist,
            track=task.track.name,
            timestamp=task.track.played_at,
            service=task.target_service,
        )
        try:
            self.on_backfilled(event)
        except Exception as e:
            self.error_logger.error("Backfill event handler failed for %s: %s", task.track.describe(), e, exc_info=e)

    async def wait_until_idle(self) -> None:
        """Wait until every enqueued task has been processed."""
        await self._queue.join()

    async def close(self) -> None:
        """Stop the worker; tasks still queued are dropped."""
        if self._worker is None:
            return
        self._worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._worker
        self._worker = None
        if self.pending_count:
            self.console_logger.warning("Dropped %d unprocessed backfill task(s)", self.pending_count)
