"""Service Coordinator: one refresh of the reconciled listening history.

A refresh fetches a page from the primary service, fetches a candidate pool
from every enabled secondary service concurrently, folds matcher and merger
over the secondaries in configuration order, computes sync status and hands
the detected gaps to the backfill queue without waiting for it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.exceptions import ConfigurationError, FetchError
from core.models.track_models import ReconciledTrack, SyncConfig
from core.tracks.backfill_policy import can_backfill
from core.tracks.merger import merge_service_pass
from core.tracks.sync_status import annotate_sync_status

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping, Sequence

    from core.models.protocols import ServiceCapabilities, TrackFetcherProtocol
    from core.models.track_models import BackfillTask, ScrobbleService, ServiceCredential, ServicesSnapshot, TrackRecord
    from core.tracks.blacklist import Blacklist
    from services.backfill_queue import BackfillQueue


class ServiceCoordinator:
    """Orchestrates fetch, match, merge, sync status and repair enqueueing.

    All collaborators are injected; the coordinator owns the reconciled list
    only for the duration of one ``refresh`` call.
    """

    def __init__(
        self,
        fetchers: Mapping[ScrobbleService, TrackFetcherProtocol],
        snapshot: ServicesSnapshot,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        *,
        backfill_queue: BackfillQueue | None = None,
        sync_config: SyncConfig | None = None,
        blacklist: Blacklist | None = None,
        backfill_enabled: bool = True,
    ) -> None:
        """Initialize the coordinator.

        Args:
            fetchers: Adapters keyed by service
            snapshot: Read-only view of the configured services
            console_logger: Logger for progress messages
            error_logger: Logger for isolated service failures
            backfill_queue: Queue receiving detected gaps; None disables repairs
            sync_config: Fetch sizing settings
            blacklist: Plays that never produce backfill tasks
            backfill_enabled: Whether gaps are turned into backfill tasks

        """
        self.fetchers = fetchers
        self.snapshot = snapshot
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.backfill_queue = backfill_queue
        self.sync_config = sync_config or SyncConfig()
        self.blacklist = blacklist
        self.backfill_enabled = backfill_enabled

    async def refresh(self, limit: int | None = None, page: int = 1, *, enqueue_backfill: bool = True) -> list[ReconciledTrack]:
        """Run one refresh and return the reconciled tracks.

        With ``enqueue_backfill`` False the detected gaps are dropped, for
        callers that only need to look plays up.

        Never raises for service or configuration problems: a missing primary
        or a failed primary fetch yields an empty list, a failed secondary
        contributes an empty candidate pool.
        """
        if limit is None:
            limit = self.sync_config.page_size
        primary = self.snapshot.primary
        fetcher = self.fetchers.get(primary.service) if primary is not None else None
        if primary is None or fetcher is None:
            reason = "No primary service configured" if primary is None else f"No adapter for primary service {primary.service.display_name}"
            error = ConfigurationError(reason)
            self.error_logger.warning("Refresh skipped: %s", error)
            return []

        try:
            primary_tracks = await fetcher.get_recent_tracks(primary.username, limit, page, primary.token)
        except FetchError as e:
            self.error_logger.warning("Primary fetch from %s failed: %s", primary.service.display_name, e)
            return []

        self.console_logger.info("Fetched %d track(s) from primary service %s", len(primary_tracks), primary.service.display_name)

        secondaries = self._secondaries(primary)
        pools = await asyncio.gather(*(self._fetch_candidates(credential, primary_tracks, limit, page) for credential in secondaries))

        reconciled = [ReconciledTrack.from_record(track) for track in primary_tracks]
        backfill_tasks: list[BackfillTask] = []
        for credential, pool in zip(secondaries, pools, strict=True):
            capabilities = self.fetchers[credential.service].capabilities

            def should_backfill(track: ReconciledTrack, capabilities: ServiceCapabilities = capabilities) -> bool:
                return self._is_backfill_eligible(track, capabilities)

            result = merge_service_pass(
                reconciled,
                pool,
                credential,
                self.snapshot.main_service_preference,
                should_backfill,
                logger=self.console_logger,
            )
            reconciled = result.tracks
            backfill_tasks.extend(result.backfill_tasks)
            self.console_logger.info(
                "%s: %d matched, %d missing, %d to backfill",
                credential.service.display_name,
                result.matched,
                result.missing,
                len(result.backfill_tasks),
            )

        reconciled = annotate_sync_status(reconciled, self.snapshot.enabled_services)

        if enqueue_backfill and backfill_tasks and self.backfill_queue is not None:
            self.backfill_queue.enqueue_many(backfill_tasks)
        return reconciled

    def _secondaries(self, primary: ServiceCredential) -> list[ServiceCredential]:
        """Enabled non-primary services that have an adapter, in configuration order."""
        secondaries: list[ServiceCredential] = []
        for credential in self.snapshot.enabled:
            if credential.service == primary.service:
                continue
            if credential.service not in self.fetchers:
                self.error_logger.warning("No adapter for %s, service ignored", credential.service.display_name)
                continue
            secondaries.append(credential)
        return secondaries

    def _is_backfill_eligible(self, track: ReconciledTrack, capabilities: ServiceCapabilities) -> bool:
        if not self.backfill_enabled or self.backfill_queue is None:
            return False
        if self.blacklist is not None and self.blacklist.is_blacklisted(track.artist, track.name):
            return False
        return can_backfill(track, capabilities.max_backfill_age_days)

    async def _fetch_candidates(
        self,
        credential: ServiceCredential,
        primary_tracks: Sequence[TrackRecord],
        limit: int,
        page: int,
    ) -> list[TrackRecord]:
        """Fetch the candidate pool of one secondary service.

        Returns:
            The candidates, empty when the fetch failed

        """
        fetcher = self.fetchers[credential.service]
        name = credential.service.display_name
        try:
            if fetcher.capabilities.supports_time_range_query:
                candidates = await self._fetch_time_range(fetcher, credential, primary_tracks)
                if candidates:
                    return candidates
                self.console_logger.debug("%s: empty time range answer, falling back to pages", name)

            fallback_limit = min(limit * self.sync_config.fallback_fetch_multiplier * page, self.sync_config.max_fallback_fetch)
            candidates = await fetcher.get_recent_tracks(credential.username, fallback_limit, 1, credential.token)
        except FetchError as e:
            self.error_logger.warning("Fetch from %s failed, no candidates this refresh: %s", name, e)
            return []

        self.console_logger.debug("%s: %d candidate(s)", name, len(candidates))
        return candidates

    async def _fetch_time_range(
        self,
        fetcher: TrackFetcherProtocol,
        credential: ServiceCredential,
        primary_tracks: Sequence[TrackRecord],
    ) -> list[TrackRecord]:
        """Query the primary timestamp span widened by the configured buffer."""
        timestamps = [track.played_at for track in primary_tracks if track.played_at is not None]
        if not timestamps:
            return []
        buffer = self.sync_config.time_range_buffer_seconds
        return await fetcher.get_recent_tracks_by_time_range(
            credential.username,
            min(timestamps) - buffer,
            max(timestamps) + buffer,
            self.sync_config.time_range_limit,
            credential.token,
        )

