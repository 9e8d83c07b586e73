"""Propagate the removal of one play to every enabled service."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.exceptions import DeleteError, FetchError
from core.models.track_models import ScrobbleIdentifier

if TYPE_CHECKING:
    import logging
    from collections.abc import Mapping

    from core.models.protocols import TrackFetcherProtocol
    from core.models.track_models import ScrobbleService, ServiceCredential, ServiceObservation, ServicesSnapshot


def build_identifier(
    artist: str,
    track: str,
    observation: ServiceObservation | None,
) -> ScrobbleIdentifier:
    """Identifier for one service; timestamp and id stay None without an observation."""
    if observation is None:
        return ScrobbleIdentifier(artist=artist, track=track)
    return ScrobbleIdentifier(
        artist=artist,
        track=track,
        timestamp=observation.timestamp,
        external_id=observation.external_id,
    )


class DeleteFanout:
    """Issues delete calls to all enabled services concurrently.

    Every enabled service is targeted, including services without a recorded
    observation; those receive an identifier with empty timestamp and id and
    usually report a failure. Services whose adapter cannot delete are
    skipped and absent from the result.
    """

    def __init__(
        self,
        fetchers: Mapping[ScrobbleService, TrackFetcherProtocol],
        snapshot: ServicesSnapshot,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        sync_logger: logging.Logger | None = None,
    ) -> None:
        self.fetchers = fetchers
        self.snapshot = snapshot
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.sync_logger = sync_logger or console_logger

    def _targets(self) -> list[tuple[ServiceCredential, TrackFetcherProtocol]]:
        targets: list[tuple[ServiceCredential, TrackFetcherProtocol]] = []
        for credential in self.snapshot.enabled:
            fetcher = self.fetchers.get(credential.service)
            if fetcher is None:
                self.console_logger.warning("No adapter for %s, delete skipped", credential.service.display_name)
                continue
            if not fetcher.capabilities.supports_delete:
                self.console_logger.info("%s does not support deleting scrobbles, skipped", credential.service.display_name)
                continue
            targets.append((credential, fetcher))
        return targets

    async def delete_all(
        self,
        artist: str,
        track: str,
        service_info: Mapping[ScrobbleService, ServiceObservation],
    ) -> dict[ScrobbleService, bool]:
        """Delete the play from every enabled service.

        Args:
            artist: Artist of the play
            track: Track name of the play
            service_info: Known per-service observations of the play

        Returns:
            Success flag per targeted service

        """
        targets = self._targets()
        results = await asyncio.gather(
            *(
                self._delete_one(credential, fetcher, build_identifier(artist, track, service_info.get(credential.service)))
                for credential, fetcher in targets
            )
        )
        outcome = {credential.service: ok for (credential, _), ok in zip(targets, results, strict=True)}
        succeeded = sum(outcome.values())
        self.console_logger.info("Deleted '%s - %s' from %d/%d service(s)", artist, track, succeeded, len(outcome))
        return outcome

    async def _delete_one(
        self,
        credential: ServiceCredential,
        fetcher: TrackFetcherProtocol,
        identifier: ScrobbleIdentifier,
    ) -> bool:
        try:
            await fetcher.delete_scrobble(credential.token, identifier)
        except FetchError as e:
            error = DeleteError(credential.service.value, str(e))
            self.error_logger.warning("Delete failed: %s", error)
            self.sync_logger.info("DELETE FAILED '%s - %s' on %s", identifier.artist, identifier.track, credential.service.display_name)
            return False
        self.sync_logger.info("DELETED '%s - %s' on %s", identifier.artist, identifier.track, credential.service.display_name)
        return True
