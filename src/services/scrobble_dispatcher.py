"""Send a play (or a now playing update) to every enabled service at once."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from core.exceptions import FetchError

if TYPE_CHECKING:
    import logging
    from collections.abc import Awaitable, Callable, Mapping

    from core.models.protocols import TrackFetcherProtocol
    from core.models.track_models import ScrobbleService, ServiceCredential, ServicesSnapshot, TrackRecord
    from core.tracks.blacklist import Blacklist


class ScrobbleDispatcher:
    """Concurrent fan-out of scrobble and now playing calls."""

    def __init__(
        self,
        fetchers: Mapping[ScrobbleService, TrackFetcherProtocol],
        snapshot: ServicesSnapshot,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        blacklist: Blacklist | None = None,
    ) -> None:
        self.fetchers = fetchers
        self.snapshot = snapshot
        self.console_logger = console_logger
        self.error_logger = error_logger
        self.blacklist = blacklist

    def _is_blacklisted(self, track: TrackRecord) -> bool:
        if self.blacklist is not None and self.blacklist.is_blacklisted(track.artist, track.name):
            self.console_logger.info("Not sending blacklisted track %s", track.describe())
            return True
        return False

    async def _fan_out(
        self,
        action: str,
        track: TrackRecord,
        call: Callable[[TrackFetcherProtocol, ServiceCredential], Awaitable[None]],
    ) -> dict[ScrobbleService, bool]:
        targets = [
            (credential, fetcher)
            for credential in self.snapshot.enabled
            if (fetcher := self.fetchers.get(credential.service)) is not None
        ]

        async def run_one(credential: ServiceCredential, fetcher: TrackFetcherProtocol) -> bool:
            try:
                await call(fetcher, credential)
            except FetchError as e:
                self.error_logger.warning("%s of %s failed on %s: %s", action, track.describe(), credential.service.display_name, e)
                return False
            return True

        results = await asyncio.gather(*(run_one(credential, fetcher) for credential, fetcher in targets))
        outcome = {credential.service: ok for (credential, _), ok in zip(targets, results, strict=True)}
        self.console_logger.debug("%s of %s: %s", action, track.describe(), {s.value: ok for s, ok in outcome.items()})
        return outcome

    async def scrobble_all(self, track: TrackRecord) -> dict[ScrobbleService, bool]:
        """Record ``track`` on every enabled service; returns success per service."""
        if self._is_blacklisted(track):
            return {}
        return await self._fan_out(
            "Scrobble",
            track,
            lambda fetcher, credential: fetcher.scrobble(credential.token, track),
        )

    async def update_now_playing_all(self, track: TrackRecord) -> dict[ScrobbleService, bool]:
        """Announce ``track`` as playing on every enabled service."""
        if self._is_blacklisted(track):
            return {}
        return await self._fan_out(
            "Now playing update",
            track,
            lambda fetcher, credential: fetcher.update_now_playing(credential.token, track),
        )
