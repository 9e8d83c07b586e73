"""Service Protocol Definitions.

This module defines the protocol every listening-history adapter implements
and the capability descriptor the sync engine checks before calling optional
operations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from core.models.track_models import ScrobbleIdentifier, ScrobbleService, TrackRecord


@dataclass(frozen=True)
class ServiceCapabilities:
    """What a service adapter can do beyond listing recent tracks.

    Attributes:
        supports_time_range_query: Adapter can list plays between two timestamps
        supports_delete: Adapter can remove a single play
        supports_love: Adapter can set the loved state of a track
        max_backfill_age_days: Oldest play (in days) the service accepts for
            replay; None means no age bound

    """

    supports_time_range_query: bool = False
    supports_delete: bool = False
    supports_love: bool = False
    max_backfill_age_days: float | None = None


# noinspection PyMissingOrEmptyDocstring
@runtime_checkable
class TrackFetcherProtocol(Protocol):
    """Protocol defining the interface for listening-history adapters.

    Every operation raises ``FetchError`` on network, auth or API failure.
    Optional operations must only be called when the matching capability
    flag is set.
    """

    service: ScrobbleService
    capabilities: ServiceCapabilities

    async def get_recent_tracks(
        self,
        username: str,
        limit: int,
        page: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch one page of the user's recent plays, newest first."""
        ...

    async def get_recent_tracks_by_time_range(
        self,
        username: str,
        min_ts: int | None,
        max_ts: int | None,
        limit: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch plays between ``min_ts`` and ``max_ts`` (inclusive).

        Requires ``capabilities.supports_time_range_query``.
        """
        ...

    async def scrobble(self, session_key: str, track: TrackRecord) -> None:
        """Record a play on the service (the replay operation)."""
        ...

    async def update_now_playing(self, session_key: str, track: TrackRecord) -> None:
        """Announce the track currently playing."""
        ...

    async def update_love(self, session_key: str, artist: str, track: str, loved: bool) -> None:
        """Set the loved state of a track.

        Requires ``capabilities.supports_love``.
        """
        ...

    async def delete_scrobble(self, session_key: str, identifier: ScrobbleIdentifier) -> None:
        """Remove one play from the service.

        Requires ``capabilities.supports_delete``.
        """
        ...
