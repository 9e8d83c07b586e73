"""In-memory implementation of the track fetcher protocol for testing."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from core.exceptions import FetchError
from core.models.protocols import ServiceCapabilities
from core.tracks.backfill_policy import max_age_for

if TYPE_CHECKING:
    from core.models.track_models import ScrobbleIdentifier, ScrobbleService, TrackRecord


class FakeTrackFetcher:
    """Track fetcher serving canned plays and recording every call.

    ``fail_on`` names operations that raise ``FetchError``. Deleting an
    identifier without timestamp and id fails, as real services do.
    """

    def __init__(
        self,
        service: ScrobbleService,
        tracks: list[TrackRecord] | None = None,
        *,
        supports_time_range_query: bool = False,
        supports_delete: bool = True,
        supports_love: bool = True,
        fail_on: set[str] | None = None,
        range_tracks: list[TrackRecord] | None = None,
    ) -> None:
        """Initialize the fake with the plays it reports."""
        self.service = service
        self.tracks = list(tracks or [])
        self.range_tracks = range_tracks
        self.fail_on = fail_on or set()
        self.capabilities = ServiceCapabilities(
            supports_time_range_query=supports_time_range_query,
            supports_delete=supports_delete,
            supports_love=supports_love,
            max_backfill_age_days=max_age_for(service),
        )
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.scrobbled: list[TrackRecord] = []
        self.now_playing: list[TrackRecord] = []
        self.loves: list[tuple[str, str, bool]] = []
        self.deleted: list[ScrobbleIdentifier] = []

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self.fail_on:
            raise FetchError(self.service.value, f"{operation} failed")

    async def get_recent_tracks(
        self,
        username: str,
        limit: int,
        page: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Return the requested page of the canned plays."""
        self._record("get_recent_tracks", username, limit, page, token)
        start = (page - 1) * limit
        return self.tracks[start : start + limit]

    async def get_recent_tracks_by_time_range(
        self,
        username: str,
        min_ts: int | None,
        max_ts: int | None,
        limit: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Return canned plays inside the range."""
        self._record("get_recent_tracks_by_time_range", username, min_ts, max_ts, limit, token)
        source = self.range_tracks if self.range_tracks is not None else self.tracks
        return [
            track
            for track in source
            if track.played_at is not None
            and (min_ts is None or track.played_at >= min_ts)
            and (max_ts is None or track.played_at <= max_ts)
        ][:limit]

    async def scrobble(self, session_key: str, track: TrackRecord) -> None:
        """Record a scrobble."""
        self._record("scrobble", session_key, track)
        self.scrobbled.append(track)

    async def update_now_playing(self, session_key: str, track: TrackRecord) -> None:
        """Record a now playing update."""
        self._record("update_now_playing", session_key, track)
        self.now_playing.append(track)

    async def update_love(self, session_key: str, artist: str, track: str, loved: bool) -> None:
        """Record a love change."""
        self._record("update_love", session_key, artist, track, loved)
        self.loves.append((artist, track, loved))

    async def delete_scrobble(self, session_key: str, identifier: ScrobbleIdentifier) -> None:
        """Record a delete; identifiers without any key fail."""
        self._record("delete_scrobble", session_key, identifier)
        if identifier.timestamp is None and identifier.external_id is None:
            raise FetchError(self.service.value, "play not found")
        self.deleted.append(identifier)

    def call_count(self, operation: str) -> int:
        """Number of calls made to ``operation``."""
        return sum(1 for name, _ in self.calls if name == operation)
