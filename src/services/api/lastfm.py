"""Last.fm API client for listening history.

This module provides the Last.fm-specific implementation of the track fetcher:
recent tracks (paged and by time range), scrobbling, now playing updates,
loves and scrobble removal. Libre.fm reuses it with a different base URL.
"""

from __future__ import annotations

import hashlib
import time
from typing import TYPE_CHECKING, Any, TypedDict, cast

from core.exceptions import FetchError
from core.models.protocols import ServiceCapabilities
from core.models.track_models import ScrobbleService, TrackRecord
from core.tracks.backfill_policy import DEFAULT_RESTRICTED_MAX_AGE_DAYS, max_age_for

from .api_base import BaseScrobbleClient

if TYPE_CHECKING:
    import logging

    from core.models.track_models import ApiKeysConfig, ScrobbleIdentifier
    from services.api.request_executor import ApiRequestExecutor

LASTFM_API_URL = "https://ws.audioscrobbler.com/2.0/"

# Parameters excluded from the request signature
UNSIGNED_PARAMS = frozenset({"format", "callback"})


# Last.fm Type Definitions
class LastFmDate(TypedDict, total=False):
    """Type definition for a play date from Last.fm."""

    uts: str
    text: str


class LastFmRecentTrack(TypedDict, total=False):
    """Type definition for an entry of ``user.getRecentTracks``."""

    name: str
    artist: dict[str, str]
    album: dict[str, str]
    date: LastFmDate
    loved: str
    mbid: str


class LastFmClient(BaseScrobbleClient):
    """Client for the Last.fm-compatible scrobbling API."""

    service = ScrobbleService.LASTFM
    api_url = LASTFM_API_URL
    supports_time_range_query = True

    def __init__(
        self,
        executor: ApiRequestExecutor,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
        api_keys: ApiKeysConfig,
        restricted_max_age_days: float = DEFAULT_RESTRICTED_MAX_AGE_DAYS,
    ) -> None:
        """Initialize the client.

        Args:
            executor: Shared HTTP request executor
            console_logger: Logger for console output
            error_logger: Logger for error messages
            api_keys: API key and shared secret of the application
            restricted_max_age_days: Maximum age of plays accepted by the service

        """
        super().__init__(executor, console_logger, error_logger)
        self.api_key = api_keys.api_key
        self.shared_secret = api_keys.shared_secret
        self.capabilities = ServiceCapabilities(
            supports_time_range_query=self.supports_time_range_query,
            supports_delete=True,
            supports_love=True,
            max_backfill_age_days=max_age_for(self.service, restricted_max_age_days),
        )

    def sign(self, params: dict[str, str]) -> str:
        """Compute ``api_sig``: md5 over sorted key/value pairs plus the shared secret."""
        payload = "".join(f"{key}{params[key]}" for key in sorted(params) if key not in UNSIGNED_PARAMS)
        return hashlib.md5((payload + self.shared_secret).encode("utf-8"), usedforsecurity=False).hexdigest()

    async def _call(self, method: str, params: dict[str, str], *, session_key: str | None = None) -> dict[str, Any]:
        """Execute an API method; authenticated methods are signed and POSTed."""
        request_params = {"method": method, "api_key": self.api_key, **params}
        if session_key is None:
            payload = await self.executor.execute_request(
                self.service.value,
                "GET",
                self.api_url,
                params={**request_params, "format": "json"},
            )
        else:
            request_params["sk"] = session_key
            request_params["api_sig"] = self.sign(request_params)
            payload = await self.executor.execute_request(
                self.service.value,
                "POST",
                self.api_url,
                data={**request_params, "format": "json"},
            )

        if "error" in payload:
            raise FetchError(self.service.value, f"{method}: {payload.get('message', payload['error'])}")
        return payload

    def _parse_recent_tracks(self, payload: dict[str, Any]) -> list[TrackRecord]:
        """Convert a ``recenttracks`` payload into track records."""
        recent = payload.get("recenttracks") or {}
        raw_tracks = cast("list[LastFmRecentTrack]", self._as_list(recent.get("track")))
        tracks: list[TrackRecord] = []
        for raw in raw_tracks:
            artist = raw.get("artist") or {}
            album = raw.get("album") or {}
            date = raw.get("date") or {}
            tracks.append(
                TrackRecord(
                    artist=artist.get("name") or artist.get("#text", ""),
                    name=raw.get("name", ""),
                    album=album.get("#text", ""),
                    played_at=self._as_int(date.get("uts")),
                    loved=raw.get("loved") == "1",
                    source_service=self.service,
                )
            )
        return tracks

    async def get_recent_tracks(
        self,
        username: str,
        limit: int,
        page: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch one page of the user's recent tracks (now playing entry included)."""
        payload = await self._call(
            "user.getRecentTracks",
            {"user": username, "limit": str(limit), "page": str(page), "extended": "1"},
        )
        tracks = self._parse_recent_tracks(payload)
        self.console_logger.debug("%s: fetched %d recent tracks for %s", self.service.display_name, len(tracks), username)
        return tracks

    async def get_recent_tracks_by_time_range(
        self,
        username: str,
        min_ts: int | None,
        max_ts: int | None,
        limit: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch plays between ``min_ts`` and ``max_ts`` (inclusive epoch seconds)."""
        if not self.capabilities.supports_time_range_query:
            return await super().get_recent_tracks_by_time_range(username, min_ts, max_ts, limit, token)

        params = {"user": username, "limit": str(limit), "extended": "1"}
        if min_ts is not None:
            params["from"] = str(min_ts)
        if max_ts is not None:
            params["to"] = str(max_ts)
        payload = await self._call("user.getRecentTracks", params)
        # The now playing entry ignores the range
        return [track for track in self._parse_recent_tracks(payload) if track.played_at is not None]

    @staticmethod
    def _track_params(track: TrackRecord) -> dict[str, str]:
        params = {"artist": track.artist, "track": track.name}
        if track.album:
            params["album"] = track.album
        return params

    async def scrobble(self, session_key: str, track: TrackRecord) -> None:
        """Record a play; plays without a timestamp are recorded as now."""
        timestamp = track.played_at if track.played_at is not None else int(time.time())
        params = self._track_params(track) | {"timestamp": str(timestamp)}
        payload = await self._call("track.scrobble", params, session_key=session_key)
        attr = (payload.get("scrobbles") or {}).get("@attr") or {}
        if str(attr.get("ignored", "0")) != "0":
            raise FetchError(self.service.value, f"scrobble of {track.describe()} was ignored")

    async def update_now_playing(self, session_key: str, track: TrackRecord) -> None:
        """Announce the track currently playing."""
        await self._call("track.updateNowPlaying", self._track_params(track), session_key=session_key)

    async def update_love(self, session_key: str, artist: str, track: str, loved: bool) -> None:
        """Love or unlove a track."""
        method = "track.love" if loved else "track.unlove"
        await self._call(method, {"artist": artist, "track": track}, session_key=session_key)

    async def delete_scrobble(self, session_key: str, identifier: ScrobbleIdentifier) -> None:
        """Remove one play; the service addresses plays by artist, track and timestamp."""
        if identifier.timestamp is None:
            raise FetchError(self.service.value, f"no timestamp recorded for '{identifier.artist} - {identifier.track}'")
        await self._call(
            "library.removeScrobble",
            {"artist": identifier.artist, "track": identifier.track, "timestamp": str(identifier.timestamp)},
            session_key=session_key,
        )
