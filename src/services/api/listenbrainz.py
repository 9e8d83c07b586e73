"""ListenBrainz API client for listening history.

ListenBrainz authenticates with a user token, identifies listens by
``recording_msid`` and accepts plays of any age. Loving a track goes through
recording feedback, which needs a MusicBrainz recording id; the id is
looked up by artist and track name.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, TypedDict, cast

from core.exceptions import FetchError
from core.models.protocols import ServiceCapabilities
from core.models.track_models import ScrobbleService, TrackRecord
from core.tracks.backfill_policy import max_age_for

from .api_base import BaseScrobbleClient

if TYPE_CHECKING:
    import logging

    from core.models.track_models import ScrobbleIdentifier
    from services.api.request_executor import ApiRequestExecutor

LISTENBRAINZ_API_URL = "https://api.listenbrainz.org/1/"
MUSICBRAINZ_API_URL = "https://musicbrainz.org/ws/2/"
MUSICBRAINZ_API_NAME = "MusicBrainz"

# Largest ``count`` accepted by the listens endpoint
MAX_ITEMS_PER_GET = 1000


# ListenBrainz Type Definitions
class ListenBrainzTrackMetadata(TypedDict, total=False):
    """Type definition for ``track_metadata`` of a listen."""

    artist_name: str
    track_name: str
    release_name: str | None


class ListenBrainzListen(TypedDict, total=False):
    """Type definition for one listen of ``user/{name}/listens``."""

    listened_at: int
    recording_msid: str
    track_metadata: ListenBrainzTrackMetadata


class ListenBrainzClient(BaseScrobbleClient):
    """Client for the ListenBrainz API."""

    service = ScrobbleService.LISTENBRAINZ

    def __init__(
        self,
        executor: ApiRequestExecutor,
        console_logger: logging.Logger,
        error_logger: logging.Logger,
    ) -> None:
        """Initialize the client with the shared executor and loggers."""
        super().__init__(executor, console_logger, error_logger)
        self.capabilities = ServiceCapabilities(
            supports_time_range_query=True,
            supports_delete=True,
            supports_love=True,
            max_backfill_age_days=max_age_for(self.service),
        )

    @staticmethod
    def _auth_headers(token: str | None) -> dict[str, str] | None:
        return {"Authorization": f"Token {token}"} if token else None

    async def _get_listens(self, username: str, params: dict[str, str], token: str | None) -> list[TrackRecord]:
        payload = await self.executor.execute_request(
            self.service.value,
            "GET",
            f"{LISTENBRAINZ_API_URL}user/{username}/listens",
            params=params,
            headers_override=self._auth_headers(token),
        )
        listens = cast("list[ListenBrainzListen]", self._as_list((payload.get("payload") or {}).get("listens")))
        return [self._to_record(listen) for listen in listens]

    def _to_record(self, listen: ListenBrainzListen) -> TrackRecord:
        metadata = listen.get("track_metadata") or {}
        return TrackRecord(
            artist=metadata.get("artist_name") or "",
            name=metadata.get("track_name") or "",
            album=metadata.get("release_name") or "",
            played_at=self._as_int(listen.get("listened_at")),
            source_service=self.service,
            external_id=listen.get("recording_msid"),
        )

    async def get_recent_tracks(
        self,
        username: str,
        limit: int,
        page: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch one page of listens.

        The API has no page parameter; ``limit * page`` listens are requested
        and the requested page is sliced out.
        """
        count = min(limit * page, MAX_ITEMS_PER_GET)
        listens = await self._get_listens(username, {"count": str(count)}, token)
        start = (page - 1) * limit
        tracks = listens[start : start + limit]
        self.console_logger.debug("%s: fetched %d listens for %s", self.service.display_name, len(tracks), username)
        return tracks

    async def get_recent_tracks_by_time_range(
        self,
        username: str,
        min_ts: int | None,
        max_ts: int | None,
        limit: int,
        token: str | None = None,
    ) -> list[TrackRecord]:
        """Fetch listens between ``min_ts`` and ``max_ts`` (inclusive).

        The API accepts only one bound per request, so the upper bound is
        sent and the lower bound is applied client side.
        """
        params = {"count": str(min(limit, MAX_ITEMS_PER_GET))}
        if max_ts is not None:
            # max_ts is exclusive on the server
            params["max_ts"] = str(max_ts + 1)
        elif min_ts is not None:
            params["min_ts"] = str(min_ts - 1)
        listens = await self._get_listens(username, params, token)
        if min_ts is None:
            return listens
        return [listen for listen in listens if listen.played_at is not None and listen.played_at >= min_ts]

    @staticmethod
    def _track_metadata(track: TrackRecord) -> dict[str, Any]:
        metadata: dict[str, Any] = {"artist_name": track.artist, "track_name": track.name}
        if track.album:
            metadata["release_name"] = track.album
        return metadata

    async def _submit(self, session_key: str, listen_type: str, listen: dict[str, Any]) -> None:
        await self.executor.execute_request(
            self.service.value,
            "POST",
            f"{LISTENBRAINZ_API_URL}submit-listens",
            json_body={"listen_type": listen_type, "payload": [listen]},
            headers_override=self._auth_headers(session_key),
        )

    async def scrobble(self, session_key: str, track: TrackRecord) -> None:
        """Submit a single listen; plays without a timestamp are recorded as now."""
        listened_at = track.played_at if track.played_at is not None else int(time.time())
        await self._submit(
            session_key,
            "single",
            {"listened_at": listened_at, "track_metadata": self._track_metadata(track)},
        )

    async def update_now_playing(self, session_key: str, track: TrackRecord) -> None:
        """Submit a ``playing_now`` listen."""
        await self._submit(session_key, "playing_now", {"track_metadata": self._track_metadata(track)})

    async def lookup_recording_mbid(self, artist: str, track: str) -> str | None:
        """Find the MusicBrainz recording id of the best search hit."""
        query = f'artist:"{artist}" AND recording:"{track}"'
        payload = await self.executor.execute_request(
            MUSICBRAINZ_API_NAME,
            "GET",
            f"{MUSICBRAINZ_API_URL}recording",
            params={"query": query, "fmt": "json", "limit": "1"},
        )
        recordings = self._as_list(payload.get("recordings"))
        if not recordings:
            return None
        mbid = recordings[0].get("id")
        return mbid if isinstance(mbid, str) else None

    async def update_love(self, session_key: str, artist: str, track: str, loved: bool) -> None:
        """Send recording feedback: score 1 loves, score 0 clears the love."""
        mbid = await self.lookup_recording_mbid(artist, track)
        if mbid is None:
            raise FetchError(self.service.value, f"no MusicBrainz recording found for '{artist} - {track}'")
        await self.executor.execute_request(
            self.service.value,
            "POST",
            f"{LISTENBRAINZ_API_URL}feedback/recording-feedback",
            json_body={"recording_mbid": mbid, "score": 1 if loved else 0},
            headers_override=self._auth_headers(session_key),
        )

    async def delete_scrobble(self, session_key: str, identifier: ScrobbleIdentifier) -> None:
        """Delete a listen; the API needs both its timestamp and recording_msid."""
        if identifier.timestamp is None or identifier.external_id is None:
            raise FetchError(
                self.service.value,
                f"no listen recorded for '{identifier.artist} - {identifier.track}'",
            )
        await self.executor.execute_request(
            self.service.value,
            "POST",
            f"{LISTENBRAINZ_API_URL}delete-listen",
            json_body={"listened_at": identifier.timestamp, "recording_msid": identifier.external_id},
            headers_override=self._auth_headers(session_key),
        )
