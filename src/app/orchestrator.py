"""Main orchestrator module for scrobble-sync.

This module routes CLI commands to the coordinator, the delete fan-out and
the scrobble dispatcher, and renders reconciled plays as a Rich table.
"""

import argparse
import time
from datetime import datetime
from typing import TYPE_CHECKING

from rich.table import Table

from core.logger import LogFormat, get_shared_console
from core.models.normalization import are_names_equal, timestamps_match
from core.models.track_models import ReconciledTrack, ScrobbleService, SyncStatus, TrackRecord

if TYPE_CHECKING:
    from collections.abc import Sequence

    from rich.console import Console

    from services.dependency_container import DependencyContainer


STATUS_LABELS: dict[SyncStatus, str] = {
    SyncStatus.SYNCED: LogFormat.success("synced"),
    SyncStatus.PARTIAL: LogFormat.warning("partial"),
    SyncStatus.PRIMARY_ONLY: LogFormat.error("primary only"),
    SyncStatus.UNKNOWN: LogFormat.dim("unknown"),
}


def _format_played_at(played_at: int | None) -> str:
    if played_at is None:
        return "now playing"
    return datetime.fromtimestamp(played_at).astimezone().strftime("%Y-%m-%d %H:%M")


def build_tracks_table(tracks: "Sequence[ReconciledTrack]", enabled: "Sequence[ScrobbleService]") -> Table:
    """Build a table with one row per reconciled play and one column per service."""
    table = Table(title="Recent plays", show_lines=False)
    table.add_column("Played", no_wrap=True)
    table.add_column("Artist")
    table.add_column("Track")
    table.add_column("Album", style="dim")
    table.add_column("Loved", justify="center")
    for service in enabled:
        table.add_column(service.display_name, justify="center")
    table.add_column("Status")

    for track in tracks:
        present = {track.source_service, *track.service_info}
        table.add_row(
            _format_played_at(track.played_at),
            track.artist,
            track.name,
            track.album,
            "♥" if track.loved else "",
            *("✓" if service in present else "✗" for service in enabled),
            STATUS_LABELS.get(track.sync_status, track.sync_status.value),
        )
    return table


class Orchestrator:
    """Orchestrates the command workflows."""

    def __init__(self, deps: "DependencyContainer", console: "Console | None" = None) -> None:
        """Initialize the orchestrator with dependencies.

        Args:
            deps: Dependency container with all required services
            console: Rich console for table output (the shared console by default)

        """
        self.deps = deps
        self.config = deps.config
        self.console = console or get_shared_console()
        self.console_logger = deps.console_logger
        self.error_logger = deps.error_logger

    async def run_command(self, args: argparse.Namespace) -> None:
        """Execute the appropriate command based on arguments."""
        match getattr(args, "command", None):
            case "delete":
                await self._run_delete(args)
            case "scrobble":
                await self._run_scrobble(args, timestamp=args.timestamp if args.timestamp is not None else int(time.time()))
            case "redo":
                await self._run_scrobble(args, timestamp=args.timestamp)
            case "now_playing" | "now-playing":
                await self._run_now_playing(args)
            case _:
                await self._run_refresh(args)

    def _enabled_services(self) -> list[ScrobbleService]:
        return [credential.service for credential in self.deps.snapshot.enabled]

    def _source_service(self) -> ScrobbleService | None:
        primary = self.deps.snapshot.primary
        return primary.service if primary is not None else None

    async def _run_refresh(self, args: argparse.Namespace) -> None:
        """Reconcile recent plays, show them and wait for the backfills."""
        tracks = await self.deps.coordinator.refresh(limit=getattr(args, "limit", None), page=getattr(args, "page", 1))
        if not tracks:
            self.console_logger.warning("No plays to show")
            return

        self.console.print(build_tracks_table(tracks, self._enabled_services()))

        queue = self.deps.backfill_queue
        if getattr(args, "no_wait", False) or not queue.pending_count:
            return
        self.console_logger.info("Waiting for %s backfill task(s)...", LogFormat.number(queue.pending_count))
        await queue.wait_until_idle()
        stats = queue.stats
        self.console_logger.info(
            "Backfill finished: %s succeeded, %s failed",
            LogFormat.success(str(stats.succeeded)),
            LogFormat.error(str(stats.failed)) if stats.failed else stats.failed,
        )

    def _find_play(self, tracks: "Sequence[ReconciledTrack]", artist: str, name: str, timestamp: int | None) -> ReconciledTrack | None:
        for track in tracks:
            if not (are_names_equal(track.artist, artist) and are_names_equal(track.name, name)):
                continue
            if timestamp is None or timestamps_match(track.played_at, timestamp):
                return track
        return None

    async def _run_delete(self, args: argparse.Namespace) -> None:
        """Locate the play through a refresh and delete it from every enabled service."""
        coordinator = self.deps.coordinator
        tracks = await coordinator.refresh(limit=args.limit, enqueue_backfill=False)
        track = self._find_play(tracks, args.artist, args.track, args.timestamp)
        if track is None:
            self.console_logger.error("Play '%s - %s' not found among recent plays", args.artist, args.track)
            return

        results = await self.deps.delete_fanout.delete_all(track.artist, track.name, track.service_info)
        for service, ok in results.items():
            status = LogFormat.success("deleted") if ok else LogFormat.error("failed")
            self.console_logger.info("%s: %s", LogFormat.entity(service.display_name), status)

    async def _run_scrobble(self, args: argparse.Namespace, *, timestamp: int) -> None:
        """Record a play on every enabled service."""
        source = self._source_service()
        if source is None:
            self.console_logger.error("No enabled service configured")
            return
        track = TrackRecord(artist=args.artist, name=args.track, album=args.album, played_at=timestamp, source_service=source)
        results = await self.deps.dispatcher.scrobble_all(track)
        self._log_results("Scrobbled", track, results)

    async def _run_now_playing(self, args: argparse.Namespace) -> None:
        """Announce the playing track on every enabled service."""
        source = self._source_service()
        if source is None:
            self.console_logger.error("No enabled service configured")
            return
        track = TrackRecord(artist=args.artist, name=args.track, album=args.album, source_service=source)
        results = await self.deps.dispatcher.update_now_playing_all(track)
        self._log_results("Now playing", track, results)

    def _log_results(self, action: str, track: TrackRecord, results: dict[ScrobbleService, bool]) -> None:
        if not results:
            self.console_logger.warning("%s %s: nothing sent", action, track.describe())
            return
        for service, ok in results.items():
            status = LogFormat.success("ok") if ok else LogFormat.error("failed")
            self.console_logger.info("%s %s on %s: %s", action, track.describe(), LogFormat.entity(service.display_name), status)
