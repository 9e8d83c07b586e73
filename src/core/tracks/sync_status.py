"""Derive the completeness classification of reconciled tracks.

The status is always computed from ``service_info`` and the enabled services;
it is never stored anywhere else.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.models.track_models import SyncStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from core.models.track_models import ReconciledTrack, ScrobbleService


def present_in(track: ReconciledTrack) -> set[ScrobbleService]:
    """Services known to have recorded ``track``."""
    return {track.source_service, *track.service_info}


def compute_sync_status(track: ReconciledTrack, enabled_services: Iterable[ScrobbleService]) -> SyncStatus:
    """Classify how completely ``track`` is represented across enabled services.

    Examples:
        Present in every enabled service gives ``SYNCED``; present only in the
        service that produced it gives ``PRIMARY_ONLY``; anything else is
        ``PARTIAL``.

    """
    services = present_in(track)
    if services == set(enabled_services):
        return SyncStatus.SYNCED
    if len(services) == 1:
        return SyncStatus.PRIMARY_ONLY
    return SyncStatus.PARTIAL


def annotate_sync_status(
    tracks: Sequence[ReconciledTrack],
    enabled_services: Iterable[ScrobbleService],
) -> list[ReconciledTrack]:
    """Return copies of ``tracks`` with ``sync_status`` recomputed."""
    enabled = set(enabled_services)
    return [track.model_copy(update={"sync_status": compute_sync_status(track, enabled)}) for track in tracks]
