"""Merge matched observations into reconciled tracks.

Each secondary service is merged in one pass over the current reconciled list;
a pass returns a new list plus the backfill tasks for plays the service lacks,
so the sequential dependency between passes stays explicit.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from core.models.track_models import BackfillTask, ReconciledTrack, ServiceObservation, TrackRecord
from core.tracks.matcher import find_best_match

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable, Mapping, Sequence

    from core.models.track_models import ScrobbleService, ServiceCredential


@dataclass
class MergePassResult:
    """Output of merging one secondary service into the reconciled list."""

    tracks: list[ReconciledTrack]
    backfill_tasks: list[BackfillTask] = field(default_factory=list)
    matched: int = 0
    missing: int = 0


def observations_of(record: TrackRecord) -> dict[ScrobbleService, ServiceObservation]:
    """All per-service observations carried by ``record``."""
    if isinstance(record, ReconciledTrack):
        return dict(record.service_info)
    return {record.source_service: record.observation()}


def fold_service_info(
    service_info: Mapping[ScrobbleService, ServiceObservation],
    incoming: Mapping[ScrobbleService, ServiceObservation],
) -> dict[ScrobbleService, ServiceObservation]:
    """Upsert ``incoming`` entries by key; entries of other services are kept."""
    merged = dict(service_info)
    merged.update(incoming)
    return merged


def merge_match(
    base: ReconciledTrack,
    matched: TrackRecord,
    preferred_service: ScrobbleService | None,
) -> ReconciledTrack:
    """Combine ``base`` with a matched observation from another service.

    When ``matched`` comes from the preferred service its attributes become
    the base; otherwise ``base`` keeps its attributes. In both cases
    ``service_info`` only ever gains or updates entries.

    Returns:
        A new reconciled track; ``base`` is not modified

    """
    service_info = fold_service_info(base.service_info, observations_of(matched))
    if preferred_service is not None and matched.source_service == preferred_service:
        attributes = matched.model_dump(exclude={"service_info", "sync_status"})
        return ReconciledTrack(**attributes, service_info=service_info)
    return base.model_copy(update={"service_info": service_info})


def merge_service_pass(
    tracks: Sequence[ReconciledTrack],
    candidates: Sequence[TrackRecord],
    credential: ServiceCredential,
    preferred_service: ScrobbleService | None,
    should_backfill: Callable[[ReconciledTrack], bool],
    logger: logging.Logger | None = None,
) -> MergePassResult:
    """Match every reconciled track against one secondary service's candidates.

    Args:
        tracks: Reconciled list produced by the previous pass
        candidates: Plays fetched from the secondary service
        credential: Credential of the secondary service
        preferred_service: Service whose attributes take precedence
        should_backfill: Eligibility check for plays the service lacks
        logger: Optional logger for match diagnostics

    Returns:
        The new reconciled list and the backfill tasks of this pass

    """
    result = MergePassResult(tracks=[])
    for track in tracks:
        match = find_best_match(track, candidates, logger)
        if match is not None:
            result.tracks.append(merge_match(track, match, preferred_service))
            result.matched += 1
            continue

        result.tracks.append(track)
        result.missing += 1
        if logger is not None:
            logger.debug("Missing in %s: %s", credential.service.display_name, track.describe())
        if should_backfill(track):
            result.backfill_tasks.append(
                BackfillTask(
                    track=track.as_record(),
                    target_service=credential.service,
                    target_credential=credential,
                    reason=f"missing in {credential.service.display_name}",
                )
            )
    return result
