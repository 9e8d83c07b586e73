"""Pair a play from one service with its counterpart from another service."""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.models.normalization import timestamp_delta, timestamps_match
from core.tracks.similarity import combined_score

if TYPE_CHECKING:
    import logging
    from collections.abc import Sequence

    from core.models.track_models import TrackRecord

MATCH_THRESHOLD = 0.8


def score_candidate(track: TrackRecord, candidate: TrackRecord) -> float:
    """Combined artist/name score of ``candidate`` against ``track``."""
    return combined_score(track.artist, track.name, candidate.artist, candidate.name)


def find_best_match(
    track: TrackRecord,
    candidates: Sequence[TrackRecord],
    logger: logging.Logger | None = None,
) -> TrackRecord | None:
    """Return the candidate most likely to be the same play as ``track``.

    Candidates outside the timestamp window are discarded first, the rest are
    scored and only scores of at least ``MATCH_THRESHOLD`` are accepted. The
    highest score wins; equal scores go to the smallest timestamp delta, then
    to the earliest candidate in input order.

    Args:
        track: Play to match
        candidates: Plays reported by one other service
        logger: Optional logger for match diagnostics

    Returns:
        The best candidate, or None when nothing passes both filters

    """
    best: TrackRecord | None = None
    best_rank: tuple[float, int] | None = None
    skipped_timestamp = 0
    skipped_similarity = 0

    for candidate in candidates:
        if not timestamps_match(track.played_at, candidate.played_at):
            skipped_timestamp += 1
            continue
        score = score_candidate(track, candidate)
        if score < MATCH_THRESHOLD:
            skipped_similarity += 1
            continue
        # Strict comparison keeps the first candidate on a full tie.
        rank = (score, -timestamp_delta(track.played_at, candidate.played_at))
        if best_rank is None or rank > best_rank:
            best, best_rank = candidate, rank

    if logger is not None:
        logger.debug(
            "Match for %s: %s (checked %d, skipped %d by timestamp, %d by similarity)",
            track.describe(),
            best.describe() if best else "none",
            len(candidates),
            skipped_timestamp,
            skipped_similarity,
        )
    return best
