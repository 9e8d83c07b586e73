"""Eligibility rules for replaying a play to a service that lacks it.

Services are split in two classes: restrictive ones only accept plays
younger than a maximum age, unrestricted ones accept any play. A play
without a timestamp (still playing) is never eligible.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from core.models.track_models import ScrobbleService

if TYPE_CHECKING:
    from core.models.track_models import TrackRecord

SECONDS_PER_DAY = 86400
DEFAULT_RESTRICTED_MAX_AGE_DAYS = 14.0

# Last.fm and Libre.fm reject scrobbles older than two weeks.
RESTRICTIVE_SERVICES = frozenset({ScrobbleService.LASTFM, ScrobbleService.LIBREFM})


def days_old(track: TrackRecord, now: float | None = None) -> float | None:
    """Age of the play in days, or None while it is still playing."""
    if track.played_at is None:
        return None
    current = time.time() if now is None else now
    return (current - track.played_at) / SECONDS_PER_DAY


def max_age_for(
    service: ScrobbleService,
    restricted_max_age_days: float = DEFAULT_RESTRICTED_MAX_AGE_DAYS,
) -> float | None:
    """Maximum accepted age for ``service``; None for unrestricted services."""
    return restricted_max_age_days if service in RESTRICTIVE_SERVICES else None


def can_backfill(track: TrackRecord, max_age_days: float | None, now: float | None = None) -> bool:
    """Check whether ``track`` may be replayed to a service with ``max_age_days``.

    Args:
        track: Play to replay
        max_age_days: Service's age bound in days, None for no bound
        now: Current epoch seconds (defaults to the wall clock)

    Returns:
        True when the play has a timestamp and satisfies the age bound

    """
    age = days_old(track, now)
    if age is None:
        return False
    if max_age_days is None:
        return True
    return age < max_age_days
