"""Unified normalization for artist/track matching.

This module provides a single source of truth for the comparison primitives
used when deciding whether two observations describe the same play:
string normalization and timestamp proximity.
"""

from __future__ import annotations

# Two observations more than this many seconds apart are never the same play.
MATCH_WINDOW_SECONDS = 120


def normalize(text: str) -> str:
    """Normalize text for case-insensitive matching.

    Args:
        text: Text to normalize (artist name, track name, etc.)

    Returns:
        Normalized text: stripped whitespace, lowercased

    Examples:
        >>> normalize("  Beck  ")
        'beck'
        >>> normalize("Profanity Prayers ")
        'profanity prayers'
    """
    return text.strip().lower() if text else ""


def are_names_equal(name1: str, name2: str) -> bool:
    """Check if two names are equivalent after normalization."""
    return normalize(name1) == normalize(name2)


def timestamps_match(first: int | None, second: int | None) -> bool:
    """Check whether two play timestamps may describe the same play.

    Args:
        first: Epoch seconds of the first observation, None while playing
        second: Epoch seconds of the second observation, None while playing

    Returns:
        True if both are absent, False if exactly one is absent, otherwise
        True when they are less than ``MATCH_WINDOW_SECONDS`` apart

    """
    if first is None and second is None:
        return True
    if first is None or second is None:
        return False
    return abs(first - second) < MATCH_WINDOW_SECONDS


def timestamp_delta(first: int | None, second: int | None) -> int:
    """Absolute distance between two timestamps, treating None as 0."""
    return abs((first or 0) - (second or 0))
