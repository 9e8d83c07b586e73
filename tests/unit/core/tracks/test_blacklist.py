"""Tests for the artist/track blacklist."""

from __future__ import annotations

from core.models.track_models import BlacklistEntry
from core.tracks.blacklist import Blacklist


def test_matches_normalized_names() -> None:
    """Lookups ignore case and surrounding whitespace."""
    blacklist = Blacklist([BlacklistEntry(artist="Beck", track="Loser")])
    assert blacklist.is_blacklisted(" beck ", "LOSER")
    assert not blacklist.is_blacklisted("Beck", "Devils Haircut")


def test_toggle_adds_then_removes() -> None:
    """Toggling flips membership and reports the new state."""
    blacklist = Blacklist()
    assert len(blacklist) == 0
    assert blacklist.toggle("Beck", "Loser") is True
    assert blacklist.is_blacklisted("Beck", "Loser")
    assert blacklist.toggle("beck", "loser") is False
    assert not blacklist.is_blacklisted("Beck", "Loser")
