"""Artist/track pairs that must never be scrobbled or backfilled."""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.models.normalization import normalize

if TYPE_CHECKING:
    from collections.abc import Iterable

    from core.models.track_models import BlacklistEntry


class Blacklist:
    """Set of blacklisted plays, compared on normalized artist and track names."""

    def __init__(self, entries: Iterable[BlacklistEntry] = ()) -> None:
        """Build the blacklist from configuration entries."""
        self._keys: set[tuple[str, str]] = {self._key(entry.artist, entry.track) for entry in entries}

    @staticmethod
    def _key(artist: str, track: str) -> tuple[str, str]:
        return normalize(artist), normalize(track)

    def __len__(self) -> int:
        return len(self._keys)

    def is_blacklisted(self, artist: str, track: str) -> bool:
        """Whether the artist/track pair is blacklisted."""
        return self._key(artist, track) in self._keys

    def toggle(self, artist: str, track: str) -> bool:
        """Add the pair if absent, remove it otherwise.

        Returns:
            True when the pair is blacklisted after the call

        """
        key = self._key(artist, track)
        if key in self._keys:
            self._keys.discard(key)
            return False
        self._keys.add(key)
        return True
