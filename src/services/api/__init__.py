"""Service adapters for listening-history APIs.

This package contains the clients implementing the track fetcher protocol:
- Last.fm: signed Last.fm API
- Libre.fm: Last.fm-compatible API without time range queries
- ListenBrainz: token-authenticated API, MusicBrainz lookups for loves
"""

from .api_base import BaseScrobbleClient, EnhancedRateLimiter
from .lastfm import LastFmClient
from .librefm import LibreFmClient
from .listenbrainz import ListenBrainzClient
from .request_executor import ApiRequestExecutor

__all__ = [
    "ApiRequestExecutor",
    "BaseScrobbleClient",
    "EnhancedRateLimiter",
    "LastFmClient",
    "LibreFmClient",
    "ListenBrainzClient",
]
