"""Libre.fm client: the Last.fm-compatible API hosted at libre.fm."""

from core.models.track_models import ScrobbleService

from .lastfm import LastFmClient

LIBREFM_API_URL = "https://libre.fm/2.0/"


class LibreFmClient(LastFmClient):
    """Libre.fm speaks the Last.fm protocol but ignores ``from``/``to`` ranges."""

    service = ScrobbleService.LIBREFM
    api_url = LIBREFM_API_URL
    supports_time_range_query = False
