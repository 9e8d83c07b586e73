"""Mock infrastructure for scrobble-sync tests."""

from __future__ import annotations

from tests.mocks.logger_mock import MockLogger
from tests.mocks.protocol_mocks import FakeTrackFetcher

__all__ = [
    "FakeTrackFetcher",
    "MockLogger",
]
