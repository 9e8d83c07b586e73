"""Data models and protocols."""

from core.models.normalization import are_names_equal, normalize, timestamps_match
from core.models.protocols import ServiceCapabilities, TrackFetcherProtocol
from core.models.track_models import (
    AppConfig,
    BackfillTask,
    ReconciledTrack,
    ScrobbleIdentifier,
    ScrobbleService,
    ServiceCredential,
    ServiceObservation,
    ServicesSnapshot,
    SyncStatus,
    TrackRecord,
)

__all__ = [
    "AppConfig",
    "BackfillTask",
    "ReconciledTrack",
    "ScrobbleIdentifier",
    "ScrobbleService",
    "ServiceCapabilities",
    "ServiceCredential",
    "ServiceObservation",
    "ServicesSnapshot",
    "SyncStatus",
    "TrackFetcherProtocol",
    "TrackRecord",
    "are_names_equal",
    "normalize",
    "timestamps_match",
]
