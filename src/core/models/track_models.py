"""Pydantic models for configuration and listening-history data."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LogLevel(StrEnum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class ScrobbleService(StrEnum):
    """Listening-history services; the value doubles as the service identifier."""

    LASTFM = "Last.fm"
    LIBREFM = "Libre.fm"
    LISTENBRAINZ = "ListenBrainz"

    @property
    def display_name(self) -> str:
        """Human-readable service name."""
        return self.value


class SyncStatus(StrEnum):
    """How completely a logical play is represented across enabled services."""

    UNKNOWN = "unknown"
    SYNCED = "synced"  # present in all enabled services
    PARTIAL = "partial"  # present in some services
    PRIMARY_ONLY = "primary_only"  # only in the primary service


# Listening-history models


class ServiceObservation(BaseModel):
    """What one service knows about a play: enough to address it later."""

    model_config = ConfigDict(frozen=True)

    timestamp: int | None = None  # required by Last.fm/Libre.fm
    external_id: str | None = None  # required by ListenBrainz (recording_msid)


class TrackRecord(BaseModel):
    """One played track as reported by a single service."""

    model_config = ConfigDict(frozen=True)

    artist: str
    name: str
    album: str = ""
    played_at: int | None = None  # None means "currently playing"
    loved: bool = False
    source_service: ScrobbleService
    external_id: str | None = None

    @property
    def is_now_playing(self) -> bool:
        """Whether this record describes the track currently playing."""
        return self.played_at is None

    def observation(self) -> ServiceObservation:
        """Return the observation this record contributes to ``service_info``."""
        return ServiceObservation(timestamp=self.played_at, external_id=self.external_id)

    def describe(self) -> str:
        """Short description used in log messages."""
        return f"'{self.artist} - {self.name}'"


class ReconciledTrack(TrackRecord):
    """The logical, user-facing record produced by merging observations.

    Attributes come from the base observation; ``service_info`` holds one
    entry per service matched to this play.
    """

    service_info: dict[ScrobbleService, ServiceObservation] = Field(default_factory=dict)
    sync_status: SyncStatus = SyncStatus.UNKNOWN

    @classmethod
    def from_record(cls, record: TrackRecord) -> ReconciledTrack:
        """Seed a reconciled track from a single observation."""
        return cls(
            **record.model_dump(),
            service_info={record.source_service: record.observation()},
        )

    def as_record(self) -> TrackRecord:
        """Return the base attributes as a plain :class:`TrackRecord`."""
        return TrackRecord(**self.model_dump(exclude={"service_info", "sync_status"}))


class ServiceCredential(BaseModel):
    """Per-service credentials from the configuration snapshot."""

    model_config = ConfigDict(frozen=True)

    service: ScrobbleService
    token: str
    username: str
    enabled: bool = True
    is_preferred: bool = False


@dataclass(frozen=True)
class ServicesSnapshot:
    """Read-only view of the configured services for one refresh."""

    credentials: tuple[ServiceCredential, ...] = ()
    main_service_preference: ScrobbleService | None = None

    @property
    def enabled(self) -> list[ServiceCredential]:
        """Enabled credentials in configuration order."""
        return [credential for credential in self.credentials if credential.enabled]

    @property
    def enabled_services(self) -> set[ScrobbleService]:
        """Identifiers of the enabled services."""
        return {credential.service for credential in self.enabled}

    @property
    def primary(self) -> ServiceCredential | None:
        """The preferred service when enabled, otherwise the first enabled one."""
        enabled = self.enabled
        if self.main_service_preference is not None:
            for credential in enabled:
                if credential.service == self.main_service_preference:
                    return credential
        return enabled[0] if enabled else None

    def credential_for(self, service: ScrobbleService) -> ServiceCredential | None:
        """Look up the credential configured for ``service``."""
        return next((c for c in self.credentials if c.service == service), None)


class BackfillTask(BaseModel):
    """A play missing from ``target_service`` that should be replayed there."""

    model_config = ConfigDict(frozen=True)

    track: TrackRecord
    target_service: ScrobbleService
    target_credential: ServiceCredential
    reason: str = "missing"

    @property
    def key(self) -> tuple[ScrobbleService, str, str, int | None]:
        """Identity of the (service, play) pair, used to drop duplicate tasks."""
        return (
            self.target_service,
            self.track.artist.strip().lower(),
            self.track.name.strip().lower(),
            self.track.played_at,
        )


class ScrobbleIdentifier(BaseModel):
    """Minimal key needed to delete one play from one service."""

    model_config = ConfigDict(frozen=True)

    artist: str
    track: str
    timestamp: int | None = None
    external_id: str | None = None


class BackfillEvent(BaseModel):
    """Published after a play was replayed to a service."""

    model_config = ConfigDict(frozen=True)

    artist: str
    track: str
    timestamp: int
    service: ScrobbleService


@dataclass
class BackfillOutcome:
    """Result of processing one backfill task."""

    task: BackfillTask
    succeeded: bool
    error: str | None = None


@dataclass
class BackfillStats:
    """Tally of backfill outcomes for the lifetime of a queue."""

    succeeded: int = 0
    failed: int = 0
    skipped_duplicates: int = 0
    outcomes: list[BackfillOutcome] = field(default_factory=list)

    def record(self, outcome: BackfillOutcome) -> None:
        """Add one outcome to the tally."""
        self.outcomes.append(outcome)
        if outcome.succeeded:
            self.succeeded += 1
        else:
            self.failed += 1


# Configuration models


class LogLevelsConfig(BaseModel):
    """Log levels configuration."""

    console: LogLevel = LogLevel.INFO
    main_file: LogLevel = LogLevel.INFO
    sync_file: LogLevel = LogLevel.INFO


class LoggingConfig(BaseModel):
    """Logging configuration."""

    max_runs: int = Field(default=5, ge=0)
    main_log_file: str = "main/main.log"
    sync_log_file: str = "sync/sync.log"
    levels: LogLevelsConfig = Field(default_factory=LogLevelsConfig)


class ApiKeysConfig(BaseModel):
    """API key and shared secret for a Last.fm-compatible service."""

    api_key: str = ""
    shared_secret: str = ""


class HttpConfig(BaseModel):
    """HTTP settings for the reference adapters."""

    timeout_seconds: float = Field(default=30.0, gt=0)
    max_retries: int = Field(default=3, ge=0)
    retry_delay_seconds: float = Field(default=1.0, ge=0)
    requests_per_window: int = Field(default=5, ge=1)
    window_seconds: float = Field(default=1.0, gt=0)
    user_agent: str = "scrobble-sync/1.0"
    musicbrainz_contact: str = "scrobble-sync@example.com"


class SyncConfig(BaseModel):
    """Refresh settings."""

    page_size: int = Field(default=20, ge=1)
    time_range_buffer_seconds: int = Field(default=300, ge=0)
    time_range_limit: int = Field(default=1000, ge=1)
    fallback_fetch_multiplier: int = Field(default=10, ge=1)
    max_fallback_fetch: int = Field(default=1000, ge=1)


class BackfillConfig(BaseModel):
    """Backfill queue settings."""

    enabled: bool = True
    delay_seconds: float = Field(default=0.5, ge=0)
    restricted_max_age_days: float = Field(default=14, gt=0)
    sync_love: bool = True


class BlacklistEntry(BaseModel):
    """An artist/track pair that must never be scrobbled or backfilled."""

    artist: str
    track: str


class ServiceCredentialConfig(BaseModel):
    """A credential as written in the configuration file."""

    service: ScrobbleService
    token: str
    username: str
    enabled: bool = True


class AppConfig(BaseModel):
    """Main application configuration model."""

    logs_base_dir: str = "logs"
    main_service_preference: ScrobbleService | None = None
    services: list[ServiceCredentialConfig] = Field(default_factory=list)

    lastfm: ApiKeysConfig = Field(default_factory=ApiKeysConfig)
    librefm: ApiKeysConfig = Field(default_factory=ApiKeysConfig)

    http: HttpConfig = Field(default_factory=HttpConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    backfill: BackfillConfig = Field(default_factory=BackfillConfig)
    blacklist: list[BlacklistEntry] = Field(default_factory=list)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("main_service_preference", mode="before")
    @classmethod
    def parse_empty_preference(cls, v: Any) -> Any:
        """Treat an empty preference string as "no preference"."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("services")
    @classmethod
    def reject_duplicate_services(cls, v: list[ServiceCredentialConfig]) -> list[ServiceCredentialConfig]:
        """Each service may be configured only once.

        Raises:
            ValueError: If a service appears twice.
        """
        seen: set[ScrobbleService] = set()
        for entry in v:
            if entry.service in seen:
                msg = f"Service configured more than once: {entry.service}"
                raise ValueError(msg)
            seen.add(entry.service)
        return v

    def services_snapshot(self) -> ServicesSnapshot:
        """Build the read-only snapshot the coordinator consumes."""
        credentials = tuple(
            ServiceCredential(
                service=entry.service,
                token=entry.token,
                username=entry.username,
                enabled=entry.enabled,
                is_preferred=entry.service == self.main_service_preference,
            )
            for entry in self.services
        )
        return ServicesSnapshot(credentials=credentials, main_service_preference=self.main_service_preference)
