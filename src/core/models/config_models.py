"""Pydantic models for configuration validation."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models.release_models import Platform


class LogLevel(StrEnum):
    """Log level enumeration."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"
    NOTSET = "NOTSET"


class ConnectorConfig(BaseModel):
    """Per-catalog fetch settings."""

    base_url: str
    page_size: int = Field(default=100, ge=1, le=100)
    retry_limit: int = Field(default=10, ge=1)
    retry_backoff_ms: int = Field(default=1800, ge=0)
    requests_per_window: int = Field(default=25, ge=1)
    window_seconds: float = Field(default=1.0, gt=0)
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    @property
    def retry_backoff_seconds(self) -> float:
        """Backoff interval in seconds."""
        return self.retry_backoff_ms / 1000


def _default_discogs() -> ConnectorConfig:
    return ConnectorConfig(
        base_url="https://api.discogs.com",
        page_size=100,
        retry_limit=10,
        retry_backoff_ms=1800,
        requests_per_window=25,
        window_seconds=60.0,
        request_timeout_seconds=10.0,
    )


def _default_deezer() -> ConnectorConfig:
    return ConnectorConfig(
        base_url="https://api.deezer.com",
        page_size=100,
        retry_limit=8,
        retry_backoff_ms=1800,
        requests_per_window=50,
        window_seconds=5.0,
        request_timeout_seconds=10.0,
    )


def _default_spotify() -> ConnectorConfig:
    return ConnectorConfig(
        base_url="https://api.spotify.com",
        page_size=50,
        retry_limit=10,
        retry_backoff_ms=1800,
        requests_per_window=10,
        window_seconds=1.0,
        request_timeout_seconds=15.0,
    )


class ConnectorsConfig(BaseModel):
    """Settings for every catalog connector."""

    discogs: ConnectorConfig = Field(default_factory=_default_discogs)
    deezer: ConnectorConfig = Field(default_factory=_default_deezer)
    spotify: ConnectorConfig = Field(default_factory=_default_spotify)

    def for_platform(self, platform: Platform) -> ConnectorConfig:
        """Return the connector settings of ``platform``."""
        connector: ConnectorConfig = getattr(self, platform.value)
        return connector


class ScoringWeights(BaseModel):
    """Empirically tuned similarity weights.

    Changing any of these changes matching behavior and needs product sign-off.
    """

    model_config = ConfigDict(frozen=True)

    # Album level
    base_pool_weight: float = 30
    upc_match_bonus: float = 100
    title_exact_bonus: float = 40
    title_canonical_coverage_bonus: float = 20
    title_candidate_coverage_bonus: float = 25
    title_in_tracklist_bonus: float = 10
    title_no_overlap_penalty: float = Field(default=-40, le=0)
    partial_token_weight: float = 0.5
    partial_token_min_ratio: float = Field(default=0.2, ge=0, le=1)
    date_exact_bonus: float = 20
    date_proximity_bonus: float = 15
    date_window_months: int = Field(default=24, ge=1)
    track_count_bonus: float = 10
    artist_canonical_overlap_bonus: float = 20
    artist_candidate_overlap_bonus: float = 15
    artist_no_overlap_penalty: float = Field(default=-30, le=0)
    various_artists_bonus: float = 20
    missing_artists_penalty: float = Field(default=-30, le=0)

    # Track level
    track_base_pool_weight: float = 30
    track_match_weight: float = 60
    track_artist_weight: float = 40
    duration_tolerance_seconds: int = Field(default=10, ge=0)


class MatchingConfig(BaseModel):
    """Reconciliation tunables."""

    confidence_threshold: float = Field(default=74, ge=0)
    item_deadline_ms: int = Field(default=30000, ge=1)
    strategy_count: int = Field(default=6, ge=1, le=6)
    album_search_track_sample: int = Field(default=8, ge=0)
    track_search_sample: int = Field(default=15, ge=0)
    item_pacing_ms: int = Field(default=0, ge=0)
    target_platforms: list[Platform] = Field(default_factory=lambda: [Platform.DEEZER, Platform.SPOTIFY])
    various_artists_names: list[str] = Field(default_factory=lambda: ["various", "various artists", "va"])

    @field_validator("target_platforms")
    @classmethod
    def _reject_source_platform(cls, value: list[Platform]) -> list[Platform]:
        if Platform.DISCOGS in value:
            msg = "discogs is the source catalog and cannot be a reconciliation target"
            raise ValueError(msg)
        return value

    @property
    def item_deadline_seconds(self) -> float:
        """Per (item, platform) deadline in seconds."""
        return self.item_deadline_ms / 1000


class AuthConfig(BaseModel):
    """Credentials issued by the (external) authentication layer."""

    user_agent: str = "ReleaseReconciler/1.0"
    discogs_consumer_key: str = ""
    discogs_consumer_secret: str = ""
    discogs_token: str = ""
    discogs_token_secret: str = ""
    spotify_token: str = ""
    deezer_access_token: str = ""


class StoreConfig(BaseModel):
    """Match store backend selection."""

    backend: Literal["memory", "json"] = "memory"
    path: str = "data/matches.json"


class LogLevelsConfig(BaseModel):
    """Log levels configuration."""

    console: LogLevel = LogLevel.INFO
    main_file: LogLevel = LogLevel.INFO


class LoggingConfig(BaseModel):
    """Logging configuration."""

    logs_base_dir: str = "logs"
    main_log_file: str = "main/main.log"
    max_runs: int = Field(default=3, ge=0)
    levels: LogLevelsConfig = Field(default_factory=LogLevelsConfig)


class AppConfig(BaseModel):
    """Main application configuration model."""

    connectors: ConnectorsConfig = Field(default_factory=ConnectorsConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
