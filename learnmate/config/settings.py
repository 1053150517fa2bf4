"""LearnMate settings, read from the environment and an optional .env file."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "learnmate"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production", "testing"] = "development"

    # Backend reached by the playback gateway
    api_base_url: str = Field(
        default="http://localhost:8000", description="Base URL of the enrollment API"
    )
    api_request_timeout: float = Field(default=10.0, description="Gateway timeout in seconds")

    # Access tokens (issued by the identity service)
    auth_secret_key: str = Field(
        default="dev-jwt-secret-key-change-in-production-32chars!",
        min_length=32,
        description="HS256 signing key shared with the identity service",
    )
    auth_algorithm: str = "HS256"
    auth_access_token_expire_minutes: int = 15

    # Cassandra
    cassandra_hosts: list[str] = ["localhost"]
    cassandra_port: int = 9042
    cassandra_keyspace: str = "learnmate"
    cassandra_username: str | None = None
    cassandra_password: str | None = None
    cassandra_protocol_version: int = 4
    cassandra_connect_timeout: float = 10.0

    # Redis (lesson outline cache, optional)
    redis_url: str = "redis://localhost:6379/0"
    redis_max_connections: int = 10
    redis_socket_timeout: float = 5.0
    redis_socket_connect_timeout: float = 5.0
    redis_retry_on_timeout: bool = True
    redis_health_check_interval: int = 30
    catalog_cache_ttl_seconds: int = Field(
        default=300, description="How long a course's lesson outline stays cached"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"
    log_format: Literal["json", "console"] = "console"
    log_include_caller_info: bool = True
    log_dir: str = "logs"
    log_file_max_bytes: int = 10 * 1024 * 1024
    log_file_backup_count: int = 5
    log_requests: bool = True
    log_exclude_paths: list[str] = Field(
        default=["/health"], description="Path prefixes left out of request logs"
    )

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]
    cors_max_age: int = 600

    # Watch-progress tracking
    playback_seek_slack_seconds: int = Field(
        default=2, description="Forward jump tolerated before a seek is reverted"
    )
    playback_persist_interval_seconds: float = Field(
        default=4.0, description="Minimum gap between two progress reports"
    )
    playback_resume_min_seconds: int = Field(
        default=5, description="Saved positions at or below this start from zero"
    )
    playback_completion_ratio: float = Field(
        default=0.9, description="Watched share that completes a lesson"
    )
    playback_early_finish_ratio: float = Field(
        default=0.6, description="Watched share that unlocks finishing early"
    )
    playback_poll_interval_seconds: float = Field(
        default=1.0, description="How often the YouTube player is sampled"
    )

    # Assessment proctoring
    assessment_allowed_exits: int = Field(
        default=3, description="Fullscreen exit that forces submission"
    )
    assessment_exit_countdown_seconds: int = Field(
        default=10, description="Time given to return to fullscreen"
    )
    assessment_default_duration_minutes: int = 60
    assessment_default_passing_score: int = 70

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_testing(self) -> bool:
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, built on first use."""
    return Settings()
