"""Configuration management for ClawTrap."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_VALID_SEVERITIES = ("low", "medium", "high", "critical")
_VALID_PERSONALITIES = ("helpful", "cautious", "technical")


def parse_delay_range(value: str) -> tuple[int, int]:
    """Parse a ``"min-max"`` millisecond range such as ``"500-2000"``.

    A single number is treated as a fixed delay.

    Raises:
        ValueError: If the range is malformed, negative or inverted.
    """
    parts = [p.strip() for p in value.split("-")]
    if len(parts) == 1:
        parts = [parts[0], parts[0]]
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"delay range must look like '500-2000', got: {value!r}")
    low, high = int(parts[0]), int(parts[1])
    if low > high:
        raise ValueError(f"delay range minimum exceeds maximum: {value!r}")
    return low, high


def _split_csv(value: str | None) -> list[str]:
    if value is None:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from ``CLAWTRAP_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLAWTRAP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_parse_none_str="",
        populate_by_name=True,
    )

    # Instance
    instance_id: str = Field(default="local-dev", description="Honeypot instance identifier")
    environment: str = Field(default="production", description="Environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=False, description="Enable file-based JSON logging")
    log_directory: str = Field(default="logs", description="Directory for log files")
    log_file_max_bytes: int = Field(
        default=52428800,  # 50MB
        description="Max size per log file before rotation",
    )
    log_file_backup_count: int = Field(
        default=10, description="Number of rotated log files to keep"
    )
    log_file_prefix: str = Field(default="clawtrap", description="Prefix for log file names")
    forward_logs: bool = Field(
        default=True, description="Forward log events into the reporting pipeline"
    )

    # Detection
    patterns_dir: str = Field(
        default="config/patterns", description="Directory holding YAML detection rule files"
    )
    alert_on_str: str = Field(
        default="critical,high",
        alias="CLAWTRAP_ALERT_ON",
        description="Severities logged at warning level (comma-separated)",
    )

    # Agent classifier
    timing_max_samples: int = Field(default=50, description="Timing samples kept per identity")
    timing_max_identities: int = Field(
        default=10000, description="Identities tracked before oldest-half eviction"
    )

    # Canary tokens
    canary_enabled: bool = Field(default=True, description="Enable canary sighting reports")
    canary_callback_url: str | None = Field(
        default=None, description="HTTP endpoint receiving batched findings"
    )
    canary_high_priority_types_str: str = Field(
        default="canary_credential_used,aws_key_usage,api_key_external_usage",
        alias="CLAWTRAP_CANARY_HIGH_PRIORITY_TYPES",
        description="Canary event types that force an immediate flush (comma-separated)",
    )

    # Fake agent
    assistant_name: str = Field(default="OpenClaw", description="Impersonated product name")
    model_name: str = Field(default="gpt-4", description="Model name the fake agent claims")
    personality: str = Field(default="helpful", description="helpful, cautious or technical")
    response_delay_ms: str = Field(default="500-2000", description="Simulated latency range")

    # Sessions and admission control
    session_max_sessions: int = Field(default=10000, description="Live session capacity")
    session_max_age_seconds: float = Field(default=3600.0, description="Session expiry age")
    session_sweep_interval_seconds: float = Field(
        default=60.0, description="Interval of the age-based session sweep"
    )
    admission_max_per_window: int = Field(
        default=20, description="Connections admitted per identity per window"
    )
    admission_window_seconds: float = Field(default=60.0, description="Admission window length")

    # Reporting pipeline
    report_queue_max: int = Field(default=50000, description="Max buffered findings")
    report_drop_fraction: float = Field(
        default=0.1, description="Fraction of oldest findings dropped when the buffer is full"
    )
    report_flush_interval_seconds: float = Field(
        default=5.0, description="Periodic flush interval"
    )
    report_timeout_seconds: float = Field(default=10.0, description="Sink request timeout")

    # Gateway
    ws_host: str = Field(
        default="0.0.0.0",  # nosec B104 - honeypot must be reachable
        description="WebSocket gateway bind host",
    )
    ws_port: int = Field(default=18789, description="WebSocket gateway port")

    @field_validator("report_drop_fraction")
    @classmethod
    def validate_fraction(cls, v: float) -> float:
        """Validate the drop fraction is in (0, 1]."""
        if not 0 < v <= 1:
            raise ValueError(f"report_drop_fraction must be in (0, 1], got: {v}")
        return v

    @field_validator("personality")
    @classmethod
    def validate_personality(cls, v: str) -> str:
        """Validate the fake agent personality."""
        if v not in _VALID_PERSONALITIES:
            raise ValueError(f"personality must be one of {list(_VALID_PERSONALITIES)}, got: {v}")
        return v

    @field_validator("response_delay_ms")
    @classmethod
    def validate_response_delay(cls, v: str) -> str:
        """Validate the simulated latency range."""
        parse_delay_range(v)
        return v

    @field_validator("alert_on_str")
    @classmethod
    def validate_alert_on(cls, v: str) -> str:
        """Validate every listed severity is known."""
        unknown = [s for s in _split_csv(v) if s not in _VALID_SEVERITIES]
        if unknown:
            raise ValueError(f"alert_on contains unknown severities: {unknown}")
        return v

    @field_validator(
        "timing_max_samples",
        "timing_max_identities",
        "session_max_sessions",
        "admission_max_per_window",
        "report_queue_max",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate capacity values are positive."""
        if v < 1:
            raise ValueError(f"Value must be at least 1, got: {v}")
        return v

    @property
    def alert_on(self) -> list[str]:
        """Severities that are logged at warning level."""
        return _split_csv(self.alert_on_str)

    @property
    def canary_high_priority_types(self) -> list[str]:
        """Canary event types that trigger an immediate flush."""
        return _split_csv(self.canary_high_priority_types_str)

    @property
    def response_delay_range(self) -> tuple[int, int]:
        """Parsed ``(min_ms, max_ms)`` latency range."""
        return parse_delay_range(self.response_delay_ms)

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.environment.lower() == "development"

    @property
    def log_file_path(self) -> str:
        """Get the full log file path."""
        return f"{self.log_directory}/{self.log_file_prefix}.log"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
