"""
Configuration management for the scheduling engine.

Uses Pydantic Settings for type-safe environment variable loading.
Configured via .env file in project root.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from calendar_engine.models.base import EventPriority
from calendar_engine.models.conflicts import ConflictConfig


class Settings(BaseSettings):
    """
    Engine settings loaded from environment variables.

    All settings can be configured via .env file or environment variables.
    Detection thresholds are defaults, not load-bearing constants: override
    them per deployment and build a ConflictConfig with conflict_config().
    """

    # Python & Application
    python_env: Literal["development", "production"] = Field(
        default="development",
        description="Application environment"
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )

    # API Configuration
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=8000,
        description="API server port"
    )
    api_reload: bool = Field(
        default=True,
        description="Enable auto-reload in development"
    )

    # Conflict Detection
    detection_window_days: int = Field(
        default=30,
        ge=1,
        description="Events starting further apart than this are never compared"
    )
    default_travel_minutes: int = Field(
        default=15,
        ge=0,
        description="Travel time used when the location pair gives no better estimate"
    )
    high_severity_overlap_minutes: int = Field(
        default=60,
        ge=0,
        description="Overlaps at least this long are high severity"
    )
    medium_severity_overlap_minutes: int = Field(
        default=15,
        ge=0,
        description="Overlaps at least this long are medium severity"
    )
    max_suggestions: int = Field(
        default=5,
        ge=1,
        description="Maximum resolution suggestions per conflict"
    )
    priority_buffer_minutes: dict[EventPriority, int] = Field(
        default_factory=lambda: {
            EventPriority.URGENT: 30,
            EventPriority.HIGH: 15,
            EventPriority.NORMAL: 10,
            EventPriority.LOW: 5,
        },
        description="Required gap around an event, by priority (JSON in env)"
    )

    # Recurrence
    recurrence_max_instances: int = Field(
        default=1000,
        ge=1,
        description="Safety cap on occurrences stepped per expansion"
    )

    # Optimizer
    optimizer_slot_minutes: int = Field(
        default=30,
        ge=1,
        description="Step between candidate slots when rescheduling"
    )
    default_rescheduling_window_days: int = Field(
        default=7,
        ge=0,
        description="How far an event may move when constraints give no window"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.python_env == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.python_env == "production"

    def validate_thresholds(self) -> None:
        """
        Validate that detection thresholds are mutually consistent.

        Raises:
            ValueError: If thresholds contradict each other
        """
        errors = []

        if self.medium_severity_overlap_minutes > self.high_severity_overlap_minutes:
            errors.append(
                "MEDIUM_SEVERITY_OVERLAP_MINUTES must not exceed "
                "HIGH_SEVERITY_OVERLAP_MINUTES."
            )

        buffers = self.priority_buffer_minutes
        missing = [p.value for p in EventPriority if p not in buffers]
        if missing:
            errors.append(f"PRIORITY_BUFFER_MINUTES is missing: {', '.join(missing)}")
        elif buffers[EventPriority.URGENT] < max(buffers.values()):
            errors.append("The urgent priority buffer must be the largest.")

        if errors:
            raise ValueError("Configuration errors:\n- " + "\n- ".join(errors))

    def conflict_config(self) -> ConflictConfig:
        """
        Build the immutable detector configuration from these settings.

        Returns:
            ConflictConfig with this environment's thresholds
        """
        return ConflictConfig(
            default_travel_minutes=self.default_travel_minutes,
            priority_buffer_minutes=dict(self.priority_buffer_minutes),
            high_severity_overlap_minutes=self.high_severity_overlap_minutes,
            medium_severity_overlap_minutes=self.medium_severity_overlap_minutes,
            detection_window_days=self.detection_window_days,
            max_suggestions=self.max_suggestions,
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This function is cached to ensure we only load settings once.
    Use this function throughout the application to access settings.

    Returns:
        Settings instance loaded from environment

    Example:
        >>> from calendar_engine.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.detection_window_days)
    """
    return Settings()
