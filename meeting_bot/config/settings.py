"""
Configuration settings for the Meeting Bot orchestrator.
Uses Pydantic Settings for type-safe configuration with environment variable support.
"""

from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dateutil import tz


class SchedulerSettings(BaseSettings):
    """Polling scheduler configuration."""
    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    poll_interval_seconds: int = Field(
        default=60,
        gt=0,
        description="Seconds between calendar polls for each workspace bot"
    )
    shutdown_grace_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Max seconds a bot waits for in-flight joins when shutting down"
    )
    misfire_grace_seconds: int = Field(
        default=30,
        ge=1,
        description="How late a poll may run before it is skipped"
    )


class StorageSettings(BaseSettings):
    """Local JSON database locations."""
    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    sessions_db_path: str = Field(
        default="data/bot_sessions.json",
        description="Bot session records"
    )
    settings_db_path: str = Field(
        default="data/workspace_settings.json",
        description="Per-workspace bot settings"
    )
    integrations_db_path: str = Field(
        default="data/workspace_integrations.json",
        description="Per-workspace calendar integrations"
    )


class CalendarSettings(BaseSettings):
    """Google Calendar configuration."""
    model_config = SettingsConfigDict(env_prefix="CALENDAR_")

    calendar_id: str = Field(default="primary", description="Calendar to poll")
    max_results: int = Field(
        default=250,
        description="Events per page (Google Calendar API max is 250)"
    )
    scopes: List[str] = Field(
        default=["https://www.googleapis.com/auth/calendar.readonly"],
        description="Google Calendar API scopes"
    )


class BrowserSettings(BaseSettings):
    """Browser automation configuration for joining meetings."""
    model_config = SettingsConfigDict(env_prefix="BROWSER_")

    headless: bool = Field(default=True, description="Run Chromium headless")
    default_bot_name: str = Field(default="Meeting Bot", description="Default bot name")
    teams_bot_name: str = Field(default="Meeting Transcriber", description="Teams bot name")
    google_meet_bot_name: str = Field(default="Meeting Transcriber", description="Meet bot name")
    zoom_bot_name: str = Field(default="Meeting Transcriber", description="Zoom bot name")

    navigation_timeout_seconds: int = Field(default=60, description="Page load timeout (seconds)")
    lobby_timeout_seconds: int = Field(default=600, description="Max lobby wait (seconds)")
    recordings_dir: str = Field(default="recordings", description="Video recordings directory")


class Settings(BaseSettings):
    """Main application settings."""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Nested settings
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    # Application settings
    project_name: str = Field(default="Meeting Bot Orchestrator", description="API title")
    version: str = Field(default="1.0.0", description="API version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Logging level")
    log_to_file: bool = Field(default=True, description="Also log to files under log_dir")
    log_dir: str = Field(default="logs", description="Directory for rotating log files")
    timezone: str = Field(default="auto", description="Timezone (or 'auto')")
    host: str = Field(default="0.0.0.0", description="API bind host")
    port: int = Field(default=8000, description="API bind port")
    restore_on_startup: bool = Field(
        default=True,
        description="Start bots for every enabled workspace when the API starts"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @property
    def tz_info(self):
        """Get timezone info (auto-detected if 'auto')."""
        if self.timezone.lower() == "auto":
            return tz.tzlocal()
        return tz.gettz(self.timezone) or tz.UTC


# Global settings instance
settings = Settings()
