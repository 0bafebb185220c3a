"""
Configuration management using environment variables.
Handles WebUntis credentials, notification switches and service settings
with proper validation and defaults.
"""

from pathlib import Path
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from api.config import APIConfig
from scheduler.models import FeedConfig, SchedulerConfig
from untis.models import UntisCredentials


STATE_FILE_NAME = "state.json"
SNAPSHOT_FILE_NAME = "timetable_cache.json"
FEED_FILE_NAME = "feed.xml"


class UntisFeedConfig(BaseSettings):
    """
    Configuration class for the feed service.
    Uses pydantic BaseSettings for environment variable management.
    """

    # WebUntis credentials (required)
    untis_school: str = Field(..., min_length=1)
    untis_user: str = Field(..., min_length=1)
    untis_password: str = Field(..., min_length=1)
    untis_server: str = Field(..., min_length=1)
    untis_client_name: str = Field(default="UntisFeedBot/1.0")
    request_timeout: int = Field(default=30)

    # Notification categories
    notify_timetable_changes: bool = Field(default=False)
    notify_exams: bool = Field(default=False)
    notify_absences: bool = Field(default=False)
    notify_messages: bool = Field(default=False)

    # Scheduler Configuration
    update_interval_seconds: int = Field(default=3600)
    timezone: str = Field(default="UTC")
    lookahead_days: int = Field(default=14)
    history_retention_days: int = Field(default=7)

    # Storage
    data_dir: str = Field(default="data")

    # Server Configuration
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=6565)
    base_url: Optional[str] = Field(default=None)
    favicon_path: str = Field(default="favicon.svg")

    # Logging Configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json")
    log_file: Optional[str] = Field(default=None)
    debug: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    @field_validator("untis_server")
    @classmethod
    def validate_server(cls, v):
        """Accept a bare host name; strip scheme and trailing slashes."""
        v = v.strip()
        for prefix in ("https://", "http://"):
            if v.lower().startswith(prefix):
                v = v[len(prefix):]
        return v.rstrip("/")

    @field_validator("request_timeout")
    @classmethod
    def validate_timeout(cls, v):
        """Ensure timeout is reasonable."""
        if v < 5 or v > 300:
            raise ValueError("request_timeout must be between 5 and 300 seconds")
        return v

    @field_validator("update_interval_seconds")
    @classmethod
    def validate_update_interval(cls, v):
        """Ensure the polling interval is at least one minute."""
        if v < 60:
            raise ValueError("update_interval_seconds must be at least 60")
        return v

    @field_validator("lookahead_days", "history_retention_days")
    @classmethod
    def validate_days(cls, v):
        if v < 1 or v > 365:
            raise ValueError("day counts must be between 1 and 365")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        """Ensure timezone is a known IANA zone."""
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v):
        if v < 1 or v > 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v):
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ["json", "console"]
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {valid_formats}")
        return v.lower()

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_data_dir(self) -> Path:
        return Path(self.data_dir)

    def get_state_file_path(self) -> Path:
        return self.get_data_dir() / STATE_FILE_NAME

    def get_snapshot_file_path(self) -> Path:
        return self.get_data_dir() / SNAPSHOT_FILE_NAME

    def get_feed_file_path(self) -> Path:
        return self.get_data_dir() / FEED_FILE_NAME

    def get_base_url(self) -> str:
        """Public base URL used for feed and icon links."""
        return self.base_url or f"http://localhost:{self.port}"

    def get_credentials(self) -> UntisCredentials:
        return UntisCredentials(
            school=self.untis_school,
            username=self.untis_user,
            password=self.untis_password,
            server=self.untis_server,
            client_name=self.untis_client_name,
            timeout=self.request_timeout,
        )

    def get_feed_config(self) -> FeedConfig:
        return FeedConfig(
            base_url=self.get_base_url(),
            feed_path=FEED_FILE_NAME,
            favicon_path=self.favicon_path,
        )

    def get_scheduler_config(self) -> SchedulerConfig:
        """Build the immutable configuration handed to the refresh engine."""
        return SchedulerConfig(
            update_interval_seconds=self.update_interval_seconds,
            timezone=self.timezone,
            lookahead_days=self.lookahead_days,
            history_retention_days=self.history_retention_days,
            notify_timetable=self.notify_timetable_changes,
            notify_exams=self.notify_exams,
            notify_absences=self.notify_absences,
            notify_messages=self.notify_messages,
            feed=self.get_feed_config(),
        )

    def get_api_config(self) -> APIConfig:
        return APIConfig(
            host=self.host,
            port=self.port,
            debug=self.debug,
            log_level=self.log_level,
            feed_file=str(self.get_feed_file_path()),
            favicon_path=self.favicon_path,
        )

    def enabled_categories(self) -> list:
        """Names of the notification categories switched on."""
        flags = {
            "timetable": self.notify_timetable_changes,
            "exams": self.notify_exams,
            "absences": self.notify_absences,
            "messages": self.notify_messages,
        }
        return [name for name, enabled in flags.items() if enabled]


def load_config(**overrides) -> UntisFeedConfig:
    """
    Load configuration from the environment.

    Raises:
        pydantic.ValidationError: if a required value is missing or invalid
    """
    return UntisFeedConfig(**overrides)
