"""
API configuration settings.
"""

from pydantic import BaseModel, ConfigDict


class APIConfig(BaseModel):
    """HTTP server settings handed to the FastAPI application factory."""

    # API Settings
    api_title: str = "WebUntis Live Alerts"
    api_version: str = "1.0.0"
    api_description: str = "RSS feed of timetable changes, exams, absences and messages"

    # Server Settings
    host: str = "0.0.0.0"
    port: int = 6565
    debug: bool = False

    # Served files
    feed_file: str = "data/feed.xml"
    favicon_path: str = "favicon.svg"

    # Logging
    log_level: str = "INFO"

    model_config = ConfigDict(frozen=True)
