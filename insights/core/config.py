"""Application configuration via environment variables."""

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "Meeting Insights"
    debug: bool = False
    log_file: str = ""  # Empty logs to stderr

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all

    # Database
    database_url: str = "sqlite:///./meeting_insights.db"

    # Cal.com OAuth client
    cal_client_id: str = ""
    cal_client_secret: str = ""
    cal_provider_id: str = "calcom"
    cal_oauth_token_url: str = "https://app.cal.com/api/auth/oauth/refreshToken"
    cal_token_request_format: Literal["json", "form"] = "json"
    cal_token_refresh_bearer: bool = False  # Also send refresh token as Bearer header

    # Cal.com API
    cal_api_base_url: str = "https://api.cal.com/v2"
    cal_api_version: str = "2024-08-13"

    # Upstream requests
    http_timeout_seconds: float = 10.0
    token_expiry_buffer_seconds: int = 300

    # Booking queries
    top_updated_bookings_limit: int = 3
    booking_summary_fetch_limit: int = 1


settings = Settings()
