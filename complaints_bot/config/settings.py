"""
Application settings and configuration.
All secrets are loaded from environment variables.
"""

import json
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenRouter (OpenAI-compatible) Configuration
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    openrouter_model: str = "openrouter/auto"

    # Google Configuration
    google_service_account_json: str = ""  # Raw service account JSON
    google_service_account_file: str = ""  # Alternative: path to JSON file
    sheet_id: str = ""
    sheet_worksheet_name: str = ""  # Empty means the first worksheet
    dashboard_worksheet_name: str = "Dashboard"
    google_drive_folder_id: str = ""
    upload_images_to_drive: bool = False

    # Webhook Security
    webhook_secret: str = ""
    skip_webhook_auth: bool = False  # Development only
    meta_verify_token: str = ""
    meta_access_token: str = ""
    meta_graph_api_version: str = "v18.0"

    # Rate Limiting (per phone number)
    rate_limit_enabled: bool = True
    rate_limit_window_ms: int = 60000
    rate_limit_max_requests: int = 10
    rate_limit_cleanup_minutes: int = 5

    # Message Pairing
    pairing_window_ms: int = 60000
    dedup_max_size: int = 10000
    sweep_interval_seconds: int = 30
    reverse_pairing_enabled: bool = False

    # Background Processing
    queue_max_size: int = 100

    # Dashboard
    dashboard_enabled: bool = False
    dashboard_interval_minutes: int = 15

    # Application Settings
    debug: bool = False
    timezone: str = "Asia/Jerusalem"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False

    @property
    def service_account_info(self) -> Optional[dict]:
        """Parsed Google service account credentials, if configured."""
        if self.google_service_account_json:
            return json.loads(self.google_service_account_json)
        if self.google_service_account_file:
            with open(self.google_service_account_file, encoding="utf-8") as f:
                return json.load(f)
        return None


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
