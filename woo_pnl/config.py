"""
Configuration management.
Simple .env based config for VPS deployment.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from woo_pnl.db.models import StoreCredentials


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Security
    session_secret: str = "change-me-in-production-use-random-string"
    admin_password_hash: str = ""  # bcrypt hash

    # Database
    database_path: str = "./data/app.db"

    # Logging
    log_level: str = "INFO"

    # WooCommerce store
    woo_url: str = ""
    woo_consumer_key: str = ""
    woo_consumer_secret: str = ""

    # Sync tuning
    reporting_timezone: str = "Pacific/Auckland"
    session_ttl_minutes: int = 30
    request_timeout_seconds: float = 30.0
    boundary_padding_minutes: int = 60
    sync_months: int = 3
    chunk_days: int = 5
    staleness_hours: int = 24

    def credentials(self) -> Optional[StoreCredentials]:
        """Store credentials, or None unless all three fields are set."""
        if not (self.woo_url and self.woo_consumer_key and self.woo_consumer_secret):
            return None
        return StoreCredentials(
            url=self.woo_url,
            consumer_key=self.woo_consumer_key,
            consumer_secret=self.woo_consumer_secret,
        )


# Global settings instance
settings = Settings()
