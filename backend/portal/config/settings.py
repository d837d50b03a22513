"""Application Settings - Central Configuration"""
from functools import lru_cache
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # MongoDB
    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "ops_portal_dev"
    mongo_server_selection_timeout_ms: int = 5000
    mongo_connect_timeout_ms: int = 5000
    mongo_socket_timeout_ms: int = 30000
    mongo_operation_timeout_ms: int = 15000  # Upper bound for any single operation
    mongo_use_transactions: bool = False  # Requires a replica set

    # Session tokens (HS256 shared secret with the identity provider)
    auth_secret: str = "change-me-in-production"
    auth_algorithm: str = "HS256"
    auth_token_ttl_minutes: int = 480
    bcrypt_rounds: int = 12

    # Logging
    logs_path: str = "./logs"
    log_level: str = "INFO"

    # API server (run.py defaults)
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    # CORS - set to "*" to allow all origins
    cors_origins: str = "*"

    # Frontend URL (for email links)
    frontend_url: str = "http://localhost:3000"

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_interval_seconds: int = 10  # Process outbox every 10 seconds
    deadline_check_interval_minutes: int = 60
    notification_max_retries: int = 5
    notification_lock_duration_seconds: int = 60
    stale_lock_cleanup_minutes: int = 10

    # SMTP
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_from: str = "portal@localhost"
    smtp_use_tls: bool = True
    email_notifications_enabled: bool = True

    # Environment
    environment: str = "development"
    debug: bool = True

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins string to list"""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def email_configured(self) -> bool:
        """Email delivery is active only with an SMTP host"""
        return bool(self.smtp_host) and self.email_notifications_enabled

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.environment.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
