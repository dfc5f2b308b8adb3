"""
Configuration management for the application
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Redis configuration
    redis_url: str = Field(default="redis://localhost:6379", description="Redis connection URL")

    # Security
    secret_key: str = Field(
        default="dev-secret-key-change-in-production",
        description="Secret key for HMAC cookie signing",
    )
    cookie_max_age: int = Field(
        default=86400, description="Lifetime of signed session cookies (seconds)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")

    # Rooms
    code_attempts: int = Field(
        default=10, description="Room code draws before giving up"
    )
    ephemeral_ttl: int = Field(
        default=3600, description="Lifetime of a one-time room (seconds)"
    )
    ephemeral_retention: int = Field(
        default=86400,
        description="How long an expired one-time room is kept before eviction (seconds)",
    )
    max_room_name_length: int = Field(default=100, description="Maximum room name length")

    # Questions
    max_question_length: int = Field(
        default=1000, description="Maximum student question length"
    )
    rate_limit_window: int = Field(
        default=0, description="Seconds between questions per voter (0 disables)"
    )

    # Notifications
    notifier_backend: Literal["log", "smtp"] = Field(
        default="log", description="Which notifier implementation to use"
    )
    smtp_host: str = Field(default="localhost", description="SMTP server host")
    smtp_port: int = Field(default=587, description="SMTP server port")
    smtp_username: str | None = Field(default=None, description="SMTP login")
    smtp_password: str | None = Field(default=None, description="SMTP password")
    smtp_sender: str = Field(
        default="no-reply@roomqa.local", description="From address for outgoing mail"
    )


# Global settings instance
settings = Settings()
