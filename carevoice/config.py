"""
Configuration module for the CareVoice conversation service.

All secrets are read from environment variables.
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Server configuration
    port: int = 5001
    host: str = "0.0.0.0"
    environment: Literal["development", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "info"

    # Conversation store
    store_backend: Literal["memory", "sql"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./carevoice.db"
    database_echo: bool = False
    default_title: str = "New Conversation"

    # Bearer token verification
    jwt_secret: str = "your-secret-key"
    jwt_algorithm: str = "HS256"
    jwt_expires_hours: int = 24

    # AI responder
    ai_provider: Literal["mock", "openai", "anthropic"] = "mock"
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    llm_max_tokens: int = 1024
    llm_temperature: float = 0.7
    ai_timeout_seconds: float = 30.0
    history_max_messages: int = 40

    # Voice replies
    speech_enabled: bool = False
    tts_model: str = "tts-1"
    audio_dir: str = "./public/uploads"
    audio_url_prefix: str = "/uploads"

    # Rate limiting
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60

    # CORS
    cors_origins: str = "http://localhost:3000,http://localhost:3001"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
