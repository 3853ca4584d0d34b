"""
Configuration Module

This module handles loading and validating environment variables using Pydantic Settings.
All application configuration is centralized here for easy management and type safety.

Classes:
    Settings: Main configuration class that loads all environment variables

Usage:
    from canonsort.config import settings

    client_id = settings.spotify_client_id
    delay = settings.move_delay_ms_per_item
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal
from pathlib import Path

# Only use Docker secrets directory if it exists to avoid noisy warnings in self-hosted setups
_secrets_dir = Path("/run/secrets")
_secrets_dir_str = str(_secrets_dir) if _secrets_dir.is_dir() else None


class Settings(BaseSettings):
    """
    Application Settings

    Loads configuration from environment variables with validation.

    Attributes:
        spotify_client_id: Spotify application client ID
        spotify_client_secret: Spotify application client secret
        spotify_redirect_uri: OAuth callback URL
        environment: Current environment (development/production/testing)
        backend_host: Host to bind the backend server
        backend_port: Port to bind the backend server
        frontend_url: Frontend URL for CORS configuration
        token_cache_path: File holding the cached OAuth token
        log_level: Logging level
        playlist_page_size: Items requested per playlist page
        move_delay_ms_per_item: Pause after each reorder call, in ms per playlist item (0 disables)
        estimated_call_latency_seconds: Assumed duration of one reorder call, for estimates
    """

    # Spotify API Configuration (supports Docker secrets via /run/secrets)
    spotify_client_id: str
    spotify_client_secret: str
    spotify_redirect_uri: str = "http://127.0.0.1:8000/auth/callback"

    environment: Literal["development", "production", "testing"] = "development"

    # Server Configuration
    backend_host: str = "0.0.0.0"
    backend_port: int = 8000

    # Frontend Configuration
    frontend_url: str = "http://localhost:5173"
    frontend_allowed_origins: str | None = None

    # Token Storage Configuration
    token_cache_path: str = "./.token_cache"

    # Logging Configuration
    log_level: str = "INFO"
    log_timezone: str = "UTC"
    log_dir: str = "./logs"
    log_file_enabled: bool = False

    # Pagination Configuration
    playlist_page_size: int = 100

    # Reorder pacing
    move_delay_ms_per_item: float = 2.0
    estimated_call_latency_seconds: float = 0.5

    model_config = SettingsConfigDict(
        env_file="../.env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        secrets_dir=_secrets_dir_str,
        extra="ignore"
    )

    @property
    def backend_url(self) -> str:
        """Full backend URL (e.g., http://localhost:8000)"""
        return f"http://{self.backend_host}:{self.backend_port}"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode"""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode"""
        return self.environment == "production"

    @property
    def allowed_origins(self) -> list[str]:
        """
        Allowed origins for CORS.

        Returns:
            list[str]: Origins parsed from frontend_allowed_origins or frontend_url.
        """
        if self.frontend_allowed_origins:
            return [o.strip() for o in self.frontend_allowed_origins.split(",") if o.strip()]
        return [self.frontend_url]


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance

    Uses lru_cache to ensure settings are loaded only once and cached.

    Returns:
        Settings: Cached settings instance
    """
    return Settings()


# Global settings instance for convenience
settings = get_settings()
