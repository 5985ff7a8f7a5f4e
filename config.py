# Configuration settings for the Clinic Management System

from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from the environment or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API Configuration
    api_title: str = "Clinic Management System"
    api_version: str = "1.0.0"
    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: List[str] = ["*"]

    # Database Configuration
    database_path: str = "clinic.db"

    # JWT Configuration
    jwt_secret: Optional[str] = None
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 24 * 60

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
