"""Application settings.

- BaseSettings reads values from the environment or a .env file.
- Settings are built once (get_settings) and passed to components through
  FastAPI dependencies, so tests can override them.
"""

import logging
import sys
from functools import lru_cache
from typing import List, Optional

from pydantic import ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

REQUIRED_ENV_VARS = [
    "DATABASE_URL",
    "JWT_SECRET",
    "AWS_BUCKET_NAME",
    "AWS_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
]

DEFAULT_POSE_SERVICE_URL = "https://cyclofit-ai.grity.co/process-video"


class Settings(BaseSettings):
    PROJECT_NAME: str = "CycloFit Service"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Required
    DATABASE_URL: str
    JWT_SECRET: str
    AWS_BUCKET_NAME: str
    AWS_REGION: str
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str

    JWT_EXPIRES_DAYS: int = 30

    # External pose analysis service
    PYTHON_SERVER_URL: str = DEFAULT_POSE_SERVICE_URL
    POSE_SERVICE_TIMEOUT: float = 600.0  # 10 minutes, matches the client

    CLIENT_URL: str = "http://localhost:3000"
    SERVER_URL: str = "http://localhost:8000"

    # Email (optional; without credentials emails are logged in development)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    ADMIN_EMAIL: Optional[str] = None

    ADMIN_API_KEY: Optional[str] = None

    # Uploads and media
    MAX_UPLOAD_BYTES: int = 200 * 1024 * 1024
    LEGACY_MEDIA_ROOT: str = "legacy_media"  # root of pre-S3 file paths, served at /static
    FFPROBE_PATH: Optional[str] = None

    SIGNED_URL_TTL_SECONDS: int = 3600
    URL_CACHE_MAX_SIZE: int = 20
    URL_CACHE_TTL_SECONDS: int = 300

    class Config:
        env_file = ".env"
        extra = "ignore"

    @field_validator("DATABASE_URL")
    @classmethod
    def fix_postgres_scheme(cls, v):
        # Heroku uses postgres:// but SQLAlchemy 2.0+ requires postgresql://
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql://", 1)
        return v

    @model_validator(mode="after")
    def check_url_cache_ttl(self):
        if self.URL_CACHE_TTL_SECONDS >= self.SIGNED_URL_TTL_SECONDS:
            raise ValueError("URL_CACHE_TTL_SECONDS must be shorter than SIGNED_URL_TTL_SECONDS")
        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> List[str]:
        origins = ["http://localhost:3000"]
        if self.CLIENT_URL and self.CLIENT_URL not in origins:
            origins.insert(0, self.CLIENT_URL)
        return origins


@lru_cache
def get_settings() -> Settings:
    """FastAPI dependency returning the process-wide settings."""
    return Settings()


def missing_required_settings(error: ValidationError) -> List[str]:
    """Names of required variables reported missing by a settings ValidationError."""
    missing = []
    for item in error.errors():
        if item.get("type") == "missing" and item.get("loc"):
            name = str(item["loc"][0])
            if name in REQUIRED_ENV_VARS:
                missing.append(name)
    return missing


def validate_settings_or_exit() -> Settings:
    """Build settings at boot; exit the process when required variables are missing."""
    try:
        return get_settings()
    except ValidationError as e:
        missing = missing_required_settings(e)
        if missing:
            logger.critical("Missing required environment variables: %s", ", ".join(missing))
            logger.critical("Please set these variables in your .env file")
        else:
            logger.critical("Invalid configuration: %s", e)
        sys.exit(1)
