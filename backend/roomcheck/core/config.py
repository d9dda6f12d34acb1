from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    PROJECT_NAME: str = "Room Check"
    VERSION: str = "1.0.0"
    API_PREFIX: str = "/api"
    DEBUG: bool = False
    ENVIRONMENT: str = "production"
    APP_BASE_URL: str = "http://localhost:3000"

    # Database
    DATABASE_URL: str = "sqlite:///./roomcheck.db"

    # Security (no default: a missing secret must stop startup)
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    QR_TOKEN_EXPIRE_MINUTES: int = 15

    # Attendance windows
    ATTENDANCE_GRACE_MINUTES: int = 15
    ORGANIZER_CHECK_IN_LEAD_MINUTES: int = 15

    # Rate limits
    CODE_MAX_SENDS: int = 5
    CODE_SEND_COOLDOWN_SECONDS: int = 60
    VERIFY_MAX_ATTEMPTS: int = 5
    VERIFY_COOLDOWN_MINUTES: int = 15

    # Mail delivery
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    MAIL_FROM: str = "noreply@roomcheck.local"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = "roomcheck.log"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    @field_validator("SECRET_KEY")
    @classmethod
    def secret_key_strength(cls, v):
        if len(v.strip()) < 32:
            raise ValueError("SECRET_KEY must be at least 32 characters. Generate one with: openssl rand -hex 32")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
