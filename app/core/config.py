from functools import lru_cache
from typing import Optional
from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "Connectify API"
    APP_ENV: str = "production"
    FRONTEND_URL: str = "http://localhost:3000"

    BACKEND_CORS_ORIGINS: str = "http://localhost:3000"  # comma-separated list

    DATABASE_URL: str = "sqlite:///./connectify.db"

    LOG_LEVEL: str = "INFO"

    # Session credential
    JWT_SECRET_KEY: str = Field(
        validation_alias=AliasChoices("JWT_SECRET_KEY", "SESSION_SECRET", "JWT_SECRET"),
    )
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_HOURS: int = 24
    SESSION_COOKIE_NAME: str = "__connectify_token"
    SESSION_COOKIE_SECURE: bool = False

    # Credential tokens
    BCRYPT_ROUNDS: int = 10
    VERIFICATION_TTL_HOURS: int = 24
    RESET_TTL_MINUTES: int = 60
    MASK_ACCOUNT_EXISTENCE: bool = False

    # Redis/Celery Configuration
    REDIS_URL: str = "redis://localhost:6379/0"
    CELERY_BROKER_URL: Optional[str] = None
    CELERY_RESULT_BACKEND: Optional[str] = None
    RATE_LIMIT_ENABLED: bool = True

    # Email
    EMAIL_ASYNC: bool = True
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM: Optional[str] = None
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False
    RESEND_API_KEY: Optional[str] = None
    RESEND_FROM: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_required_fields(self):
        # strip wrapping quotes only, the secret body is kept as-is
        secret = self.JWT_SECRET_KEY.strip()
        if (secret.startswith('"') and secret.endswith('"')) or (secret.startswith("'") and secret.endswith("'")):
            secret = secret[1:-1]
        if not secret:
            raise ValueError("JWT_SECRET_KEY must not be empty")
        self.JWT_SECRET_KEY = secret
        self.FRONTEND_URL = self.FRONTEND_URL.rstrip("/")
        return self

    @property
    def cors_origins(self) -> list[str]:
        return [
            origin.strip()
            for origin in self.BACKEND_CORS_ORIGINS.split(",")
            if origin.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    return Settings()
