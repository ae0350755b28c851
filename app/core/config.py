"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Allowed URL schemes for DATABASE_URL (module-level so validators can use it).
VALID_DATABASE_URL_PREFIXES = (
    "postgresql://",
    "postgresql+psycopg2://",
    "postgres://",
    "postgres+psycopg2://",
    "sqlite://",
    "sqlite+pysqlite://",
)

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    # Empty means "*" in dev and no cross-origin access in prod.
    CORS_ORIGINS: list[str] = []

    # Credential store; required (no default) so a missing value stops startup.
    DATABASE_URL: str

    # JWT authentication; the secret is required for the same reason.
    JWT_SECRET: SecretStr
    JWT_ALGORITHM: str = "HS256"

    BCRYPT_ROUNDS: int = 10

    # REST Countries v3.1 (read-only country data proxied under /api/countries)
    COUNTRIES_API_BASE_URL: str = "https://restcountries.com/v3.1"
    COUNTRIES_REQUEST_TIMEOUT_SEC: float = 10.0

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DATABASE_URL must be set and non-empty")
        if not any(v.strip().startswith(prefix) for prefix in VALID_DATABASE_URL_PREFIXES):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or SQLite URL (e.g. postgresql:// or sqlite:///)"
            )
        return v.strip()

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = (v or "").strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(f"LOG_LEVEL must be one of {', '.join(VALID_LOG_LEVELS)}")
        return level

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("JWT_ALGORITHM must be set and non-empty")
        return v.strip()

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 16:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 16")
        return v

    @field_validator("COUNTRIES_API_BASE_URL")
    @classmethod
    def validate_countries_api_base_url(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("COUNTRIES_API_BASE_URL must be set and non-empty")
        s = v.strip().lower()
        if not (s.startswith("http://") or s.startswith("https://")):
            raise ValueError(
                "COUNTRIES_API_BASE_URL must use http or https (e.g. https://restcountries.com/v3.1)"
            )
        return v.strip().rstrip("/")

    @field_validator("COUNTRIES_REQUEST_TIMEOUT_SEC")
    @classmethod
    def validate_countries_timeout(cls, v: float) -> float:
        if v <= 0 or v > 60:
            raise ValueError(
                "COUNTRIES_REQUEST_TIMEOUT_SEC must be greater than 0 and at most 60"
            )
        return v

    def cors_origins(self) -> list[str]:
        """Origins allowed by CORS: explicit list, else '*' in dev and none in prod."""
        if self.CORS_ORIGINS:
            return self.CORS_ORIGINS
        return ["*"] if self.APP_ENV == "dev" else []


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance built from the environment. Call once at startup."""
    return Settings()
