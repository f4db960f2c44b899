"""Application configuration loaded from environment variables."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from herit_auth.core.exceptions import InvalidConfigurationError

BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_SECRET = "change-me"


class Settings(BaseSettings):
    APP_NAME: str = "Herit Session Auth"
    ENV: str = "development"

    DATABASE_URL: str = "postgresql+psycopg://postgres@localhost:5432/herit"

    SESSION_SECRET: str = DEFAULT_SECRET
    REFRESH_SECRET: str = ""
    REFRESH_TOKEN_PEPPER: str = ""
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    TOKEN_CLOCK_SKEW_SECONDS: int = 30

    ARGON2_MEMORY_COST: int = 2**16
    ARGON2_TIME_COST: int = 3
    ARGON2_PARALLELISM: int = 1

    ACCESS_COOKIE_NAME: str = "herit_access_token"
    REFRESH_COOKIE_NAME: str = "herit_refresh_token"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000"

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 60
    RATE_LIMIT_MAX_REQUESTS: int = 120
    RATE_LIMIT_LOGIN_MAX_REQUESTS: int = 5
    RATE_LIMIT_REGISTER_MAX_REQUESTS: int = 3

    model_config = SettingsConfigDict(env_file=str(BASE_DIR / ".env"), env_file_encoding="utf-8")

    @property
    def cors_origins(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        return self.ENV.strip().lower() == "production"

    @property
    def refresh_secret(self) -> str:
        return self.REFRESH_SECRET or self.SESSION_SECRET

    @property
    def refresh_token_pepper(self) -> str:
        return self.REFRESH_TOKEN_PEPPER or self.refresh_secret

    def validate_runtime_security(self) -> None:
        if self.ENV.strip().lower() == "development":
            return
        if not self.SESSION_SECRET or self.SESSION_SECRET == DEFAULT_SECRET:
            raise InvalidConfigurationError("SESSION_SECRET must be set outside development", setting="SESSION_SECRET")
        if not self.REFRESH_SECRET or self.REFRESH_SECRET == self.SESSION_SECRET:
            raise InvalidConfigurationError(
                "REFRESH_SECRET must be set and differ from SESSION_SECRET",
                setting="REFRESH_SECRET",
            )


settings = Settings()
