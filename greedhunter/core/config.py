from functools import lru_cache
from typing import Any, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_DEFAULT_CORS = ["http://localhost:3000", "http://localhost:5173", "http://localhost:5174"]


def _parse_cors_origins(v: Any) -> List[str]:
    try:
        if v is None or v == "":
            return _DEFAULT_CORS.copy()
        if isinstance(v, list):
            return [x for x in v if isinstance(x, str) and x.strip()]
        s = str(v).strip()
        if not s:
            return _DEFAULT_CORS.copy()
        if s.startswith("["):
            import json
            out = json.loads(s)
            return [x for x in out if isinstance(x, str) and x.strip()] or _DEFAULT_CORS.copy()
        return [x.strip() for x in s.split(",") if x.strip()] or _DEFAULT_CORS.copy()
    except Exception:
        return _DEFAULT_CORS.copy()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    env: str = Field(default="development", description="ENV")
    debug: bool = Field(default=False, description="DEBUG")
    secret_key: str = Field(default="change-me-in-production-min-32-chars")

    # MongoDB
    mongodb_uri: str = Field(default="mongodb://localhost:27017", alias="MONGODB_URI")
    mongodb_db_name: str = Field(default="greedhunter", alias="MONGODB_DB_NAME")

    # Redis (event bus backend "redis")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Sentry
    sentry_dsn: str | None = Field(default=None, alias="SENTRY_DSN")

    # CORS: env as string, exposed as list
    cors_origins_raw: str = Field(
        default="http://localhost:3000,http://localhost:5173,http://localhost:5174",
        alias="CORS_ORIGINS",
        description="Comma-separated or JSON list",
    )

    @property
    def cors_origins(self) -> List[str]:
        return _parse_cors_origins(getattr(self, "cors_origins_raw", None))

    @property
    def is_production(self) -> bool:
        return self.env.lower() == "production"

    # Activity event bus
    event_bus_backend: str = Field(default="log", alias="EVENT_BUS_BACKEND")  # "log" | "redis"
    activity_topic: str = Field(default="user-activities", alias="ACTIVITY_TOPIC")
    activity_stream_maxlen: int = Field(default=100_000, alias="ACTIVITY_STREAM_MAXLEN")

    # Session tokens (seconds)
    access_token_max_age: int = Field(default=24 * 3600, alias="ACCESS_TOKEN_MAX_AGE")
    refresh_token_max_age: int = Field(default=7 * 24 * 3600, alias="REFRESH_TOKEN_MAX_AGE")
    cookie_secure: bool = Field(default=False, alias="COOKIE_SECURE")

    # Wallet
    wallet_cas_max_attempts: int = Field(default=5, alias="WALLET_CAS_MAX_ATTEMPTS")


@lru_cache
def get_settings() -> Settings:
    return Settings()
