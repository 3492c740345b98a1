"""Application configuration with environment-specific profiles.

Supports dev, test, staging, and production environments via APP_ENV.
All values can be overridden by environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class Settings:
    """Immutable application settings resolved from environment."""

    database_url: str
    app_env: str = "dev"
    log_level: str = "INFO"
    jwt_secret_key: str = "jwt-change-me"
    jwt_expire_minutes: int = 480
    request_id_header_name: str = "X-Request-ID"
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    # Scheduling
    calendar_max_steps: int = 100

    # Pagination
    history_default_limit: int = 20
    history_max_limit: int = 200

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"


# -- Environment profiles --

_ENV_PROFILES: dict[str, dict] = {
    "dev": {
        "log_level": "DEBUG",
        "jwt_expire_minutes": 1440,
    },
    "test": {
        "log_level": "WARNING",
        "jwt_expire_minutes": 60,
    },
    "staging": {
        "log_level": "INFO",
        "jwt_expire_minutes": 480,
    },
    "production": {
        "log_level": "WARNING",
        "jwt_expire_minutes": 240,
    },
}


def get_database_url() -> str:
    """Resolve database URL from the DATABASE_URL env var or a local default."""
    env_url = os.getenv("DATABASE_URL")
    if env_url:
        return env_url
    return "sqlite+pysqlite:///./periodization.db"


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build Settings by merging environment profile with env-var overrides."""
    app_env = os.getenv("APP_ENV", "dev")
    profile = _ENV_PROFILES.get(app_env, _ENV_PROFILES["dev"])

    return Settings(
        database_url=get_database_url(),
        app_env=app_env,
        log_level=os.getenv("LOG_LEVEL", profile.get("log_level", "INFO")),
        jwt_secret_key=os.getenv("JWT_SECRET_KEY", "jwt-change-me"),
        jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", str(profile.get("jwt_expire_minutes", 480)))),
        request_id_header_name=os.getenv("REQUEST_ID_HEADER_NAME", "X-Request-ID"),
        cors_origins=_split_origins(os.getenv("CORS_ORIGINS", "*")),
        calendar_max_steps=int(os.getenv("CALENDAR_MAX_STEPS", "100")),
        history_default_limit=int(os.getenv("HISTORY_DEFAULT_LIMIT", "20")),
        history_max_limit=int(os.getenv("HISTORY_MAX_LIMIT", "200")),
    )
