from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

DEFAULT_JWT_SECRET = "your-secret-key"

DEFAULT_ALLOWED_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]


class Settings(BaseModel):
    database_url: str = Field(default="sqlite:///./dicey.db")
    environment: str = Field(default="development")
    jwt_secret: str = Field(default=DEFAULT_JWT_SECRET)
    jwt_algorithm: str = Field(default="HS256")
    session_max_age_seconds: int = Field(default=60 * 60 * 24 * 7)
    allowed_origins: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    enable_rate_limits: bool = Field(default=True)
    room_code_attempts: int = Field(default=10)
    log_file: str = Field(default="dicey.log")
    argon2_time_cost: int = Field(default=3)
    argon2_memory_cost: int = Field(default=65536)
    argon2_parallelism: int = Field(default=2)

    @model_validator(mode="after")
    def _production_needs_real_secret(self) -> "Settings":
        if self.cookie_secure and self.jwt_secret == DEFAULT_JWT_SECRET:
            raise ValueError("JWT_SECRET must be set when ENVIRONMENT=production")
        return self

    @property
    def cookie_secure(self) -> bool:
        return self.environment.lower() == "production"


def _origins(raw: Optional[str]) -> List[str]:
    """
    Optionally override via:
      ALLOWED_ORIGINS="https://decide.example.com"
      (comma-separated list if multiple)
    """
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or list(DEFAULT_ALLOWED_ORIGINS)


def _load_settings() -> Settings:
    env = os.getenv
    return Settings(
        database_url=env("DATABASE_URL", "sqlite:///./dicey.db") or "sqlite:///./dicey.db",
        environment=env("ENVIRONMENT", "development") or "development",
        jwt_secret=env("JWT_SECRET", DEFAULT_JWT_SECRET) or DEFAULT_JWT_SECRET,
        jwt_algorithm=env("JWT_ALGORITHM", "HS256") or "HS256",
        session_max_age_seconds=int(env("SESSION_MAX_AGE_SECONDS", str(60 * 60 * 24 * 7))),
        allowed_origins=_origins(env("ALLOWED_ORIGINS")),
        enable_rate_limits=env("ENABLE_RATE_LIMITS", "1") == "1",
        room_code_attempts=int(env("ROOM_CODE_ATTEMPTS", "10")),
        log_file=env("LOG_FILE", "dicey.log") or "dicey.log",
        argon2_time_cost=int(env("ARGON2_TIME_COST", "3")),
        argon2_memory_cost=int(env("ARGON2_MEMORY_COST", "65536")),
        argon2_parallelism=int(env("ARGON2_PARALLELISM", "2")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return _load_settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
