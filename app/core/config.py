"""
Broker settings.

Everything tunable comes from environment variables (or a ``.env``
file next to the process).  Store wiring lives in ``app.api.deps``;
the Redis pool in ``app.core.redis``.
"""

from __future__ import annotations

import importlib.metadata
import json
import logging
from functools import lru_cache
from typing import Annotated

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

logger = logging.getLogger(__name__)

_DISTRIBUTION = "liveness-broker"


def get_version() -> str:
    """Version of the installed ``liveness-broker`` distribution.

    Source checkouts that were never installed report
    ``"0.0.0-dev"``.
    """
    try:
        return importlib.metadata.version(_DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        return "0.0.0-dev"


class Settings(BaseSettings):
    """Environment-driven configuration for the broker process."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    # ── HTTP surface ────────────────────────────────────────────────
    APP_NAME: str = "Liveness Broker"
    API_PREFIX: str = "/api"
    ROOT_PATH: str = ""
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    PORT: int = 3000
    CORS_ORIGINS: Annotated[list[str], NoDecode] = ["*"]

    # ── Store backend ───────────────────────────────────────────────
    STORE_BACKEND: str = "memory"  # memory | redis
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_SOCKET_TIMEOUT: float = 5.0  # seconds

    # ── Record lifecycle ────────────────────────────────────────────
    RECORD_CAP: int = 1000
    STATUS_TTL: int = 86400  # seconds, 0 disables expiry
    SESSION_TTL: int = 3600
    DATA_TTL: int = 86400

    # ── Status progression ──────────────────────────────────────────
    STATUS_MODE: str = "callback"  # callback | simulated
    SIMULATION_STRATEGY: str = "attempts"  # attempts | elapsed

    # ── Encryption ──────────────────────────────────────────────────
    ENCRYPTION_KEY: str = "change-me-liveness-broker-key"
    ENCRYPTION_IV: str = ""  # accepted, ignored (random IV per call)
    ENCRYPTION_SALT: str = "liveness-broker-v1"
    ENCRYPTION_KDF_ITERATIONS: int = 200_000

    # ── Verification provider ───────────────────────────────────────
    PROVIDER_VERIFY_URL: str = "https://verify.example.com/liveness"
    PROVIDER_CALLBACK_SECRET: str = ""
    CALLBACK_TOLERANCE: int = 300  # seconds

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _split_origins(cls, value: str | list[str]) -> list[str]:
        """Accept a JSON array or a comma-separated string."""
        if not isinstance(value, str):
            return value
        text = value.strip()
        if text.startswith("["):
            return json.loads(text)
        return [origin.strip() for origin in text.split(",") if origin.strip()]

    @field_validator("STORE_BACKEND", "STATUS_MODE", "SIMULATION_STRATEGY")
    @classmethod
    def _normalise_choice(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def is_production(self) -> bool:
        """Production hides exception text and the codec self-check."""
        return self.ENVIRONMENT.strip().lower() == "production"

    @property
    def REDIS_URL(self) -> str:  # noqa: N802
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, parsed once.

    Tests swap this out through ``app.dependency_overrides``.
    """
    settings = Settings()
    if settings.ENCRYPTION_IV:
        logger.warning(
            "ENCRYPTION_IV is set but ignored; a random IV is "
            "generated for every encryption",
        )
    return settings
