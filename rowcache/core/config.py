"""Cache layer configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. The global cache switch and key prefix live here;
per-entity switches and TTLs are declared on the entity types.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from rowcache.core.constants import (
    CACHE_KEY_SEP,
    DEFAULT_CACHE_KEY_PREFIX,
    DEFAULT_EXPIRATION_MINUTES,
)


class Settings(BaseSettings):
    """Settings loaded from environment and .env.

    Every field has a default; validate_cache_settings rejects prefixes
    that would make keys ambiguous.
    """

    # App
    app_name: str = "rowcache"
    debug: bool = False

    # Database (async SQLAlchemy URL)
    database_url: str = "sqlite+aiosqlite:///:memory:"
    database_echo: bool = False
    # Optional pool overrides (None = use defaults in database.py)
    db_pool_size: int | None = None
    db_max_overflow: int | None = None

    # Redis cache store
    redis_enabled: bool = True
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: SecretStr | None = None

    # Read-through cache
    cache_active: bool = True
    cache_key_prefix: str = DEFAULT_CACHE_KEY_PREFIX
    cache_default_expiration_minutes: int = DEFAULT_EXPIRATION_MINUTES

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_cache_settings(self) -> "Settings":
        """Validate the key prefix and default expiration.

        - CACHE_KEY_PREFIX must be non-empty and must not contain the key separator.
        - CACHE_DEFAULT_EXPIRATION_MINUTES must be positive.
        """
        if not self.cache_key_prefix:
            raise ValueError("CACHE_KEY_PREFIX must not be empty.")
        if CACHE_KEY_SEP in self.cache_key_prefix:
            raise ValueError(
                f"CACHE_KEY_PREFIX must not contain the key separator {CACHE_KEY_SEP!r}, "
                f"got: {self.cache_key_prefix!r}"
            )
        if self.cache_default_expiration_minutes <= 0:
            raise ValueError(
                "CACHE_DEFAULT_EXPIRATION_MINUTES must be positive, "
                f"got: {self.cache_default_expiration_minutes}"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.

    Returns:
        Loaded and validated Settings instance.
    """
    return Settings()
