"""Runtime configuration for fidophoto."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from ``FIDOPHOTO_*`` environment variables or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="FIDOPHOTO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Passphrase for user access tokens; high entropy, server-held
    secret: Optional[SecretStr] = None

    rp_id: str = "www.fidophoto.com"

    log_level: str = "info"
    log_json: bool = True

    # Refresh the cached admin token when it has less than this many seconds left
    admin_token_refresh_margin: float = Field(default=120.0, ge=0)


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
