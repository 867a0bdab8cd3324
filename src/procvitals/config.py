"""
Settings for runtime gauge registration.

Loaded from the environment with the PROCVITALS_ prefix (or a .env file).
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_ROOT_SCOPE = "jvm"
# A single metric path segment
ROOT_SCOPE_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


class Settings(BaseSettings):
    """procvitals settings."""

    # Root metric scope; gauges land under <root_scope>.<category>...
    root_scope: str = Field(default=DEFAULT_ROOT_SCOPE, pattern=ROOT_SCOPE_PATTERN)

    # Install a gc.callbacks hook that times every collection
    track_gc_pauses: bool = True

    # Logging
    log_level: str = "INFO"
    log_renderer: str = "json"  # json, console

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "PROCVITALS_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
