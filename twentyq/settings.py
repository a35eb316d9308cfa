"""Runtime settings for the twentyq server.

Loaded in this order (later wins):
1. Model defaults below
2. TWENTYQ_* environment variables
3. Constructor arguments (CLI flags)
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["json", "console"]


class Settings(BaseSettings):
    """Server, session and logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TWENTYQ_",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    host: str = Field(default="localhost", description="Bind address")
    port: int = Field(default=3000, ge=1, le=65535, description="HTTP port")
    debug: bool = Field(default=False, description="Debug level with console log output")

    # Logging
    log_level: LogLevel = Field(default="INFO", description="Minimum log level")
    log_format: LogFormat = Field(default="json", description="json or console")
    log_file: str | None = Field(
        default=None, description="Also write logs to this file, rotated at 100 MB",
    )

    # Sessions
    session_ttl_seconds: float = Field(
        default=24 * 60 * 60, gt=0, description="Lifetime of a session from creation",
    )
    token_ttl_seconds: float = Field(
        default=24 * 60 * 60, gt=0, description="Lifetime of the oracle capability token",
    )
    session_id_length: int = Field(default=12, ge=4, le=64, description="Session identifier length")

    # Live updates
    sse_ping_seconds: int = Field(default=15, ge=1, description="Keep-alive interval on event streams")

    # Cookies
    cookie_secure: bool = Field(default=False, description="Mark the oracle cookie Secure")

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug else self.log_level

    @property
    def effective_log_format(self) -> str:
        return "console" if self.debug else self.log_format


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    return Settings()
