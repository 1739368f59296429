"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables.
"""

from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  Files are
# loaded in order without overriding already-set variables.

_THIS_FILE = Path(__file__).resolve()
_REPO_ROOT = _THIS_FILE.parents[3]
_ROOT_ENV = _REPO_ROOT / ".env"

_candidate_envs: list[str] = []
if _ROOT_ENV.exists():
    _candidate_envs.append(str(_ROOT_ENV))

_FOUND_ENV = find_dotenv(usecwd=True)
if _FOUND_ENV and _FOUND_ENV not in _candidate_envs:
    _candidate_envs.append(_FOUND_ENV)

_LOCAL_ENV = (_THIS_FILE.parent.parent.parent / ".env").as_posix()
if os.path.exists(_LOCAL_ENV) and _LOCAL_ENV not in _candidate_envs:
    _candidate_envs.append(_LOCAL_ENV)

for _env_path in _candidate_envs:
    load_dotenv(dotenv_path=_env_path, override=False)


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from the environment with sensible defaults.  Any
    attribute defined here can be overridden by setting the corresponding
    environment variable.
    """

    model_config = SettingsConfigDict(
        env_file=tuple(_candidate_envs) if _candidate_envs else (".env",),
        case_sensitive=True,
        extra="allow",
    )

    # API Settings
    PROJECT_NAME: str = "Household Budget API"
    ENVIRONMENT: str = Field(default="development")

    # Database.  Local development and tests run against aiosqlite.
    DATABASE_URL: str = Field(default="sqlite+aiosqlite:///./household.db")
    DATABASE_ECHO: bool = Field(default=False)

    # Redis (report + membership cache)
    REDIS_URL: str = Field(default="redis://localhost:6379/0")
    REPORT_CACHE_ENABLED: bool = Field(default=False)
    # Keep report TTLs short; mutations also invalidate explicitly.
    REPORT_CACHE_TTL_SECONDS: int = Field(default=10)
    MEMBERSHIP_CACHE_TTL_SECONDS: int = Field(default=900)

    # Budget suggestions
    SUGGESTION_TRAILING_MONTHS: int = Field(default=3)
    SUGGESTION_BUFFER: Decimal = Field(default=Decimal("1.10"))

    # Auth.  Identity is issued upstream; the gateway forwards the user id.
    DEV_AUTH_BYPASS: bool = Field(default=False)
    DEV_USER_ID: int = Field(default=1)
    USER_ID_HEADER: str = Field(default="X-User-Id")

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = Field(
        default=["http://localhost:3000", "http://127.0.0.1:3000"],
    )

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_RELEASE: Optional[str] = Field(default=None)


# Instantiate global settings
settings = Settings()
