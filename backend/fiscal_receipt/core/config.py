"""Simple configuration management.

This module defines a ``Settings`` class that reads configuration
values from environment variables and provides sensible defaults.
``.env`` support is implemented by loading files from the repository
root in a defined order.  You can override any value via environment
variables, e.g. ``FETCH_TIMEOUT_SECONDS=10``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from dotenv import load_dotenv, find_dotenv

# -----------------------------------------------------------------------------
# .env loading
#
# Prefer a .env in the repository root but allow fallback to whatever
# python-dotenv discovers from the current working directory.  As a last
# resort, a .env in the backend directory may be used.  Files are loaded in
# order without overriding already-set variables.

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


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


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
    API_PREFIX: str = "/api"
    PROJECT_NAME: str = "Fiscal Receipt Extraction"
    ENVIRONMENT: str = Field(default="development")
    LOG_LEVEL: str = Field(default="INFO")

    # Receipt portal fetch
    FETCH_ENABLED: bool = Field(default=True)
    FETCH_TIMEOUT_SECONDS: float = Field(default=30.0)
    FETCH_MAX_BYTES: int = 5 * 1024 * 1024  # 5MB
    # Fetch even when the link alone already yielded value and date
    FETCH_WHEN_COMPLETE: bool = Field(default=False)
    FETCH_USER_AGENT: str = Field(default=DEFAULT_USER_AGENT)
    FETCH_ACCEPT_LANGUAGE: str = Field(default="pt-BR,pt;q=0.9,en-US;q=0.8,en;q=0.7")

    # Hosts accepted by the in-process service function.  A link matches when
    # its host equals an entry or is a subdomain of one.
    ALLOWED_PORTAL_DOMAINS: list[str] = Field(
        default=[
            "fazenda.mg.gov.br",
            "sefaz.mg.gov.br",
            "nfe.fazenda.gov.br",
            "sefaz.rs.gov.br",
            "fazenda.sp.gov.br",
        ],
    )

    # CORS
    CORS_ALLOW_ORIGINS: list[str] = Field(default=["*"])

    # Diagnostics: per-candidate logging in the extraction pipeline
    EXTRACTION_DEBUG: bool = Field(default=False)

    # Sentry
    SENTRY_DSN: Optional[str] = Field(default=None)
    SENTRY_TRACES_SAMPLE_RATE: float = Field(default=0.0)
    SENTRY_PROFILES_SAMPLE_RATE: float = Field(default=0.0)
    # Optional Sentry release name to tag events consistently with the frontend
    SENTRY_RELEASE: Optional[str] = Field(default=None)


# Instantiate global settings
settings = Settings()


def get_allowed_portal_domains() -> list[str]:
    """Return the portal allow-list, lower-cased and without empty entries."""
    return [d.strip().lower().lstrip(".") for d in settings.ALLOWED_PORTAL_DOMAINS if d and d.strip()]
