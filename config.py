"""
Application settings.

Values are read from the environment after loading the project's `.env` file.
Nothing here talks to storage; credentials are only checked when the Supabase
client is first requested (see repositories/client.py).

Environment variables:
- SUPABASE_URL / SUPABASE_KEY: Supabase project URL and server-side API key
- LOG_LEVEL: root log level for the API process (default: INFO)
- MARKET_REFRESH_DELAY_SECONDS: delay before a post-purchase refresh request (default: 1.0)
- POST_COMMIT_WORKERS: thread pool size for post-commit tasks (default: 4)
- CORS_ALLOW_ORIGINS: comma separated origin list (default: *)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

# Look for .env in the project root
env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    log_level: str = "INFO"
    market_refresh_delay_seconds: float = 1.0
    post_commit_workers: int = 4
    cors_allow_origins: Tuple[str, ...] = ("*",)


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from None


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the environment once per process."""

    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        market_refresh_delay_seconds=_float_env("MARKET_REFRESH_DELAY_SECONDS", 1.0),
        post_commit_workers=_int_env("POST_COMMIT_WORKERS", 4),
        cors_allow_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


__all__ = ["Settings", "get_settings"]
