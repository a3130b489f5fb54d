"""
Supabase client initialization.

This module contains *only* the connection settings and the factory for the
async Supabase client. Nothing connects at import time: the application (or a
script) calls `create_supabase_client()` once and hands the client to the
stores that need it.

Environment variables:
- SUPABASE_URL: Your Supabase project URL (required)
- SUPABASE_KEY: Your Supabase API key (required; server-side key on the backend)
- LOG_LEVEL: Logging level for the API process (optional, default INFO)
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import AsyncClient, acreate_client  # type: ignore[import-not-found]

# Look for .env in the project root
_ENV_PATH = Path(__file__).parent.parent / ".env"


@dataclass(frozen=True, slots=True)
class SupabaseSettings:
    url: str
    key: str
    log_level: str = "INFO"


def load_settings() -> SupabaseSettings:
    """
    Read connection settings from the environment (after loading `.env`).

    Raises:
        RuntimeError: if SUPABASE_URL or SUPABASE_KEY is missing.
    """

    load_dotenv(dotenv_path=_ENV_PATH)

    # Read credentials from the environment to avoid hard-coding secrets in code.
    url: Optional[str] = os.getenv("SUPABASE_URL")
    key: Optional[str] = os.getenv("SUPABASE_KEY")

    if not url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    return SupabaseSettings(
        url=url,
        key=key,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )


async def create_supabase_client(settings: Optional[SupabaseSettings] = None) -> AsyncClient:
    """Create the official async Supabase client (PostgREST + realtime)."""

    settings = settings or load_settings()
    return await acreate_client(settings.url, settings.key)


__all__ = ["SupabaseSettings", "load_settings", "create_supabase_client"]
