"""
Supabase client initialization.

This module contains *only* the database connection setup. Callers build a
client with `create_supabase_client()` and hand it to the repository classes;
nothing connects at import time.

Environment variables required:
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client  # type: ignore[import-not-found]

_ENV_PATH = Path(__file__).parent.parent / ".env"


def load_environment() -> None:
    """Load the project's .env file (existing environment variables win)."""

    load_dotenv(dotenv_path=_ENV_PATH)


def create_supabase_client(url: Optional[str] = None, key: Optional[str] = None) -> Client:
    """
    Build a Supabase client from explicit credentials or the environment.

    Raises:
        RuntimeError: SUPABASE_URL or SUPABASE_KEY is missing
    """

    load_environment()
    url = url or os.getenv("SUPABASE_URL")
    key = key or os.getenv("SUPABASE_KEY")

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

    return create_client(url, key)


__all__ = ["create_supabase_client", "load_environment"]
