from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]


@dataclass(frozen=True)
class Settings:
    supabase_url: str
    supabase_anon_key: str
    http_timeout_seconds: int = 30
    cors_origins: List[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    log_level: str = "INFO"


def _split_origins(value: str | None) -> List[str]:
    if not value:
        return list(DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in value.split(",") if o.strip()]


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    load_dotenv(override=False)
    url = (os.environ.get("SUPABASE_URL") or "").strip()
    anon_key = (os.environ.get("SUPABASE_ANON_KEY") or "").strip()
    if not url or not anon_key:
        raise ValueError("Missing SUPABASE_URL or SUPABASE_ANON_KEY")

    try:
        timeout = int(os.environ.get("MARKETPLACE_HTTP_TIMEOUT_SECONDS", "30"))
    except ValueError:
        timeout = 30

    return Settings(
        supabase_url=url.rstrip("/"),
        supabase_anon_key=anon_key,
        http_timeout_seconds=max(1, timeout),
        cors_origins=_split_origins(os.environ.get("MARKETPLACE_CORS_ORIGINS")),
        log_level=os.environ.get("MARKETPLACE_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, str(level).upper(), logging.INFO))
