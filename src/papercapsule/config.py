"""
Runtime configuration.

All settings come from ``PAPERCAPSULE_*`` environment variables. A local
``.env`` file is picked up automatically (existing variables win).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import find_dotenv, load_dotenv

DEFAULT_DB_URL = "sqlite:///data/papercapsule.db"


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    raw = raw.strip()
    return raw or default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    db_url: str = DEFAULT_DB_URL
    cors_relay_url: Optional[str] = None
    openalex_mailto: Optional[str] = None
    semantic_scholar_api_key: Optional[str] = None
    translation_url: Optional[str] = None
    translation_api_key: Optional[str] = None
    translation_language: str = "Turkish"
    openalex_timeout: float = 15.0
    arxiv_timeout: float = 15.0
    semantic_scholar_timeout: float = 20.0
    translation_timeout: float = 30.0
    cache_max_entries: int = 500

    @property
    def translation_enabled(self) -> bool:
        return bool(self.translation_url)

    @classmethod
    def from_env(cls, *, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True), override=False)
        return cls(
            db_url=_env_str("PAPERCAPSULE_DB_URL", DEFAULT_DB_URL),
            cors_relay_url=_env_str("PAPERCAPSULE_CORS_RELAY_URL"),
            openalex_mailto=_env_str("PAPERCAPSULE_OPENALEX_MAILTO"),
            semantic_scholar_api_key=_env_str("PAPERCAPSULE_S2_API_KEY"),
            translation_url=_env_str("PAPERCAPSULE_TRANSLATION_URL"),
            translation_api_key=_env_str("PAPERCAPSULE_TRANSLATION_API_KEY"),
            translation_language=_env_str("PAPERCAPSULE_TRANSLATION_LANGUAGE", "Turkish"),
            openalex_timeout=_env_float("PAPERCAPSULE_OPENALEX_TIMEOUT", 15.0),
            arxiv_timeout=_env_float("PAPERCAPSULE_ARXIV_TIMEOUT", 15.0),
            semantic_scholar_timeout=_env_float("PAPERCAPSULE_S2_TIMEOUT", 20.0),
            translation_timeout=_env_float("PAPERCAPSULE_TRANSLATION_TIMEOUT", 30.0),
            cache_max_entries=_env_int("PAPERCAPSULE_CACHE_MAX_ENTRIES", 500),
        )
