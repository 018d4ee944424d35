from __future__ import annotations

import os
from dataclasses import dataclass

from autojournal.config.paths import sqlite_url

DEFAULT_INSIGHT_TRADE_CAP = 100


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "t", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = str(os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        parsed = int(raw)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


@dataclass(frozen=True)
class Settings:
    app_env: str
    database_url: str
    openai_model: str
    enable_ai_insights: bool
    insight_trade_cap: int


def get_settings() -> Settings:
    return Settings(
        app_env=os.getenv("APP_ENV", "development"),
        database_url=os.getenv("DATABASE_URL") or sqlite_url(),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-5-mini"),
        enable_ai_insights=_env_bool("ENABLE_AI_INSIGHTS", False),
        insight_trade_cap=_env_int("INSIGHT_TRADE_CAP", DEFAULT_INSIGHT_TRADE_CAP),
    )
