from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Library loggers that flood INFO during imports and AI calls.
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "openai")

_configured = False


def _resolve_level(level: str | int | None) -> int:
    if level is None:
        level = os.getenv("AUTOJOURNAL_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO"
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | int | None = None) -> None:
    global _configured
    if _configured:
        return

    logging.basicConfig(level=_resolve_level(level), format=LOG_FORMAT)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)
