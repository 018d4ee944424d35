"""Where the local journal database and saved column mappings live."""

from __future__ import annotations

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[3]

DATA_DIR_ENV = "AUTOJOURNAL_DATA_DIR"
DB_FILENAME = "autojournal.sqlite"
MAPPINGS_SUBDIR = "mappings"
MAPPINGS_FILENAME = "column_mappings.json"


def data_dir(*, create: bool = True) -> Path:
    configured = os.getenv(DATA_DIR_ENV, "").strip()
    directory = Path(configured).expanduser() if configured else PROJECT_ROOT / "data"
    if create:
        directory.mkdir(parents=True, exist_ok=True)
    return directory


def default_db_path() -> Path:
    return data_dir() / DB_FILENAME


def mapping_store_path() -> Path:
    return data_dir() / MAPPINGS_SUBDIR / MAPPINGS_FILENAME


def sqlite_url(path: Path | None = None) -> str:
    return f"sqlite:///{(path or default_db_path()).as_posix()}"
