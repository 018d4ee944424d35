from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine

from autojournal.config.settings import get_settings
from autojournal.db.models import Base
from autojournal.utils.logging import get_logger

logger = get_logger(__name__)

MEMORY_URL = "sqlite:///:memory:"


def _sqlite_file(url: str) -> Path | None:
    if not url.startswith("sqlite:///") or url == MEMORY_URL:
        return None
    return Path(url.removeprefix("sqlite:///")).expanduser()


def _enable_sqlite_pragmas(engine: Engine, *, wal: bool) -> None:
    statements = ["PRAGMA foreign_keys=ON", "PRAGMA busy_timeout=5000"]
    if wal:
        statements.append("PRAGMA journal_mode=WAL")

    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _connection_record):  # pragma: no cover - driver callback
        cursor = dbapi_connection.cursor()
        for statement in statements:
            cursor.execute(statement)
        cursor.close()


def build_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_settings().database_url
    sqlite_file = _sqlite_file(url)
    if sqlite_file is not None:
        sqlite_file.parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, future=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_pragmas(engine, wal=sqlite_file is not None)
    return engine


def schema_status(engine: Engine) -> dict[str, bool]:
    """Map each journal table to whether it exists in the connected database."""
    existing = set(inspect(engine).get_table_names())
    return {name: name in existing for name in Base.metadata.tables}


def migrate(database_url: str | None = None) -> Engine:
    engine = build_engine(database_url=database_url)
    Base.metadata.create_all(bind=engine)
    missing = [name for name, present in schema_status(engine).items() if not present]
    if missing:
        raise RuntimeError(f"Schema creation left tables missing: {', '.join(missing)}")
    logger.info("Journal schema ready at %s", engine.url.render_as_string(hide_password=True))
    return engine


if __name__ == "__main__":
    migrate()
