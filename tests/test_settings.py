from __future__ import annotations

from pathlib import Path

from autojournal.config.paths import data_dir, default_db_path, mapping_store_path, sqlite_url
from autojournal.config.settings import DEFAULT_INSIGHT_TRADE_CAP, get_settings


def test_defaults_keep_ai_insights_off(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("AUTOJOURNAL_DATA_DIR", str(tmp_path))
    for name in ("ENABLE_AI_INSIGHTS", "INSIGHT_TRADE_CAP", "DATABASE_URL", "OPENAI_MODEL"):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.enable_ai_insights is False
    assert settings.insight_trade_cap == DEFAULT_INSIGHT_TRADE_CAP
    assert settings.database_url == f"sqlite:///{(tmp_path / 'autojournal.sqlite').as_posix()}"
    assert settings.openai_model == "gpt-5-mini"


def test_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("AUTOJOURNAL_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ENABLE_AI_INSIGHTS", "yes")
    monkeypatch.setenv("INSIGHT_TRADE_CAP", "25")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")

    settings = get_settings()

    assert settings.enable_ai_insights is True
    assert settings.insight_trade_cap == 25
    assert settings.database_url == "sqlite:///:memory:"

    monkeypatch.setenv("INSIGHT_TRADE_CAP", "-4")
    assert get_settings().insight_trade_cap == DEFAULT_INSIGHT_TRADE_CAP


def test_data_paths_follow_override(monkeypatch, tmp_path) -> None:
    target = tmp_path / "journal-data"
    monkeypatch.setenv("AUTOJOURNAL_DATA_DIR", str(target))

    assert data_dir() == target
    assert target.is_dir()
    assert default_db_path() == target / "autojournal.sqlite"
    assert mapping_store_path() == target / "mappings" / "column_mappings.json"


def test_default_install_does_not_require_openai() -> None:
    root = Path(__file__).resolve().parents[1]
    manifest = (root / "pyproject.toml").read_text(encoding="utf-8").lower()
    runtime_block = manifest.split("dependencies = [", 1)[1].split("]", 1)[0]

    assert "openai" not in runtime_block
    assert '"openai' in manifest.split("[project.optional-dependencies]", 1)[1]


def test_sqlite_url_points_at_data_dir(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("AUTOJOURNAL_DATA_DIR", str(tmp_path / "absent"))

    assert data_dir(create=False) == tmp_path / "absent"
    assert not (tmp_path / "absent").exists()
    assert sqlite_url(tmp_path / "x.sqlite") == f"sqlite:///{(tmp_path / 'x.sqlite').as_posix()}"
