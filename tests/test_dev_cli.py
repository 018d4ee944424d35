from __future__ import annotations

import importlib.util
import json
import sys
from pathlib import Path

import pytest

CLI_PATH = Path(__file__).resolve().parents[1] / "tools" / "dev_cli.py"

CSV_TEXT = """Date,Symbol,Side,Qty,Price,P/L
2025-03-03 09:30:00,AAPL,BUY,10,100,100
2025-03-03 09:45:00,AAPL,BUY,15,100,-50
2025-03-03 10:00:00,MSFT,SELL,5,400,-50
"""


@pytest.fixture
def dev_cli(monkeypatch, tmp_path):
    monkeypatch.setenv("AUTOJOURNAL_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("ENABLE_AI_INSIGHTS", raising=False)
    spec = importlib.util.spec_from_file_location("autojournal_dev_cli", CLI_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def _run(dev_cli, monkeypatch, *argv: str) -> int:
    monkeypatch.setattr(sys, "argv", ["dev_cli.py", *argv])
    return dev_cli.main()


def test_analyze_prints_metrics(dev_cli, monkeypatch, capsys, tmp_path):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")

    assert _run(dev_cli, monkeypatch, "analyze", str(csv_path)) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["kept"] == 3
    assert payload["metrics"]["total_pnl"] == 0
    assert payload["metrics"]["max_drawdown"] == 100
    assert payload["behavior_flags"] == [
        {"index": 1, "flag": "oversizing_after_win", "size_ratio": 1.5}
    ]
    assert "insights" not in payload


def test_analyze_reports_incomplete_mapping(dev_cli, monkeypatch, capsys, tmp_path):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text("When,Ticker\n2025-03-03,AAPL\n", encoding="utf-8")

    assert _run(dev_cli, monkeypatch, "analyze", str(csv_path)) == 2
    assert "qty" in capsys.readouterr().err


def test_analyze_reports_conflicting_mapping(dev_cli, monkeypatch, capsys, tmp_path):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")

    code = _run(dev_cli, monkeypatch, "analyze", str(csv_path), "--mapping", '{"notes": "Qty"}')

    assert code == 2
    assert "mapped to both" in capsys.readouterr().err


def test_map_columns_saves_mapping(dev_cli, monkeypatch, capsys, tmp_path):
    csv_path = tmp_path / "trades.csv"
    csv_path.write_text(CSV_TEXT, encoding="utf-8")

    assert _run(dev_cli, monkeypatch, "map-columns", str(csv_path), "--save") == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["mapping"]["pnl"] == "P/L"
    assert payload["missing_required"] == []
    assert (tmp_path / "data" / "mappings" / "column_mappings.json").exists()
