from __future__ import annotations

import json
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from autojournal.assistant.insights import (
    InsightResult,
    build_insight_payload,
    build_openai_client,
    extract_response_text,
    generate_insights,
    parse_insight_text,
)


class _FakeResponses:
    def __init__(self, output_text: str = "", error: Exception | None = None) -> None:
        self.output_text = output_text
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(output_text=self.output_text, output=[])


def _trades(make_trade, count):
    start = datetime(2025, 3, 3, 9, 30)
    return [make_trade(float(i), when=start + timedelta(minutes=i)) for i in range(count)]


def test_build_insight_payload_caps_trades(make_trade):
    trades = _trades(make_trade, 5)
    payload = build_insight_payload(list(reversed(trades)), cap=3)

    assert payload["trade_count"] == 5
    assert payload["trades_included"] == 3
    assert [t["pnl"] for t in payload["trades"]] == [0.0, 1.0, 2.0]
    assert payload["summary"]["total_trades"] == 5
    assert "equity_curve" not in payload["summary"]
    assert "time_data" not in payload["summary"]
    json.dumps(payload)


def test_generate_insights_parses_json_response(make_trade):
    responses = _FakeResponses(
        output_text=json.dumps(
            {
                "strengths": ["Quick exits"],
                "mistakes": "Oversized after losses",
                "fixes": ["Fixed risk per trade", ""],
                "key_insight": "Losses cluster after 11:00.",
            }
        )
    )
    client = SimpleNamespace(responses=responses)

    result = generate_insights(_trades(make_trade, 2), model="gpt-test", client=client)

    assert result == InsightResult(
        strengths=["Quick exits"],
        mistakes=["Oversized after losses"],
        fixes=["Fixed risk per trade"],
        key_insight="Losses cluster after 11:00.",
    )
    call = responses.calls[0]
    assert call["model"] == "gpt-test"
    assert "not financial advice" in call["instructions"]
    assert '"trade_count": 2' in call["input"]


def test_generate_insights_returns_error_instead_of_raising(make_trade):
    client = SimpleNamespace(responses=_FakeResponses(error=RuntimeError("rate limited")))

    result = generate_insights(_trades(make_trade, 1), model="gpt-test", client=client)

    assert result.error == "rate limited"
    assert result.strengths == []


def test_parse_insight_text_handles_fences_and_free_text():
    fenced = '```json\n{"key_insight": "Trade less on Fridays."}\n```'
    assert parse_insight_text(fenced).key_insight == "Trade less on Fridays."
    assert parse_insight_text("Just stop revenge trading.").key_insight == (
        "Just stop revenge trading."
    )
    assert parse_insight_text("[1, 2]").key_insight == "[1, 2]"


def test_extract_response_text_reads_message_content():
    response = SimpleNamespace(
        output_text="",
        output=[
            SimpleNamespace(type="reasoning", content=[]),
            SimpleNamespace(
                type="message",
                content=[
                    SimpleNamespace(type="output_text", text="first"),
                    SimpleNamespace(type="refusal", text="ignored"),
                    SimpleNamespace(type="output_text", text="second"),
                ],
            ),
        ],
    )
    assert extract_response_text(response) == "first\n\nsecond"


def test_build_openai_client_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        build_openai_client()
