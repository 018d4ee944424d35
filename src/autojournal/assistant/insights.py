from __future__ import annotations

import json
import os
from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from autojournal.analytics.metrics import MetricsBundle, compute_metrics
from autojournal.config.settings import DEFAULT_INSIGHT_TRADE_CAP
from autojournal.ingest.records import NormalizedTrade
from autojournal.utils.logging import get_logger

if TYPE_CHECKING:
    from openai import OpenAI

logger = get_logger(__name__)


@dataclass(frozen=True)
class InsightResult:
    strengths: list[str] = field(default_factory=list)
    mistakes: list[str] = field(default_factory=list)
    fixes: list[str] = field(default_factory=list)
    key_insight: str | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def build_insight_payload(
    trades: Iterable[NormalizedTrade],
    metrics: MetricsBundle | None = None,
    *,
    cap: int = DEFAULT_INSIGHT_TRADE_CAP,
) -> dict[str, Any]:
    ordered = sorted(trades, key=lambda trade: trade.datetime)
    bundle = metrics if metrics is not None else compute_metrics(ordered)
    sample = ordered[: max(cap, 0)]
    return {
        "trade_count": len(ordered),
        "trades_included": len(sample),
        "summary": {
            key: value
            for key, value in bundle.to_dict().items()
            if key not in {"equity_curve", "time_data"}
        },
        "trades": [trade.to_dict() for trade in sample],
    }


def _instructions() -> str:
    return (
        "You are reviewing a trader's journal.\n"
        "Guardrails:\n"
        "- Educational only, not financial advice.\n"
        "- No guaranteed outcomes.\n"
        "Return a JSON object with keys strengths (list of strings), mistakes "
        "(list of strings), fixes (list of strings) and key_insight (string)."
    )


def build_openai_client() -> Any:
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not configured.")
    try:
        from openai import OpenAI
    except ImportError as exc:
        raise RuntimeError(
            "openai package is not installed. Install `openai` to enable trade insights."
        ) from exc
    return OpenAI(api_key=api_key)


def extract_response_text(response: Any) -> str:
    text = str(getattr(response, "output_text", "") or "").strip()
    if text:
        return text
    snippets: list[str] = []
    for item in getattr(response, "output", []) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", []) or []:
            if getattr(content, "type", None) not in {"output_text", "text"}:
                continue
            value = str(getattr(content, "text", "") or "").strip()
            if value:
                snippets.append(value)
    return "\n\n".join(snippets).strip()


def _string_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def parse_insight_text(text: str) -> InsightResult:
    body = text.strip()
    if body.startswith("```"):
        body = body.strip("`")
        body = body.removeprefix("json").strip()
    try:
        loaded = json.loads(body)
    except json.JSONDecodeError:
        # Free text is still a usable insight.
        return InsightResult(key_insight=text.strip() or None)
    if not isinstance(loaded, dict):
        return InsightResult(key_insight=text.strip() or None)
    key_insight = loaded.get("key_insight")
    return InsightResult(
        strengths=_string_list(loaded.get("strengths")),
        mistakes=_string_list(loaded.get("mistakes")),
        fixes=_string_list(loaded.get("fixes")),
        key_insight=str(key_insight).strip() if key_insight else None,
    )


def generate_insights(
    trades: Iterable[NormalizedTrade],
    *,
    model: str,
    metrics: MetricsBundle | None = None,
    cap: int = DEFAULT_INSIGHT_TRADE_CAP,
    client: OpenAI | None = None,
) -> InsightResult:
    payload = build_insight_payload(trades, metrics, cap=cap)
    try:
        local_client = client or build_openai_client()
        response = local_client.responses.create(
            model=model,
            instructions=_instructions(),
            input=(
                "Trade journal context JSON:\n"
                f"{json.dumps(payload, sort_keys=True)}\n\n"
                "Respond with the JSON object only."
            ),
        )
        return parse_insight_text(extract_response_text(response))
    except Exception as exc:
        logger.warning("Insight generation failed: %s", exc)
        return InsightResult(error=str(exc))
