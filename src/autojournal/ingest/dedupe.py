from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from autojournal.ingest.records import NormalizedTrade

AMOUNT_TOLERANCE = 0.005

MATCH_BOTH_FILLS = "both_fills"
MATCH_SINGLE_FILL = "single_fill"
MATCH_COMPOSITE = "enhanced_composite"


def _normalize_text(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "value"):
        value = value.value
    return str(value).strip().upper()


def _normalize_float(value: float | None) -> str:
    if value is None:
        return ""
    if value == 0:
        return "0"
    return f"{value:.10f}".rstrip("0").rstrip(".")


def _normalize_datetime(value: datetime | None) -> str:
    if value is None:
        return ""
    return value.replace(tzinfo=None).isoformat(sep=" ", timespec="seconds")


def composite_key(trade: NormalizedTrade) -> str:
    parts = [
        _normalize_datetime(trade.datetime),
        _normalize_text(trade.symbol),
        _normalize_text(trade.side),
        _normalize_float(trade.qty),
        _normalize_float(trade.price),
        _normalize_float(trade.pnl),
    ]
    return "|".join(parts)


def dedupe_batch(
    trades: Iterable[NormalizedTrade],
) -> tuple[list[NormalizedTrade], list[NormalizedTrade]]:
    """Split a batch into first occurrences and repeated rows, keeping order."""
    seen: set[str] = set()
    unique: list[NormalizedTrade] = []
    repeated: list[NormalizedTrade] = []
    for trade in trades:
        key = composite_key(trade)
        if key in seen:
            repeated.append(trade)
            continue
        seen.add(key)
        unique.append(trade)
    return unique, repeated


def _close(a: float, b: float) -> bool:
    return abs(a - b) < AMOUNT_TOLERANCE


def _same_execution(candidate: NormalizedTrade, existing: NormalizedTrade) -> bool:
    return (
        candidate.datetime == existing.datetime
        and _normalize_text(candidate.symbol) == _normalize_text(existing.symbol)
        and _close(candidate.pnl, existing.pnl)
    )


def match_existing(
    candidate: NormalizedTrade, existing: Iterable[NormalizedTrade]
) -> tuple[bool, str]:
    """Return ``(is_duplicate, strategy)`` for one candidate against stored trades.

    Both fill ids present: match on both ids and pnl. One fill id: match on that
    id plus time, symbol and pnl. Neither: composite time/symbol/side/qty with
    price and pnl tolerances.
    """
    buy_id = (candidate.buy_fill_id or "").strip()
    sell_id = (candidate.sell_fill_id or "").strip()
    pool = list(existing)

    if buy_id and sell_id:
        hit = any(
            (row.buy_fill_id or "").strip() == buy_id
            and (row.sell_fill_id or "").strip() == sell_id
            and _close(candidate.pnl, row.pnl)
            for row in pool
        )
        return hit, MATCH_BOTH_FILLS

    if buy_id or sell_id:
        hit = any(
            _same_execution(candidate, row)
            and (
                (buy_id and (row.buy_fill_id or "").strip() == buy_id)
                or (sell_id and (row.sell_fill_id or "").strip() == sell_id)
            )
            for row in pool
        )
        return hit, MATCH_SINGLE_FILL

    hit = any(
        _same_execution(candidate, row)
        and _normalize_text(candidate.side) == _normalize_text(row.side)
        and candidate.qty == row.qty
        and _close(candidate.price, row.price)
        for row in pool
    )
    return hit, MATCH_COMPOSITE


@dataclass(frozen=True)
class DuplicateMatch:
    index: int
    is_duplicate: bool
    match_type: str


def find_duplicates(
    candidates: list[NormalizedTrade], existing: Iterable[NormalizedTrade]
) -> list[DuplicateMatch]:
    pool = list(existing)
    results: list[DuplicateMatch] = []
    for index, candidate in enumerate(candidates):
        is_duplicate, strategy = match_existing(candidate, pool)
        results.append(
            DuplicateMatch(
                index=index,
                is_duplicate=is_duplicate,
                match_type=strategy if is_duplicate else f"{strategy}_no_match",
            )
        )
    return results
