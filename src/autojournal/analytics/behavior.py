"""Experimental behavioral flags.

These heuristics are not part of ``MetricsBundle``. Thresholds are rules of
thumb: a trade right after a loss at >= 1.3x the losing size reads as revenge
trading, a trade right after a win at >= 1.5x the winning size as oversizing.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from autojournal.ingest.records import NormalizedTrade

REVENGE_SIZE_MULTIPLIER = 1.3
OVERSIZE_AFTER_WIN_MULTIPLIER = 1.5

FLAG_REVENGE = "revenge"
FLAG_OVERSIZING_AFTER_WIN = "oversizing_after_win"


@dataclass(frozen=True)
class BehaviorFlag:
    index: int
    flag: str
    trade: NormalizedTrade
    previous: NormalizedTrade
    size_ratio: float


def detect_behavior_flags(
    trades: Iterable[NormalizedTrade],
    *,
    revenge_multiplier: float = REVENGE_SIZE_MULTIPLIER,
    oversize_multiplier: float = OVERSIZE_AFTER_WIN_MULTIPLIER,
) -> list[BehaviorFlag]:
    ordered = sorted(trades, key=lambda trade: trade.datetime)
    flags: list[BehaviorFlag] = []
    for index in range(1, len(ordered)):
        previous = ordered[index - 1]
        current = ordered[index]
        previous_size = abs(previous.qty)
        if previous_size == 0:
            continue
        ratio = abs(current.qty) / previous_size
        if previous.pnl < 0 and ratio >= revenge_multiplier:
            flags.append(BehaviorFlag(index, FLAG_REVENGE, current, previous, ratio))
        elif previous.pnl > 0 and ratio >= oversize_multiplier:
            flags.append(BehaviorFlag(index, FLAG_OVERSIZING_AFTER_WIN, current, previous, ratio))
    return flags
