from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from autojournal.ingest.records import NormalizedTrade
from autojournal.utils.money import round_money

PROFIT_FACTOR_CAP = 9999.0

WEEKDAY_ORDER = [
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
]


@dataclass(frozen=True)
class EquityPoint:
    trade: int
    cumulative: float


@dataclass(frozen=True)
class TimeBucket:
    time: str
    trades: int
    pnl: float


@dataclass(frozen=True)
class DayBucket:
    day: str
    trades: int
    pnl: float


@dataclass(frozen=True)
class SymbolBucket:
    symbol: str
    trades: int
    pnl: float


@dataclass(frozen=True)
class MetricsBundle:
    total_pnl: float = 0.0
    total_trades: int = 0
    win_rate: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    max_drawdown: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    max_win_streak: int = 0
    max_loss_streak: int = 0
    expectancy: float = 0.0
    reward_risk_ratio: float = 0.0
    equity_curve: tuple[EquityPoint, ...] = field(default_factory=tuple)
    time_data: tuple[TimeBucket, ...] = field(default_factory=tuple)
    trades_by_day: tuple[DayBucket, ...] = field(default_factory=tuple)
    trades_by_symbol: tuple[SymbolBucket, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        for key in ("equity_curve", "time_data", "trades_by_day", "trades_by_symbol"):
            payload[key] = list(payload[key])
        return payload


def _weekday_name(moment: datetime) -> str:
    # datetime.weekday() is Monday=0; the table starts on Sunday.
    return WEEKDAY_ORDER[(moment.weekday() + 1) % 7]


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _accumulate(buckets: dict[str, list], key: str, pnl: float) -> None:
    bucket = buckets.setdefault(key, [0, 0.0])
    bucket[0] += 1
    bucket[1] += pnl


def compute_metrics(trades: Iterable[NormalizedTrade]) -> MetricsBundle:
    """Compute the performance bundle for a list of normalized trades.

    Trades are stable-sorted by ``datetime`` first, so the result does not
    depend on input order except for identical timestamps. Every float is
    rounded to cents; the running state stays unrounded until the end.
    """
    ordered = sorted(trades, key=lambda trade: trade.datetime)
    total_trades = len(ordered)
    if total_trades == 0:
        return MetricsBundle()

    total_pnl = 0.0
    wins: list[float] = []
    losses: list[float] = []
    equity_curve: list[EquityPoint] = []
    cumulative_pnl = 0.0
    peak_equity = 0.0
    max_drawdown = 0.0
    largest_win = 0.0
    largest_loss = 0.0
    win_streak = 0
    loss_streak = 0
    max_win_streak = 0
    max_loss_streak = 0

    by_time: dict[str, list] = {}
    by_day: dict[str, list] = {}
    by_symbol: dict[str, list] = {}

    for index, trade in enumerate(ordered, start=1):
        pnl = trade.pnl
        total_pnl += pnl
        cumulative_pnl += pnl

        if pnl > 0:
            wins.append(pnl)
            largest_win = max(largest_win, pnl)
            win_streak += 1
            loss_streak = 0
        elif pnl < 0:
            losses.append(pnl)
            largest_loss = min(largest_loss, pnl)
            loss_streak += 1
            win_streak = 0
        else:
            win_streak = 0
            loss_streak = 0
        max_win_streak = max(max_win_streak, win_streak)
        max_loss_streak = max(max_loss_streak, loss_streak)

        equity_curve.append(EquityPoint(trade=index, cumulative=round_money(cumulative_pnl)))
        peak_equity = max(peak_equity, cumulative_pnl)
        max_drawdown = max(max_drawdown, peak_equity - cumulative_pnl)

        _accumulate(by_time, trade.datetime.strftime("%H:%M"), pnl)
        _accumulate(by_day, _weekday_name(trade.datetime), pnl)
        _accumulate(by_symbol, trade.symbol, pnl)

    win_rate = len(wins) / total_trades * 100
    avg_win = _mean(wins)
    avg_loss = _mean(losses)

    gross_profit = sum(wins)
    gross_loss = abs(sum(losses))
    if gross_loss > 0:
        profit_factor = gross_profit / gross_loss
    else:
        profit_factor = PROFIT_FACTOR_CAP if gross_profit > 0 else 0.0

    abs_avg_loss = abs(avg_loss)
    reward_risk_ratio = avg_win / abs_avg_loss if abs_avg_loss > 0 else 0.0
    win_fraction = win_rate / 100
    expectancy = win_fraction * avg_win - (1 - win_fraction) * abs_avg_loss

    time_data = tuple(
        TimeBucket(time=key, trades=count, pnl=round_money(pnl))
        for key, (count, pnl) in sorted(by_time.items())
    )
    trades_by_day = tuple(
        DayBucket(day=key, trades=count, pnl=round_money(pnl))
        for key, (count, pnl) in sorted(by_day.items(), key=lambda item: WEEKDAY_ORDER.index(item[0]))
    )
    trades_by_symbol = tuple(
        SymbolBucket(symbol=key, trades=count, pnl=round_money(pnl))
        for key, (count, pnl) in sorted(by_symbol.items())
    )

    return MetricsBundle(
        total_pnl=round_money(total_pnl),
        total_trades=total_trades,
        win_rate=round_money(win_rate),
        avg_win=round_money(avg_win),
        avg_loss=round_money(avg_loss),
        max_drawdown=round_money(max_drawdown),
        profit_factor=round_money(profit_factor),
        largest_win=round_money(largest_win),
        largest_loss=round_money(largest_loss),
        max_win_streak=max_win_streak,
        max_loss_streak=max_loss_streak,
        expectancy=round_money(expectancy),
        reward_risk_ratio=round_money(reward_risk_ratio),
        equity_curve=tuple(equity_curve),
        time_data=time_data,
        trades_by_day=trades_by_day,
        trades_by_symbol=trades_by_symbol,
    )


def filter_trades_by_period(
    trades: Iterable[NormalizedTrade],
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[NormalizedTrade]:
    """Trades with ``start <= datetime <= end``; open bounds are unbounded."""
    return [
        trade
        for trade in trades
        if (start is None or trade.datetime >= start)
        and (end is None or trade.datetime <= end)
    ]
