from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from autojournal.analytics.behavior import (
    FLAG_OVERSIZING_AFTER_WIN,
    FLAG_REVENGE,
    detect_behavior_flags,
)


def test_detects_revenge_and_oversizing(make_trade):
    start = datetime(2025, 3, 3, 9, 30)
    trades = [
        make_trade(-20, when=start, qty=10),
        make_trade(15, when=start + timedelta(minutes=5), qty=13),
        make_trade(5, when=start + timedelta(minutes=10), qty=20),
        make_trade(-1, when=start + timedelta(minutes=15), qty=5),
    ]

    flags = detect_behavior_flags(list(reversed(trades)))

    assert [(f.index, f.flag) for f in flags] == [
        (1, FLAG_REVENGE),
        (2, FLAG_OVERSIZING_AFTER_WIN),
    ]
    assert flags[0].size_ratio == pytest.approx(1.3)
    assert flags[1].previous is trades[1]


def test_thresholds_are_configurable(make_trade):
    start = datetime(2025, 3, 3, 9, 30)
    trades = [
        make_trade(-20, when=start, qty=10),
        make_trade(1, when=start + timedelta(minutes=5), qty=12),
    ]

    assert detect_behavior_flags(trades) == []
    assert len(detect_behavior_flags(trades, revenge_multiplier=1.2)) == 1


def test_zero_sized_previous_trade_is_skipped(make_trade):
    start = datetime(2025, 3, 3, 9, 30)
    trades = [
        make_trade(-5, when=start, qty=0),
        make_trade(-5, when=start + timedelta(minutes=1), qty=100),
    ]
    assert detect_behavior_flags(trades) == []
