from __future__ import annotations

from datetime import datetime

from autojournal.ingest.dedupe import (
    MATCH_BOTH_FILLS,
    MATCH_COMPOSITE,
    MATCH_SINGLE_FILL,
    composite_key,
    dedupe_batch,
    find_duplicates,
    match_existing,
)
from autojournal.ingest.records import TradeSide


def test_dedupe_batch_keeps_first_occurrence(make_trade):
    a = make_trade(10)
    b = make_trade(10)
    c = make_trade(10, symbol="MSFT")

    unique, repeated = dedupe_batch([a, b, c])

    assert unique == [a, c]
    assert repeated == [b]


def test_composite_key_normalizes_floats_and_case(make_trade):
    assert composite_key(make_trade(10.0, symbol="aapl")) == composite_key(
        make_trade(10, symbol="AAPL")
    )
    assert composite_key(make_trade(10)) != composite_key(make_trade(10, side=TradeSide.SELL))


def test_both_fill_ids_match_with_pnl_tolerance(make_trade):
    stored = make_trade(25.0, buy_fill_id="B1", sell_fill_id="S1")
    candidate = make_trade(
        25.004, when=datetime(2025, 3, 4, 10, 0), buy_fill_id="B1", sell_fill_id="S1"
    )

    assert match_existing(candidate, [stored]) == (True, MATCH_BOTH_FILLS)
    off = make_trade(25.02, buy_fill_id="B1", sell_fill_id="S1")
    assert match_existing(off, [stored]) == (False, MATCH_BOTH_FILLS)


def test_single_fill_id_also_checks_execution(make_trade):
    stored = make_trade(5.0, sell_fill_id="S9")

    assert match_existing(make_trade(5.0, sell_fill_id="S9"), [stored]) == (True, MATCH_SINGLE_FILL)
    moved = make_trade(5.0, when=datetime(2025, 3, 3, 9, 31), sell_fill_id="S9")
    assert match_existing(moved, [stored]) == (False, MATCH_SINGLE_FILL)


def test_composite_match_without_fill_ids(make_trade):
    stored = make_trade(-12.0, price=101.0)

    assert match_existing(make_trade(-12.001, price=101.004), [stored]) == (True, MATCH_COMPOSITE)
    assert match_existing(make_trade(-12.0, qty=11), [stored])[0] is False


def test_find_duplicates_reports_match_type(make_trade):
    stored = [make_trade(1.0, buy_fill_id="B1", sell_fill_id="S1")]
    candidates = [
        make_trade(1.0, buy_fill_id="B1", sell_fill_id="S1"),
        make_trade(2.0, symbol="MSFT"),
    ]

    matches = find_duplicates(candidates, stored)

    assert [(m.index, m.is_duplicate, m.match_type) for m in matches] == [
        (0, True, MATCH_BOTH_FILLS),
        (1, False, f"{MATCH_COMPOSITE}_no_match"),
    ]
