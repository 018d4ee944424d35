from __future__ import annotations

import math
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, BinaryIO

import pandas as pd

from autojournal.ingest.csv_mapping import (
    REQUIRED_FIELDS,
    file_signature,
    missing_required_fields,
    propose_column_map,
    validate_mapping,
)
from autojournal.ingest.numbers import parse_number
from autojournal.ingest.records import NormalizedTrade
from autojournal.ingest.validators import (
    infer_side,
    normalize_symbol,
    parse_tags,
    validate_datetime,
)
from autojournal.utils.logging import get_logger

logger = get_logger(__name__)

RawRow = Mapping[str, Any]

DROP_REASONS = ("datetime", "qty", "price", "pnl", "symbol", "side")


class MappingIncompleteError(ValueError):
    def __init__(self, missing: list[str]) -> None:
        self.missing = list(missing)
        super().__init__(
            "Missing required field mapping: " + ", ".join(self.missing)
        )


class NoValidTradesError(ValueError):
    def __init__(self, total_rows: int, dropped: Mapping[str, int]) -> None:
        self.total_rows = total_rows
        self.dropped = dict(dropped)
        reasons = ", ".join(f"{reason}={count}" for reason, count in sorted(self.dropped.items()))
        super().__init__(
            f"No valid trades found in {total_rows} rows"
            + (f" (dropped: {reasons})." if reasons else ".")
        )


@dataclass(frozen=True)
class TradeImportPreview:
    columns: list[str]
    sample_rows: list[dict]
    mapping: dict[str, str]
    missing_required: list[str]
    signature: str


@dataclass(frozen=True)
class MaterializeResult:
    trades: list[NormalizedTrade]
    total_rows: int
    dropped: dict[str, int] = field(default_factory=dict)

    @property
    def kept_count(self) -> int:
        return len(self.trades)

    @property
    def dropped_count(self) -> int:
        return sum(self.dropped.values())


def read_trade_csv(file_obj: str | Path | BinaryIO) -> tuple[list[str], list[dict[str, str]]]:
    df = pd.read_csv(file_obj, dtype=str, keep_default_na=False, skip_blank_lines=True)
    columns = [str(c) for c in df.columns]
    return columns, df.to_dict(orient="records")


def load_trade_csv_preview(
    file_obj: str | Path | BinaryIO,
    prior_mapping: dict[str, str] | None = None,
    max_rows: int = 200,
) -> TradeImportPreview:
    columns, rows = read_trade_csv(file_obj)
    mapping = propose_column_map(columns, prior_mapping)
    return TradeImportPreview(
        columns=columns,
        sample_rows=rows[:max_rows],
        mapping=mapping,
        missing_required=missing_required_fields(mapping, required_fields=REQUIRED_FIELDS),
        signature=file_signature(columns),
    )


def _cell(row: RawRow, mapping: Mapping[str, str], canonical: str) -> Any:
    header = mapping.get(canonical)
    if not header:
        return None
    return row.get(header)


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    text = str(value).strip()
    return text or None


def _materialize_row(
    row: RawRow, mapping: Mapping[str, str], now: datetime | None
) -> tuple[NormalizedTrade | None, str | None]:
    executed_at = validate_datetime(_cell(row, mapping, "datetime"), now=now)
    if executed_at is None:
        return None, "datetime"
    qty = parse_number(_cell(row, mapping, "qty"))
    if qty is None:
        return None, "qty"
    price = parse_number(_cell(row, mapping, "price"))
    if price is None:
        return None, "price"
    pnl = parse_number(_cell(row, mapping, "pnl"))
    if pnl is None:
        return None, "pnl"
    symbol = normalize_symbol(_cell(row, mapping, "symbol"))
    if symbol is None:
        return None, "symbol"
    side = infer_side(
        _cell(row, mapping, "side"),
        qty,
        parse_number(_cell(row, mapping, "entryPrice")),
        parse_number(_cell(row, mapping, "exitPrice")),
    )
    if side is None:
        return None, "side"

    return (
        NormalizedTrade(
            datetime=executed_at,
            symbol=symbol,
            side=side,
            qty=qty,
            price=price,
            pnl=pnl,
            notes=_text(_cell(row, mapping, "notes")) or "",
            strategy=_text(_cell(row, mapping, "strategy")),
            tags=parse_tags(_text(_cell(row, mapping, "tags"))),
            buy_fill_id=_text(_cell(row, mapping, "buyFillId")),
            sell_fill_id=_text(_cell(row, mapping, "sellFillId")),
            image_url=_text(_cell(row, mapping, "image_url")),
        ),
        None,
    )


def materialize_trade_rows(
    rows: Iterable[RawRow],
    mapping: Mapping[str, str],
    *,
    now: datetime | None = None,
) -> MaterializeResult:
    missing = missing_required_fields(dict(mapping))
    if missing:
        raise MappingIncompleteError(missing)

    frozen_mapping = dict(mapping)
    trades: list[NormalizedTrade] = []
    dropped: Counter[str] = Counter()
    total = 0
    for row_number, row in enumerate(rows, start=1):
        total += 1
        trade, reason = _materialize_row(row, frozen_mapping, now)
        if trade is None:
            dropped[reason] += 1
            logger.debug("Row %d: dropped (invalid %s)", row_number, reason)
            continue
        trades.append(trade)

    return MaterializeResult(trades=trades, total_rows=total, dropped=dict(dropped))


def materialize_trades(
    rows: Iterable[RawRow],
    mapping: Mapping[str, str],
    *,
    now: datetime | None = None,
) -> list[NormalizedTrade]:
    return materialize_trade_rows(rows, mapping, now=now).trades


def import_trades(
    columns: list[str],
    rows: Iterable[RawRow],
    mapping: Mapping[str, str],
    *,
    now: datetime | None = None,
) -> MaterializeResult:
    """Validate the mapping against the CSV header, then materialize the batch.

    Raises ``MappingIncompleteError`` when a required field is unmapped,
    ``ValueError`` for any other mapping problem and ``NoValidTradesError``
    when every row was dropped.
    """
    cleaned, errors = validate_mapping(dict(mapping), columns=columns, required_fields=[])
    missing = missing_required_fields(cleaned)
    if missing:
        raise MappingIncompleteError(missing)
    if errors:
        raise ValueError("; ".join(errors))

    result = materialize_trade_rows(rows, cleaned, now=now)
    logger.info(
        "Materialized %d of %d rows (%d dropped)",
        result.kept_count,
        result.total_rows,
        result.dropped_count,
    )
    if not result.trades:
        raise NoValidTradesError(result.total_rows, result.dropped)
    return result
