from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable

import pandas as pd

from autojournal.ingest.records import TradeSide
from autojournal.utils.dates import as_utc_naive, utc_now_naive
from autojournal.utils.logging import get_logger

logger = get_logger(__name__)

DATETIME_FLOOR = datetime(2000, 1, 1)

DATE_FORMATS = [
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m-%d-%Y",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
]

DATE_FORMATS_WITH_TZ = [
    "%m/%d/%Y %H:%M:%S %z",
    "%Y-%m-%d %H:%M:%S %z",
    "%Y/%m/%d %H:%M:%S %z",
]

TZ_ABBR_OFFSETS = {
    "EST": "-0500",
    "EDT": "-0400",
    "CST": "-0600",
    "CDT": "-0500",
    "MST": "-0700",
    "MDT": "-0600",
    "PST": "-0800",
    "PDT": "-0700",
    "UTC": "+0000",
    "GMT": "+0000",
}

TZ_SUFFIX_RE = re.compile(r"^(.*\d)\s+([A-Za-z]{2,4})$")

SYMBOL_PREFIX_RE = re.compile(r"^(NASDAQ:|NYSE:|AMEX:)", re.IGNORECASE)
SYMBOL_SUFFIX_RE = re.compile(r"\.(US|USA)$", re.IGNORECASE)
TAG_SPLIT_RE = re.compile(r"[,;]")


def _replace_tz_abbreviation(text: str) -> str:
    match = TZ_SUFFIX_RE.match(text.strip())
    if not match:
        return text
    base, abbr = match.groups()
    offset = TZ_ABBR_OFFSETS.get(abbr.upper())
    if offset is None:
        return text
    return f"{base} {offset}"


def parse_datetime(value: Any) -> datetime | None:
    """Parse a broker timestamp into a naive UTC datetime, or ``None``."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return None if pd.isna(value) else as_utc_naive(value.to_pydatetime())
    if isinstance(value, datetime):
        return as_utc_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if not text:
        return None

    text_with_offset = _replace_tz_abbreviation(text)

    for fmt in DATE_FORMATS_WITH_TZ:
        try:
            return as_utc_naive(datetime.strptime(text_with_offset, fmt))
        except ValueError:
            continue

    try:
        parsed = pd.to_datetime(text_with_offset, errors="coerce", utc=False)
    except (TypeError, ValueError, OverflowError):
        parsed = pd.NaT
    if isinstance(parsed, pd.Timestamp) and pd.notna(parsed):
        return as_utc_naive(parsed.to_pydatetime())

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def validate_datetime(value: Any, now: datetime | None = None) -> datetime | None:
    parsed = parse_datetime(value)
    if parsed is None:
        return None
    reference = as_utc_naive(now) if now is not None else utc_now_naive()
    if parsed > reference:
        logger.debug("Rejected future datetime %r", value)
        return None
    if parsed < DATETIME_FLOOR:
        logger.debug("Rejected datetime before %s: %r", DATETIME_FLOOR.date(), value)
        return None
    return parsed


def normalize_symbol(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip().upper()
    if not text:
        return None
    text = SYMBOL_PREFIX_RE.sub("", text)
    text = SYMBOL_SUFFIX_RE.sub("", text).strip()
    return text or None


def parse_tags(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(
        tag for tag in (part.strip() for part in TAG_SPLIT_RE.split(str(value))) if tag
    )


BUY_TOKENS = {"BUY", "B", "LONG", "L", "+1", "1"}
SELL_TOKENS = {"SELL", "S", "SHORT", "SH", "SL", "-1", "0"}
OPEN_TOKENS = {"ENTRY", "OPEN", "IN"}
CLOSE_TOKENS = {"EXIT", "CLOSE", "OUT"}


@dataclass(frozen=True)
class SideEvidence:
    explicit: str
    qty: float | None
    entry_price: float | None
    exit_price: float | None

    @property
    def has_prices(self) -> bool:
        return self.entry_price is not None and self.exit_price is not None


@dataclass(frozen=True)
class SideRule:
    name: str
    matches: Callable[[SideEvidence], bool]
    side: TradeSide


# Evaluated top to bottom; the first matching rule decides the side.
SIDE_RULES: tuple[SideRule, ...] = (
    SideRule("explicit_buy", lambda e: e.explicit in BUY_TOKENS, TradeSide.BUY),
    SideRule("explicit_sell", lambda e: e.explicit in SELL_TOKENS, TradeSide.SELL),
    SideRule("explicit_open", lambda e: e.explicit in OPEN_TOKENS, TradeSide.BUY),
    SideRule("explicit_close", lambda e: e.explicit in CLOSE_TOKENS, TradeSide.SELL),
    SideRule(
        "explicit_contains_buy",
        lambda e: "LONG" in e.explicit or "BUY" in e.explicit,
        TradeSide.BUY,
    ),
    SideRule(
        "explicit_contains_sell",
        lambda e: "SHORT" in e.explicit or "SELL" in e.explicit,
        TradeSide.SELL,
    ),
    SideRule("negative_qty", lambda e: e.qty is not None and e.qty < 0, TradeSide.SELL),
    SideRule("positive_qty", lambda e: e.qty is not None and e.qty > 0, TradeSide.BUY),
    SideRule(
        "exit_at_or_above_entry",
        lambda e: e.has_prices and e.exit_price >= e.entry_price,
        TradeSide.BUY,
    ),
    SideRule(
        "exit_below_entry",
        lambda e: e.has_prices and e.exit_price < e.entry_price,
        TradeSide.SELL,
    ),
)


def _finite(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _explicit_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip().upper()


def infer_side(
    explicit: Any,
    qty: float | None,
    entry_price: float | None = None,
    exit_price: float | None = None,
) -> TradeSide | None:
    evidence = SideEvidence(
        explicit=_explicit_text(explicit),
        qty=_finite(qty),
        entry_price=_finite(entry_price),
        exit_price=_finite(exit_price),
    )
    for rule in SIDE_RULES:
        if rule.matches(evidence):
            return rule.side
    logger.debug(
        "Could not infer side: explicit=%r qty=%r entry=%r exit=%r",
        explicit,
        qty,
        entry_price,
        exit_price,
    )
    return None
