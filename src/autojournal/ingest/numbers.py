"""Tolerant parsing of broker numeric and money cells.

Broker exports disagree about nearly everything: currency glyphs, accounting
style negatives ``(500.00)``, trailing minus signs ``500-`` and European
``1.234,56`` grouping all show up in the wild. ``parse_number`` folds these into
a float and returns ``None`` when nothing usable is left, so callers can tell a
failed cell apart from a genuine zero.

Decimal/thousands disambiguation is an ordered rule table
(``SEPARATOR_RULES``); the first rule whose predicate matches the cleaned text
decides how the separators are read.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Callable

CURRENCY_GLYPHS = "$%€£¥₹¢₨₩₪₫₡₦₱₽₴₸₼₿"

_CURRENCY_RE = re.compile(rf"[\s{re.escape(CURRENCY_GLYPHS)}]+")
_PARENTHESES_RE = re.compile(rf"^[{re.escape(CURRENCY_GLYPHS)}\s]*\((.*)\)$")
_LEADING_MINUS_RE = re.compile(rf"^[{re.escape(CURRENCY_GLYPHS)}\s]*-")
_NON_DIGIT_RE = re.compile(r"[^0-9]")
_NON_DECIMAL_RE = re.compile(r"[^0-9.]")

_DEGENERATE = {"", ".", "-"}


def _digits(text: str) -> str:
    return _NON_DIGIT_RE.sub("", text)


def _join_at(text: str, index: int) -> str:
    return f"{_digits(text[:index])}.{_digits(text[index + 1:])}"


def _comma_tail(text: str) -> str:
    return text[text.rfind(",") + 1:]


@dataclass(frozen=True)
class SeparatorRule:
    name: str
    matches: Callable[[str], bool]
    apply: Callable[[str], str]


SEPARATOR_RULES: tuple[SeparatorRule, ...] = (
    SeparatorRule(
        name="plain_decimal",
        matches=lambda s: s.count(",") == 0 and s.count(".") <= 1,
        apply=lambda s: _NON_DECIMAL_RE.sub("", s),
    ),
    SeparatorRule(
        # "123,45" / "1234,5": a short digit tail means the comma is a decimal mark.
        name="comma_decimal",
        matches=lambda s: (
            s.count(",") > 0
            and s.count(".") == 0
            and 1 <= len(_comma_tail(s)) <= 3
            and _comma_tail(s).isdigit()
        ),
        apply=lambda s: _join_at(s, s.rfind(",")),
    ),
    SeparatorRule(
        name="comma_thousands",
        matches=lambda s: s.count(",") > 0 and s.count(".") == 0,
        apply=_digits,
    ),
    SeparatorRule(
        name="later_separator_decimal",
        matches=lambda s: s.count(",") > 0 and s.count(".") > 0,
        apply=lambda s: _join_at(s, max(s.rfind(","), s.rfind("."))),
    ),
    SeparatorRule(
        name="last_period_decimal",
        matches=lambda s: s.count(",") == 0 and s.count(".") > 1,
        apply=lambda s: _join_at(s, s.rfind(".")),
    ),
)


def resolve_separators(text: str) -> str:
    for rule in SEPARATOR_RULES:
        if rule.matches(text):
            return rule.apply(text)
    return _digits(text)


def _split_sign(text: str) -> tuple[bool, str]:
    match = _PARENTHESES_RE.match(text)
    if match:
        return True, match.group(1)
    if text.endswith("-"):
        return True, text[:-1]
    if _LEADING_MINUS_RE.match(text):
        return True, text.replace("-", "", 1)
    return False, text


def parse_number(raw: str | int | float | None) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else None

    text = str(raw).strip()
    if not text:
        return None

    negative, body = _split_sign(text)
    body = _CURRENCY_RE.sub("", body)
    cleaned = resolve_separators(body)
    if cleaned in _DEGENERATE:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return -abs(value) if negative else value
