"""Money helpers for deterministic rounding and display."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP, localcontext


CENT = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: float | int | str | Decimal | None) -> float:
    amount = to_decimal(value)
    with localcontext() as ctx:
        # integer digits plus cents must fit in the working precision
        ctx.prec = max(ctx.prec, amount.adjusted() + 4)
        return float(amount.quantize(CENT, rounding=ROUND_HALF_UP))


def format_money(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:+,.2f}"


def format_percent(value: float | None) -> str:
    """Format a value already expressed in percent (``33.3`` -> ``33.33%``)."""
    if value is None:
        return "n/a"
    return f"{value:.2f}%"
