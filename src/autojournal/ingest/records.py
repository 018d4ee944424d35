from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TradeSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


@dataclass(frozen=True)
class NormalizedTrade:
    datetime: datetime
    symbol: str
    side: TradeSide
    qty: float
    price: float
    pnl: float
    notes: str = ""
    strategy: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)
    buy_fill_id: str | None = None
    sell_fill_id: str | None = None
    image_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "datetime": self.datetime.isoformat(),
            "symbol": self.symbol,
            "side": self.side.value,
            "qty": self.qty,
            "price": self.price,
            "pnl": self.pnl,
            "notes": self.notes,
            "strategy": self.strategy,
            "tags": list(self.tags),
            "buy_fill_id": self.buy_fill_id,
            "sell_fill_id": self.sell_fill_id,
            "image_url": self.image_url,
        }
