from __future__ import annotations

from datetime import datetime
from typing import Callable

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from autojournal.db.models import Base, Journal
from autojournal.ingest.records import NormalizedTrade, TradeSide

FIXED_NOW = datetime(2025, 6, 30, 23, 59, 59)


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


@pytest.fixture
def journal_id(db_session: Session) -> str:
    journal = Journal(name="Day trading")
    db_session.add(journal)
    db_session.flush()
    return journal.id


@pytest.fixture
def make_trade() -> Callable[..., NormalizedTrade]:
    def _make(
        pnl: float,
        *,
        when: datetime = datetime(2025, 3, 3, 9, 30),
        symbol: str = "AAPL",
        side: TradeSide = TradeSide.BUY,
        qty: float = 10.0,
        price: float = 100.0,
        **extra,
    ) -> NormalizedTrade:
        return NormalizedTrade(
            datetime=when,
            symbol=symbol,
            side=side,
            qty=qty,
            price=price,
            pnl=pnl,
            **extra,
        )

    return _make


@pytest.fixture
def broker_headers() -> list[str]:
    return ["Date", "Symbol", "Action", "Quantity", "Price", "P/L", "Notes", "Tags"]


@pytest.fixture
def broker_rows() -> list[dict[str, str]]:
    return [
        {
            "Date": "2025-03-03 09:31:00",
            "Symbol": "NASDAQ:AAPL",
            "Action": "Buy",
            "Quantity": "10",
            "Price": "$170.25",
            "P/L": "$1,234.56",
            "Notes": "opening drive",
            "Tags": "momentum; gap",
        },
        {
            "Date": "2025-03-03 10:05:00",
            "Symbol": "tsla.us",
            "Action": "",
            "Quantity": "-5",
            "Price": "201.10",
            "P/L": "(500.00)",
            "Notes": "",
            "Tags": "",
        },
        {
            "Date": "2025-03-04 14:15:00",
            "Symbol": "MSFT",
            "Action": "SHORT",
            "Quantity": "3",
            "Price": "410,50",
            "P/L": "N/A",
            "Notes": "",
            "Tags": "",
        },
    ]
