from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Enum as SqlEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from autojournal.ingest.records import TradeSide


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _uuid() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


class Journal(Base):
    __tablename__ = "journals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class RawTradeUpload(Base):
    __tablename__ = "raw_trade_uploads"
    __table_args__ = (Index("ix_raw_uploads_journal_uploaded", "journal_id", "uploaded_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("journals.id"), nullable=False, index=True
    )
    file_name: Mapped[str] = mapped_column(String(256), nullable=False)
    file_signature: Mapped[str | None] = mapped_column(String(64), nullable=True)
    headers: Mapped[list] = mapped_column(JSON, nullable=False)
    mapping: Mapped[dict] = mapped_column(JSON, nullable=False)
    summary: Mapped[dict] = mapped_column(JSON, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class TradeSession(Base):
    __tablename__ = "trade_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    journal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("journals.id"), nullable=False, index=True
    )
    raw_upload_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("raw_trade_uploads.id"), nullable=True
    )
    total_trades: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    win_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    profit_factor: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_drawdown: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    metrics: Mapped[dict] = mapped_column(JSON, nullable=False)
    insights: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class Trade(Base):
    __tablename__ = "trades"
    __table_args__ = (
        Index("ix_trades_journal_datetime", "journal_id", "executed_at"),
        Index("ix_trades_journal_fill_ids", "journal_id", "buy_fill_id", "sell_fill_id"),
        Index("ix_trades_journal_composite", "journal_id", "executed_at", "symbol", "side", "qty"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    journal_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("journals.id"), nullable=False, index=True
    )
    session_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("trade_sessions.id"), nullable=True, index=True
    )
    executed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    symbol: Mapped[str] = mapped_column(String(64), nullable=False)
    side: Mapped[TradeSide] = mapped_column(SqlEnum(TradeSide, native_enum=False), nullable=False)
    qty: Mapped[float] = mapped_column(Float, nullable=False)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    pnl: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str] = mapped_column(Text, nullable=False, default="")
    strategy: Mapped[str | None] = mapped_column(String(128), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    buy_fill_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    sell_fill_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)
