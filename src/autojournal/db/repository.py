"""Persistence helpers for journals, uploads, sessions and trades."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from autojournal.analytics.metrics import MetricsBundle, compute_metrics
from autojournal.db.models import Journal, RawTradeUpload, Trade, TradeSession
from autojournal.ingest.csv_mapping import file_signature
from autojournal.ingest.dedupe import dedupe_batch, find_duplicates
from autojournal.ingest.records import NormalizedTrade
from autojournal.utils.dates import utc_now_naive
from autojournal.utils.logging import get_logger

logger = get_logger(__name__)

QUERY_CHUNK_SIZE = 500


@contextmanager
def session_scope(engine: Engine):
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_journal(session: Session, name: str, description: str | None = None) -> Journal:
    name_text = name.strip()
    if not name_text:
        raise ValueError("Journal name is required.")
    journal = Journal(name=name_text, description=(description or "").strip() or None)
    session.add(journal)
    session.flush()
    return journal


def trade_to_record(row: Trade) -> NormalizedTrade:
    return NormalizedTrade(
        datetime=row.executed_at,
        symbol=row.symbol,
        side=row.side,
        qty=row.qty,
        price=row.price,
        pnl=row.pnl,
        notes=row.notes or "",
        strategy=row.strategy,
        tags=tuple(row.tags or ()),
        buy_fill_id=row.buy_fill_id,
        sell_fill_id=row.sell_fill_id,
        image_url=row.image_url,
    )


def load_journal_trades(
    session: Session,
    journal_id: str,
    *,
    executed_at_in: Iterable[datetime] | None = None,
) -> list[NormalizedTrade]:
    stmt = (
        select(Trade)
        .where(Trade.journal_id == journal_id)
        .order_by(Trade.executed_at, Trade.id)
    )
    if executed_at_in is None:
        return [trade_to_record(row) for row in session.scalars(stmt).all()]

    moments = sorted(set(executed_at_in))
    records: list[NormalizedTrade] = []
    for start in range(0, len(moments), QUERY_CHUNK_SIZE):
        chunk = moments[start : start + QUERY_CHUNK_SIZE]
        rows = session.scalars(stmt.where(Trade.executed_at.in_(chunk))).all()
        records.extend(trade_to_record(row) for row in rows)
    return records


@dataclass(frozen=True)
class UploadSummary:
    total_rows: int
    duplicates_skipped: int
    new_entries_inserted: int
    file_name: str
    upload_timestamp: str
    duplicate_entries: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SaveImportResult:
    summary: UploadSummary
    raw_upload_id: int
    trade_session_id: str | None
    metrics: MetricsBundle | None


def _duplicate_entry(trade: NormalizedTrade) -> dict[str, Any]:
    return {
        "datetime": trade.datetime.isoformat(),
        "symbol": trade.symbol,
        "side": trade.side.value,
        "qty": trade.qty,
        "price": trade.price,
        "pnl": trade.pnl,
    }


def save_trade_import(
    session: Session,
    journal_id: str,
    trades: list[NormalizedTrade],
    *,
    file_name: str,
    headers: list[str],
    mapping: dict[str, str],
    uploaded_at: datetime | None = None,
) -> SaveImportResult:
    """Store one upload: skip duplicates, snapshot metrics of the new trades, insert them."""
    if session.get(Journal, journal_id) is None:
        raise ValueError(f"Journal '{journal_id}' not found.")

    timestamp = uploaded_at or utc_now_naive()
    unique, repeated_in_file = dedupe_batch(trades)
    existing = load_journal_trades(
        session, journal_id, executed_at_in=[trade.datetime for trade in unique]
    )
    matches = find_duplicates(unique, existing)

    new_trades: list[NormalizedTrade] = []
    duplicates: list[NormalizedTrade] = []
    for match in matches:
        target = duplicates if match.is_duplicate else new_trades
        target.append(unique[match.index])

    summary = UploadSummary(
        total_rows=len(unique),
        duplicates_skipped=len(duplicates),
        new_entries_inserted=len(new_trades),
        file_name=file_name,
        upload_timestamp=timestamp.isoformat(timespec="seconds"),
        duplicate_entries=[_duplicate_entry(trade) for trade in duplicates],
    )
    raw_upload = RawTradeUpload(
        journal_id=journal_id,
        file_name=file_name,
        file_signature=file_signature(headers),
        headers=list(headers),
        mapping=dict(mapping),
        summary=summary.to_dict(),
        uploaded_at=timestamp,
    )
    session.add(raw_upload)
    session.flush()

    logger.info(
        "Upload %s: %d unique rows, %d repeated in file, %d already stored, %d new",
        file_name,
        len(unique),
        len(repeated_in_file),
        len(duplicates),
        len(new_trades),
    )
    if not new_trades:
        return SaveImportResult(
            summary=summary, raw_upload_id=raw_upload.id, trade_session_id=None, metrics=None
        )

    metrics = compute_metrics(new_trades)
    trade_session = TradeSession(
        journal_id=journal_id,
        raw_upload_id=raw_upload.id,
        total_trades=metrics.total_trades,
        total_pnl=metrics.total_pnl,
        win_rate=metrics.win_rate,
        profit_factor=metrics.profit_factor,
        max_drawdown=metrics.max_drawdown,
        metrics=metrics.to_dict(),
        created_at=timestamp,
    )
    session.add(trade_session)
    session.flush()

    session.add_all(
        Trade(
            journal_id=journal_id,
            session_id=trade_session.id,
            executed_at=trade.datetime,
            symbol=trade.symbol,
            side=trade.side,
            qty=trade.qty,
            price=trade.price,
            pnl=trade.pnl,
            notes=trade.notes,
            strategy=trade.strategy,
            tags=list(trade.tags),
            buy_fill_id=trade.buy_fill_id,
            sell_fill_id=trade.sell_fill_id,
            image_url=trade.image_url,
        )
        for trade in new_trades
    )
    session.flush()
    return SaveImportResult(
        summary=summary,
        raw_upload_id=raw_upload.id,
        trade_session_id=trade_session.id,
        metrics=metrics,
    )


def attach_session_insights(
    session: Session, trade_session_id: str, insights: dict[str, Any]
) -> TradeSession:
    trade_session = session.get(TradeSession, trade_session_id)
    if trade_session is None:
        raise ValueError(f"Trade session '{trade_session_id}' not found.")
    trade_session.insights = dict(insights)
    session.flush()
    return trade_session


def journal_metrics(session: Session, journal_id: str) -> MetricsBundle:
    return compute_metrics(load_journal_trades(session, journal_id))
