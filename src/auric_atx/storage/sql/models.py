"""SQLAlchemy ORM models for the ATX database.

Tables:
    trades            append-only trade history, unique on (source, trade_id)
    atx_epoch_state   one versioned row per account holding the epoch machine
    atx_epochs        permanent epoch log; rows are upserted, never deleted

Types are kept portable (JSON with a JSONB variant on PostgreSQL) so the
same schema runs on SQLite in tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JsonType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


# ---------------------------------------------------------------------------
# TradeRecord
# ---------------------------------------------------------------------------

class TradeRecord(Base):
    """Persisted trade. Maps from :class:`auric_atx.core.models.Trade`."""

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    trade_id: Mapped[str] = mapped_column(String(128), nullable=False)
    account_id: Mapped[int] = mapped_column(Integer, nullable=False)
    symbol: Mapped[str] = mapped_column(String(32), nullable=False)
    side: Mapped[str] = mapped_column(String(8), nullable=False)
    order_type: Mapped[str] = mapped_column(String(16), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    entry_price: Mapped[float] = mapped_column(Float, nullable=False)
    exit_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    stop_loss: Mapped[float | None] = mapped_column(Float, nullable=True)
    take_profit: Mapped[float | None] = mapped_column(Float, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ingested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("source", "trade_id", name="uq_trades_source_trade_id"),
        Index("ix_trades_account_ts", "account_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<TradeRecord {self.source}/{self.trade_id} account={self.account_id} "
            f"{self.side} {self.quantity} {self.symbol}>"
        )


# ---------------------------------------------------------------------------
# EpochStateRecord
# ---------------------------------------------------------------------------

class EpochStateRecord(Base):
    """Durable epoch machine per account, guarded by ``version``."""

    __tablename__ = "atx_epoch_state"

    account_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    phase: Mapped[str] = mapped_column(String(16), nullable=False)
    state_json: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False,
    )

    def __repr__(self) -> str:
        return f"<EpochStateRecord account={self.account_id} v{self.version} {self.phase}>"


# ---------------------------------------------------------------------------
# EpochRecord
# ---------------------------------------------------------------------------

class EpochRecord(Base):
    """One confirmed epoch in the permanent log."""

    __tablename__ = "atx_epochs"

    account_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    epoch_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    provisional: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    trigger_flags: Mapped[list[str]] = mapped_column(JsonType, nullable=False)
    ended_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    average_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    payload: Mapped[dict[str, Any]] = mapped_column(JsonType, nullable=False)

    __table_args__ = (
        Index("ix_atx_epochs_account_started", "account_id", "started_at"),
    )

    def __repr__(self) -> str:
        return f"<EpochRecord account={self.account_id} epoch={self.epoch_id}>"
