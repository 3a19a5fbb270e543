"""Repository pattern for async database operations.

Each repository encapsulates query logic for a single aggregate root and
works on an :class:`AsyncSession` supplied by the caller.  The
``Sql*Store`` classes at the bottom implement the storage protocols from
:mod:`auric_atx.core.interfaces` on top of the repositories, opening one
session per call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from auric_atx.core.enums import OrderType, Side
from auric_atx.core.errors import EpochStateConflict, StorageError
from auric_atx.core.models import Epoch, Trade, ensure_utc
from auric_atx.core.sources import source_matches
from auric_atx.epochs.state_machine import EpochState

from .connection import session_scope
from .models import EpochRecord, EpochStateRecord, TradeRecord

logger = logging.getLogger(__name__)

# Rows per INSERT statement; keeps SQLite under its bound-parameter limit
_INSERT_CHUNK = 500


def _dialect_insert(dialect: str):
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise StorageError(f"Unsupported database dialect for trade ingestion: {dialect}")
    return insert


# ---------------------------------------------------------------------------
# Conversion helpers
# ---------------------------------------------------------------------------

def _trade_values(trade: Trade) -> dict:
    return dict(
        source=trade.source,
        trade_id=trade.trade_id,
        account_id=trade.account_id,
        symbol=trade.symbol,
        side=trade.side.value,
        order_type=trade.order_type.value,
        quantity=trade.quantity,
        entry_price=trade.entry_price,
        exit_price=trade.exit_price,
        stop_loss=trade.stop_loss,
        take_profit=trade.take_profit,
        timestamp=trade.timestamp,
    )


def _record_to_trade(record: TradeRecord) -> Trade:
    # SQLite hands back naive datetimes; everything stored is UTC
    return Trade(
        source=record.source,
        trade_id=record.trade_id,
        account_id=record.account_id,
        symbol=record.symbol,
        side=Side(record.side),
        order_type=OrderType(record.order_type),
        quantity=record.quantity,
        entry_price=record.entry_price,
        exit_price=record.exit_price,
        stop_loss=record.stop_loss,
        take_profit=record.take_profit,
        timestamp=ensure_utc(record.timestamp),
    )


def _epoch_values(epoch: Epoch) -> dict:
    return {
        "started_at": epoch.started_at,
        "ended_at": epoch.ended_at,
        "provisional": epoch.provisional,
        "trigger_flags": list(epoch.trigger_flags),
        "ended_reason": epoch.ended_reason,
        "average_score": epoch.average_score,
        "payload": epoch.model_dump(mode="json"),
    }


# ---------------------------------------------------------------------------
# TradeRepo
# ---------------------------------------------------------------------------

class TradeRepo:
    """Repository for :class:`TradeRecord` persistence and retrieval."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def insert_new(self, trades: Sequence[Trade]) -> tuple[int, int]:
        """Insert trades not seen before, skipping stored keys atomically.

        Uses ``INSERT ... ON CONFLICT DO NOTHING`` on ``(source, trade_id)``
        so concurrent uploads of the same batch count the losers' rows as
        duplicates instead of failing.

        Returns:
            ``(ingested, duplicates)``; duplicates include repeats within
            the batch itself.

        Raises:
            StorageError: If the database dialect has no conflict-ignoring insert.
        """
        unique: dict[tuple[str, str], Trade] = {}
        for trade in trades:
            unique.setdefault(trade.key, trade)

        insert = _dialect_insert(self._session.get_bind().dialect.name)
        ingested = 0
        batch = list(unique.values())
        for i in range(0, len(batch), _INSERT_CHUNK):
            stmt = (
                insert(TradeRecord)
                .values([_trade_values(t) for t in batch[i:i + _INSERT_CHUNK]])
                .on_conflict_do_nothing(index_elements=["source", "trade_id"])
                .returning(TradeRecord.id)
            )
            result = await self._session.execute(stmt)
            ingested += len(result.all())

        duplicates = len(trades) - ingested
        logger.debug("Inserted %d trades (%d duplicates)", ingested, duplicates)
        return ingested, duplicates

    async def list_for_account(
        self,
        account_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Trade]:
        stmt = (
            select(TradeRecord)
            .where(TradeRecord.account_id == account_id)
            .order_by(TradeRecord.timestamp, TradeRecord.source, TradeRecord.trade_id)
        )
        if start is not None:
            stmt = stmt.where(TradeRecord.timestamp >= start)
        if end is not None:
            stmt = stmt.where(TradeRecord.timestamp < end)
        result = await self._session.execute(stmt)
        return [_record_to_trade(r) for r in result.scalars().all()]

    async def account_ids(self) -> list[int]:
        stmt = select(TradeRecord.account_id).distinct().order_by(TradeRecord.account_id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# EpochStateRepo
# ---------------------------------------------------------------------------

class EpochStateRepo:
    """Repository for the versioned epoch state row and the epoch log."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, account_id: int) -> EpochState | None:
        record = await self._session.get(EpochStateRecord, account_id)
        if record is None:
            return None
        state = EpochState.model_validate(record.state_json)
        return state.model_copy(update={"version": record.version})

    async def current_version(self, account_id: int) -> int | None:
        stmt = select(EpochStateRecord.version).where(
            EpochStateRecord.account_id == account_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, state: EpochState, expected_version: int) -> EpochState:
        """Compare-and-swap the state row, then upsert the epoch log.

        Raises:
            EpochStateConflict: If the stored version differs.
        """
        saved = state.model_copy(update={"version": expected_version + 1})
        payload = saved.model_dump(mode="json")

        if expected_version == 0:
            if await self.current_version(state.account_id) is not None:
                raise EpochStateConflict(
                    state.account_id, expected_version,
                    await self.current_version(state.account_id),
                )
            self._session.add(EpochStateRecord(
                account_id=state.account_id,
                version=saved.version,
                phase=saved.phase.value,
                state_json=payload,
            ))
            try:
                await self._session.flush()
            except IntegrityError as exc:
                raise EpochStateConflict(state.account_id, expected_version, None) from exc
        else:
            stmt = (
                update(EpochStateRecord)
                .where(
                    EpochStateRecord.account_id == state.account_id,
                    EpochStateRecord.version == expected_version,
                )
                .values(version=saved.version, phase=saved.phase.value, state_json=payload)
            )
            result = await self._session.execute(stmt)
            if result.rowcount != 1:
                raise EpochStateConflict(
                    state.account_id, expected_version,
                    await self.current_version(state.account_id),
                )

        for epoch in saved.epoch_log():
            await self.upsert_epoch(epoch)
        await self._session.flush()
        return saved

    async def upsert_epoch(self, epoch: Epoch) -> None:
        record = await self._session.get(EpochRecord, (epoch.account_id, epoch.epoch_id))
        values = _epoch_values(epoch)
        if record is None:
            self._session.add(EpochRecord(
                account_id=epoch.account_id, epoch_id=epoch.epoch_id, **values,
            ))
            return
        for key, value in values.items():
            setattr(record, key, value)

    async def list_epochs(self, account_id: int) -> list[Epoch]:
        stmt = (
            select(EpochRecord)
            .where(EpochRecord.account_id == account_id)
            .order_by(EpochRecord.epoch_id)
        )
        result = await self._session.execute(stmt)
        return [Epoch.model_validate(r.payload) for r in result.scalars().all()]


# ---------------------------------------------------------------------------
# Protocol implementations
# ---------------------------------------------------------------------------

class SqlTradeStore:
    """:class:`~auric_atx.core.interfaces.ITradeStore` over SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def add_trades(self, trades: Sequence[Trade]) -> tuple[int, int]:
        async with session_scope(self._factory) as session:
            return await TradeRepo(session).insert_new(trades)

    async def list_trades(
        self,
        account_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        sources: Iterable[str] | None = None,
    ) -> list[Trade]:
        async with session_scope(self._factory) as session:
            trades = await TradeRepo(session).list_for_account(
                account_id, start=start, end=end,
            )
        filters = list(sources) if sources else None
        return [t for t in trades if source_matches(t.source, filters)]

    async def account_ids(self) -> list[int]:
        async with session_scope(self._factory) as session:
            return await TradeRepo(session).account_ids()


class SqlEpochStateStore:
    """:class:`~auric_atx.core.interfaces.IEpochStateStore` over SQLAlchemy."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = session_factory

    async def load(self, account_id: int) -> EpochState | None:
        async with session_scope(self._factory) as session:
            return await EpochStateRepo(session).get(account_id)

    async def save(self, state: EpochState, expected_version: int) -> EpochState:
        async with session_scope(self._factory) as session:
            return await EpochStateRepo(session).save(state, expected_version)

    async def list_epochs(self, account_id: int) -> list[Epoch]:
        async with session_scope(self._factory) as session:
            return await EpochStateRepo(session).list_epochs(account_id)
