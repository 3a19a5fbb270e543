"""In-memory trade and epoch-state stores.

Default backend for development and tests.  Both stores hand out copies
so callers can never mutate stored state behind the version check.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime

from auric_atx.core.errors import EpochStateConflict
from auric_atx.core.models import Trade
from auric_atx.core.sources import source_matches
from auric_atx.epochs.state_machine import EpochState

logger = logging.getLogger(__name__)


class InMemoryTradeStore:
    """Append-only trade store keyed by (source, trade_id)."""

    def __init__(self) -> None:
        self._trades: dict[tuple[str, str], Trade] = {}

    async def add_trades(self, trades: Sequence[Trade]) -> tuple[int, int]:
        ingested = duplicates = 0
        for trade in trades:
            if trade.key in self._trades:
                duplicates += 1
                continue
            self._trades[trade.key] = trade
            ingested += 1
        logger.debug("Stored trades: ingested=%d duplicates=%d", ingested, duplicates)
        return ingested, duplicates

    async def list_trades(
        self,
        account_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        sources: Iterable[str] | None = None,
    ) -> list[Trade]:
        filters = list(sources) if sources else None
        selected = [
            t for t in self._trades.values()
            if t.account_id == account_id
            and (start is None or t.timestamp >= start)
            and (end is None or t.timestamp < end)
            and source_matches(t.source, filters)
        ]
        selected.sort(key=lambda t: (t.timestamp, t.source, t.trade_id))
        return selected

    async def account_ids(self) -> list[int]:
        return sorted({t.account_id for t in self._trades.values()})

    def __len__(self) -> int:
        return len(self._trades)


class InMemoryEpochStateStore:
    """Epoch state keyed by account with optimistic versioning."""

    def __init__(self) -> None:
        self._states: dict[int, EpochState] = {}

    async def load(self, account_id: int) -> EpochState | None:
        state = self._states.get(account_id)
        return state.model_copy(deep=True) if state is not None else None

    async def save(self, state: EpochState, expected_version: int) -> EpochState:
        current = self._states.get(state.account_id)
        actual = current.version if current is not None else 0
        if actual != expected_version:
            raise EpochStateConflict(state.account_id, expected_version, actual)
        saved = state.model_copy(update={"version": expected_version + 1}, deep=True)
        self._states[state.account_id] = saved
        return saved.model_copy(deep=True)
