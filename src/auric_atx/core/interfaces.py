"""Protocol interfaces for the ATX engine.

Storage boundaries are defined here as Protocol classes so the in-memory
and SQL backends can be swapped without changing the service.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .models import Trade

if TYPE_CHECKING:
    from auric_atx.epochs.state_machine import EpochState


@runtime_checkable
class ITradeStore(Protocol):
    """Append-only trade storage keyed by (source, trade_id)."""

    async def add_trades(self, trades: Sequence[Trade]) -> tuple[int, int]:
        """Store trades; return (ingested, duplicates)."""
        ...

    async def list_trades(
        self,
        account_id: int,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        sources: Iterable[str] | None = None,
    ) -> list[Trade]:
        """Trades for an account in ``[start, end)``, oldest first."""
        ...

    async def account_ids(self) -> list[int]: ...


@runtime_checkable
class IEpochStateStore(Protocol):
    """Durable per-account epoch state with optimistic versioning."""

    async def load(self, account_id: int) -> EpochState | None: ...

    async def save(self, state: EpochState, expected_version: int) -> EpochState:
        """Persist ``state`` if the stored version equals ``expected_version``.

        Returns the saved state with its version bumped.

        Raises:
            EpochStateConflict: If another writer got there first.
        """
        ...
