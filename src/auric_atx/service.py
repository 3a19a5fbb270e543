"""ATX service — orchestrates stores, scoring, epochs, maturity and trends.

Reads (``get_account_atx``, ``get_trend``, ``get_day``) are lock-free and
never modify state.  Writes for one account are serialized by a
per-account :class:`asyncio.Lock` and saved with an optimistic version
check; a conflicting writer (another process on the same database) is
retried from a fresh load up to ``storage.max_conflict_retries`` times.

Usage::

    settings = load_settings("config/atx.toml")
    service = await build_service(settings)
    await service.ingest_trades(42, trades)
    report = await service.get_account_atx(42, Timeframe.EPOCH)
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from collections.abc import Awaitable, Callable, Sequence
from datetime import date, timedelta

from auric_atx.analytics.trend import TrendBuilder
from auric_atx.core.clock import IClock, WallClock
from auric_atx.core.config import Settings
from auric_atx.core.enums import EpochEvent, Interval, StorageBackend, Timeframe
from auric_atx.core.errors import (
    BaselineLockError,
    ConcurrencyError,
    EpochStateConflict,
    IngestionLimitError,
    ValidationError,
)
from auric_atx.core.interfaces import IEpochStateStore, ITradeStore
from auric_atx.core.models import (
    AccountAtxReport,
    Baseline,
    DayReport,
    Epoch,
    IngestResult,
    Momentum,
    ObservationMaturity,
    ObservationSummary,
    Trade,
    TrendReport,
)
from auric_atx.core.windows import day_start, day_window, timeframe_window
from auric_atx.epochs.detector import EpochDetector
from auric_atx.epochs.state_machine import EpochState, reset_momentum
from auric_atx.governance.baseline import can_lock, lock_baseline
from auric_atx.governance.maturity import classify, summarize
from auric_atx.narration.commentary import build_commentary
from auric_atx.observability import metrics
from auric_atx.scoring.aggregator import compute_atx
from auric_atx.storage.memory import InMemoryEpochStateStore, InMemoryTradeStore

logger = logging.getLogger(__name__)

# A mutation returns the new state plus the events it produced, or None
# when nothing needs saving.
Mutation = Callable[[EpochState], Awaitable[tuple[EpochState, list[EpochEvent]] | None]]


class AtxService:
    """Account-level ATX operations over pluggable stores."""

    def __init__(
        self,
        settings: Settings,
        trade_store: ITradeStore,
        state_store: IEpochStateStore,
        clock: IClock | None = None,
    ) -> None:
        self._settings = settings
        self._trades = trade_store
        self._states = state_store
        self._clock: IClock = clock or WallClock()
        self._detector = EpochDetector(settings.scoring, settings.epochs)
        self._trend = TrendBuilder(settings.scoring, settings.trend)
        # Entries live only while some coroutine holds or awaits the lock
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._close_hooks: list[Callable[[], Awaitable[None]]] = []

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def clock(self) -> IClock:
        return self._clock

    def add_close_hook(self, hook: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function run by :meth:`close`, last added first."""
        self._close_hooks.append(hook)

    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        hooks, self._close_hooks = self._close_hooks, []
        for hook in reversed(hooks):
            await hook()
        if hooks:
            logger.info("ATX service closed")

    def _lock_for(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    async def load_state(self, account_id: int) -> EpochState:
        state = await self._states.load(account_id)
        return state if state is not None else EpochState(account_id=account_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def _mutate(
        self, account_id: int, mutation: Mutation,
    ) -> tuple[EpochState, list[EpochEvent]]:
        """Load, apply ``mutation`` and save with conflict retries."""
        retries = self._settings.storage.max_conflict_retries
        async with self._lock_for(account_id):
            for attempt in range(retries + 1):
                state = await self.load_state(account_id)
                outcome = await mutation(state)
                if outcome is None:
                    return state, []
                new_state, events = outcome
                try:
                    saved = await self._states.save(new_state, state.version)
                except EpochStateConflict as exc:
                    metrics.record_state_conflict()
                    logger.warning(
                        "Epoch state conflict (attempt %d/%d): %s",
                        attempt + 1, retries + 1, exc,
                    )
                    continue
                for event in events:
                    metrics.record_epoch_event(event.value)
                return saved, events
        raise ConcurrencyError(
            f"Could not save epoch state for account {account_id} "
            f"after {retries + 1} attempts"
        )

    async def ingest_trades(self, account_id: int, trades: Sequence[Trade]) -> IngestResult:
        """Store new trades and advance the epoch machine.

        Raises:
            IngestionLimitError: More than ``max_trades_per_request`` trades.
            ValidationError: A trade belongs to a different account.
        """
        limit = self._settings.storage.max_trades_per_request
        if len(trades) > limit:
            raise IngestionLimitError(
                f"At most {limit} trades per request, got {len(trades)}"
            )
        foreign = sorted({t.account_id for t in trades if t.account_id != account_id})
        if foreign:
            raise ValidationError(
                f"Trades for accounts {foreign} submitted to account {account_id}"
            )

        ingested, duplicates = await self._trades.add_trades(trades)
        metrics.record_ingestion(ingested, duplicates)
        logger.info(
            "Ingested trades: account=%d ingested=%d duplicates=%d",
            account_id, ingested, duplicates,
        )
        events = await self.refresh_epochs(account_id) if ingested else []
        return IngestResult(
            account_id=account_id,
            ingested=ingested,
            duplicates=duplicates,
            events=events,
        )

    async def refresh_epochs(self, account_id: int) -> list[EpochEvent]:
        """Observe every complete day not yet fed to the epoch machine."""
        now = self._clock.now()
        cutoff = day_start(now)
        auto_lock = self._settings.maturity.auto_lock_baseline

        async def mutation(state: EpochState):
            start = None
            if state.last_observed_at is not None:
                start = day_start(state.last_observed_at) + timedelta(days=1)
            pending = await self._trades.list_trades(account_id, start=start, end=cutoff)
            result = self._detector.observe(state, pending, until=now)
            new_state = result.state
            changed = result.changed

            if auto_lock and not new_state.baseline_locked:
                maturity = await self._maturity(account_id)
                epochs = new_state.epoch_log()
                if can_lock(maturity, epochs):
                    baseline = lock_baseline(
                        None, maturity, epochs, account_id=account_id, now=now,
                    )
                    new_state = new_state.model_copy(update={"baseline": baseline})
                    metrics.record_baseline_lock("auto")
                    changed = True

            if not changed:
                return None
            return new_state, result.events

        _, events = await self._mutate(account_id, mutation)
        return events

    async def lock_baseline(self, account_id: int, epoch_id: int | None = None) -> Baseline:
        """Lock the account baseline onto a confirmed epoch.

        Raises:
            BaselineLockError: If the account is not eligible.
        """
        now = self._clock.now()
        maturity = await self._maturity(account_id)

        async def mutation(state: EpochState):
            baseline = lock_baseline(
                state.baseline, maturity, state.epoch_log(),
                account_id=account_id, now=now, epoch_id=epoch_id,
            )
            if state.baseline is not None and baseline == state.baseline:
                return None
            metrics.record_baseline_lock("manual")
            return state.model_copy(update={"baseline": baseline}), []

        saved, _ = await self._mutate(account_id, mutation)
        if saved.baseline is None:
            raise BaselineLockError(
                f"Baseline for account {account_id} was not persisted"
            )
        return saved.baseline

    async def reset_momentum(self, account_id: int) -> Momentum:
        now = self._clock.now()

        async def mutation(state: EpochState):
            return reset_momentum(state, now), []

        saved, _ = await self._mutate(account_id, mutation)
        logger.info("Momentum reset: account=%d", account_id)
        return saved.momentum

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_momentum(self, account_id: int) -> Momentum:
        return (await self.load_state(account_id)).momentum

    async def list_epochs(self, account_id: int) -> list[Epoch]:
        return (await self.load_state(account_id)).epoch_log()

    async def list_accounts(self) -> list[int]:
        return await self._trades.account_ids()

    async def observation(self, account_id: int) -> ObservationSummary:
        return summarize(await self._trades.list_trades(account_id))

    async def _maturity(self, account_id: int) -> ObservationMaturity:
        summary = await self.observation(account_id)
        return classify(summary.total_trades, summary.active_days, self._settings.maturity)

    async def get_account_atx(
        self,
        account_id: int,
        timeframe: Timeframe = Timeframe.EPOCH,
        sources: Sequence[str] | None = None,
    ) -> AccountAtxReport:
        started = time.perf_counter()
        now = self._clock.now()
        state = await self.load_state(account_id)
        trend_cfg = self._settings.trend
        window = timeframe_window(
            timeframe,
            now,
            epoch_start=state.open_epoch.started_at if state.open_epoch else None,
            weekly_days=trend_cfg.weekly_lookback_days,
            monthly_days=trend_cfg.account_lookback_days,
        )
        trades = await self._trades.list_trades(
            account_id, start=window.start, end=window.end, sources=sources,
        )
        snapshot = compute_atx(trades, window, self._settings.scoring)
        summary = await self.observation(account_id)
        maturity = classify(summary.total_trades, summary.active_days, self._settings.maturity)

        metrics.record_computation("account", snapshot.score if trades else None)
        metrics.record_compute_latency("account", time.perf_counter() - started)
        return AccountAtxReport(
            account_id=account_id,
            timeframe=timeframe,
            sources=list(sources or []),
            trade_count=len(trades),
            window=window,
            epoch=state.open_epoch,
            atx=snapshot,
            commentary=build_commentary(snapshot, len(trades)),
            observation=summary,
            maturity=maturity,
            baseline_locked=state.baseline_locked,
        )

    async def get_trend(
        self,
        account_id: int,
        interval: Interval = Interval.DAILY,
        limit: int | None = None,
        sources: Sequence[str] | None = None,
    ) -> TrendReport:
        """Bucketed ATX series with digest and the permanent epoch log.

        Raises:
            InvalidWindowError: If ``limit`` is out of range.
        """
        started = time.perf_counter()
        now = self._clock.now()
        limit = self._trend.resolve_limit(limit)
        trades = await self._trades.list_trades(account_id, sources=sources)
        report = self._trend.build(
            account_id, trades, interval, now, limit=limit, sources=sources,
        )
        state = await self.load_state(account_id)
        summary = await self.observation(account_id)
        metrics.record_computation("trend")
        metrics.record_compute_latency("trend", time.perf_counter() - started)
        return report.model_copy(update={
            "epochs": state.epoch_log(),
            "observation": summary,
            "maturity": classify(
                summary.total_trades, summary.active_days, self._settings.maturity,
            ),
            "baseline_locked": state.baseline_locked,
            "baseline": state.baseline,
        })

    async def get_day(
        self,
        account_id: int,
        day: date,
        sources: Sequence[str] | None = None,
    ) -> DayReport:
        window = day_window(day)
        trades = await self._trades.list_trades(
            account_id, start=window.start, end=window.end, sources=sources,
        )
        if not trades:
            return DayReport(
                account_id=account_id, date=day, sources=list(sources or []), trade_count=0,
            )
        snapshot = compute_atx(trades, window, self._settings.scoring)
        metrics.record_computation("day", snapshot.score)
        return DayReport(
            account_id=account_id,
            date=day,
            sources=list(sources or []),
            trade_count=len(trades),
            atx=snapshot,
            commentary=build_commentary(snapshot, len(trades)),
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

async def build_service(settings: Settings, clock: IClock | None = None) -> AtxService:
    """Create a service with the stores selected by ``settings.storage``."""
    storage = settings.storage
    if storage.backend == StorageBackend.SQL:
        from auric_atx.storage.sql import (
            SqlEpochStateStore,
            SqlTradeStore,
            create_all,
            create_engine,
            make_session_factory,
        )

        engine = create_engine(storage.url, echo=storage.echo)
        close_hooks = [engine.dispose]
        if storage.create_tables:
            await create_all(engine)
        factory = make_session_factory(engine)
        trade_store: ITradeStore = SqlTradeStore(factory)
        state_store: IEpochStateStore = SqlEpochStateStore(factory)
    else:
        trade_store = InMemoryTradeStore()
        state_store = InMemoryEpochStateStore()
        close_hooks = []

    service = AtxService(settings, trade_store, state_store, clock)
    for hook in close_hooks:
        service.add_close_hook(hook)
    metrics.set_system_info(_version(), storage.backend.value)
    logger.info("ATX service ready (storage=%s)", storage.backend.value)
    return service


def _version() -> str:
    from auric_atx import __version__

    return __version__
