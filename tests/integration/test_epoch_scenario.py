"""Day-by-day replay of a disruption and recovery through the service.

Trades arrive each morning for the previous day, as a broker sync would
deliver them.  Runs against both storage backends.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auric_atx.core.clock import SimClock
from auric_atx.core.config import Settings
from auric_atx.core.enums import EpochEvent, EpochPhase
from auric_atx.service import AtxService, build_service
from auric_atx.storage.memory import InMemoryEpochStateStore, InMemoryTradeStore


async def _replay(service, clock, day_trades, scenario_day, first, last):
    """Ingest days first..last, each on the following morning."""
    timeline = {}
    for n in range(first, last + 1):
        clock.set_time(scenario_day(n + 1) + timedelta(hours=6))
        result = await service.ingest_trades(
            1, day_trades(scenario_day(n), protected=not (5 <= n <= 19)),
        )
        timeline[n] = result.events
    return timeline


async def _check_scenario(service, clock, day_trades, scenario_day):
    timeline = await _replay(service, clock, day_trades, scenario_day, 1, 4)
    assert all(events == [] for events in timeline.values())

    timeline.update(await _replay(service, clock, day_trades, scenario_day, 5, 5))
    assert timeline[5] == [EpochEvent.OPENED]
    state = await service.load_state(1)
    assert state.phase == EpochPhase.PROVISIONAL
    # Provisional epochs are visible on the account but not in the log
    assert (await service.get_account_atx(1)).epoch.provisional is True
    assert (await service.get_trend(1)).epochs == []

    timeline.update(await _replay(service, clock, day_trades, scenario_day, 6, 7))
    assert timeline[6] == [EpochEvent.EXTENDED]
    assert timeline[7] == [EpochEvent.CONFIRMED]
    [epoch] = (await service.get_trend(1)).epochs
    assert epoch.provisional is False
    assert epoch.ended_at is None

    timeline.update(await _replay(service, clock, day_trades, scenario_day, 8, 25))
    assert timeline[22] == [EpochEvent.CLOSED]
    assert all(timeline[n] == [EpochEvent.EXTENDED] for n in range(8, 22))
    assert all(timeline[n] == [] for n in range(23, 26))

    report = await service.get_trend(1, limit=30)
    [epoch] = report.epochs
    assert epoch.started_at == scenario_day(5)
    assert epoch.ended_at == scenario_day(23)
    assert epoch.trigger_flags == ["RISK_INTEGRITY_LOW"]
    assert epoch.ended_reason == "Risk integrity breakdown resolved after 3 clear observations"
    assert epoch.observation_count == 18
    assert epoch.average_score == 70.0
    assert report.baseline is not None
    assert report.baseline.epoch_id == 1
    assert report.maturity.band.value == "established"

    momentum = await service.get_momentum(1)
    assert (momentum.streak, momentum.best_streak) == (6, 6)


@pytest.mark.integration
class TestEpochScenario:
    @pytest.mark.asyncio
    async def test_in_memory(self, day_trades, scenario_day):
        clock = SimClock(scenario_day(1))
        service = AtxService(Settings(), InMemoryTradeStore(), InMemoryEpochStateStore(), clock)
        await _check_scenario(service, clock, day_trades, scenario_day)

    @pytest.mark.asyncio
    async def test_sql(self, tmp_path, day_trades, scenario_day):
        clock = SimClock(scenario_day(1))
        settings = Settings(storage={
            "backend": "sql", "url": f"sqlite+aiosqlite:///{tmp_path / 'atx.db'}",
        })
        service = await build_service(settings, clock)
        await _check_scenario(service, clock, day_trades, scenario_day)

        # A fresh service over the same database sees the same history
        reopened = await build_service(settings, clock)
        [epoch] = await reopened.list_epochs(1)
        assert epoch.ended_at == scenario_day(23)
        assert (await reopened.get_momentum(1)).streak == 6

    @pytest.mark.asyncio
    async def test_late_trades_do_not_rewrite_history(self, day_trades, scenario_day):
        clock = SimClock(scenario_day(1))
        service = AtxService(Settings(), InMemoryTradeStore(), InMemoryEpochStateStore(), clock)
        await _replay(service, clock, day_trades, scenario_day, 1, 6)
        before = await service.load_state(1)

        # Clean trades for an already observed disrupted day
        late = day_trades(scenario_day(5), protected=True, source="ctrader:9")
        result = await service.ingest_trades(1, late)
        assert result.ingested == 4
        assert result.events == []
        after = await service.load_state(1)
        assert after.open_epoch == before.open_epoch
        assert after.last_observed_at == before.last_observed_at
