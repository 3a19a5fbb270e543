"""Shared fixtures for the auric-atx test suite."""

from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone

import pytest

from auric_atx.core.clock import SimClock
from auric_atx.core.config import EpochConfig, ScoringConfig, Settings
from auric_atx.core.enums import OrderType, Side
from auric_atx.core.models import Trade
from auric_atx.service import AtxService
from auric_atx.storage.memory import InMemoryEpochStateStore, InMemoryTradeStore

# A Monday, so weekly buckets line up with day offsets
BASE = datetime(2024, 3, 4, tzinfo=timezone.utc)


def day(n: int) -> datetime:
    """Midnight UTC of scenario day ``n`` (day 1 is BASE)."""
    return BASE + timedelta(days=n - 1)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

@pytest.fixture
def scoring_config() -> ScoringConfig:
    return ScoringConfig()


@pytest.fixture
def epoch_config() -> EpochConfig:
    return EpochConfig(confirm_after=3, recovery_window=3)


@pytest.fixture
def settings() -> Settings:
    return Settings()


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

@pytest.fixture
def make_trade():
    """Factory for a protected 1-lot long limit trade; override any field."""
    counter = itertools.count(1)

    def _make(**overrides) -> Trade:
        n = next(counter)
        fields = dict(
            source="mock",
            trade_id=f"t{n}",
            account_id=1,
            symbol="EURUSD",
            side=Side.LONG,
            quantity=1.0,
            timestamp=BASE + timedelta(hours=9),
            entry_price=100.0,
            stop_loss=99.0,
            take_profit=102.0,
            order_type=OrderType.LIMIT,
        )
        fields.update(overrides)
        return Trade(**fields)

    return _make


@pytest.fixture
def day_trades(make_trade):
    """Four evenly spaced trades on one day.

    ``protected=True`` scores 100 on every subscore.  ``protected=False``
    strips stops and targets: discipline 40, risk integrity 30 (flagged),
    execution 100, volatility 0, consistency 82.5, aggregate 64.0.
    """

    def _day(start: datetime, *, protected: bool = True, account_id: int = 1,
             source: str = "mock") -> list[Trade]:
        return [
            make_trade(
                account_id=account_id,
                source=source,
                trade_id=f"{source}-{account_id}-{start:%Y%m%d}-{i}",
                timestamp=start + timedelta(hours=9 + 2 * i),
                stop_loss=99.0 if protected else None,
                take_profit=102.0 if protected else None,
            )
            for i in range(4)
        ]

    return _day


@pytest.fixture
def scenario_trades(day_trades):
    """25 days: 1-4 clean, 5-19 unprotected, 20-25 clean."""
    trades: list[Trade] = []
    for n in range(1, 26):
        trades.extend(day_trades(day(n), protected=not (5 <= n <= 19)))
    return trades


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

@pytest.fixture
def sim_clock() -> SimClock:
    return SimClock(BASE)


@pytest.fixture
def service(settings, sim_clock) -> AtxService:
    return AtxService(settings, InMemoryTradeStore(), InMemoryEpochStateStore(), sim_clock)


@pytest.fixture
def scenario_day():
    return day
