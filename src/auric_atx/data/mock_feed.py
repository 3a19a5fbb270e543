"""Deterministic mock trade feed.

Generates a plausible trading history tagged with source ``mock`` for
demos and local development.  A seeded :class:`random.Random` keeps the
output identical for the same arguments.  The middle third of the range
is a "loose" regime (missing stops, erratic sizing) so that a fresh
account shows at least one behavioural epoch.

Usage::

    trades = generate_mock_trades(42, days=30, end=clock.now(), seed=7)
"""

from __future__ import annotations

import random
from datetime import datetime, timedelta

from auric_atx.core.enums import OrderType, Side
from auric_atx.core.models import Trade
from auric_atx.core.sources import MOCK_SOURCE
from auric_atx.core.windows import day_start

_SYMBOLS = ("EURUSD", "GBPUSD", "XAUUSD", "US500")
_BASE_PRICE = {"EURUSD": 1.08, "GBPUSD": 1.27, "XAUUSD": 2300.0, "US500": 5200.0}


def _is_loose_day(index: int, days: int) -> bool:
    return days >= 9 and days // 3 <= index < 2 * days // 3


def generate_mock_trades(
    account_id: int,
    *,
    days: int = 30,
    end: datetime,
    seed: int = 0,
) -> list[Trade]:
    """Trades for the ``days`` complete UTC days before ``end``."""
    rng = random.Random(f"{account_id}:{seed}")
    first_day = day_start(end) - timedelta(days=days)
    trades: list[Trade] = []

    for index in range(days):
        day = first_day + timedelta(days=index)
        if day.weekday() >= 5:
            continue
        loose = _is_loose_day(index, days)
        count = rng.randint(6, 14) if loose else rng.randint(3, 6)
        hour = 8.0
        for n in range(count):
            hour += rng.uniform(0.3, 1.5) if loose else rng.uniform(1.0, 1.5)
            timestamp = day + timedelta(hours=min(hour, 23.9))
            symbol = rng.choice(_SYMBOLS)
            side = rng.choice((Side.LONG, Side.SHORT))
            entry = round(_BASE_PRICE[symbol] * rng.uniform(0.98, 1.02), 5)
            direction = 1 if side == Side.LONG else -1

            if loose:
                quantity = round(rng.choice((1.0, 1.0, 3.0, 5.0)) * rng.uniform(0.8, 1.2), 2)
                has_stop = rng.random() < 0.3
                stop_pct = rng.uniform(0.01, 0.09)
                order_type = rng.choice(list(OrderType))
            else:
                quantity = round(rng.uniform(0.9, 1.1), 2)
                has_stop = True
                stop_pct = rng.uniform(0.008, 0.012)
                order_type = OrderType.LIMIT

            stop = round(entry * (1 - direction * stop_pct), 5) if has_stop else None
            take_profit = round(entry * (1 + direction * 2 * stop_pct), 5) if has_stop else None
            exit_price = round(entry * (1 + direction * rng.uniform(-stop_pct, 2 * stop_pct)), 5)

            trades.append(Trade(
                source=MOCK_SOURCE,
                trade_id=f"mock-{account_id}-{seed}-{day:%Y%m%d}-{n:02d}",
                account_id=account_id,
                symbol=symbol,
                side=side,
                quantity=quantity,
                timestamp=timestamp,
                entry_price=entry,
                exit_price=exit_price,
                stop_loss=stop,
                take_profit=take_profit,
                order_type=order_type,
            ))
    return trades
