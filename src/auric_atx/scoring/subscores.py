"""Subscore calculators — five bounded behavioural metrics.

Each calculator is a pure function over the trades of one window and
returns a float in ``[0, 100]`` rounded to one decimal.  Four subscores
are "good when high"; behavioural volatility is the one "bad when high"
dimension (the dashboard treats ``<= 60`` as calm).

With no trades every calculator returns ``config.neutral_score``; the
aggregator is responsible for raising ``INSUFFICIENT_DATA`` so callers
never read the neutral value as a real score.

Building blocks
---------------
``cv``          population coefficient of variation (0 for < 2 values)
``stability``   ``1 / (1 + cv)`` — 1.0 when perfectly repeatable
``dispersion``  ``cv / (1 + cv)`` — 0.0 when perfectly repeatable
"""

from __future__ import annotations

import statistics
from collections import Counter
from collections.abc import Sequence

from auric_atx.core.config import ScoringConfig
from auric_atx.core.enums import Side
from auric_atx.core.models import Subscores, Trade


# ------------------------------------------------------------------ #
# Helpers                                                              #
# ------------------------------------------------------------------ #

def clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def _finish(fraction: float) -> float:
    return round(clamp(100.0 * fraction), 1)


def cv(values: Sequence[float]) -> float:
    """Population coefficient of variation."""
    if len(values) < 2:
        return 0.0
    mean = statistics.fmean(values)
    if mean == 0:
        return 0.0
    return statistics.pstdev(values) / abs(mean)


def stability(coefficient: float) -> float:
    return 1.0 / (1.0 + coefficient)


def dispersion(coefficient: float) -> float:
    return coefficient / (1.0 + coefficient)


def _chronological(trades: Sequence[Trade]) -> list[Trade]:
    return sorted(trades, key=lambda t: (t.timestamp, t.source, t.trade_id))


def has_valid_stop(trade: Trade, max_distance_pct: float) -> bool:
    """Stop sits on the protective side of entry within the allowed distance."""
    if trade.stop_loss is None:
        return False
    if trade.side == Side.LONG and trade.stop_loss >= trade.entry_price:
        return False
    if trade.side == Side.SHORT and trade.stop_loss <= trade.entry_price:
        return False
    distance = trade.stop_distance_pct
    return distance is not None and distance <= max_distance_pct


# ------------------------------------------------------------------ #
# Calculators                                                          #
# ------------------------------------------------------------------ #

def discipline(trades: Sequence[Trade], config: ScoringConfig) -> float:
    """Adherence to the trader's own risk parameters.

    Penalises trades without a stop-loss and positions oversized relative
    to the window's median quantity.
    """
    if not trades:
        return config.neutral_score
    n = len(trades)
    stop_ratio = sum(1 for t in trades if t.stop_loss is not None) / n
    median_qty = statistics.median(t.quantity for t in trades)
    oversized = sum(
        1 for t in trades if t.quantity > config.oversize_multiple * median_qty
    ) / n
    return _finish(0.6 * stop_ratio + 0.4 * (1.0 - oversized))


def risk_integrity(trades: Sequence[Trade], config: ScoringConfig) -> float:
    """Protective-order coverage, stop sanity and sizing consistency."""
    if not trades:
        return config.neutral_score
    n = len(trades)
    protected = sum(
        1 for t in trades if t.stop_loss is not None and t.take_profit is not None
    ) / n
    valid_stops = sum(
        1 for t in trades if has_valid_stop(t, config.max_stop_distance_pct)
    ) / n
    sizing = stability(cv([t.notional for t in trades]))
    return _finish(0.4 * protected + 0.3 * valid_stops + 0.3 * sizing)


def execution_stability(trades: Sequence[Trade], config: ScoringConfig) -> float:
    """Regularity of entry timing and order-type choice."""
    if not trades:
        return config.neutral_score
    ordered = _chronological(trades)
    if len(ordered) < 2:
        return _finish(1.0)
    switches = sum(
        1 for prev, cur in zip(ordered, ordered[1:])
        if prev.order_type != cur.order_type
    ) / (len(ordered) - 1)
    intervals = [
        (cur.timestamp - prev.timestamp).total_seconds()
        for prev, cur in zip(ordered, ordered[1:])
    ]
    timing = stability(cv(intervals)) if len(intervals) >= 2 else 1.0
    return _finish(0.5 * (1.0 - switches) + 0.5 * timing)


def _activity_counts(trades: Sequence[Trade]) -> list[int]:
    """Trade counts per active day, or per active hour inside a single day."""
    by_day = Counter(t.timestamp.date() for t in trades)
    if len(by_day) >= 2:
        return list(by_day.values())
    by_hour = Counter(t.timestamp.replace(minute=0, second=0, microsecond=0) for t in trades)
    return list(by_hour.values())


def behavioural_volatility(trades: Sequence[Trade], config: ScoringConfig) -> float:
    """Dispersion of trading frequency and position sizing. Lower is calmer."""
    if not trades:
        return config.neutral_score
    frequency = dispersion(cv([float(c) for c in _activity_counts(trades)]))
    sizing = dispersion(cv([t.quantity for t in trades]))
    return _finish(0.5 * frequency + 0.5 * sizing)


def consistency(trades: Sequence[Trade], config: ScoringConfig) -> float:
    """How repeatable sizing, stop placement and order type are across trades."""
    if not trades:
        return config.neutral_score
    qty_stability = stability(cv([t.quantity for t in trades]))
    distances = [
        d for d in (t.stop_distance_pct for t in trades) if d is not None
    ]
    # Fewer than two stops gives nothing to compare
    stop_stability = stability(cv(distances)) if len(distances) >= 2 else 0.5
    dominant = Counter(t.order_type for t in trades).most_common(1)[0][1] / len(trades)
    return _finish(0.35 * qty_stability + 0.35 * stop_stability + 0.30 * dominant)


def compute_subscores(trades: Sequence[Trade], config: ScoringConfig) -> Subscores:
    """Run all five calculators over the same trade set."""
    return Subscores(
        discipline=discipline(trades, config),
        risk_integrity=risk_integrity(trades, config),
        execution_stability=execution_stability(trades, config),
        behavioural_volatility=behavioural_volatility(trades, config),
        consistency=consistency(trades, config),
    )
