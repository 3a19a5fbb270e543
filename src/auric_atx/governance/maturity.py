"""Observation maturity — how much history backs an account's signal.

Three ordered bands:

- **initial**: too little history to trust any signal.
- **developing**: enough for a preliminary trend, not for a baseline.
- **established**: sufficient for locking a baseline and downstream gates.

Trades and active days are classified independently and the account
gets the lower of the two bands, so many trades crammed into a few days
do not count as established.
"""

from __future__ import annotations

from collections.abc import Sequence

from auric_atx.core.config import MaturityConfig
from auric_atx.core.enums import MaturityBand
from auric_atx.core.models import ObservationMaturity, ObservationSummary, Trade

_LABELS: dict[MaturityBand, str] = {
    MaturityBand.INITIAL: "Initial",
    MaturityBand.DEVELOPING: "Developing",
    MaturityBand.ESTABLISHED: "Established",
}

_MEMOS: dict[MaturityBand, str] = {
    MaturityBand.INITIAL: (
        "Early observation. Too little history to interpret behaviour with confidence."
    ),
    MaturityBand.DEVELOPING: (
        "Patterns are starting to form. Trends are preliminary and the baseline is still forming."
    ),
    MaturityBand.ESTABLISHED: (
        "Enough history across time and conditions for a stable baseline comparison."
    ),
}


def _band_for(value: int, developing_min: int, established_min: int) -> MaturityBand:
    if value >= established_min:
        return MaturityBand.ESTABLISHED
    if value >= developing_min:
        return MaturityBand.DEVELOPING
    return MaturityBand.INITIAL


def classify(
    total_trades: int,
    active_days: int,
    config: MaturityConfig,
) -> ObservationMaturity:
    """Classify account history into a maturity band."""
    by_trades = _band_for(
        total_trades, config.developing_min_trades, config.established_min_trades,
    )
    by_days = _band_for(
        active_days, config.developing_min_days, config.established_min_days,
    )
    band = min(by_trades, by_days, key=lambda b: b.rank)
    return ObservationMaturity(band=band, label=_LABELS[band], memo=_MEMOS[band])


def summarize(trades: Sequence[Trade]) -> ObservationSummary:
    """Trade count, distinct UTC trading days and first/last trade times."""
    if not trades:
        return ObservationSummary()
    timestamps = [t.timestamp for t in trades]
    return ObservationSummary(
        total_trades=len(trades),
        active_days=len({ts.date() for ts in timestamps}),
        first_trade_at=min(timestamps),
        last_trade_at=max(timestamps),
    )


def is_established(maturity: ObservationMaturity) -> bool:
    return maturity.band == MaturityBand.ESTABLISHED
