"""ATX aggregator — subscores to score, flags and profiles.

The aggregate is a fixed weighted sum (not learned)::

    score = wD*D + wR*R + wE*E + wV*(100 - V) + wC*C   (normalised by sum of w)

With non-negative weights the score never decreases when a good-direction
subscore rises and never increases when behavioural volatility rises.

``compute_atx`` is a pure function of the trades and window boundaries;
there is no clock dependency beyond the window itself.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from auric_atx.core.config import ScoringConfig
from auric_atx.core.enums import Flag, Profile
from auric_atx.core.models import ATXSnapshot, Subscores, Trade, Window
from auric_atx.core.sources import source_matches

from .subscores import clamp, compute_subscores

logger = logging.getLogger(__name__)

# Emission order for flags; anything else sorts after these
_FLAG_ORDER: tuple[str, ...] = tuple(f.value for f in Flag)


def aggregate_score(subscores: Subscores, config: ScoringConfig) -> float:
    """Weighted aggregate in ``[0, 100]``, rounded to one decimal."""
    weighted = (
        config.weight_discipline * subscores.discipline
        + config.weight_risk_integrity * subscores.risk_integrity
        + config.weight_execution_stability * subscores.execution_stability
        + config.weight_behavioural_volatility * (100.0 - subscores.behavioural_volatility)
        + config.weight_consistency * subscores.consistency
    )
    total = (
        config.weight_discipline
        + config.weight_risk_integrity
        + config.weight_execution_stability
        + config.weight_behavioural_volatility
        + config.weight_consistency
    )
    return round(clamp(weighted / total), 1)


def derive_flags(
    subscores: Subscores, trade_count: int, config: ScoringConfig,
) -> list[str]:
    """Threshold predicates over subscores plus the data-sufficiency flag."""
    flags: set[str] = set()
    if trade_count < config.min_observation_trades:
        flags.add(Flag.INSUFFICIENT_DATA.value)
    if trade_count == 0:
        # Neutral placeholders carry no behavioural meaning
        return sort_flags(flags)
    if subscores.discipline < config.discipline_low:
        flags.add(Flag.DISCIPLINE_LOW.value)
    if subscores.risk_integrity < config.risk_integrity_low:
        flags.add(Flag.RISK_INTEGRITY_LOW.value)
    if subscores.behavioural_volatility > config.behavioural_volatility_high:
        flags.add(Flag.BEHAVIOURAL_VOLATILITY_HIGH.value)
    if subscores.execution_stability < config.execution_stability_low:
        flags.add(Flag.EXECUTION_UNSTABLE.value)
    if subscores.consistency < config.consistency_low:
        flags.add(Flag.CONSISTENCY_LOW.value)
    return sort_flags(flags)


def sort_flags(flags: Iterable[str]) -> list[str]:
    """Known flags in vocabulary order, unknown ones alphabetically after."""
    def _key(flag: str) -> tuple[int, str]:
        if flag in _FLAG_ORDER:
            return (_FLAG_ORDER.index(flag), flag)
        return (len(_FLAG_ORDER), flag)

    return sorted(set(flags), key=_key)


def derive_profiles(
    score: float, flags: Sequence[str], config: ScoringConfig,
) -> list[str]:
    """Pattern tags from co-occurring flags. Stable for identical input."""
    present = set(flags)
    profiles: set[str] = set()
    if {Flag.DISCIPLINE_LOW.value, Flag.BEHAVIOURAL_VOLATILITY_HIGH.value} <= present:
        profiles.add(Profile.REVENGE_TRADING.value)
    if {Flag.DISCIPLINE_LOW.value, Flag.RISK_INTEGRITY_LOW.value} <= present:
        profiles.add(Profile.UNPROTECTED_EXPOSURE.value)
    if {Flag.EXECUTION_UNSTABLE.value, Flag.BEHAVIOURAL_VOLATILITY_HIGH.value} <= present:
        profiles.add(Profile.ERRATIC_EXECUTION.value)
    if not present and score >= config.steady_operator_min_score:
        profiles.add(Profile.STEADY_OPERATOR.value)
    return sorted(profiles)


def select_trades(
    trades: Iterable[Trade],
    window: Window,
    sources: Iterable[str] | None = None,
) -> list[Trade]:
    """Trades inside ``window`` that pass the source filter."""
    filters = list(sources) if sources else None
    return [
        t for t in trades
        if window.contains(t.timestamp) and source_matches(t.source, filters)
    ]


def score_trades(trades: Sequence[Trade], config: ScoringConfig) -> ATXSnapshot:
    """Score an already-selected trade set."""
    subscores = compute_subscores(trades, config)
    score = aggregate_score(subscores, config)
    flags = derive_flags(subscores, len(trades), config)
    return ATXSnapshot(
        score=score,
        subscores=subscores,
        flags=flags,
        profiles=derive_profiles(score, flags, config),
    )


def compute_atx(
    trades: Iterable[Trade],
    window: Window,
    config: ScoringConfig,
    sources: Iterable[str] | None = None,
) -> ATXSnapshot:
    """Compute the ATX snapshot for one observation window.

    Parameters
    ----------
    trades : Iterable[Trade]
        Candidate trades; anything outside ``window`` or not matching
        ``sources`` is ignored.
    window : Window
        Half-open ``[start, end)`` observation window.
    config : ScoringConfig
        Weights and thresholds.
    sources : Iterable[str] | None
        Optional source filter (see :mod:`auric_atx.core.sources`).
    """
    selected = select_trades(trades, window, sources)
    snapshot = score_trades(selected, config)
    logger.debug(
        "ATX computed: window=[%s, %s) trades=%d score=%.1f flags=%s",
        window.start.isoformat(),
        window.end.isoformat(),
        len(selected),
        snapshot.score,
        snapshot.flags,
    )
    return snapshot
