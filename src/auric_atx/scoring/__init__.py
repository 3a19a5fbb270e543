"""Subscore calculators and the ATX aggregator."""

from .aggregator import (
    aggregate_score,
    compute_atx,
    derive_flags,
    derive_profiles,
    score_trades,
    select_trades,
)
from .subscores import compute_subscores

__all__ = [
    "aggregate_score",
    "compute_atx",
    "compute_subscores",
    "derive_flags",
    "derive_profiles",
    "score_trades",
    "select_trades",
]
