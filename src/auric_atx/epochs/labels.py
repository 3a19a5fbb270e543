"""Human-readable epoch labels, derived deterministically from trigger flags."""

from __future__ import annotations

from collections.abc import Iterable

from auric_atx.core.enums import Flag

COMBINED_LABEL = "Risk integrity and behavioural volatility event"
RISK_LABEL = "Risk integrity breakdown"
VOLATILITY_LABEL = "Behavioural volatility surge"
DISCIPLINE_LABEL = "Discipline lapse"
DEFAULT_LABEL = "Behavioural phase shift"


def epoch_label(trigger_flags: Iterable[str]) -> str:
    flags = set(trigger_flags)
    risk = Flag.RISK_INTEGRITY_LOW.value in flags
    volatility = Flag.BEHAVIOURAL_VOLATILITY_HIGH.value in flags
    if risk and volatility:
        return COMBINED_LABEL
    if risk:
        return RISK_LABEL
    if volatility:
        return VOLATILITY_LABEL
    if Flag.DISCIPLINE_LOW.value in flags:
        return DISCIPLINE_LABEL
    return DEFAULT_LABEL


def ended_reason(trigger_flags: Iterable[str], clear_observations: int) -> str:
    return (
        f"{epoch_label(trigger_flags)} resolved after "
        f"{clear_observations} clear observation{'s' if clear_observations != 1 else ''}"
    )
