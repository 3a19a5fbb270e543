"""Behavioural epoch detection: regime shifts in the daily ATX stream."""

from .detector import DetectorResult, EpochDetector
from .labels import epoch_label, ended_reason
from .state_machine import (
    DailyObservation,
    EpochState,
    Transition,
    advance,
    reset_momentum,
)

__all__ = [
    "DailyObservation",
    "DetectorResult",
    "EpochDetector",
    "EpochState",
    "Transition",
    "advance",
    "ended_reason",
    "epoch_label",
    "reset_momentum",
]
