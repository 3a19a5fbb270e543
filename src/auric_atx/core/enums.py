"""Enumerations used across the ATX engine."""

from enum import Enum


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop_limit"


class Interval(str, Enum):
    """Trend bucket width."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Timeframe(str, Enum):
    """Observation window for the account snapshot endpoint."""

    EPOCH = "epoch"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MaturityBand(str, Enum):
    INITIAL = "initial"
    DEVELOPING = "developing"
    ESTABLISHED = "established"

    @property
    def rank(self) -> int:
        return list(MaturityBand).index(self)


class Flag(str, Enum):
    """Threshold-breach tags attached to a snapshot.

    Consumers must tolerate strings outside this vocabulary.
    """

    INSUFFICIENT_DATA = "INSUFFICIENT_DATA"
    DISCIPLINE_LOW = "DISCIPLINE_LOW"
    RISK_INTEGRITY_LOW = "RISK_INTEGRITY_LOW"
    BEHAVIOURAL_VOLATILITY_HIGH = "BEHAVIOURAL_VOLATILITY_HIGH"
    EXECUTION_UNSTABLE = "EXECUTION_UNSTABLE"
    CONSISTENCY_LOW = "CONSISTENCY_LOW"


# Flags that can open an epoch
DISRUPTION_FLAGS: frozenset[str] = frozenset({
    Flag.DISCIPLINE_LOW.value,
    Flag.RISK_INTEGRITY_LOW.value,
    Flag.BEHAVIOURAL_VOLATILITY_HIGH.value,
})


class Profile(str, Enum):
    """Pattern tags derived from co-occurring flags."""

    REVENGE_TRADING = "REVENGE_TRADING"
    UNPROTECTED_EXPOSURE = "UNPROTECTED_EXPOSURE"
    ERRATIC_EXECUTION = "ERRATIC_EXECUTION"
    STEADY_OPERATOR = "STEADY_OPERATOR"


class EpochPhase(str, Enum):
    NONE = "none"
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"


class EpochEvent(str, Enum):
    """What a single observation did to the epoch state."""

    OPENED = "opened"
    CONFIRMED = "confirmed"
    RETRACTED = "retracted"
    EXTENDED = "extended"
    CLOSED = "closed"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    SQL = "sql"
