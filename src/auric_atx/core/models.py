"""Core domain models used across the ATX engine.

These are the canonical "truth models" for the system. Field names are
snake_case in Python and camelCase on the wire (``by_alias=True``);
timestamps on epochs, baselines and trend points serialise to epoch
milliseconds in JSON mode.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .enums import EpochEvent, Interval, MaturityBand, OrderType, Side, Timeframe


DateType = date


def _to_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


EpochMillis = Annotated[
    datetime, PlainSerializer(_to_ms, return_type=int, when_used="json")
]


def ensure_utc(value: datetime) -> datetime:
    """Interpret naive datetimes as UTC and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class WireModel(BaseModel):
    """Base for models that cross the HTTP boundary."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

class Trade(WireModel):
    """One executed position. Immutable once ingested; keyed by (source, trade_id)."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    source: str = Field(min_length=1)  # "mock", "ctrader:123"
    trade_id: str = Field(min_length=1)
    account_id: int
    symbol: str
    side: Side
    quantity: float = Field(gt=0)
    timestamp: datetime
    entry_price: float = Field(gt=0)
    exit_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    order_type: OrderType = OrderType.MARKET

    @field_validator("side", mode="before")
    @classmethod
    def _side_aliases(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().lower()
            return {"buy": "long", "sell": "short"}.get(value, value)
        return value

    @field_validator("order_type", mode="before")
    @classmethod
    def _order_type_lower(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def key(self) -> tuple[str, str]:
        return (self.source, self.trade_id)

    @property
    def notional(self) -> float:
        return self.quantity * self.entry_price

    @property
    def stop_distance_pct(self) -> float | None:
        """Distance from entry to stop as a fraction of entry."""
        if self.stop_loss is None:
            return None
        return abs(self.entry_price - self.stop_loss) / self.entry_price


class Window(BaseModel):
    """Half-open time range ``[start, end)``."""

    model_config = ConfigDict(frozen=True)

    start: EpochMillis
    end: EpochMillis

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _ordered(self) -> Window:
        if self.start >= self.end:
            raise ValueError(f"window start {self.start} must precede end {self.end}")
        return self

    def contains(self, ts: datetime) -> bool:
        return self.start <= ts < self.end


# ---------------------------------------------------------------------------
# Scores
# ---------------------------------------------------------------------------

SUBSCORE_NAMES: tuple[str, ...] = (
    "discipline",
    "risk_integrity",
    "execution_stability",
    "behavioural_volatility",
    "consistency",
)


class Subscores(WireModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    discipline: float = Field(ge=0, le=100)
    risk_integrity: float = Field(ge=0, le=100)
    execution_stability: float = Field(ge=0, le=100)
    behavioural_volatility: float = Field(ge=0, le=100)  # lower is calmer
    consistency: float = Field(ge=0, le=100)

    def as_dict(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in SUBSCORE_NAMES}


class ATXSnapshot(WireModel):
    """A scored observation over one window."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True,
    )

    score: float = Field(ge=0, le=100)
    subscores: Subscores
    flags: list[str] = Field(default_factory=list)
    profiles: list[str] = Field(default_factory=list)

    def has_flag(self, flag: str) -> bool:
        return flag in self.flags


# ---------------------------------------------------------------------------
# Epochs, baseline, maturity
# ---------------------------------------------------------------------------

class Epoch(WireModel):
    """A detected behavioural regime."""

    epoch_id: int
    account_id: int
    started_at: EpochMillis
    ended_at: EpochMillis | None = None
    trigger_flags: list[str] = Field(default_factory=list)
    ended_reason: str | None = None
    provisional: bool = True
    start_atx: ATXSnapshot
    end_atx: ATXSnapshot | None = None
    observation_count: int = 0
    score_sum: float = 0.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def average_score(self) -> float | None:
        if self.observation_count == 0:
            return None
        return round(self.score_sum / self.observation_count, 1)

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


class Baseline(WireModel):
    """Lock onto one epoch's average ATX as the long-term comparator."""

    account_id: int
    epoch_id: int
    average_score: float | None = None
    locked_at: EpochMillis | None = None

    @property
    def is_locked(self) -> bool:
        return self.locked_at is not None


class ObservationMaturity(WireModel):
    band: MaturityBand
    label: str
    memo: str


class ObservationSummary(WireModel):
    """How much history exists for an account."""

    total_trades: int = 0
    active_days: int = 0
    first_trade_at: EpochMillis | None = None
    last_trade_at: EpochMillis | None = None


class Momentum(WireModel):
    """Resettable streak of clear observations; not part of the epoch log."""

    streak: int = 0
    best_streak: int = 0
    reset_at: EpochMillis | None = None


# ---------------------------------------------------------------------------
# Trend & narration
# ---------------------------------------------------------------------------

class TrendPoint(WireModel):
    period: str  # ISO date of the bucket start
    start: EpochMillis
    end: EpochMillis
    trade_count: int = 0
    atx: ATXSnapshot | None = None  # absent means no signal, never zero


class SeriesPoint(WireModel):
    period: str
    score: float | None = None


class Commentary(WireModel):
    summary: str
    bullet_points: list[str] = Field(default_factory=list)
    reflection_questions: list[str] = Field(default_factory=list)


class TopDriver(WireModel):
    subscore: str
    previous: float
    latest: float
    delta: float


class Digest(WireModel):
    summary: str
    top_driver: TopDriver | None = None
    watch_list: list[str] = Field(default_factory=list)
    generated_at: EpochMillis


# ---------------------------------------------------------------------------
# Reports (response bodies)
# ---------------------------------------------------------------------------

class AccountAtxReport(WireModel):
    account_id: int
    timeframe: Timeframe
    sources: list[str] = Field(default_factory=list)
    trade_count: int
    window: Window
    epoch: Epoch | None = None
    atx: ATXSnapshot
    commentary: Commentary | None = None
    observation: ObservationSummary | None = None
    maturity: ObservationMaturity | None = None
    baseline_locked: bool = False


class TrendReport(WireModel):
    account_id: int
    interval: Interval
    points: list[TrendPoint] = Field(default_factory=list)
    by_source: dict[str, list[TrendPoint]] = Field(default_factory=dict)
    series_by_source: dict[str, list[SeriesPoint]] = Field(default_factory=dict)
    digest: Digest | None = None
    epochs: list[Epoch] = Field(default_factory=list)
    observation: ObservationSummary | None = None
    maturity: ObservationMaturity | None = None
    baseline_locked: bool = False
    baseline: Baseline | None = None


class DayReport(WireModel):
    account_id: int
    date: DateType
    sources: list[str] = Field(default_factory=list)
    trade_count: int
    atx: ATXSnapshot | None = None
    commentary: Commentary | None = None


class IngestResult(WireModel):
    account_id: int
    ingested: int
    duplicates: int
    events: list[EpochEvent] = Field(default_factory=list)
