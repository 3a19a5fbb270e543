"""Epoch state machine — pure transition function over daily observations.

Each account carries one durable :class:`EpochState`.  Observations are
fed through :func:`advance`, which returns a new state and the events the
observation produced; it never mutates its input and touches no storage.

    NONE --disruption appears--> PROVISIONAL
    PROVISIONAL --disrupted for confirm_after observations--> CONFIRMED
    PROVISIONAL --disruption clears first--> NONE   (retracted, no trace)
    CONFIRMED --clear for recovery_window observations--> NONE (epoch closed)

Closed epochs move to ``history`` and are never removed.  Epoch ids are
committed on confirmation, so a retracted provisional epoch does not
consume one.  Observations flagged ``INSUFFICIENT_DATA`` only advance
``last_observed_at``.  A closed epoch spans ``[started_at, ended_at)``, where
``ended_at`` is the end of the closing day, so it covers every day it averages.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from auric_atx.core.config import EpochConfig
from auric_atx.core.enums import DISRUPTION_FLAGS, EpochEvent, EpochPhase, Flag
from auric_atx.core.errors import EpochStateError
from auric_atx.core.models import ATXSnapshot, Baseline, Epoch, Momentum

from .labels import ended_reason

logger = logging.getLogger(__name__)


class DailyObservation(BaseModel):
    """One scored bucket fed to the state machine."""

    observed_at: datetime
    snapshot: ATXSnapshot
    trade_count: int = 0

    @property
    def period_end(self) -> datetime:
        """Exclusive end of the observed day."""
        return self.observed_at + timedelta(days=1)

    @property
    def sufficient(self) -> bool:
        return (
            self.trade_count > 0
            and Flag.INSUFFICIENT_DATA.value not in self.snapshot.flags
        )

    @property
    def disruption(self) -> list[str]:
        return sorted(set(self.snapshot.flags) & DISRUPTION_FLAGS)


class EpochState(BaseModel):
    """Durable per-account record of the epoch machine."""

    account_id: int
    version: int = 0
    phase: EpochPhase = EpochPhase.NONE
    open_epoch: Epoch | None = None
    disrupted_run: int = 0
    clear_run: int = 0
    previous_flags: list[str] = Field(default_factory=list)
    last_observed_at: datetime | None = None
    next_epoch_id: int = 1
    history: list[Epoch] = Field(default_factory=list)
    momentum: Momentum = Field(default_factory=Momentum)
    baseline: Baseline | None = None

    def epoch_log(self) -> list[Epoch]:
        """Permanent log: closed epochs plus the open one once confirmed."""
        log = list(self.history)
        if self.open_epoch is not None and not self.open_epoch.provisional:
            log.append(self.open_epoch)
        return log

    @property
    def baseline_locked(self) -> bool:
        return self.baseline is not None and self.baseline.is_locked


@dataclass(frozen=True)
class Transition:
    """Result of feeding one observation to :func:`advance`."""

    state: EpochState
    events: tuple[EpochEvent, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Transition function
# ---------------------------------------------------------------------------

def _accumulate(epoch: Epoch, obs: DailyObservation) -> Epoch:
    return epoch.model_copy(update={
        "observation_count": epoch.observation_count + 1,
        "score_sum": epoch.score_sum + obs.snapshot.score,
    })


def _advance_momentum(momentum: Momentum, disrupted: bool) -> Momentum:
    if disrupted:
        return momentum.model_copy(update={"streak": 0})
    streak = momentum.streak + 1
    return momentum.model_copy(update={
        "streak": streak,
        "best_streak": max(momentum.best_streak, streak),
    })


def _require_open(state: EpochState) -> None:
    if state.open_epoch is None:
        raise EpochStateError(
            f"Account {state.account_id} is {state.phase.value} without an open epoch"
        )


def advance(
    state: EpochState,
    obs: DailyObservation,
    config: EpochConfig,
) -> Transition:
    """Apply one observation to the epoch state.

    Raises:
        EpochStateError: If ``obs`` is not later than the last observation.
    """
    if state.last_observed_at is not None and obs.observed_at <= state.last_observed_at:
        raise EpochStateError(
            f"Observation at {obs.observed_at.isoformat()} is not after "
            f"{state.last_observed_at.isoformat()} for account {state.account_id}"
        )

    if not obs.sufficient:
        return Transition(state=state.model_copy(update={"last_observed_at": obs.observed_at}))

    disruption = obs.disruption
    disrupted = bool(disruption)
    update: dict = {
        "last_observed_at": obs.observed_at,
        "previous_flags": disruption,
        "momentum": _advance_momentum(state.momentum, disrupted),
    }
    events: list[EpochEvent] = []

    if state.phase == EpochPhase.NONE:
        appeared = sorted(set(disruption) - set(state.previous_flags))
        if appeared:
            epoch = Epoch(
                epoch_id=state.next_epoch_id,
                account_id=state.account_id,
                started_at=obs.observed_at,
                trigger_flags=appeared,
                provisional=True,
                start_atx=obs.snapshot,
                observation_count=1,
                score_sum=obs.snapshot.score,
            )
            update.update(
                phase=EpochPhase.PROVISIONAL,
                open_epoch=epoch,
                disrupted_run=1,
                clear_run=0,
            )
            events.append(EpochEvent.OPENED)
            if config.confirm_after <= 1:
                update.update(
                    phase=EpochPhase.CONFIRMED,
                    open_epoch=epoch.model_copy(update={"provisional": False}),
                    next_epoch_id=state.next_epoch_id + 1,
                )
                events.append(EpochEvent.CONFIRMED)

    elif state.phase == EpochPhase.PROVISIONAL:
        _require_open(state)
        if disrupted:
            run = state.disrupted_run + 1
            epoch = _accumulate(state.open_epoch, obs)
            update.update(disrupted_run=run, open_epoch=epoch)
            if run >= config.confirm_after:
                update.update(
                    phase=EpochPhase.CONFIRMED,
                    open_epoch=epoch.model_copy(update={"provisional": False}),
                    next_epoch_id=state.next_epoch_id + 1,
                )
                events.append(EpochEvent.CONFIRMED)
            else:
                events.append(EpochEvent.EXTENDED)
        else:
            update.update(
                phase=EpochPhase.NONE,
                open_epoch=None,
                disrupted_run=0,
                clear_run=0,
            )
            events.append(EpochEvent.RETRACTED)

    else:
        _require_open(state)
        epoch = _accumulate(state.open_epoch, obs)
        clear_run = 0 if disrupted else state.clear_run + 1
        if clear_run >= config.recovery_window:
            closed = epoch.model_copy(update={
                "ended_at": obs.period_end,
                "ended_reason": ended_reason(epoch.trigger_flags, clear_run),
                "end_atx": obs.snapshot,
            })
            update.update(
                phase=EpochPhase.NONE,
                open_epoch=None,
                disrupted_run=0,
                clear_run=0,
                history=[*state.history, closed],
            )
            events.append(EpochEvent.CLOSED)
        else:
            update.update(
                open_epoch=epoch,
                clear_run=clear_run,
                disrupted_run=state.disrupted_run + 1 if disrupted else 0,
            )
            events.append(EpochEvent.EXTENDED)

    new_state = state.model_copy(update=update)
    epoch_ref = new_state.open_epoch or state.open_epoch
    for event in events:
        if event != EpochEvent.EXTENDED:
            logger.info(
                "Epoch %s: account=%d epoch_id=%s at=%s flags=%s",
                event.value,
                state.account_id,
                epoch_ref.epoch_id if epoch_ref is not None else "-",
                obs.observed_at.isoformat(),
                disruption,
            )
    return Transition(state=new_state, events=tuple(events))


def reset_momentum(state: EpochState, now: datetime) -> EpochState:
    """Explicitly zero the momentum streak. The epoch log is untouched."""
    return state.model_copy(update={
        "momentum": state.momentum.model_copy(update={"streak": 0, "reset_at": now}),
    })
