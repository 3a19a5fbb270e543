"""Tests for epochs.state_machine — the pure epoch transition function."""

from datetime import datetime, timedelta, timezone

import pytest

from auric_atx.core.enums import EpochEvent, EpochPhase
from auric_atx.core.errors import EpochStateError
from auric_atx.core.models import ATXSnapshot, Subscores
from auric_atx.epochs.state_machine import (
    DailyObservation,
    EpochState,
    advance,
    reset_momentum,
)

T0 = datetime(2024, 3, 4, tzinfo=timezone.utc)
_SUBS = Subscores(
    discipline=80.0,
    risk_integrity=80.0,
    execution_stability=80.0,
    behavioural_volatility=20.0,
    consistency=80.0,
)


def _obs(n: int, flags: list[str] | None = None, score: float = 80.0,
         trade_count: int = 4) -> DailyObservation:
    return DailyObservation(
        observed_at=T0 + timedelta(days=n),
        snapshot=ATXSnapshot(score=score, subscores=_SUBS, flags=flags or []),
        trade_count=trade_count,
    )


def _bad(n: int) -> DailyObservation:
    return _obs(n, ["RISK_INTEGRITY_LOW"], score=60.0)


def _run(state, observations, config):
    events = []
    for obs in observations:
        transition = advance(state, obs, config)
        state = transition.state
        events.append(transition.events)
    return state, events


class TestOpening:
    def test_new_disruption_opens_provisional(self, epoch_config):
        state = EpochState(account_id=1)
        t = advance(state, _bad(0), epoch_config)
        assert t.events == (EpochEvent.OPENED,)
        assert t.state.phase == EpochPhase.PROVISIONAL
        assert t.state.open_epoch.provisional is True
        assert t.state.open_epoch.trigger_flags == ["RISK_INTEGRITY_LOW"]
        assert t.state.open_epoch.started_at == T0
        # id not consumed until confirmation
        assert t.state.next_epoch_id == 1

    def test_clear_observation_does_nothing(self, epoch_config):
        t = advance(EpochState(account_id=1), _obs(0), epoch_config)
        assert t.events == ()
        assert t.state.phase == EpochPhase.NONE
        assert t.state.last_observed_at == T0

    def test_non_disruption_flag_does_not_open(self, epoch_config):
        t = advance(EpochState(account_id=1), _obs(0, ["CONSISTENCY_LOW"]), epoch_config)
        assert t.state.phase == EpochPhase.NONE

    def test_input_state_not_mutated(self, epoch_config):
        state = EpochState(account_id=1)
        advance(state, _bad(0), epoch_config)
        assert state.phase == EpochPhase.NONE
        assert state.last_observed_at is None


class TestConfirmation:
    def test_confirms_after_consecutive_disruption(self, epoch_config):
        state, events = _run(EpochState(account_id=1), [_bad(0), _bad(1), _bad(2)], epoch_config)
        assert events == [(EpochEvent.OPENED,), (EpochEvent.EXTENDED,), (EpochEvent.CONFIRMED,)]
        assert state.phase == EpochPhase.CONFIRMED
        assert state.open_epoch.provisional is False
        assert state.open_epoch.epoch_id == 1
        assert state.next_epoch_id == 2
        assert [e.epoch_id for e in state.epoch_log()] == [1]

    def test_provisional_not_in_log(self, epoch_config):
        state, _ = _run(EpochState(account_id=1), [_bad(0), _bad(1)], epoch_config)
        assert state.open_epoch is not None
        assert state.epoch_log() == []

    def test_retracted_before_confirmation(self, epoch_config):
        state, events = _run(EpochState(account_id=1), [_bad(0), _bad(1), _obs(2)], epoch_config)
        assert events[-1] == (EpochEvent.RETRACTED,)
        assert state.phase == EpochPhase.NONE
        assert state.open_epoch is None
        assert state.history == []
        assert state.next_epoch_id == 1

    def test_persisting_flags_do_not_reopen_after_retraction(self, epoch_config):
        # Flags present on the previous observation are not "new"
        state, _ = _run(EpochState(account_id=1), [_obs(0, ["RISK_INTEGRITY_LOW"])], epoch_config)
        state = state.model_copy(update={
            "phase": EpochPhase.NONE, "open_epoch": None, "disrupted_run": 0,
        })
        t = advance(state, _bad(1), epoch_config)
        assert t.events == ()

    def test_confirm_after_one(self, epoch_config):
        config = epoch_config.model_copy(update={"confirm_after": 1})
        t = advance(EpochState(account_id=1), _bad(0), config)
        assert t.events == (EpochEvent.OPENED, EpochEvent.CONFIRMED)
        assert t.state.phase == EpochPhase.CONFIRMED


class TestClosing:
    def _confirmed(self, epoch_config):
        state, _ = _run(EpochState(account_id=1), [_bad(0), _bad(1), _bad(2)], epoch_config)
        return state

    def test_closes_after_recovery_window(self, epoch_config):
        state = self._confirmed(epoch_config)
        state, events = _run(state, [_obs(3), _obs(4), _obs(5)], epoch_config)
        assert events[-1] == (EpochEvent.CLOSED,)
        assert state.phase == EpochPhase.NONE
        assert state.open_epoch is None
        closed = state.history[0]
        assert closed.ended_at == T0 + timedelta(days=6)
        assert closed.ended_reason == "Risk integrity breakdown resolved after 3 clear observations"
        assert closed.observation_count == 6
        # (3 x 60 + 3 x 80) / 6
        assert closed.average_score == 70.0

    def test_closed_range_covers_every_averaged_day(self, epoch_config):
        state = self._confirmed(epoch_config)
        observations = [_obs(3), _obs(4), _obs(5)]
        state, _ = _run(state, observations, epoch_config)
        closed = state.history[0]
        for obs in [_bad(0), _bad(1), _bad(2), *observations]:
            assert closed.started_at <= obs.observed_at < closed.ended_at
        assert closed.ended_at == observations[-1].period_end

    def test_disruption_resets_recovery(self, epoch_config):
        state = self._confirmed(epoch_config)
        state, events = _run(state, [_obs(3), _obs(4), _bad(5), _obs(6), _obs(7)], epoch_config)
        assert state.phase == EpochPhase.CONFIRMED
        assert state.clear_run == 2
        state, events = _run(state, [_obs(8)], epoch_config)
        assert events == [(EpochEvent.CLOSED,)]

    def test_history_is_append_only(self, epoch_config):
        state = self._confirmed(epoch_config)
        state, _ = _run(state, [_obs(3), _obs(4), _obs(5)], epoch_config)
        first = state.history[0]
        state, _ = _run(state, [_bad(6), _bad(7), _bad(8), _obs(9), _obs(10), _obs(11)], epoch_config)
        assert [e.epoch_id for e in state.history] == [1, 2]
        assert state.history[0] == first
        assert state.history[0].ended_at <= state.history[1].started_at


class TestGuards:
    def test_out_of_order_rejected(self, epoch_config):
        state = advance(EpochState(account_id=1), _obs(3), epoch_config).state
        with pytest.raises(EpochStateError):
            advance(state, _obs(2), epoch_config)
        with pytest.raises(EpochStateError):
            advance(state, _obs(3), epoch_config)

    def test_insufficient_data_only_advances_clock(self, epoch_config):
        state, _ = _run(EpochState(account_id=1), [_bad(0)], epoch_config)
        t = advance(state, _obs(1, ["INSUFFICIENT_DATA", "RISK_INTEGRITY_LOW"]), epoch_config)
        assert t.events == ()
        assert t.state.disrupted_run == state.disrupted_run
        assert t.state.last_observed_at == T0 + timedelta(days=1)

    def test_confirmed_without_epoch_is_invalid(self, epoch_config):
        broken = EpochState(account_id=1, phase=EpochPhase.CONFIRMED)
        with pytest.raises(EpochStateError):
            advance(broken, _obs(0), epoch_config)


class TestMomentum:
    def test_streak_counts_clear_observations(self, epoch_config):
        state, _ = _run(EpochState(account_id=1), [_obs(0), _obs(1), _bad(2), _obs(3)], epoch_config)
        assert state.momentum.streak == 1
        assert state.momentum.best_streak == 2

    def test_reset_keeps_epoch_log(self, epoch_config):
        state, _ = _run(EpochState(account_id=1), [_bad(0), _bad(1), _bad(2), _obs(3)], epoch_config)
        reset = reset_momentum(state, T0 + timedelta(days=10))
        assert reset.momentum.streak == 0
        assert reset.momentum.best_streak == state.momentum.best_streak
        assert reset.momentum.reset_at == T0 + timedelta(days=10)
        assert reset.epoch_log() == state.epoch_log()
