"""Epoch detector — feeds daily ATX observations through the state machine.

The detector owns no state.  Given an account's :class:`EpochState` and
its trades, it scores every complete UTC day after ``last_observed_at``
and applies :func:`~auric_atx.epochs.state_machine.advance` in order.

Days without trades are gaps: they produce no observation and neither
advance nor reset the confirmation and recovery counters.  Trades that
arrive for a day already observed do not rewrite epoch history.

Usage::

    detector = EpochDetector(settings.scoring, settings.epochs)
    result = detector.observe(state, trades, until=clock.now())
    for event in result.events:
        print(event)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime

from auric_atx.core.config import EpochConfig, ScoringConfig
from auric_atx.core.enums import EpochEvent
from auric_atx.core.models import Trade
from auric_atx.core.windows import complete_days
from auric_atx.scoring.aggregator import score_trades

from .state_machine import DailyObservation, EpochState, advance

logger = logging.getLogger(__name__)


@dataclass
class DetectorResult:
    state: EpochState
    events: list[EpochEvent] = field(default_factory=list)
    observations: int = 0

    @property
    def changed(self) -> bool:
        return self.observations > 0


class EpochDetector:
    """Turn trade history into epoch transitions.

    Parameters
    ----------
    scoring : ScoringConfig
        Used to score each day's trades.
    epochs : EpochConfig
        Confirmation and recovery window lengths.
    """

    def __init__(self, scoring: ScoringConfig, epochs: EpochConfig) -> None:
        self._scoring = scoring
        self._epochs = epochs

    def daily_observations(
        self,
        trades: Sequence[Trade],
        *,
        after: datetime | None,
        until: datetime,
    ) -> list[DailyObservation]:
        """Score each complete day with trades, oldest first."""
        if not trades:
            return []
        by_day: dict[date, list[Trade]] = defaultdict(list)
        for trade in trades:
            by_day[trade.timestamp.date()].append(trade)

        first = min(t.timestamp for t in trades)
        observations: list[DailyObservation] = []
        for window in complete_days(after, first, until):
            day_trades = by_day.get(window.start.date())
            if not day_trades:
                continue
            observations.append(DailyObservation(
                observed_at=window.start,
                snapshot=score_trades(day_trades, self._scoring),
                trade_count=len(day_trades),
            ))
        return observations

    def observe(
        self,
        state: EpochState,
        trades: Sequence[Trade],
        until: datetime,
    ) -> DetectorResult:
        """Advance ``state`` through every unobserved complete day before ``until``."""
        result = DetectorResult(state=state)
        for obs in self.daily_observations(
            trades, after=state.last_observed_at, until=until,
        ):
            transition = advance(result.state, obs, self._epochs)
            result.state = transition.state
            result.events.extend(transition.events)
            result.observations += 1

        if result.observations:
            logger.debug(
                "Epoch detector: account=%d observations=%d events=%s phase=%s",
                state.account_id,
                result.observations,
                [e.value for e in result.events],
                result.state.phase.value,
            )
        return result
