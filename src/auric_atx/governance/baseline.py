"""Baseline lock — freezes one epoch's average ATX as the long-term comparator.

Locking is only permitted once observation maturity is ``established``.
A locked baseline stays locked: later calls return it unchanged rather
than re-locking onto a newer epoch.  Unlocking is an external action and
is not offered here.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from auric_atx.core.errors import BaselineLockError
from auric_atx.core.models import Baseline, Epoch, ObservationMaturity

from .maturity import is_established

logger = logging.getLogger(__name__)


def _pick_epoch(epochs: Sequence[Epoch], epoch_id: int | None) -> Epoch:
    confirmed = [e for e in epochs if not e.provisional]
    if epoch_id is not None:
        for epoch in confirmed:
            if epoch.epoch_id == epoch_id:
                return epoch
        raise BaselineLockError(f"Epoch {epoch_id} is not a confirmed epoch")
    if not confirmed:
        raise BaselineLockError("No confirmed epoch to lock a baseline onto")
    # Prefer the most recent closed epoch; its average no longer moves
    closed = [e for e in confirmed if e.ended_at is not None]
    return max(closed or confirmed, key=lambda e: e.epoch_id)


def lock_baseline(
    current: Baseline | None,
    maturity: ObservationMaturity,
    epochs: Sequence[Epoch],
    *,
    account_id: int,
    now: datetime,
    epoch_id: int | None = None,
) -> Baseline:
    """Lock the account baseline, or return the existing lock.

    Raises:
        BaselineLockError: If maturity is not established or no confirmed
            epoch (or the requested one) exists.
    """
    if current is not None and current.is_locked:
        if epoch_id is not None and epoch_id != current.epoch_id:
            logger.info(
                "Baseline already locked for account %d on epoch %d; ignoring epoch %d",
                account_id, current.epoch_id, epoch_id,
            )
        return current

    if not is_established(maturity):
        raise BaselineLockError(
            f"Baseline lock requires established maturity (account {account_id} "
            f"is {maturity.band.value})"
        )

    epoch = _pick_epoch(epochs, epoch_id)
    baseline = Baseline(
        account_id=account_id,
        epoch_id=epoch.epoch_id,
        average_score=epoch.average_score,
        locked_at=now,
    )
    logger.info(
        "Baseline locked: account=%d epoch=%d average=%s",
        account_id, epoch.epoch_id, epoch.average_score,
    )
    return baseline


def can_lock(maturity: ObservationMaturity, epochs: Sequence[Epoch]) -> bool:
    return is_established(maturity) and any(not e.provisional for e in epochs)
