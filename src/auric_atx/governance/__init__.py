"""Observation maturity and baseline gating."""

from .baseline import can_lock, lock_baseline
from .maturity import classify, is_established, summarize

__all__ = ["can_lock", "classify", "is_established", "lock_baseline", "summarize"]
