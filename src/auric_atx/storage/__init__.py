"""Trade and epoch-state persistence backends."""

from .memory import InMemoryEpochStateStore, InMemoryTradeStore

__all__ = ["InMemoryEpochStateStore", "InMemoryTradeStore"]
