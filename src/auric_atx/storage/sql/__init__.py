"""SQLAlchemy async storage backend."""

from .connection import create_all, create_engine, make_session_factory, session_scope
from .repos import EpochStateRepo, SqlEpochStateStore, SqlTradeStore, TradeRepo

__all__ = [
    "EpochStateRepo",
    "SqlEpochStateStore",
    "SqlTradeStore",
    "TradeRepo",
    "create_all",
    "create_engine",
    "make_session_factory",
    "session_scope",
]
