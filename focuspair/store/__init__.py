"""Session store package."""

from .models import Session, StoreSnapshot, UnitType, MAX_SESSION_SECONDS
from .session_store import SessionStore, DATA_VERSION
from . import stats

__all__ = [
    "Session",
    "StoreSnapshot",
    "UnitType",
    "MAX_SESSION_SECONDS",
    "SessionStore",
    "DATA_VERSION",
    "stats",
]
