"""Data models for Dendrite."""

from .commit import CommitRef
from .profile import (
    DailyAggregate,
    GrowthProfile,
    LifetimeStats,
    SessionStats,
    StoredSession,
)
from .session import IdlePeriod, Session, SessionState

__all__ = [
    "CommitRef",
    "DailyAggregate",
    "GrowthProfile",
    "IdlePeriod",
    "LifetimeStats",
    "Session",
    "SessionState",
    "SessionStats",
    "StoredSession",
]
