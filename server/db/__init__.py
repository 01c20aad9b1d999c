"""Database layer: SQLAlchemy models and session."""

from server.db.models import Base, User, Session, Problem, Reminder, UserPreference, PushSubscription
from server.db.session import get_db, init_db

__all__ = [
    "Base",
    "User",
    "Session",
    "Problem",
    "Reminder",
    "UserPreference",
    "PushSubscription",
    "get_db",
    "init_db",
]
