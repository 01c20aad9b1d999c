"""Reminder CRUD for a caller's problems."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as DBSession

from server.db.models import Problem, Reminder
from server.errors import NotFoundError, ValidationError, require_user
from server.timeutils import as_utc, utcnow

logger = logging.getLogger("revisit.reminders")


def reminder_to_dict(reminder: Reminder) -> Dict[str, Any]:
    """JSON-safe view of a reminder row."""
    def _iso(value: Optional[datetime]) -> Optional[str]:
        value = as_utc(value)
        return value.isoformat() if value else None

    return {
        "id": reminder.id,
        "problem_id": reminder.problem_id,
        "user_id": reminder.user_id,
        "due_datetime": _iso(reminder.due_datetime),
        "is_sent": reminder.is_sent,
        "sent_at": _iso(reminder.sent_at),
        "is_completed": reminder.is_completed,
        "completed_at": _iso(reminder.completed_at),
        "created_at": _iso(reminder.created_at),
    }


def parse_due_datetime(value: Any) -> datetime:
    """Accept an aware datetime or ISO-8601 string; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            raise ValidationError("Invalid due_datetime", field="due_datetime")
    else:
        raise ValidationError("Invalid due_datetime", field="due_datetime")
    return as_utc(dt)


def _owned_problem(db: DBSession, user_id: str, problem_id: int) -> Problem:
    problem = db.query(Problem).filter(Problem.id == problem_id, Problem.user_id == user_id).first()
    if problem is None:
        raise NotFoundError("Problem not found")
    return problem


def _owned_reminder(db: DBSession, user_id: str, reminder_id: int) -> Reminder:
    reminder = db.query(Reminder).filter(Reminder.id == reminder_id, Reminder.user_id == user_id).first()
    if reminder is None:
        logger.warning("reminder:not_found user_id=%s reminder_id=%s", user_id, reminder_id)
        raise NotFoundError("Reminder not found")
    return reminder


def list_reminders_for_problem(db: DBSession, user_id: str, problem_id: int) -> List[Reminder]:
    """Pending reminders first, then by due time, newest first."""
    require_user(user_id)
    _owned_problem(db, user_id, problem_id)
    return (
        db.query(Reminder)
        .filter(Reminder.problem_id == problem_id, Reminder.user_id == user_id)
        .order_by(Reminder.is_sent.asc(), Reminder.due_datetime.desc())
        .all()
    )


def get_reminder(db: DBSession, user_id: str, reminder_id: int) -> Reminder:
    require_user(user_id)
    return _owned_reminder(db, user_id, reminder_id)


def create_reminder(db: DBSession, user_id: str, problem_id: int, due_datetime: Any) -> Reminder:
    """Manually schedule a reminder for one of the caller's problems."""
    require_user(user_id)
    due = parse_due_datetime(due_datetime)
    _owned_problem(db, user_id, problem_id)

    reminder = Reminder(problem_id=problem_id, user_id=user_id, due_datetime=due)
    db.add(reminder)
    db.flush()
    logger.info(
        "create_reminder:success user_id=%s problem_id=%s reminder_id=%s due=%s",
        user_id, problem_id, reminder.id, due.isoformat(),
    )
    return reminder


def update_reminder(
    db: DBSession,
    user_id: str,
    reminder_id: int,
    due_datetime: Any = None,
    is_completed: Optional[bool] = None,
) -> Reminder:
    """
    Move a reminder or toggle its completion flag.

    Completion is independent of the sent state: a SENT reminder can still
    be completed and un-completed, but never un-sent.
    """
    require_user(user_id)
    if due_datetime is None and is_completed is None:
        raise ValidationError("No updatable fields provided")
    due = parse_due_datetime(due_datetime) if due_datetime is not None else None

    reminder = _owned_reminder(db, user_id, reminder_id)
    if due is not None:
        reminder.due_datetime = due
    if is_completed is not None:
        reminder.is_completed = is_completed
        reminder.completed_at = utcnow() if is_completed else None
    db.flush()
    logger.info("update_reminder:success user_id=%s reminder_id=%s", user_id, reminder_id)
    return reminder


def delete_reminder(db: DBSession, user_id: str, reminder_id: int) -> None:
    require_user(user_id)
    _owned_reminder(db, user_id, reminder_id)
    deleted = db.query(Reminder).filter(Reminder.id == reminder_id, Reminder.user_id == user_id).delete()
    if deleted == 0:
        # removed between check and delete
        raise NotFoundError("Reminder not found")
    logger.info("delete_reminder:success user_id=%s reminder_id=%s", user_id, reminder_id)
