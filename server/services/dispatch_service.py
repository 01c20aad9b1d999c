"""Due-reminder dispatcher.

A sweep runs in three stages, each testable on its own:

1. find_due_reminders  -- query unsent reminders with due_datetime <= now
2. dispatch_reminders  -- hand each one to the NotificationSender
3. mark_sent           -- one bulk UPDATE over the ids captured in stage 1

Every captured reminder is marked sent after the batch, whether or not its
delivery succeeded. A failed delivery is logged and never retried here;
the sender owns per-subscription failure handling.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session as DBSession, sessionmaker

from server.db.models import Problem, Reminder
from server.services.notification_service import NotificationSender
from server.timeutils import as_utc, utcnow

logger = logging.getLogger("revisit.dispatch")

_sweep_lock = threading.Lock()


@dataclass(frozen=True)
class DueReminder:
    reminder_id: int
    problem_id: int
    user_id: str
    problem_name: str
    due_datetime: datetime


@dataclass
class SweepResult:
    found: int = 0
    delivered: int = 0
    failed: int = 0
    marked: int = 0
    skipped: bool = False

    def to_dict(self) -> Dict:
        return {
            "found": self.found,
            "delivered": self.delivered,
            "failed": self.failed,
            "marked": self.marked,
            "skipped": self.skipped,
        }


def build_message(problem_name: str) -> str:
    return f"Time to revisit: {problem_name}"


def find_due_reminders(db: DBSession, now: datetime) -> List[DueReminder]:
    """Unsent reminders due at or before `now`, oldest first, with their problem name."""
    rows = (
        db.query(Reminder.id, Reminder.problem_id, Reminder.user_id, Reminder.due_datetime, Problem.name)
        .join(Problem, Reminder.problem_id == Problem.id)
        .filter(Reminder.is_sent.is_(False), Reminder.due_datetime <= as_utc(now))
        .order_by(Reminder.due_datetime.asc(), Reminder.id.asc())
        .all()
    )
    return [
        DueReminder(
            reminder_id=r[0],
            problem_id=r[1],
            user_id=r[2],
            due_datetime=as_utc(r[3]),
            problem_name=r[4],
        )
        for r in rows
    ]


def dispatch_reminders(due: Sequence[DueReminder], sender: NotificationSender) -> Tuple[int, int]:
    """
    Send one notification per due reminder. Returns (delivered, failed).

    Never raises for a single reminder: errors are logged and the loop moves on.
    """
    delivered = failed = 0
    for item in due:
        try:
            meta = {
                "due_datetime": item.due_datetime.isoformat(),
                "problem_id": item.problem_id,
            }
            report = sender.send(item.user_id, build_message(item.problem_name), meta)
        except Exception:
            failed += 1
            logger.exception("Notification failed for reminder_id=%s", item.reminder_id)
            continue
        if report.ok:
            delivered += 1
        else:
            failed += 1
            logger.warning(
                "Notification for reminder_id=%s had %d failed deliveries",
                item.reminder_id, report.failed,
            )
    return delivered, failed


def mark_sent(db: DBSession, reminder_ids: Sequence[int], now: datetime) -> int:
    """
    Flip the given reminders to SENT in one UPDATE. Returns rows changed.

    Already-sent rows are left untouched, so repeating the call (or an
    overlapping sweep) is harmless.
    """
    if not reminder_ids:
        return 0
    now = as_utc(now)
    return (
        db.query(Reminder)
        .filter(Reminder.id.in_(list(reminder_ids)), Reminder.is_sent.is_(False))
        .update(
            {Reminder.is_sent: True, Reminder.sent_at: now, Reminder.updated_at: now},
            synchronize_session=False,
        )
    )


def run_sweep(
    session_factory: sessionmaker,
    sender: NotificationSender,
    now: Optional[datetime] = None,
) -> SweepResult:
    """One scan-and-notify cycle. Skips if another sweep is already running in-process."""
    if not _sweep_lock.acquire(blocking=False):
        logger.warning("Previous reminder sweep still running; skipping")
        return SweepResult(skipped=True)
    try:
        return _run_sweep(session_factory, sender, as_utc(now) if now else utcnow())
    finally:
        _sweep_lock.release()


def _run_sweep(session_factory: sessionmaker, sender: NotificationSender, now: datetime) -> SweepResult:
    result = SweepResult()
    logger.debug("Checking for due reminders...")

    db = session_factory()
    try:
        due = find_due_reminders(db, now)
    finally:
        db.close()

    result.found = len(due)
    if not due:
        logger.debug("No due reminders found.")
        return result
    logger.info("Found %d reminders due", result.found)

    result.delivered, result.failed = dispatch_reminders(due, sender)

    db = session_factory()
    try:
        result.marked = mark_sent(db, [d.reminder_id for d in due], now)
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    logger.info(
        "Marked %d reminders as sent (%d delivered, %d failed)",
        result.marked, result.delivered, result.failed,
    )
    return result
