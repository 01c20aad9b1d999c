"""Reminder due-date computation: default schedule and feedback-driven schedule."""

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import List, Optional, Sequence

from practice.meta import PracticeMeta
from practice.sm2 import compute_next_schedule

DEFAULT_REMINDER_OFFSETS = (3, 7, 15)
DEFAULT_REMINDER_HOUR = 9


def at_reminder_hour(day: date, tz: tzinfo, hour: int = DEFAULT_REMINDER_HOUR) -> datetime:
    """Wall-clock `hour`:00 on `day` in `tz`, returned as an aware UTC datetime."""
    local = datetime.combine(day, time(hour=hour), tzinfo=tz)
    return local.astimezone(timezone.utc)


def initial_reminder_times(
    date_solved: date,
    auto_reminders: bool,
    tz: tzinfo,
    explicit: Optional[Sequence[datetime]] = None,
    hour: int = DEFAULT_REMINDER_HOUR,
    offsets: Sequence[int] = DEFAULT_REMINDER_OFFSETS,
) -> List[datetime]:
    """
    Due-times for the reminders created alongside a new problem.

    An explicit non-empty list (e.g. replayed from a client's offline queue)
    is returned verbatim and always wins. Otherwise one reminder per offset
    when auto-reminders are enabled, else none.
    """
    if explicit:
        return [_as_utc(dt) for dt in explicit]
    if not auto_reminders:
        return []
    return [at_reminder_hour(date_solved + timedelta(days=d), tz, hour) for d in offsets]


def next_review(
    meta: PracticeMeta,
    quality_score: int,
    now: datetime,
    tz: tzinfo,
    hour: int = DEFAULT_REMINDER_HOUR,
) -> PracticeMeta:
    """
    Apply one feedback submission to `meta` and return the new state.

    next_due_at is `interval` days after the local date of `now`, at `hour`:00 local.
    """
    attempt_number = meta.attempt_count + 1
    ease, interval = compute_next_schedule(
        meta.ease_factor, meta.interval, attempt_number, quality_score,
    )
    now = _as_utc(now)
    local_today = now.astimezone(tz).date()
    next_due = at_reminder_hour(local_today + timedelta(days=interval), tz, hour)
    return PracticeMeta(
        attempt_count=attempt_number,
        ease_factor=ease,
        interval=interval,
        last_attempted_at=now,
        next_due_at=next_due,
        quality_score=quality_score,
    )


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
