"""Problem CRUD plus the two reminder-scheduling paths.

Path A (create_problem): default fixed-offset reminders, or an explicit list.
Path B (record_practice_feedback): SM-2 update of practice_meta and exactly
one follow-up reminder, all in one transaction.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session as DBSession, selectinload

from practice.meta import PracticeMeta, is_valid_quality
from practice.reminders import DEFAULT_REMINDER_HOUR, initial_reminder_times, next_review
from server.db.models import Problem, Reminder
from server.errors import NotFoundError, ValidationError, require_user
from server.services.reminder_service import parse_due_datetime, reminder_to_dict
from server.timeutils import as_utc, utcnow

logger = logging.getLogger("revisit.problems")

DIFFICULTIES = ("Easy", "Medium", "Hard")
UPDATABLE_FIELDS = ("name", "difficulty", "tags", "date_solved", "notes")
MAX_PAGE_SIZE = 100


def normalize_tags(tags: Optional[Sequence[str]]) -> List[str]:
    """Lower-case, trim, drop empties, keep first occurrence order."""
    seen: List[str] = []
    for t in tags or []:
        t = str(t).strip().lower()
        if t and t not in seen:
            seen.append(t)
    return seen


def _check_difficulty(difficulty: str) -> None:
    if difficulty not in DIFFICULTIES:
        raise ValidationError(
            f"difficulty must be one of {', '.join(DIFFICULTIES)}", field="difficulty",
        )


def _check_name(name: Any) -> str:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", field="name")
    return name.strip()


def problem_to_dict(problem: Problem, include_reminders: bool = False) -> Dict[str, Any]:
    """JSON-safe view of a problem; practice_meta is re-serialized through PracticeMeta."""
    meta = problem.practice_meta
    d = {
        "id": problem.id,
        "user_id": problem.user_id,
        "name": problem.name,
        "difficulty": problem.difficulty,
        "tags": list(problem.tags or []),
        "date_solved": problem.date_solved.isoformat(),
        "notes": problem.notes,
        "practice_meta": PracticeMeta.from_dict(meta).to_dict() if meta is not None else None,
        "created_at": as_utc(problem.created_at).isoformat() if problem.created_at else None,
    }
    if include_reminders:
        d["reminders"] = [reminder_to_dict(r) for r in _sorted_reminders(problem.reminders)]
    return d


def _sorted_reminders(reminders: List[Reminder]) -> List[Reminder]:
    pending_first = sorted(reminders, key=lambda r: as_utc(r.due_datetime), reverse=True)
    return sorted(pending_first, key=lambda r: r.is_sent)


def _owned_problem(db: DBSession, user_id: str, problem_id: int) -> Problem:
    problem = db.query(Problem).filter(Problem.id == problem_id, Problem.user_id == user_id).first()
    if problem is None:
        logger.warning("problem:not_found user_id=%s problem_id=%s", user_id, problem_id)
        raise NotFoundError("Problem not found")
    return problem


def create_problem(
    db: DBSession,
    user_id: str,
    name: str,
    difficulty: str,
    date_solved: date,
    tz: tzinfo,
    tags: Optional[Sequence[str]] = None,
    notes: Optional[str] = None,
    auto_reminders: bool = False,
    reminders: Optional[Sequence[Any]] = None,
    reminder_hour: int = DEFAULT_REMINDER_HOUR,
) -> Tuple[Problem, List[Reminder]]:
    """
    Insert a problem and its initial reminders in one transaction.

    `auto_reminders` is the caller-resolved user preference. A non-empty
    `reminders` list of due-times is inserted verbatim instead of the
    default schedule.
    """
    require_user(user_id)
    name = _check_name(name)
    _check_difficulty(difficulty)
    explicit = [parse_due_datetime(r) for r in reminders or []]

    logger.info(
        "create_problem:start user_id=%s auto_reminders=%s explicit=%d",
        user_id, auto_reminders, len(explicit),
    )
    due_times = initial_reminder_times(
        date_solved, auto_reminders, tz, explicit=explicit, hour=reminder_hour,
    )

    try:
        problem = Problem(
            user_id=user_id,
            name=name,
            difficulty=difficulty,
            tags=normalize_tags(tags),
            date_solved=date_solved,
            notes=notes,
        )
        db.add(problem)
        db.flush()

        rows = [Reminder(problem_id=problem.id, user_id=user_id, due_datetime=due) for due in due_times]
        db.add_all(rows)
        db.flush()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "create_problem:success user_id=%s problem_id=%s reminders=%d",
        user_id, problem.id, len(rows),
    )
    return problem, rows


def get_problem(db: DBSession, user_id: str, problem_id: int) -> Problem:
    require_user(user_id)
    return _owned_problem(db, user_id, problem_id)


def list_problems(
    db: DBSession,
    user_id: str,
    difficulty: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
    date_solved: Optional[date] = None,
    page: int = 1,
    page_size: int = 10,
) -> Dict[str, Any]:
    """
    Page through a user's problems, newest first.

    `tags` matches problems carrying all of the given tags.
    """
    require_user(user_id)
    page = max(1, page)
    page_size = min(MAX_PAGE_SIZE, max(1, page_size))
    if difficulty is not None:
        _check_difficulty(difficulty)

    q = db.query(Problem).options(selectinload(Problem.reminders)).filter(Problem.user_id == user_id)
    if difficulty:
        q = q.filter(Problem.difficulty == difficulty)
    if date_solved:
        q = q.filter(Problem.date_solved == date_solved)
    q = q.order_by(Problem.created_at.desc(), Problem.id.desc())

    wanted = set(normalize_tags(tags))
    if wanted:
        # JSON containment isn't portable across backends; filter in Python
        matching = [p for p in q.all() if wanted.issubset(p.tags or [])]
        total = len(matching)
        rows = matching[(page - 1) * page_size: page * page_size]
    else:
        total = q.count()
        rows = q.offset((page - 1) * page_size).limit(page_size).all()

    return {
        "problems": rows,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": (total + page_size - 1) // page_size,
    }


def update_problem(db: DBSession, user_id: str, problem_id: int, data: Dict[str, Any]) -> Problem:
    """Patch the editable fields. practice_meta is never touched here."""
    require_user(user_id)
    patch = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS and v is not None}
    if not patch:
        raise ValidationError("No updatable fields provided")
    if "name" in patch:
        patch["name"] = _check_name(patch["name"])
    if "difficulty" in patch:
        _check_difficulty(patch["difficulty"])
    if "tags" in patch:
        patch["tags"] = normalize_tags(patch["tags"])

    problem = _owned_problem(db, user_id, problem_id)
    for key, value in patch.items():
        setattr(problem, key, value)
    db.flush()
    logger.info("update_problem:success user_id=%s problem_id=%s fields=%s", user_id, problem_id, sorted(patch))
    return problem


def delete_problem(db: DBSession, user_id: str, problem_id: int) -> None:
    """Delete a problem and its reminders."""
    require_user(user_id)
    _owned_problem(db, user_id, problem_id)
    try:
        db.query(Reminder).filter(Reminder.problem_id == problem_id).delete(synchronize_session=False)
        deleted = db.query(Problem).filter(Problem.id == problem_id, Problem.user_id == user_id).delete(
            synchronize_session=False,
        )
        if deleted == 0:
            raise NotFoundError("Problem not found")
        db.flush()
    except Exception:
        db.rollback()
        raise
    logger.info("delete_problem:success user_id=%s problem_id=%s", user_id, problem_id)


def record_practice_feedback(
    db: DBSession,
    user_id: str,
    problem_id: int,
    quality_score: Any,
    tz: tzinfo,
    reminder_hour: int = DEFAULT_REMINDER_HOUR,
    now: Optional[datetime] = None,
) -> Tuple[Problem, datetime]:
    """
    Apply a recall-quality self-report to a problem.

    Updates practice_meta via SM-2 and inserts exactly one reminder at the
    new next_due_at. Both writes happen in the caller's transaction and are
    rolled back together on failure. Returns (problem, next_due_at).
    """
    require_user(user_id)
    if not is_valid_quality(quality_score):
        raise ValidationError("quality_score must be an integer between 0 and 5", field="quality_score")

    now = as_utc(now) if now is not None else utcnow()
    try:
        problem = _owned_problem(db, user_id, problem_id)
        meta = PracticeMeta.from_dict(problem.practice_meta)
        updated = next_review(meta, quality_score, now, tz, hour=reminder_hour)

        problem.practice_meta = updated.to_dict()
        db.add(Reminder(problem_id=problem.id, user_id=user_id, due_datetime=updated.next_due_at))
        db.flush()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "record_practice_feedback:success user_id=%s problem_id=%s attempt=%d interval=%d next_due=%s",
        user_id, problem_id, updated.attempt_count, updated.interval, updated.next_due_at.isoformat(),
    )
    return problem, updated.next_due_at
