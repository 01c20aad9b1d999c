"""FastAPI application -- routes for the Revisit practice tracker."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import date, tzinfo
from pathlib import Path
from typing import Optional

_project_root = str(Path(__file__).resolve().parent.parent)
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

import asyncio
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session as DBSession

from server.config import Settings
from server.dependencies import get_db_session, get_reminder_zone, get_settings
from server.errors import AppError
from server.logging_config import LOGGER_NAME, configure_logging
from server.schemas import (
    LoginRequest,
    MessageResponse,
    PracticeFeedbackRequest,
    PracticeFeedbackResponse,
    PreferencesRequest,
    PreferencesResponse,
    ProblemCreateRequest,
    ProblemResponse,
    ProblemsResponse,
    ProblemUpdateRequest,
    RegisterRequest,
    ReminderCreateRequest,
    ReminderResponse,
    RemindersResponse,
    ReminderUpdateRequest,
    SubscriptionCreateRequest,
    SubscriptionDeleteRequest,
    SubscriptionResponse,
    UserResponse,
)
from server.services import (
    auth_service,
    dispatch_service,
    preference_service,
    problem_service,
    reminder_service,
    subscription_service,
)
from server.services.notification_service import sender_from_settings
from server.__version__ import __version__
from server.auth import SESSION_COOKIE, get_current_user

logger = logging.getLogger(LOGGER_NAME)


async def _sweep_loop(settings: Settings) -> None:
    """Run the due-reminder sweep every reminder_sweep_interval_s seconds."""
    from server.db.session import get_session_factory
    factory = get_session_factory(settings)
    sender = sender_from_settings(settings, factory)
    while True:
        try:
            await asyncio.to_thread(dispatch_service.run_sweep, factory, sender)
        except Exception:
            logger.exception("Reminder sweep failed")
        await asyncio.sleep(settings.reminder_sweep_interval_s)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan: init DB and start the reminder sweep."""
    from server.db.session import init_db
    settings = app.dependency_overrides.get(get_settings, get_settings)()
    configure_logging(settings.log_level)
    init_db(settings)
    logger.info("Startup: version=%s sweep=%s", __version__, settings.reminder_sweep_enabled)

    task: Optional[asyncio.Task] = None
    if settings.reminder_sweep_enabled:
        task = asyncio.create_task(_sweep_loop(settings))
    yield
    if task is not None:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
    logger.info("Shutdown: complete")


app = FastAPI(title="Revisit", version=__version__, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=Settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---- Errors ----

@app.exception_handler(AppError)
def handle_app_error(request: Request, exc: AppError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
def handle_request_validation(request: Request, exc: RequestValidationError):
    fields = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")),
            "message": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    first = fields[0] if fields else {"field": "", "message": "Invalid request"}
    return JSONResponse(
        status_code=400,
        content={
            "error": "VALIDATION",
            "message": f"{first['field']}: {first['message']}" if first["field"] else first["message"],
            "fields": fields,
        },
    )


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "INTERNAL", "message": "Internal server error"})


# ---- Auth ----

SESSION_MAX_AGE = 60 * 60 * 24 * 7  # 7 days


def _set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        secure=False,
        samesite="lax",
    )


def _user_dict(user) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


@app.post("/auth/register", response_model=UserResponse)
def auth_register(body: RegisterRequest, response: Response, db: DBSession = Depends(get_db_session)):
    user = auth_service.register_user(db, body.email, body.password, name=body.name)
    token = auth_service.create_session(db, user.id)
    db.commit()
    _set_session_cookie(response, token)
    return _user_dict(user)


@app.post("/auth/login", response_model=UserResponse)
def auth_login(body: LoginRequest, response: Response, db: DBSession = Depends(get_db_session)):
    user = auth_service.authenticate(db, body.email, body.password)
    token = auth_service.create_session(db, user.id)
    db.commit()
    _set_session_cookie(response, token)
    return _user_dict(user)


@app.post("/auth/logout", response_model=MessageResponse)
def auth_logout(request: Request, response: Response, db: DBSession = Depends(get_db_session)):
    auth_service.logout_session(db, request.cookies.get(SESSION_COOKIE))
    db.commit()
    response.delete_cookie(SESSION_COOKIE)
    return {"message": "Logged out"}


@app.get("/auth/me", response_model=UserResponse)
def auth_me(user=Depends(get_current_user)):
    return _user_dict(user)


# ---- Health (no dependencies, always fast) ----

@app.get("/health")
def health():
    """Minimal health check. No deps."""
    return {"ok": True}


# ---- Problems ----

@app.get("/problems", response_model=ProblemsResponse)
def list_problems(
    difficulty: Optional[str] = None,
    tags: Optional[str] = None,
    date_solved: Optional[date] = None,
    page: int = 1,
    page_size: int = 10,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    """List the caller's problems with their reminders. `tags` is comma-separated."""
    tag_list = [t for t in (tags or "").split(",") if t.strip()]
    result = problem_service.list_problems(
        db, user.id,
        difficulty=difficulty,
        tags=tag_list,
        date_solved=date_solved,
        page=page,
        page_size=page_size,
    )
    return {
        "problems": [problem_service.problem_to_dict(p, include_reminders=True) for p in result["problems"]],
        "meta": {
            "total_items": result["total"],
            "total_pages": result["total_pages"],
            "page": result["page"],
            "page_size": result["page_size"],
        },
    }


@app.post("/problems", response_model=ProblemResponse, status_code=201)
def create_problem(
    body: ProblemCreateRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    zone: tzinfo = Depends(get_reminder_zone),
):
    """Log a solved problem. Schedules the default reminders when the user enabled them."""
    auto = preference_service.auto_reminders_enabled(db, user.id)
    problem, reminders = problem_service.create_problem(
        db, user.id,
        name=body.name,
        difficulty=body.difficulty,
        date_solved=body.date_solved,
        tz=zone,
        tags=body.tags,
        notes=body.notes,
        auto_reminders=auto,
        reminders=[r.due_datetime for r in body.reminders],
        reminder_hour=settings.reminder_hour,
    )
    db.commit()
    suffix = " with scheduled reminders" if reminders else ""
    problem_dict = problem_service.problem_to_dict(problem)
    problem_dict["reminders"] = [reminder_service.reminder_to_dict(r) for r in reminders]
    return {"message": f"Problem created successfully{suffix}", "problem": problem_dict}


@app.get("/problems/{problem_id}", response_model=ProblemResponse)
def get_problem(problem_id: int, user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    problem = problem_service.get_problem(db, user.id, problem_id)
    return {"problem": problem_service.problem_to_dict(problem, include_reminders=True)}


@app.put("/problems/{problem_id}", response_model=ProblemResponse)
def update_problem(
    problem_id: int,
    body: ProblemUpdateRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    problem = problem_service.update_problem(db, user.id, problem_id, body.model_dump(exclude_none=True))
    db.commit()
    return {"message": "Problem updated successfully", "problem": problem_service.problem_to_dict(problem)}


@app.delete("/problems/{problem_id}", response_model=MessageResponse)
def delete_problem(problem_id: int, user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    """Delete a problem and all of its reminders."""
    problem_service.delete_problem(db, user.id, problem_id)
    db.commit()
    return {"message": "Problem deleted successfully"}


@app.put("/problems/{problem_id}/practice", response_model=PracticeFeedbackResponse)
def practice_feedback(
    problem_id: int,
    body: PracticeFeedbackRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
    settings: Settings = Depends(get_settings),
    zone: tzinfo = Depends(get_reminder_zone),
):
    """Submit recall quality (0-5). Updates SM-2 state and schedules the next reminder."""
    problem, next_due = problem_service.record_practice_feedback(
        db, user.id, problem_id, body.quality_score,
        tz=zone,
        reminder_hour=settings.reminder_hour,
    )
    db.commit()
    local_day = next_due.astimezone(zone).strftime("%a %b %d %Y")
    return {
        "message": f"Next reminder on {local_day}",
        "problem": problem_service.problem_to_dict(problem),
        "next_due_at": next_due.isoformat(),
    }


# ---- Reminders ----

@app.get("/problems/{problem_id}/reminders", response_model=RemindersResponse)
def list_problem_reminders(problem_id: int, user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    reminders = reminder_service.list_reminders_for_problem(db, user.id, problem_id)
    return {"reminders": [reminder_service.reminder_to_dict(r) for r in reminders]}


@app.post("/problems/{problem_id}/reminders", response_model=ReminderResponse, status_code=201)
def create_reminder(
    problem_id: int,
    body: ReminderCreateRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    reminder = reminder_service.create_reminder(db, user.id, problem_id, body.due_datetime)
    db.commit()
    return {"message": "Reminder created successfully", "reminder": reminder_service.reminder_to_dict(reminder)}


@app.get("/reminders/{reminder_id}", response_model=ReminderResponse)
def get_reminder(reminder_id: int, user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    reminder = reminder_service.get_reminder(db, user.id, reminder_id)
    return {"reminder": reminder_service.reminder_to_dict(reminder)}


@app.put("/reminders/{reminder_id}", response_model=ReminderResponse)
def update_reminder(
    reminder_id: int,
    body: ReminderUpdateRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    reminder = reminder_service.update_reminder(
        db, user.id, reminder_id,
        due_datetime=body.due_datetime,
        is_completed=body.is_completed,
    )
    db.commit()
    return {"message": "Reminder updated successfully", "reminder": reminder_service.reminder_to_dict(reminder)}


@app.delete("/reminders/{reminder_id}", response_model=MessageResponse)
def delete_reminder(reminder_id: int, user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    reminder_service.delete_reminder(db, user.id, reminder_id)
    db.commit()
    return {"message": "Reminder deleted successfully"}


# ---- Preferences ----

@app.get("/preferences", response_model=PreferencesResponse)
def get_preferences(user=Depends(get_current_user), db: DBSession = Depends(get_db_session)):
    return {"settings": preference_service.get_preferences(db, user.id)}


@app.put("/preferences", response_model=PreferencesResponse)
def put_preferences(
    body: PreferencesRequest,
    response: Response,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    saved, created = preference_service.upsert_preferences(db, user.id, body.settings)
    db.commit()
    response.status_code = 201 if created else 200
    message = "Preferences saved successfully" if created else "Preferences updated successfully"
    return {"message": message, "settings": saved}


# ---- Push subscriptions ----

@app.post("/subscriptions", response_model=SubscriptionResponse)
def create_subscription(
    body: SubscriptionCreateRequest,
    response: Response,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    sub, created = subscription_service.upsert_subscription(
        db, user.id, body.endpoint, body.public_key, body.auth,
    )
    db.commit()
    response.status_code = 201 if created else 200
    return {
        "message": "Subscription created successfully" if created else "Subscription updated successfully",
        "subscription": {"id": sub.id, "user_id": sub.user_id, "endpoint": sub.endpoint},
    }


@app.delete("/subscriptions", response_model=MessageResponse)
def delete_subscription(
    body: SubscriptionDeleteRequest,
    user=Depends(get_current_user),
    db: DBSession = Depends(get_db_session),
):
    subscription_service.delete_subscription(db, user.id, body.endpoint)
    db.commit()
    return {"message": "Subscription deleted successfully"}
