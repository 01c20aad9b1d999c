"""Pydantic request/response schemas for the Revisit API."""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field


# ---- Auth ----

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: Optional[str] = Field(default=None, max_length=255)


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)


class UserResponse(BaseModel):
    id: str
    email: str
    name: Optional[str] = None


# ---- Practice meta ----

class PracticeMetaSchema(BaseModel):
    attempt_count: int
    ease_factor: float
    interval: int
    last_attempted_at: Optional[str] = None
    next_due_at: Optional[str] = None
    quality_score: Optional[int] = None


# ---- Reminders ----

class ReminderSchema(BaseModel):
    id: int
    problem_id: int
    user_id: str
    due_datetime: str
    is_sent: bool
    sent_at: Optional[str] = None
    is_completed: bool
    completed_at: Optional[str] = None
    created_at: Optional[str] = None


class ReminderInput(BaseModel):
    due_datetime: datetime


class ReminderCreateRequest(BaseModel):
    # validated by the service so malformed values surface as VALIDATION on due_datetime
    due_datetime: Any = None


class ReminderUpdateRequest(BaseModel):
    due_datetime: Any = None
    is_completed: Optional[bool] = None


class ReminderResponse(BaseModel):
    message: Optional[str] = None
    reminder: ReminderSchema


class RemindersResponse(BaseModel):
    reminders: List[ReminderSchema]


# ---- Problems ----

Difficulty = Literal["Easy", "Medium", "Hard"]


class ProblemSchema(BaseModel):
    id: int
    user_id: str
    name: str
    difficulty: str
    tags: List[str]
    date_solved: str
    notes: Optional[str] = None
    practice_meta: Optional[PracticeMetaSchema] = None
    created_at: Optional[str] = None
    reminders: Optional[List[ReminderSchema]] = None


class ProblemCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    difficulty: Difficulty
    tags: List[str] = Field(default_factory=list)
    date_solved: date
    notes: Optional[str] = Field(default=None, max_length=20000)
    # explicit due-times override the default schedule
    reminders: List[ReminderInput] = Field(default_factory=list)


class ProblemUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    difficulty: Optional[Difficulty] = None
    tags: Optional[List[str]] = None
    date_solved: Optional[date] = None
    notes: Optional[str] = Field(default=None, max_length=20000)


class ProblemResponse(BaseModel):
    message: Optional[str] = None
    problem: ProblemSchema


class PageMeta(BaseModel):
    total_items: int
    total_pages: int
    page: int
    page_size: int


class ProblemsResponse(BaseModel):
    problems: List[ProblemSchema]
    meta: PageMeta


class PracticeFeedbackRequest(BaseModel):
    # range-checked by the service: 0 (blanked) .. 5 (perfect recall)
    quality_score: Any = None


class PracticeFeedbackResponse(BaseModel):
    message: str
    problem: ProblemSchema
    next_due_at: str


# ---- Preferences ----

class PreferencesRequest(BaseModel):
    settings: Dict[str, Any]


class PreferencesResponse(BaseModel):
    message: Optional[str] = None
    settings: Dict[str, Any]


# ---- Push subscriptions ----

class SubscriptionCreateRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)
    public_key: str = Field(..., min_length=1, max_length=255)
    auth: str = Field(..., min_length=1, max_length=255)


class SubscriptionDeleteRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class SubscriptionSchema(BaseModel):
    id: int
    user_id: str
    endpoint: str


class SubscriptionResponse(BaseModel):
    message: str
    subscription: SubscriptionSchema


class MessageResponse(BaseModel):
    message: str
