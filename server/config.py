"""Configuration for the Revisit API server."""

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_flag(name: str) -> Optional[bool]:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return None
    return raw.lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """
    Runtime settings for the API server and the reminder sweep.

    Every field is overridable at construction for testing.
    Unset fields fall back to environment variables, then defaults.
    """
    database_url: Optional[str] = None
    session_secret: Optional[str] = None
    cors_origins: List[str] = field(default_factory=list)
    log_level: Optional[str] = None

    # Reminders are normalized to this wall-clock hour in this timezone
    reminder_timezone: Optional[str] = None
    reminder_hour: int = 9

    # Background sweep (dispatcher)
    reminder_sweep_enabled: Optional[bool] = None
    reminder_sweep_interval_s: float = 60.0

    # Push delivery
    push_enabled: Optional[bool] = None
    push_timeout_s: float = 5.0

    def __post_init__(self):
        if self.database_url is None:
            self.database_url = os.environ.get("DATABASE_URL", "sqlite:///./revisit.db")
        if self.session_secret is None:
            self.session_secret = os.environ.get("SESSION_SECRET", "dev-secret-change-in-production")
        if not self.cors_origins:
            raw = os.environ.get("CORS_ORIGINS", "http://localhost:5173")
            self.cors_origins = [o.strip() for o in raw.split(",") if o.strip()]
        if self.log_level is None:
            self.log_level = os.environ.get("LOG_LEVEL", "INFO").upper()

        if self.reminder_timezone is None:
            self.reminder_timezone = os.environ.get("REMINDER_TIMEZONE", "UTC")
        env_hour = os.environ.get("REMINDER_HOUR")
        if env_hour is not None:
            try:
                self.reminder_hour = int(env_hour)
            except ValueError:
                pass
        if not (0 <= self.reminder_hour <= 23):
            raise ValueError(f"reminder_hour must be 0-23, got {self.reminder_hour}")

        if self.reminder_sweep_enabled is None:
            flag = _env_flag("REMINDER_SWEEP_ENABLED")
            self.reminder_sweep_enabled = True if flag is None else flag
        try:
            if v := os.environ.get("REMINDER_SWEEP_INTERVAL_S"):
                self.reminder_sweep_interval_s = float(v)
        except ValueError:
            pass

        if self.push_enabled is None:
            self.push_enabled = bool(_env_flag("PUSH_ENABLED"))
        try:
            if v := os.environ.get("PUSH_TIMEOUT_S"):
                self.push_timeout_s = float(v)
        except ValueError:
            pass
