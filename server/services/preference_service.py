"""Per-user settings blob. Currently one key: autoReminders."""

import logging
from typing import Any, Dict, Tuple

from sqlalchemy.orm import Session as DBSession

from server.db.models import UserPreference
from server.errors import ValidationError, require_user

logger = logging.getLogger("revisit.preferences")

KNOWN_SETTINGS = {"autoReminders": bool}


def _validate(settings: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(settings, dict):
        raise ValidationError("Valid settings object is required", field="settings")
    clean = {}
    for key, value in settings.items():
        expected = KNOWN_SETTINGS.get(key)
        if expected is None:
            raise ValidationError(f"Unknown setting: {key}", field=f"settings.{key}")
        if not isinstance(value, expected):
            raise ValidationError(f"{key} must be {expected.__name__}", field=f"settings.{key}")
        clean[key] = value
    return clean


def get_preferences(db: DBSession, user_id: str) -> Dict[str, Any]:
    require_user(user_id)
    row = db.query(UserPreference).filter(UserPreference.user_id == user_id).first()
    return dict(row.settings or {}) if row else {}


def upsert_preferences(db: DBSession, user_id: str, settings: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Merge `settings` into the stored blob. Returns (saved settings, created)."""
    require_user(user_id)
    clean = _validate(settings)
    row = db.query(UserPreference).filter(UserPreference.user_id == user_id).first()
    created = row is None
    if created:
        row = UserPreference(user_id=user_id, settings=clean)
        db.add(row)
    else:
        # reassign so the JSON column is flagged dirty
        row.settings = {**(row.settings or {}), **clean}
    db.flush()
    logger.info("upsert_preferences:success user_id=%s created=%s", user_id, created)
    return dict(row.settings), created


def auto_reminders_enabled(db: DBSession, user_id: str) -> bool:
    """Resolve the autoReminders flag; off when never set."""
    return bool(get_preferences(db, user_id).get("autoReminders", False))
