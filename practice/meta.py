"""PracticeMeta: per-problem repetition state stored as a JSON blob."""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from practice.sm2 import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR

MIN_QUALITY = 0
MAX_QUALITY = 5


def is_valid_quality(quality_score: Any) -> bool:
    """True for an int (not bool) in [0, 5]."""
    return (
        isinstance(quality_score, int)
        and not isinstance(quality_score, bool)
        and MIN_QUALITY <= quality_score <= MAX_QUALITY
    )


def _parse_ts(value: Any, key: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            raise ValueError(f"practice_meta.{key} is not an ISO timestamp: {value!r}")
    else:
        raise ValueError(f"practice_meta.{key} must be a timestamp, got {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _format_ts(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


@dataclass(frozen=True)
class PracticeMeta:
    """
    Repetition history for one problem.

    Only ever replaced by a new instance computed from the SM-2 calculator
    (see practice.reminders.next_review). attempt_count never decreases.
    """
    attempt_count: int = 0
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    last_attempted_at: Optional[datetime] = None
    next_due_at: Optional[datetime] = None
    quality_score: Optional[int] = None

    def __post_init__(self):
        if isinstance(self.attempt_count, bool) or not isinstance(self.attempt_count, int) or self.attempt_count < 0:
            raise ValueError(f"attempt_count must be a non-negative int, got {self.attempt_count!r}")
        if isinstance(self.interval, bool) or not isinstance(self.interval, int) or self.interval < 0:
            raise ValueError(f"interval must be a non-negative int, got {self.interval!r}")
        if isinstance(self.ease_factor, bool) or not isinstance(self.ease_factor, (int, float)):
            raise ValueError(f"ease_factor must be a number, got {self.ease_factor!r}")
        if self.ease_factor < MIN_EASE_FACTOR:
            raise ValueError(f"ease_factor must be >= {MIN_EASE_FACTOR}, got {self.ease_factor}")
        if self.quality_score is not None and not is_valid_quality(self.quality_score):
            raise ValueError(f"quality_score must be 0-5, got {self.quality_score!r}")

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["ease_factor"] = float(self.ease_factor)
        d["last_attempted_at"] = _format_ts(self.last_attempted_at)
        d["next_due_at"] = _format_ts(self.next_due_at)
        return d

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PracticeMeta":
        """
        Deserialize a stored blob. None or {} means a never-practiced problem.

        Raises ValueError on a malformed blob.
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ValueError(f"practice_meta must be an object, got {type(data).__name__}")
        known = cls.__dataclass_fields__
        values = {k: v for k, v in data.items() if k in known and v is not None}
        for key in ("last_attempted_at", "next_due_at"):
            if key in values:
                values[key] = _parse_ts(values[key], key)
        return cls(**values)
