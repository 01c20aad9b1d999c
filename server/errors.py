"""Application errors raised by services and rendered by the API."""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Base error with a stable machine-readable code and an HTTP status."""

    code: str = "INTERNAL"
    status_code: int = 500

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class ValidationError(AppError):
    """Bad input, rejected before any write."""

    code = "VALIDATION"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        if self.field:
            d["field"] = self.field
        return d


class UnauthorizedError(AppError):
    code = "UNAUTHORIZED"
    status_code = 401


class NotFoundError(AppError):
    """Entity absent, or not owned by the caller."""

    code = "NOT_FOUND"
    status_code = 404


class ConflictError(AppError):
    code = "CONFLICT"
    status_code = 409


def require_user(user_id: Optional[str]) -> str:
    """Raise UnauthorizedError when the caller identity is missing."""
    if not user_id:
        raise UnauthorizedError("Missing user id")
    return user_id
