"""Caller identity: account registration, password check, cookie sessions."""

import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerifyMismatchError
from sqlalchemy.orm import Session as DBSession

from server.db.models import Session, User
from server.errors import ConflictError, UnauthorizedError
from server.timeutils import as_utc, utcnow

logger = logging.getLogger("revisit.auth")

ph = PasswordHasher()

SESSION_TTL_HOURS = 24 * 7


def normalize_email(email: str) -> str:
    return email.lower().strip()


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def register_user(db: DBSession, email: str, password: str, name: Optional[str] = None) -> User:
    """Create a new user. Raises ConflictError if the email is taken."""
    email = normalize_email(email)
    if db.query(User).filter(User.email == email).first():
        raise ConflictError("Email already registered")
    user = User(email=email, name=(name or "").strip() or None, password_hash=ph.hash(password))
    db.add(user)
    db.flush()
    logger.info("register_user:success user_id=%s", user.id)
    return user


def authenticate(db: DBSession, email: str, password: str) -> User:
    """Return the user for valid credentials, else raise UnauthorizedError."""
    user = db.query(User).filter(User.email == normalize_email(email)).first()
    if user is None or not verify_password(password, user.password_hash):
        logger.warning("authenticate:failed")
        raise UnauthorizedError("Invalid email or password")
    return user


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return ph.verify(password_hash, password)
    except (VerifyMismatchError, InvalidHashError):
        return False


def create_session(db: DBSession, user_id: str, ttl_hours: int = SESSION_TTL_HOURS) -> str:
    """Create session, return raw token (to set in cookie). Only the hash is stored."""
    token = secrets.token_urlsafe(32)
    db.add(Session(
        user_id=user_id,
        token_hash=hash_token(token),
        expires_at=utcnow() + timedelta(hours=ttl_hours),
    ))
    db.flush()
    return token


def get_user_by_session(db: DBSession, token: Optional[str]) -> Optional[User]:
    """Return user if the token maps to an unexpired session, else None."""
    if not token:
        return None
    sess = db.query(Session).filter(Session.token_hash == hash_token(token)).first()
    if sess is None or as_utc(sess.expires_at) <= utcnow():
        return None
    return db.get(User, sess.user_id)


def logout_session(db: DBSession, token: Optional[str]) -> bool:
    """Delete session by token. Returns True if found."""
    if not token:
        return False
    deleted = db.query(Session).filter(Session.token_hash == hash_token(token)).delete()
    return deleted > 0
