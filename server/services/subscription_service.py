"""Push subscription registry (one row per device endpoint)."""

import logging
from typing import Tuple

from sqlalchemy.orm import Session as DBSession

from server.db.models import PushSubscription
from server.errors import ConflictError, NotFoundError, ValidationError, require_user

logger = logging.getLogger("revisit.push")


def upsert_subscription(
    db: DBSession,
    user_id: str,
    endpoint: str,
    public_key: str,
    auth: str,
) -> Tuple[PushSubscription, bool]:
    """Register a device or refresh its keys. Returns (row, created)."""
    require_user(user_id)
    if not endpoint or not public_key or not auth:
        raise ValidationError("endpoint, public_key and auth are required")

    existing = db.query(PushSubscription).filter(PushSubscription.endpoint == endpoint).first()
    if existing is not None:
        if existing.user_id != user_id:
            raise ConflictError("This device is already subscribed")
        existing.public_key = public_key
        existing.auth = auth
        existing.is_active = True
        db.flush()
        logger.info("upsert_subscription:updated user_id=%s subscription_id=%s", user_id, existing.id)
        return existing, False

    sub = PushSubscription(user_id=user_id, endpoint=endpoint, public_key=public_key, auth=auth)
    db.add(sub)
    db.flush()
    logger.info("upsert_subscription:created user_id=%s subscription_id=%s", user_id, sub.id)
    return sub, True


def delete_subscription(db: DBSession, user_id: str, endpoint: str) -> None:
    require_user(user_id)
    if not endpoint:
        raise ValidationError("endpoint is required", field="endpoint")
    deleted = db.query(PushSubscription).filter(
        PushSubscription.user_id == user_id,
        PushSubscription.endpoint == endpoint,
    ).delete()
    if deleted == 0:
        logger.warning("delete_subscription:not_found user_id=%s", user_id)
        raise NotFoundError("Subscription not found")
    logger.info("delete_subscription:success user_id=%s", user_id)
