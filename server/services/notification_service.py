"""Notification senders. The dispatcher only sees the NotificationSender interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

import httpx
from sqlalchemy.orm import Session as DBSession, sessionmaker

from server.db.models import PushSubscription

logger = logging.getLogger("revisit.push")

NOTIFICATION_TITLE = "DSA Revision Reminder"

# Push services answer these for subscriptions that will never work again
GONE_STATUSES = (404, 410)


@dataclass
class DeliveryReport:
    """Per-subscription outcome of one send() call."""
    delivered: int = 0
    failed: int = 0
    pruned: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.failed == 0


class NotificationSender(ABC):
    """Deliver one message to every device a user has registered."""

    @abstractmethod
    def send(self, user_id: str, message: str, meta: Dict[str, Any]) -> DeliveryReport:
        """Attempt delivery. Handles its own per-subscription failures."""
        ...


class LogOnlySender(NotificationSender):
    """Used when push delivery is disabled: logs and reports success."""

    def send(self, user_id: str, message: str, meta: Dict[str, Any]) -> DeliveryReport:
        logger.info("push disabled; would notify user_id=%s: %s %s", user_id, message, meta)
        return DeliveryReport(delivered=1)


class PushEndpointSender(NotificationSender):
    """
    POSTs a JSON payload to each active subscription endpoint of the user.

    Every request carries a short timeout so one hanging endpoint cannot
    stall the sweep. Subscriptions answering 404/410 are deleted.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        timeout_s: float = 5.0,
        client_factory: Callable[..., httpx.Client] = httpx.Client,
    ):
        self.session_factory = session_factory
        self.timeout_s = timeout_s
        self.client_factory = client_factory

    @staticmethod
    def build_payload(message: str, meta: Dict[str, Any]) -> Dict[str, Any]:
        return {"title": NOTIFICATION_TITLE, "body": {"message": message, "meta": meta}}

    def send(self, user_id: str, message: str, meta: Dict[str, Any]) -> DeliveryReport:
        report = DeliveryReport()
        db: DBSession = self.session_factory()
        try:
            subs = db.query(PushSubscription).filter(
                PushSubscription.user_id == user_id,
                PushSubscription.is_active.is_(True),
            ).all()
            if not subs:
                logger.debug("No active subscriptions for user_id=%s", user_id)
                return report

            payload = self.build_payload(message, meta)
            with self.client_factory(timeout=self.timeout_s) as client:
                for sub in subs:
                    self._send_one(client, db, sub, payload, report)
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
        return report

    def _send_one(
        self,
        client: httpx.Client,
        db: DBSession,
        sub: PushSubscription,
        payload: Dict[str, Any],
        report: DeliveryReport,
    ) -> None:
        try:
            resp = client.post(sub.endpoint, json=payload, headers={"TTL": "86400"})
        except httpx.HTTPError as e:
            report.failed += 1
            logger.error("Failed to send push to user_id=%s: %s", sub.user_id, e)
            return

        if resp.status_code in GONE_STATUSES:
            report.failed += 1
            report.pruned.append(sub.endpoint)
            db.query(PushSubscription).filter(PushSubscription.endpoint == sub.endpoint).delete()
            logger.warning("Pruned dead subscription id=%s (HTTP %s)", sub.id, resp.status_code)
        elif resp.is_success:
            report.delivered += 1
            logger.info("Push sent to user_id=%s", sub.user_id)
        else:
            report.failed += 1
            logger.error("Failed to send push to user_id=%s: HTTP %s", sub.user_id, resp.status_code)


def sender_from_settings(settings, session_factory: sessionmaker) -> NotificationSender:
    if settings.push_enabled:
        return PushEndpointSender(session_factory, timeout_s=settings.push_timeout_s)
    return LogOnlySender()
