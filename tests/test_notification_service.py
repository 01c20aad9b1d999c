"""Tests for push delivery: payload shape, timeouts, pruning dead endpoints."""

import json
import os
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import httpx

from server.config import Settings
from server.db.models import PushSubscription, User
from server.db.session import get_session_factory, init_db, reset_engine
from server.services.notification_service import (
    LogOnlySender,
    PushEndpointSender,
    sender_from_settings,
)

LIVE = "https://push.example.com/live"
GONE = "https://push.example.com/gone"
SLOW = "https://push.example.com/slow"


def _factory(tmp):
    reset_engine()
    settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}", reminder_sweep_enabled=False)
    init_db(settings)
    return get_session_factory(settings)


def _seed(factory, endpoints):
    db = factory()
    try:
        user = User(email="u@x.com", password_hash="x")
        db.add(user)
        db.flush()
        for ep in endpoints:
            db.add(PushSubscription(user_id=user.id, endpoint=ep, public_key="p256dh", auth="secret"))
        db.commit()
        return user.id
    finally:
        db.close()


def _handler(seen):
    def handle(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        url = str(request.url)
        if url == GONE:
            return httpx.Response(410)
        if url == SLOW:
            raise httpx.ReadTimeout("timed out", request=request)
        return httpx.Response(201)
    return handle


def _mock_client_factory(seen):
    transport = httpx.MockTransport(_handler(seen))

    def factory(timeout):
        return httpx.Client(transport=transport, timeout=timeout)
    return factory


def _endpoints(factory):
    db = factory()
    try:
        return sorted(s.endpoint for s in db.query(PushSubscription).all())
    finally:
        db.close()


def test_payload_and_delivery():
    with tempfile.TemporaryDirectory() as tmp:
        factory = _factory(tmp)
        user_id = _seed(factory, [LIVE])
        seen = []
        sender = PushEndpointSender(factory, timeout_s=2.0, client_factory=_mock_client_factory(seen))
        try:
            report = sender.send(user_id, "Time to revisit: Two Sum", {"problem_id": 1})
            assert report.ok
            assert report.delivered == 1
            body = json.loads(seen[0].content)
            assert body == {
                "title": "DSA Revision Reminder",
                "body": {"message": "Time to revisit: Two Sum", "meta": {"problem_id": 1}},
            }
            assert seen[0].headers["TTL"] == "86400"
        finally:
            reset_engine()


def test_gone_endpoint_is_pruned():
    with tempfile.TemporaryDirectory() as tmp:
        factory = _factory(tmp)
        user_id = _seed(factory, [LIVE, GONE])
        sender = PushEndpointSender(factory, client_factory=_mock_client_factory([]))
        try:
            report = sender.send(user_id, "hi", {})
            assert report.delivered == 1
            assert report.failed == 1
            assert report.pruned == [GONE]
            assert _endpoints(factory) == [LIVE]
        finally:
            reset_engine()


def test_timeout_counts_as_failure_and_keeps_subscription():
    with tempfile.TemporaryDirectory() as tmp:
        factory = _factory(tmp)
        user_id = _seed(factory, [SLOW, LIVE])
        sender = PushEndpointSender(factory, client_factory=_mock_client_factory([]))
        try:
            report = sender.send(user_id, "hi", {})
            assert not report.ok
            assert report.delivered == 1
            assert report.pruned == []
            assert _endpoints(factory) == sorted([SLOW, LIVE])
        finally:
            reset_engine()


def test_user_without_subscriptions_is_a_no_op():
    with tempfile.TemporaryDirectory() as tmp:
        factory = _factory(tmp)
        user_id = _seed(factory, [])
        seen = []
        sender = PushEndpointSender(factory, client_factory=_mock_client_factory(seen))
        try:
            report = sender.send(user_id, "hi", {})
            assert report.ok
            assert seen == []
        finally:
            reset_engine()


def test_sender_from_settings():
    assert isinstance(sender_from_settings(Settings(push_enabled=False), None), LogOnlySender)
    sender = sender_from_settings(Settings(push_enabled=True, push_timeout_s=1.5), None)
    assert isinstance(sender, PushEndpointSender)
    assert sender.timeout_s == 1.5
