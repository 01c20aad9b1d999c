"""Tests for /preferences and /subscriptions."""

import os
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient

from server.app import app
from server.config import Settings
from server.db.session import init_db, reset_engine
from server.dependencies import get_settings

SUB = {"endpoint": "https://push.example.com/abc", "public_key": "p256dh-key", "auth": "auth-secret"}


def _client(tmp, email="a@x.com") -> TestClient:
    reset_engine()
    settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}", reminder_sweep_enabled=False)
    init_db(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    client = TestClient(app)
    client.post("/auth/register", json={"email": email, "password": "password123"})
    return client


def test_preferences_create_then_update():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            r = client.get("/preferences")
            assert r.status_code == 200
            assert r.json()["settings"] == {}

            r = client.put("/preferences", json={"settings": {"autoReminders": True}})
            assert r.status_code == 201
            assert r.json()["settings"] == {"autoReminders": True}

            r = client.put("/preferences", json={"settings": {"autoReminders": False}})
            assert r.status_code == 200
            assert client.get("/preferences").json()["settings"] == {"autoReminders": False}
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_preferences_validation():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            r = client.put("/preferences", json={"settings": {"autoReminders": "yes"}})
            assert r.status_code == 400
            assert r.json()["field"] == "settings.autoReminders"

            r = client.put("/preferences", json={"settings": {"darkMode": True}})
            assert r.status_code == 400

            r = client.put("/preferences", json={})
            assert r.status_code == 400
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_subscribe_refresh_and_unsubscribe():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            r = client.post("/subscriptions", json=SUB)
            assert r.status_code == 201
            assert r.json()["subscription"]["endpoint"] == SUB["endpoint"]

            r = client.post("/subscriptions", json={**SUB, "auth": "rotated"})
            assert r.status_code == 200

            r = client.request("DELETE", "/subscriptions", json={"endpoint": SUB["endpoint"]})
            assert r.status_code == 200
            r = client.request("DELETE", "/subscriptions", json={"endpoint": SUB["endpoint"]})
            assert r.status_code == 404
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_endpoint_owned_by_another_user_conflicts():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            client.post("/subscriptions", json=SUB)
            other = TestClient(app)
            other.post("/auth/register", json={"email": "b@x.com", "password": "password123"})
            r = other.post("/subscriptions", json=SUB)
            assert r.status_code == 409
            assert r.json()["error"] == "CONFLICT"
        finally:
            app.dependency_overrides.clear()
            reset_engine()
