"""Tests for reminder CRUD routes."""

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


def _client_with_problem(tmp):
    reset_engine()
    settings = Settings(database_url=f"sqlite:///{Path(tmp) / 'test.db'}", reminder_sweep_enabled=False)
    init_db(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    client = TestClient(app)
    client.post("/auth/register", json={"email": "a@x.com", "password": "password123"})
    r = client.post("/problems", json={"name": "Two Sum", "difficulty": "Easy", "date_solved": "2025-09-01"})
    return client, r.json()["problem"]["id"]


def test_create_list_get_delete():
    with tempfile.TemporaryDirectory() as tmp:
        client, problem_id = _client_with_problem(tmp)
        try:
            r = client.post(f"/problems/{problem_id}/reminders", json={"due_datetime": "2025-09-05T09:00:00Z"})
            assert r.status_code == 201
            reminder = r.json()["reminder"]
            assert reminder["due_datetime"] == "2025-09-05T09:00:00+00:00"
            assert reminder["is_sent"] is False
            assert reminder["is_completed"] is False

            client.post(f"/problems/{problem_id}/reminders", json={"due_datetime": "2025-09-09T09:00:00+02:00"})
            r = client.get(f"/problems/{problem_id}/reminders")
            due = [x["due_datetime"] for x in r.json()["reminders"]]
            assert due == ["2025-09-09T07:00:00+00:00", "2025-09-05T09:00:00+00:00"]

            r = client.get(f"/reminders/{reminder['id']}")
            assert r.status_code == 200
            assert r.json()["reminder"]["problem_id"] == problem_id

            r = client.delete(f"/reminders/{reminder['id']}")
            assert r.status_code == 200
            assert client.get(f"/reminders/{reminder['id']}").status_code == 404
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_create_rejects_bad_due_datetime():
    with tempfile.TemporaryDirectory() as tmp:
        client, problem_id = _client_with_problem(tmp)
        try:
            for bad in ({"due_datetime": "next tuesday"}, {}, {"due_datetime": 12}):
                r = client.post(f"/problems/{problem_id}/reminders", json=bad)
                assert r.status_code == 400
                assert r.json()["field"] == "due_datetime"
            assert client.post("/problems/9999/reminders", json={"due_datetime": "2025-09-05T09:00:00Z"}).status_code == 404
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_complete_and_reschedule():
    with tempfile.TemporaryDirectory() as tmp:
        client, problem_id = _client_with_problem(tmp)
        try:
            reminder_id = client.post(
                f"/problems/{problem_id}/reminders", json={"due_datetime": "2025-09-05T09:00:00Z"},
            ).json()["reminder"]["id"]

            r = client.put(f"/reminders/{reminder_id}", json={"is_completed": True})
            assert r.status_code == 200
            assert r.json()["reminder"]["is_completed"] is True
            assert r.json()["reminder"]["completed_at"] is not None

            r = client.put(f"/reminders/{reminder_id}", json={"is_completed": False})
            assert r.json()["reminder"]["completed_at"] is None

            r = client.put(f"/reminders/{reminder_id}", json={"due_datetime": "2025-09-06T09:00:00Z"})
            assert r.json()["reminder"]["due_datetime"] == "2025-09-06T09:00:00+00:00"

            assert client.put(f"/reminders/{reminder_id}", json={}).status_code == 400
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_reminders_are_private():
    with tempfile.TemporaryDirectory() as tmp:
        client, problem_id = _client_with_problem(tmp)
        try:
            reminder_id = client.post(
                f"/problems/{problem_id}/reminders", json={"due_datetime": "2025-09-05T09:00:00Z"},
            ).json()["reminder"]["id"]

            other = TestClient(app)
            other.post("/auth/register", json={"email": "b@x.com", "password": "password123"})
            assert other.get(f"/problems/{problem_id}/reminders").status_code == 404
            assert other.get(f"/reminders/{reminder_id}").status_code == 404
            assert other.put(f"/reminders/{reminder_id}", json={"is_completed": True}).status_code == 404
            assert other.delete(f"/reminders/{reminder_id}").status_code == 404
        finally:
            app.dependency_overrides.clear()
            reset_engine()
