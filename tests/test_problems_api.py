"""Tests for /problems: create with reminders, list, update, delete."""

import os
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from fastapi.testclient import TestClient

from server.app import app
from server.config import Settings
from server.db.models import Reminder
from server.db.session import get_session_factory, init_db, reset_engine
from server.dependencies import get_settings


def _client(tmp, email="a@x.com", **overrides) -> TestClient:
    reset_engine()
    settings = Settings(
        database_url=f"sqlite:///{Path(tmp) / 'test.db'}",
        reminder_sweep_enabled=False,
        **overrides,
    )
    init_db(settings)
    app.dependency_overrides[get_settings] = lambda: settings
    client = TestClient(app)
    client.post("/auth/register", json={"email": email, "password": "password123"})
    return client


def _second_client(email="b@x.com") -> TestClient:
    client = TestClient(app)
    client.post("/auth/register", json={"email": email, "password": "password123"})
    return client


PROBLEM = {"name": "Two Sum", "difficulty": "Easy", "date_solved": "2025-09-01", "tags": ["Array", "hash-map"]}


def test_requires_auth():
    with tempfile.TemporaryDirectory() as tmp:
        _client(tmp)
        try:
            r = TestClient(app).get("/problems")
            assert r.status_code == 401
            assert r.json()["error"] == "UNAUTHORIZED"
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_create_without_auto_reminders():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            r = client.post("/problems", json=PROBLEM)
            assert r.status_code == 201
            body = r.json()
            assert body["message"] == "Problem created successfully"
            assert body["problem"]["tags"] == ["array", "hash-map"]
            assert body["problem"]["reminders"] == []
            assert body["problem"]["practice_meta"] is None
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_create_with_auto_reminders():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            client.put("/preferences", json={"settings": {"autoReminders": True}})
            r = client.post("/problems", json=PROBLEM)
            assert r.status_code == 201
            body = r.json()
            assert body["message"] == "Problem created successfully with scheduled reminders"
            due = [rem["due_datetime"] for rem in body["problem"]["reminders"]]
            assert due == [
                "2025-09-04T09:00:00+00:00",
                "2025-09-08T09:00:00+00:00",
                "2025-09-16T09:00:00+00:00",
            ]
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_create_uses_reminder_timezone():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp, reminder_timezone="America/New_York")
        try:
            client.put("/preferences", json={"settings": {"autoReminders": True}})
            r = client.post("/problems", json=PROBLEM)
            assert r.json()["problem"]["reminders"][0]["due_datetime"] == "2025-09-04T13:00:00+00:00"
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_explicit_reminders_override_defaults():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            client.put("/preferences", json={"settings": {"autoReminders": True}})
            r = client.post("/problems", json={
                **PROBLEM,
                "reminders": [{"due_datetime": "2025-09-20T18:15:00Z"}],
            })
            assert r.status_code == 201
            due = [rem["due_datetime"] for rem in r.json()["problem"]["reminders"]]
            assert due == ["2025-09-20T18:15:00+00:00"]
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_create_validation():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            r = client.post("/problems", json={**PROBLEM, "difficulty": "Impossible"})
            assert r.status_code == 400
            assert r.json()["error"] == "VALIDATION"
            assert r.json()["fields"][0]["field"] == "difficulty"

            r = client.post("/problems", json={"difficulty": "Easy", "date_solved": "2025-09-01"})
            assert r.status_code == 400

            r = client.post("/problems", json={**PROBLEM, "name": "   "})
            assert r.status_code == 400
            assert r.json()["field"] == "name"
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_list_filters_and_pagination():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            for i in range(5):
                client.post("/problems", json={**PROBLEM, "name": f"P{i}", "tags": ["array"]})
            client.post("/problems", json={**PROBLEM, "name": "Graph", "difficulty": "Hard", "tags": ["graph", "bfs"]})

            r = client.get("/problems", params={"page": 2, "page_size": 4})
            assert r.status_code == 200
            meta = r.json()["meta"]
            assert meta == {"total_items": 6, "total_pages": 2, "page": 2, "page_size": 4}
            assert len(r.json()["problems"]) == 2

            r = client.get("/problems", params={"difficulty": "Hard"})
            assert [p["name"] for p in r.json()["problems"]] == ["Graph"]

            r = client.get("/problems", params={"tags": "BFS,graph"})
            assert [p["name"] for p in r.json()["problems"]] == ["Graph"]

            r = client.get("/problems", params={"tags": "array", "page_size": 2})
            assert r.json()["meta"]["total_items"] == 5
            assert r.json()["meta"]["total_pages"] == 3
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_list_is_scoped_to_caller():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            client.post("/problems", json=PROBLEM)
            other = _second_client()
            r = other.get("/problems")
            assert r.json()["problems"] == []
            assert r.json()["meta"]["total_items"] == 0
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_get_and_update():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            problem_id = client.post("/problems", json=PROBLEM).json()["problem"]["id"]
            r = client.put(f"/problems/{problem_id}", json={"notes": "use a dict", "difficulty": "Medium"})
            assert r.status_code == 200
            assert r.json()["problem"]["notes"] == "use a dict"
            assert r.json()["problem"]["difficulty"] == "Medium"

            r = client.get(f"/problems/{problem_id}")
            assert r.status_code == 200
            assert r.json()["problem"]["name"] == "Two Sum"

            r = client.put(f"/problems/{problem_id}", json={})
            assert r.status_code == 400

            other = _second_client()
            assert other.get(f"/problems/{problem_id}").status_code == 404
            assert other.put(f"/problems/{problem_id}", json={"notes": "x"}).status_code == 404
        finally:
            app.dependency_overrides.clear()
            reset_engine()


def test_delete_removes_reminders():
    with tempfile.TemporaryDirectory() as tmp:
        client = _client(tmp)
        try:
            client.put("/preferences", json={"settings": {"autoReminders": True}})
            problem_id = client.post("/problems", json=PROBLEM).json()["problem"]["id"]

            other = _second_client()
            assert other.delete(f"/problems/{problem_id}").status_code == 404

            r = client.delete(f"/problems/{problem_id}")
            assert r.status_code == 200
            assert r.json()["message"] == "Problem deleted successfully"
            assert client.get(f"/problems/{problem_id}").status_code == 404

            db = get_session_factory(app.dependency_overrides[get_settings]())()
            try:
                assert db.query(Reminder).filter(Reminder.problem_id == problem_id).count() == 0
            finally:
                db.close()
        finally:
            app.dependency_overrides.clear()
            reset_engine()
