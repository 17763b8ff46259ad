"""
Pytest configuration and fixtures.

The app runs against an in-memory mongomock database and a recording
notification sender, both injected through FastAPI dependency overrides.
"""
import asyncio
import os

os.environ.setdefault("JWT_SECRET", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("SMTP_USERNAME", "")
os.environ.setdefault("SMTP_PASSWORD", "")

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from database import get_db, init_db
from main import app
from services.notifications import NotificationResult, get_notifier


class RecordingNotifier:
    """Stands in for the SMTP sender and keeps every call it receives."""

    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    def _record(self, kind, to_email, **details):
        self.sent.append({"kind": kind, "to": to_email, **details})
        if self.fail:
            return NotificationResult(False, "SMTP server unavailable")
        return NotificationResult(True)

    async def send_assignment_created(self, to_email, user_name, quiz_title, assigner_name, quiz_url):
        return self._record("assignment_created", to_email, quiz_title=quiz_title, quiz_url=quiz_url)

    async def send_assignment_summary_to_creator(self, to_email, creator_name, quiz_title, assigned_users):
        return self._record("assignment_summary", to_email, quiz_title=quiz_title,
                            assigned=[u["email"] for u in assigned_users])

    async def send_completion_notice(self, to_email, recipient_name, quiz_title, score, total_questions,
                                     other_party_name):
        return self._record("completion", to_email, quiz_title=quiz_title, score=score, total=total_questions)

    def of_kind(self, kind):
        return [item for item in self.sent if item["kind"] == kind]


@pytest.fixture
def db():
    database = AsyncMongoMockClient()["quiz_app_test"]
    asyncio.run(init_db(database))
    return database


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(db, notifier):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    """Register a user and return its id, email and auth headers."""

    def _register(first_name="Test", last_name="User", email=None, password="secret123"):
        email = email or f"{first_name.lower()}@example.com"
        response = client.post("/api/auth/register", json={
            "firstName": first_name,
            "lastName": last_name,
            "email": email,
            "password": password,
        })
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return {
            "id": data["user"]["id"],
            "email": data["user"]["email"],
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
        }

    return _register


@pytest.fixture
def alice(register):
    return register("Alice", "Author", "alice@example.com")


@pytest.fixture
def bob(register):
    return register("Bob", "Taker", "bob@example.com")


def make_quiz_payload(**overrides):
    payload = {
        "title": "Capitals of Europe",
        "description": "Geography warm-up",
        "questions": [
            {
                "question": "Capital of France?",
                "options": [
                    {"text": "Paris", "isCorrect": True},
                    {"text": "Lyon", "isCorrect": False},
                    {"text": "Nice", "isCorrect": False},
                ],
            },
            {
                "question": "Capital of Italy?",
                "options": [
                    {"text": "Rome", "isCorrect": True},
                    {"text": "Milan", "isCorrect": False},
                ],
            },
        ],
        "category": "Geography",
        "difficulty": "easy",
        "timeLimit": 5,
        "isPublic": True,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def create_quiz(client):
    def _create(owner, **overrides):
        response = client.post("/api/quizzes", json=make_quiz_payload(**overrides), headers=owner["headers"])
        assert response.status_code == 201, response.text
        return response.json()["data"]["quiz"]

    return _create
