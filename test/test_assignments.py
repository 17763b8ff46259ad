"""
Test cases for assigning quizzes by email and completing assignments.
"""
import asyncio
from datetime import datetime, timedelta

import pytest

from main import app
from services import assignment_service, quiz_service
from services.notifications import get_notifier
from conftest import RecordingNotifier


def assignments_in(db, **query):
    return asyncio.run(db.quiz_assignments.find(query, {"_id": 0}).to_list(None))


@pytest.fixture
def carol(register):
    return register("Carol", "Taker", "carol@example.com")


@pytest.fixture
def private_quiz(alice, create_quiz):
    return create_quiz(alice, title="Staff onboarding", isPublic=False)


def assign(client, owner, quiz, emails, **extra):
    return client.post(f"/api/quizzes/{quiz['id']}/assign", json={"emails": emails, **extra}, headers=owner["headers"])


class TestAssignQuiz:

    def test_assigns_and_notifies(self, client, db, notifier, alice, bob, carol, private_quiz):
        response = assign(client, alice, private_quiz, ["bob@example.com", " CAROL@example.com "])
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Quiz assigned successfully to 2 user(s)"
        assert body["data"]["assignedCount"] == 2
        assert body["data"]["totalEmails"] == 2
        assert body["data"]["notFoundEmails"] == []
        assert all(item["success"] for item in body["data"]["emailResults"])

        records = assignments_in(db, quiz=private_quiz["id"])
        assert sorted(r["assignedTo"] for r in records) == sorted([bob["id"], carol["id"]])
        assert all(r["status"] == "pending" and r["assignedBy"] == alice["id"] for r in records)

        created = notifier.of_kind("assignment_created")
        assert sorted(n["to"] for n in created) == ["bob@example.com", "carol@example.com"]
        assert created[0]["quiz_url"].endswith(f"/assigned/{private_quiz['id']}")
        summary = notifier.of_kind("assignment_summary")
        assert len(summary) == 1
        assert summary[0]["to"] == "alice@example.com"
        assert sorted(summary[0]["assigned"]) == ["bob@example.com", "carol@example.com"]

    def test_assigning_twice_creates_one_record(self, client, db, notifier, alice, bob, private_quiz):
        assign(client, alice, private_quiz, ["bob@example.com"])
        second = assign(client, alice, private_quiz, ["bob@example.com", "bob@example.com"])
        assert second.status_code == 200
        assert second.json()["data"]["assignedCount"] == 0
        assert len(assignments_in(db, quiz=private_quiz["id"], assignedTo=bob["id"])) == 1
        assert len(notifier.of_kind("assignment_created")) == 1
        assert len(notifier.of_kind("assignment_summary")) == 1

    def test_unknown_emails_are_reported_and_known_ones_assigned(self, client, db, alice, bob, private_quiz):
        response = assign(client, alice, private_quiz, ["bob@example.com", "ghost@example.com"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["notFoundEmails"] == ["ghost@example.com"]
        assert data["assignedCount"] == 1
        assert data["totalEmails"] == 2
        assert [r["assignedTo"] for r in assignments_in(db, quiz=private_quiz["id"])] == [bob["id"]]

    def test_only_unknown_emails_is_an_error(self, client, db, alice, private_quiz):
        response = assign(client, alice, private_quiz, ["ghost@example.com"])
        assert response.status_code == 400
        body = response.json()
        assert body["message"] == "Users not found: ghost@example.com"
        assert body["data"]["notFoundEmails"] == ["ghost@example.com"]
        assert assignments_in(db) == []

    def test_empty_email_list(self, client, alice, private_quiz):
        response = assign(client, alice, private_quiz, ["  "])
        assert response.status_code == 400
        assert response.json()["message"] == "Please provide at least one email address"

    def test_rejects_unknown_fields(self, client, db, alice, bob, private_quiz):
        response = assign(client, alice, private_quiz, ["bob@example.com"], status="completed")
        assert response.status_code == 400
        assert assignments_in(db) == []

    def test_expiry_must_be_in_the_future(self, client, alice, bob, private_quiz):
        past = (datetime.utcnow() - timedelta(hours=1)).isoformat()
        response = assign(client, alice, private_quiz, ["bob@example.com"], expiresAt=past)
        assert response.status_code == 400

    def test_non_creator_cannot_assign(self, client, db, alice, bob, carol, private_quiz):
        response = assign(client, bob, private_quiz, ["carol@example.com"])
        assert response.status_code == 403
        assert response.json()["message"] == "You can only assign your own quizzes"
        assert assignments_in(db) == []

    def test_unknown_quiz(self, client, alice, bob):
        response = assign(client, alice, {"id": "missing"}, ["bob@example.com"])
        assert response.status_code == 404

    def test_failed_notifications_do_not_fail_the_request(self, client, db, alice, bob, private_quiz):
        failing = RecordingNotifier(fail=True)
        app.dependency_overrides[get_notifier] = lambda: failing
        response = assign(client, alice, private_quiz, ["bob@example.com"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["assignedCount"] == 1
        assert data["emailResults"] == [
            {"email": "bob@example.com", "success": False, "error": "SMTP server unavailable"}
        ]
        assert len(failing.of_kind("assignment_summary")) == 1
        assert len(assignments_in(db)) == 1


class TestAssignedQuizTaking:

    def test_take_assigned_quiz(self, client, alice, bob, private_quiz):
        expires = (datetime.utcnow() + timedelta(days=2)).isoformat()
        assign(client, alice, private_quiz, ["bob@example.com"], expiresAt=expires)
        response = client.get(f"/api/assignments/{private_quiz['id']}/take", headers=bob["headers"])
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["quiz"]["id"] == private_quiz["id"]
        assert all("isCorrect" not in o for q in data["quiz"]["questions"] for o in q["options"])
        assert data["assignment"]["expiresAt"] is not None
        assert data["assignment"]["assignedAt"] is not None

    def test_not_assigned_is_not_found(self, client, bob, private_quiz):
        response = client.get(f"/api/assignments/{private_quiz['id']}/take", headers=bob["headers"])
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_expired_assignment_is_distinct_from_not_found(self, client, db, alice, bob, private_quiz):
        expires = (datetime.utcnow() + timedelta(days=1)).isoformat()
        assign(client, alice, private_quiz, ["bob@example.com"], expiresAt=expires)
        asyncio.run(db.quiz_assignments.update_many(
            {}, {"$set": {"expiresAt": datetime.utcnow() - timedelta(minutes=5)}}
        ))
        response = client.get(f"/api/assignments/{private_quiz['id']}/take", headers=bob["headers"])
        assert response.status_code == 400
        assert response.json()["error"] == "assignment_expired"
        assert response.json()["message"] == "This quiz has expired"

        submit = client.post(f"/api/quizzes/{private_quiz['id']}/submit", json={"answers": [0, 0]},
                             headers=bob["headers"])
        assert submit.json()["error"] == "assignment_expired"
        assert assignments_in(db)[0]["status"] == "pending"


class TestCompletion:

    def test_submission_completes_assignment(self, client, db, notifier, alice, bob, private_quiz):
        assign(client, alice, private_quiz, ["bob@example.com"])
        response = client.post(f"/api/quizzes/{private_quiz['id']}/submit",
                               json={"answers": [0, 1], "timeTaken": 75}, headers=bob["headers"])
        assert response.status_code == 200
        assert response.json()["data"]["score"] == 1

        record = assignments_in(db, quiz=private_quiz["id"])[0]
        assert record["status"] == "completed"
        assert record["score"] == 1
        assert record["totalQuestions"] == 2
        assert record["timeTaken"] == 75
        assert record["completedAt"] is not None

        completions = notifier.of_kind("completion")
        assert sorted(n["to"] for n in completions) == ["alice@example.com", "bob@example.com"]
        assert all(n["score"] == 1 and n["total"] == 2 for n in completions)

    def test_resubmission_does_not_touch_completed_assignment(self, client, db, notifier, alice, bob, create_quiz):
        quiz = create_quiz(alice, title="Public and assigned")
        assign(client, alice, quiz, ["bob@example.com"])
        client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": [0, 0], "timeTaken": 10},
                    headers=bob["headers"])
        first = assignments_in(db, quiz=quiz["id"])[0]

        again = client.post(f"/api/quizzes/{quiz['id']}/submit", json={"answers": [1, 1], "timeTaken": 99},
                            headers=bob["headers"])
        assert again.status_code == 200
        assert again.json()["data"]["score"] == 0
        assert assignments_in(db, quiz=quiz["id"])[0] == first
        assert len(notifier.of_kind("completion")) == 2

    def test_completed_private_assignment_no_longer_grants_access(self, client, alice, bob, private_quiz):
        assign(client, alice, private_quiz, ["bob@example.com"])
        client.post(f"/api/quizzes/{private_quiz['id']}/submit", json={"answers": [0, 0]}, headers=bob["headers"])
        again = client.post(f"/api/quizzes/{private_quiz['id']}/submit", json={"answers": [0, 0]},
                            headers=bob["headers"])
        assert again.status_code == 403
        take = client.get(f"/api/assignments/{private_quiz['id']}/take", headers=bob["headers"])
        assert take.status_code == 404

    def test_failed_completion_notices_do_not_fail_submission(self, client, db, alice, bob, private_quiz):
        assign(client, alice, private_quiz, ["bob@example.com"])
        app.dependency_overrides[get_notifier] = lambda: RecordingNotifier(fail=True)
        response = client.post(f"/api/quizzes/{private_quiz['id']}/submit", json={"answers": [0, 0]},
                               headers=bob["headers"])
        assert response.status_code == 200
        assert assignments_in(db)[0]["status"] == "completed"

    def test_second_completion_of_the_same_assignment_is_a_no_op(self, client, db, notifier, alice, bob,
                                                                  private_quiz):
        """Two completions racing on one pending record: only the first is stored and notified."""
        assign(client, alice, private_quiz, ["bob@example.com"])
        pending = assignments_in(db, quiz=private_quiz["id"])[0]
        quiz = asyncio.run(db.quizzes.find_one({"id": private_quiz["id"]}, {"_id": 0}))
        first_at = datetime(2026, 1, 1, 12, 0)

        first = asyncio.run(assignment_service.complete_assignment(
            db, notifier, pending, quiz, quiz_service.score_answers(quiz, [0, 0], 30), first_at))
        second = asyncio.run(assignment_service.complete_assignment(
            db, notifier, pending, quiz, quiz_service.score_answers(quiz, [1, 1], 90), first_at + timedelta(hours=1)))

        assert first is not None
        assert "_id" not in first
        assert first["status"] == "completed"
        assert first["score"] == 2
        assert second is None

        stored = assignments_in(db, quiz=private_quiz["id"])[0]
        assert stored["status"] == "completed"
        assert stored["score"] == 2
        assert stored["timeTaken"] == 30
        assert stored["completedAt"] == first_at
        assert len(notifier.of_kind("completion")) == 2


class TestAssignmentListings:

    def test_mine_results_and_sent(self, client, alice, bob, carol, create_quiz):
        first = create_quiz(alice, title="First", isPublic=False)
        second = create_quiz(alice, title="Second", isPublic=False)
        assign(client, alice, first, ["bob@example.com"])
        assign(client, alice, second, ["bob@example.com", "carol@example.com"])
        client.post(f"/api/quizzes/{first['id']}/submit", json={"answers": [0, 0], "timeTaken": 12},
                    headers=bob["headers"])

        mine = client.get("/api/assignments/mine", headers=bob["headers"]).json()["data"]["assignments"]
        assert [a["quiz"]["title"] for a in mine] == ["Second", "First"]
        assert mine[0]["assignedBy"] == {"id": alice["id"], "firstName": "Alice", "lastName": "Author"}
        assert set(mine[0]["quiz"]) == {"id", "title", "description", "timeLimit"}
        assert [a["status"] for a in mine] == ["pending", "completed"]

        results = client.get("/api/assignments/results", headers=bob["headers"]).json()["data"]
        assert len(results) == 1
        assert results[0]["quiz"]["title"] == "First"
        assert results[0]["score"] == 2
        assert results[0]["totalQuestions"] == 2
        assert results[0]["timeTaken"] == 12

        carol_results = client.get("/api/assignments/results", headers=carol["headers"]).json()["data"]
        assert carol_results == []

        sent = client.get("/api/assignments/sent", headers=alice["headers"]).json()["data"]["assignments"]
        assert len(sent) == 3
        assert {a["assignedTo"]["email"] for a in sent} == {"bob@example.com", "carol@example.com"}
        assert client.get("/api/assignments/sent", headers=bob["headers"]).json()["data"]["assignments"] == []
