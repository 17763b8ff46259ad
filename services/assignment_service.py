# services/assignment_service.py
from datetime import datetime, timezone
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from typing import List, Optional
import logging

import config
from errors import ExpiredError, ForbiddenError, NotFoundError, ValidationError
from models.assignment import COMPLETED, PENDING, AssignQuizRequest, QuizAssignment
from models.quiz import QuizResult
from services.common import (
    NO_MONGO_ID,
    USER_PUBLIC_FIELDS,
    full_name,
    get_quiz_or_404,
    is_quiz_creator,
    new_id,
    redact_quiz,
    user_brief,
    users_by_id,
)
from services.notifications import best_effort

logger = logging.getLogger(__name__)


def normalize_emails(emails: List[str]) -> List[str]:
    normalized = []
    for email in emails:
        email = email.strip().lower()
        if email and email not in normalized:
            normalized.append(email)
    return normalized


def to_utc_naive(value: Optional[datetime]) -> Optional[datetime]:
    # Stored datetimes are naive UTC.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def is_expired(assignment: dict, now: datetime = None) -> bool:
    expires_at = assignment.get("expiresAt")
    if not expires_at:
        return False
    return (now or datetime.utcnow()) > expires_at


def expired_error() -> ExpiredError:
    return ExpiredError("This quiz has expired")


async def assign_quiz(db, notifier, quiz_id: str, request: AssignQuizRequest, user_id: str) -> dict:
    emails = normalize_emails(request.emails)
    if not emails:
        raise ValidationError("Please provide at least one email address")

    expires_at = to_utc_naive(request.expiresAt)
    if expires_at is not None and expires_at <= datetime.utcnow():
        raise ValidationError("expiresAt must be in the future")

    quiz = await get_quiz_or_404(db, quiz_id)
    if not is_quiz_creator(quiz, user_id):
        raise ForbiddenError("You can only assign your own quizzes")

    users = await db.users.find({"email": {"$in": emails}}, USER_PUBLIC_FIELDS).to_list(None)
    found_emails = {user["email"] for user in users}
    not_found_emails = [email for email in emails if email not in found_emails]
    if not users:
        raise ValidationError(
            f"Users not found: {', '.join(not_found_emails)}",
            data={"notFoundEmails": not_found_emails},
        )
    if not_found_emails:
        logger.warning(f"Quiz {quiz_id}: no users for {not_found_emails}")

    assigner = await db.users.find_one({"id": user_id}, USER_PUBLIC_FIELDS)
    assigner_name = full_name(assigner)
    quiz_url = f"{config.FRONTEND_URL}/assigned/{quiz_id}"

    assigned_users = []
    email_results = []
    for user in users:
        existing = await db.quiz_assignments.find_one({"quiz": quiz_id, "assignedTo": user["id"]}, {"_id": 0, "id": 1})
        if existing:
            logger.info(f"Quiz {quiz_id} already assigned to {user['id']}, skipping")
            continue

        assignment = QuizAssignment(
            id=new_id(),
            quiz=quiz_id,
            assignedBy=user_id,
            assignedTo=user["id"],
            assignedAt=datetime.utcnow(),
            status=PENDING,
            expiresAt=expires_at,
        )
        try:
            await db.quiz_assignments.insert_one(assignment.model_dump())
        except DuplicateKeyError:
            logger.info(f"Quiz {quiz_id} was assigned to {user['id']} concurrently, skipping")
            continue
        assigned_users.append(user)

        result = await best_effort(
            notifier.send_assignment_created(user["email"], full_name(user), quiz["title"], assigner_name, quiz_url),
            f"assignment of {quiz_id} to {user['email']}",
        )
        email_results.append({"email": user["email"], "success": result.success, "error": result.error})

    if assigned_users and assigner:
        await best_effort(
            notifier.send_assignment_summary_to_creator(assigner["email"], assigner_name, quiz["title"], assigned_users),
            f"assignment summary of {quiz_id} to {assigner['email']}",
        )

    logger.info(f"Quiz {quiz_id} assigned to {len(assigned_users)} of {len(request.emails)} requested emails")
    return {
        "assignedCount": len(assigned_users),
        "totalEmails": len(request.emails),
        "notFoundEmails": not_found_emails,
        "emailResults": email_results,
    }


async def complete_assignment(db, notifier, assignment: dict, quiz: dict, result: QuizResult,
                              completed_at: datetime = None) -> Optional[dict]:
    """Move a pending assignment to completed; a concurrent completion wins and this call is a no-op."""
    completed_at = completed_at or datetime.utcnow()
    updated = await db.quiz_assignments.find_one_and_update(
        {"id": assignment["id"], "status": PENDING},
        {"$set": {
            "status": COMPLETED,
            "completedAt": completed_at,
            "score": result.score,
            "totalQuestions": result.totalQuestions,
            "timeTaken": result.timeTaken,
        }},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        logger.info(f"Assignment {assignment['id']} was already completed")
        return None
    updated.pop("_id", None)

    people = await users_by_id(db, [updated["assignedTo"], updated["assignedBy"]])
    taker = people.get(updated["assignedTo"])
    assigner = people.get(updated["assignedBy"])
    if not taker or not assigner:
        logger.warning(f"Assignment {updated['id']} completed but a participant no longer exists, no notices sent")
        return updated

    await best_effort(
        notifier.send_completion_notice(taker["email"], full_name(taker), quiz["title"],
                                        result.score, result.totalQuestions, full_name(assigner)),
        f"completion of {quiz['id']} to {taker['email']}",
    )
    await best_effort(
        notifier.send_completion_notice(assigner["email"], full_name(assigner), quiz["title"],
                                        result.score, result.totalQuestions, full_name(taker)),
        f"completion of {quiz['id']} to {assigner['email']}",
    )
    return updated


async def _quizzes_by_id(db, quiz_ids, fields: List[str]) -> dict:
    ids = list({qid for qid in quiz_ids if qid})
    if not ids:
        return {}
    projection = {"_id": 0, "id": 1}
    projection.update({field: 1 for field in fields})
    quizzes = await db.quizzes.find({"id": {"$in": ids}}, projection).to_list(None)
    return {quiz["id"]: quiz for quiz in quizzes}


async def list_assigned_quizzes(db, user_id: str) -> List[dict]:
    assignments = await db.quiz_assignments.find({"assignedTo": user_id}, NO_MONGO_ID) \
        .sort([("assignedAt", -1), ("id", -1)]) \
        .to_list(None)
    quizzes = await _quizzes_by_id(db, (a["quiz"] for a in assignments), ["title", "description", "timeLimit"])
    assigners = await users_by_id(db, (a["assignedBy"] for a in assignments))
    for assignment in assignments:
        assignment["quiz"] = quizzes.get(assignment["quiz"])
        assignment["assignedBy"] = user_brief(assigners.get(assignment["assignedBy"]))
    return assignments


async def list_assignment_results(db, user_id: str) -> List[dict]:
    assignments = await db.quiz_assignments.find({"assignedTo": user_id, "status": COMPLETED}, NO_MONGO_ID) \
        .sort([("completedAt", -1), ("id", -1)]) \
        .to_list(None)
    quizzes = await _quizzes_by_id(db, (a["quiz"] for a in assignments), ["title", "description"])
    assigners = await users_by_id(db, (a["assignedBy"] for a in assignments))
    return [
        {
            "id": assignment["id"],
            "quiz": quizzes.get(assignment["quiz"]),
            "assignedBy": user_brief(assigners.get(assignment["assignedBy"])),
            "score": assignment.get("score"),
            "totalQuestions": assignment.get("totalQuestions"),
            "timeTaken": assignment.get("timeTaken"),
            "completedAt": assignment.get("completedAt"),
            "assignedAt": assignment.get("assignedAt"),
        }
        for assignment in assignments
    ]


async def list_sent_assignments(db, user_id: str) -> List[dict]:
    assignments = await db.quiz_assignments.find({"assignedBy": user_id}, NO_MONGO_ID) \
        .sort([("assignedAt", -1), ("id", -1)]) \
        .to_list(None)
    quizzes = await _quizzes_by_id(db, (a["quiz"] for a in assignments), ["title"])
    assignees = await users_by_id(db, (a["assignedTo"] for a in assignments))
    for assignment in assignments:
        assignment["quiz"] = quizzes.get(assignment["quiz"])
        assignee = assignees.get(assignment["assignedTo"])
        assignment["assignedTo"] = dict(user_brief(assignee), email=assignee["email"]) if assignee else None
    return assignments


async def get_assigned_quiz_for_taking(db, quiz_id: str, user_id: str) -> dict:
    assignment = await db.quiz_assignments.find_one({"quiz": quiz_id, "assignedTo": user_id}, NO_MONGO_ID)
    if not assignment or assignment.get("status") != PENDING:
        raise NotFoundError("Quiz assignment not found or already completed")
    if is_expired(assignment):
        raise expired_error()

    quiz = await get_quiz_or_404(db, quiz_id)
    return {
        "quiz": redact_quiz(quiz),
        "assignment": {
            "id": assignment["id"],
            "expiresAt": assignment.get("expiresAt"),
            "assignedAt": assignment.get("assignedAt"),
        },
    }
