# services/common.py
from bson import ObjectId
from typing import Iterable, List, Optional
import copy

from errors import NotFoundError

NO_MONGO_ID = {"_id": 0}
USER_PUBLIC_FIELDS = {"_id": 0, "id": 1, "firstName": 1, "lastName": 1, "email": 1}


def new_id() -> str:
    return str(ObjectId())


def full_name(user: Optional[dict]) -> str:
    if not user:
        return ""
    return f"{user.get('firstName', '')} {user.get('lastName', '')}".strip()


def is_quiz_creator(quiz: dict, user_id: str) -> bool:
    return quiz.get("creator") == user_id


def redact_quiz(quiz: dict) -> dict:
    """Copy of a quiz safe to hand to a quiz taker: no correct-answer markers, no attempts."""
    safe = copy.deepcopy(quiz)
    safe.pop("_id", None)
    safe.pop("attempts", None)
    for question in safe.get("questions", []):
        for option in question.get("options", []):
            option.pop("isCorrect", None)
    return safe


async def get_quiz_or_404(db, quiz_id: str) -> dict:
    quiz = await db.quizzes.find_one({"id": quiz_id}, NO_MONGO_ID)
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz


async def users_by_id(db, user_ids: Iterable[str]) -> dict:
    """Map of user id to the public fields of that user."""
    ids: List[str] = list({uid for uid in user_ids if uid})
    if not ids:
        return {}
    users = await db.users.find({"id": {"$in": ids}}, USER_PUBLIC_FIELDS).to_list(None)
    return {user["id"]: user for user in users}


def user_brief(user: Optional[dict]) -> Optional[dict]:
    if not user:
        return None
    return {"id": user["id"], "firstName": user.get("firstName"), "lastName": user.get("lastName")}
