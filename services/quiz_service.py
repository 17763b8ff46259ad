# services/quiz_service.py
from datetime import datetime
from pymongo import ReturnDocument
from typing import List, Optional
import logging
import math
import re

from errors import ForbiddenError, ValidationError
from models.assignment import PENDING
from models.quiz import AnswerResult, QuizAttempt, QuizCreate, QuizResult, QuizSubmission, QuizUpdate
from services import assignment_service
from services.common import (
    NO_MONGO_ID,
    get_quiz_or_404,
    is_quiz_creator,
    new_id,
    redact_quiz,
    user_brief,
    users_by_id,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def validate_questions(questions: List[dict]) -> None:
    """Reject an empty quiz or any question without exactly one correct option."""
    if not questions:
        raise ValidationError("Quiz must have at least one question")
    for index, question in enumerate(questions):
        correct = [option for option in question.get("options", []) if option.get("isCorrect")]
        if len(correct) != 1:
            raise ValidationError(
                "Each question must have exactly one correct answer",
                data={"questionIndex": index, "correctOptions": len(correct)},
            )


def score_answers(quiz: dict, answers: List[Optional[int]], time_taken: int = 0) -> QuizResult:
    questions = quiz.get("questions", [])
    total_questions = len(questions)
    if total_questions == 0:
        raise ValidationError("Quiz has no questions to score")

    score = 0
    results = []
    for i, question in enumerate(questions):
        options = question.get("options", [])
        selected = answers[i] if i < len(answers) else None
        if selected is not None and 0 <= selected < len(options):
            is_correct = bool(options[selected].get("isCorrect"))
        else:
            selected = None
            is_correct = False
        if is_correct:
            score += 1
        results.append(AnswerResult(questionIndex=i, selectedOption=selected, isCorrect=is_correct))

    return QuizResult(
        score=score,
        totalQuestions=total_questions,
        percentage=round(score / total_questions * 100),
        timeTaken=time_taken,
        answers=results,
    )


async def create_quiz(db, payload: QuizCreate, user_id: str) -> dict:
    quiz_dict = payload.model_dump()
    validate_questions(quiz_dict["questions"])

    now = datetime.utcnow()
    quiz_dict["id"] = new_id()
    quiz_dict["creator"] = user_id
    quiz_dict["attempts"] = []
    quiz_dict["createdAt"] = now
    quiz_dict["updatedAt"] = now
    await db.quizzes.insert_one(quiz_dict)
    quiz_dict.pop("_id", None)

    await db.users.update_one({"id": user_id}, {"$addToSet": {"quizzesCreated": quiz_dict["id"]}})
    logger.info(f"Quiz {quiz_dict['id']} created by {user_id} with {len(quiz_dict['questions'])} questions")
    return quiz_dict


async def list_public_quizzes(db, page: int = 1, limit: int = 10, category: str = None,
                              difficulty: str = None, search: str = None) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)

    query = {"isPublic": True}
    if category:
        query["category"] = category
    if difficulty:
        query["difficulty"] = difficulty
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {"title": {"$regex": pattern, "$options": "i"}},
            {"description": {"$regex": pattern, "$options": "i"}},
        ]

    total = await db.quizzes.count_documents(query)
    quizzes = await db.quizzes.find(query, NO_MONGO_ID) \
        .sort([("createdAt", -1), ("id", -1)]) \
        .skip((page - 1) * limit) \
        .limit(limit) \
        .to_list(None)

    creators = await users_by_id(db, (quiz.get("creator") for quiz in quizzes))
    listed = []
    for quiz in quizzes:
        safe = redact_quiz(quiz)
        safe["creator"] = user_brief(creators.get(quiz.get("creator"))) or {"id": quiz.get("creator")}
        listed.append(safe)

    return {
        "quizzes": listed,
        "totalPages": math.ceil(total / limit),
        "currentPage": page,
        "total": total,
    }


async def list_user_quizzes(db, user_id: str) -> List[dict]:
    return await db.quizzes.find({"creator": user_id}, NO_MONGO_ID) \
        .sort([("createdAt", -1), ("id", -1)]) \
        .to_list(None)


async def get_quiz_for_taking(db, quiz_id: str, user_id: str) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not quiz.get("isPublic") and not is_quiz_creator(quiz, user_id):
        raise ForbiddenError("Access denied")
    return redact_quiz(quiz)


async def get_quiz_for_creator(db, quiz_id: str, user_id: str) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not is_quiz_creator(quiz, user_id):
        raise ForbiddenError("You can only view the answers of your own quizzes")
    return quiz


async def update_quiz(db, quiz_id: str, payload: QuizUpdate, user_id: str) -> dict:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not is_quiz_creator(quiz, user_id):
        raise ForbiddenError("You can only update your own quizzes")

    update_fields = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "questions" in update_fields:
        validate_questions(update_fields["questions"])
    if not update_fields:
        return quiz

    update_fields["updatedAt"] = datetime.utcnow()
    updated = await db.quizzes.find_one_and_update(
        {"id": quiz_id, "creator": user_id},
        {"$set": update_fields},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        # Deleted between the read and the write.
        return await get_quiz_or_404(db, quiz_id)
    updated.pop("_id", None)
    logger.info(f"Quiz {quiz_id} updated by {user_id}: {sorted(update_fields)}")
    return updated


async def delete_quiz(db, quiz_id: str, user_id: str) -> None:
    quiz = await get_quiz_or_404(db, quiz_id)
    if not is_quiz_creator(quiz, user_id):
        raise ForbiddenError("You can only delete your own quizzes")

    await db.quizzes.delete_one({"id": quiz_id})
    await db.users.update_one({"id": user_id}, {"$pull": {"quizzesCreated": quiz_id}})
    logger.info(f"Quiz {quiz_id} deleted by {user_id}")


async def submit_quiz(db, notifier, quiz_id: str, submission: QuizSubmission, user_id: str) -> QuizResult:
    quiz = await get_quiz_or_404(db, quiz_id)

    assignment = await db.quiz_assignments.find_one(
        {"quiz": quiz_id, "assignedTo": user_id, "status": PENDING}, NO_MONGO_ID
    )
    if assignment and assignment_service.is_expired(assignment):
        logger.info(f"Assignment {assignment['id']} expired, it does not grant access to quiz {quiz_id}")
        if not quiz.get("isPublic") and not is_quiz_creator(quiz, user_id):
            raise assignment_service.expired_error()
        assignment = None

    if not (quiz.get("isPublic") or is_quiz_creator(quiz, user_id) or assignment):
        raise ForbiddenError("Access denied - You are not assigned to this quiz")

    result = score_answers(quiz, submission.answers, submission.timeTaken)
    completed_at = datetime.utcnow()

    attempt = QuizAttempt(
        user=user_id,
        score=result.score,
        totalQuestions=result.totalQuestions,
        answers=result.answers,
        completedAt=completed_at,
    )
    await db.quizzes.update_one({"id": quiz_id}, {"$push": {"attempts": attempt.model_dump()}})
    await db.users.update_one(
        {"id": user_id},
        {"$push": {"quizzesTaken": {
            "quiz": quiz_id,
            "score": result.score,
            "totalQuestions": result.totalQuestions,
            "completedAt": completed_at,
        }}},
    )
    logger.info(f"Quiz {quiz_id} submitted by {user_id}: {result.score}/{result.totalQuestions}")

    if assignment:
        await assignment_service.complete_assignment(db, notifier, assignment, quiz, result, completed_at)

    return result
