# routes/quizzes.py
from fastapi import APIRouter, Depends, Query
from typing import Optional

from database import get_db
from models.assignment import AssignQuizRequest
from models.quiz import QuizCreate, QuizSubmission, QuizUpdate
from services import assignment_service, quiz_service
from services.notifications import get_notifier
from .auth import get_current_user

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


@router.post("", status_code=201)
async def create_quiz(quiz: QuizCreate, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    created = await quiz_service.create_quiz(db, quiz, current_user["id"])
    return {"success": True, "message": "Quiz created successfully", "data": {"quiz": created}}


@router.get("")
async def get_public_quizzes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=quiz_service.MAX_PAGE_SIZE),
    category: Optional[str] = None,
    difficulty: Optional[str] = Query(None, pattern="^(easy|medium|hard)$"),
    search: Optional[str] = None,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    data = await quiz_service.list_public_quizzes(db, page, limit, category, difficulty, search)
    return {"success": True, "data": data}


@router.get("/mine")
async def get_user_quizzes(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    quizzes = await quiz_service.list_user_quizzes(db, current_user["id"])
    return {"success": True, "data": {"quizzes": quizzes}}


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    quiz = await quiz_service.get_quiz_for_creator(db, quiz_id, current_user["id"])
    return {"success": True, "data": {"quiz": quiz}}


@router.get("/{quiz_id}/take")
async def get_quiz_for_taking(quiz_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    quiz = await quiz_service.get_quiz_for_taking(db, quiz_id, current_user["id"])
    return {"success": True, "data": {"quiz": quiz}}


@router.post("/{quiz_id}/submit")
async def submit_quiz(
    quiz_id: str,
    submission: QuizSubmission,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    result = await quiz_service.submit_quiz(db, notifier, quiz_id, submission, current_user["id"])
    return {"success": True, "message": "Quiz submitted successfully", "data": result.model_dump()}


@router.put("/{quiz_id}")
async def update_quiz(quiz_id: str, quiz: QuizUpdate, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    updated = await quiz_service.update_quiz(db, quiz_id, quiz, current_user["id"])
    return {"success": True, "message": "Quiz updated successfully", "data": {"quiz": updated}}


@router.delete("/{quiz_id}")
async def delete_quiz(quiz_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    await quiz_service.delete_quiz(db, quiz_id, current_user["id"])
    return {"success": True, "message": "Quiz deleted successfully"}


@router.post("/{quiz_id}/assign")
async def assign_quiz(
    quiz_id: str,
    request: AssignQuizRequest,
    current_user: dict = Depends(get_current_user),
    db=Depends(get_db),
    notifier=Depends(get_notifier),
):
    data = await assignment_service.assign_quiz(db, notifier, quiz_id, request, current_user["id"])
    return {
        "success": True,
        "message": f"Quiz assigned successfully to {data['assignedCount']} user(s)",
        "data": data,
    }
