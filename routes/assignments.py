# routes/assignments.py
from fastapi import APIRouter, Depends

from database import get_db
from services import assignment_service
from .auth import get_current_user

router = APIRouter(prefix="/api/assignments", tags=["assignments"])


@router.get("/mine")
async def get_assigned_quizzes(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    assignments = await assignment_service.list_assigned_quizzes(db, current_user["id"])
    return {"success": True, "data": {"assignments": assignments}}


@router.get("/results")
async def get_assignment_results(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    results = await assignment_service.list_assignment_results(db, current_user["id"])
    return {"success": True, "data": results}


@router.get("/sent")
async def get_sent_assignments(current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    assignments = await assignment_service.list_sent_assignments(db, current_user["id"])
    return {"success": True, "data": {"assignments": assignments}}


@router.get("/{quiz_id}/take")
async def get_assigned_quiz_for_taking(quiz_id: str, current_user: dict = Depends(get_current_user), db=Depends(get_db)):
    data = await assignment_service.get_assigned_quiz_for_taking(db, quiz_id, current_user["id"])
    return {"success": True, "data": data}
