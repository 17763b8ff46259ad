# models/assignment.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional

PENDING = "pending"
COMPLETED = "completed"


class AssignQuizRequest(BaseModel):
    emails: List[str] = Field(..., description="Email addresses of the users to assign")
    expiresAt: Optional[datetime] = None

    model_config = ConfigDict(extra="forbid")


class QuizAssignment(BaseModel):
    id: str
    quiz: str
    assignedBy: str
    assignedTo: str
    assignedAt: datetime
    status: str = PENDING
    score: Optional[int] = None
    totalQuestions: Optional[int] = None
    timeTaken: Optional[int] = None
    completedAt: Optional[datetime] = None
    expiresAt: Optional[datetime] = None
