# models/user.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional


class RegisterRequest(BaseModel):
    firstName: str = Field(..., min_length=1, max_length=50)
    lastName: str = Field(..., min_length=1, max_length=50)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str = Field(..., min_length=6)


class LoginRequest(BaseModel):
    email: str
    password: str


class TakenQuiz(BaseModel):
    quiz: str
    score: int
    totalQuestions: int
    completedAt: datetime


class UserProfile(BaseModel):
    id: str
    firstName: str
    lastName: str
    email: str
    quizzesCreated: List[str] = []
    quizzesTaken: List[TakenQuiz] = []
    createdAt: Optional[datetime] = None
