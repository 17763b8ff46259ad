# models/quiz.py
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional


class Option(BaseModel):
    text: str = Field(..., min_length=1)
    isCorrect: bool = False

    model_config = ConfigDict(extra="forbid")


class Question(BaseModel):
    question: str = Field(..., min_length=1)
    options: List[Option]

    model_config = ConfigDict(extra="forbid")


class QuizCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    questions: List[Question] = []
    category: str = "General"
    difficulty: str = Field("medium", pattern="^(easy|medium|hard)$")
    timeLimit: Optional[int] = Field(None, ge=1)  # In minutes
    isPublic: bool = True

    model_config = ConfigDict(extra="forbid")


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    questions: Optional[List[Question]] = None
    category: Optional[str] = None
    difficulty: Optional[str] = Field(None, pattern="^(easy|medium|hard)$")
    timeLimit: Optional[int] = Field(None, ge=1)
    isPublic: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


class QuizSubmission(BaseModel):
    answers: List[Optional[int]] = []  # Option index per question, null when skipped
    timeTaken: int = Field(0, ge=0)  # In seconds

    model_config = ConfigDict(extra="forbid")


class AnswerResult(BaseModel):
    questionIndex: int
    selectedOption: Optional[int] = None
    isCorrect: bool = False


class QuizResult(BaseModel):
    score: int
    totalQuestions: int
    percentage: int
    timeTaken: int = 0
    answers: List[AnswerResult] = []


class QuizAttempt(BaseModel):
    user: str
    score: int
    totalQuestions: int
    answers: List[AnswerResult] = []
    completedAt: datetime
