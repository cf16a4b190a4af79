"""Pydantic request/response schemas used by the API.

Schemas keep API input/output shapes stable and provide validation for
controller handlers and tests. Question-level rules (option counts,
answer shapes) live in `grading.validate_question` so the same checks
apply outside HTTP.
"""

from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional


class RegisterIn(BaseModel):
    """Payload for the registration endpoint."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    role: Literal['student', 'instructor'] = 'student'


class LoginIn(BaseModel):
    """Payload for the login endpoint."""
    username: str
    password: str


class TokenOut(BaseModel):
    """Authentication response containing an access token."""
    access_token: str


class CourseIn(BaseModel):
    """Request format for creating a course."""
    title: str
    description: str = ''


class ProgressIn(BaseModel):
    """Progress update for the caller's own enrollment."""
    progress: int = Field(ge=0, le=100)


class QuizCreate(BaseModel):
    """Request format for authoring a quiz.

    `questions` items are plain objects with `question_text`, `kind`,
    `options`, `correct_answer` and `points`; they are checked by the
    grading core rather than by pydantic.
    """
    title: str
    description: Optional[str] = ''
    course_id: int
    lesson_id: Optional[int] = None
    questions: List[Dict[str, Any]]
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    duration_minutes: Optional[int] = Field(default=None, ge=1)


class QuizUpdate(BaseModel):
    """Partial quiz update; omitted fields are left unchanged."""
    title: Optional[str] = None
    description: Optional[str] = None
    questions: Optional[List[Dict[str, Any]]] = None
    passing_score: Optional[int] = Field(default=None, ge=0, le=100)
    duration_minutes: Optional[int] = Field(default=None, ge=1)
    is_published: Optional[bool] = None


class QuizSubmissionIn(BaseModel):
    """Request model for grading.

    `answers` is left untyped so a wrong shape reaches the evaluator,
    which rejects it before scoring anything.
    """
    answers: Any = None
    time_spent_seconds: int = Field(default=0, ge=0)


class SubmissionSummary(BaseModel):
    """What a learner gets back after submitting; per-question detail is omitted."""
    score: int
    percentage: int
    passed: bool
    total_points: int
    submitted_at: datetime
    attempt_number: int
