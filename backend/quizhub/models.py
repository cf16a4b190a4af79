"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Quiz questions and graded answers are ordered, embedded collections and
are stored as JSON columns on their parent row.
"""

from typing import Any, Dict, List, Optional
from sqlmodel import SQLModel, Field, Relationship
from sqlalchemy import Column, JSON, UniqueConstraint
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


ROLES = ('student', 'instructor', 'admin')


class User(SQLModel, table=True):
    """A registered user.

    Fields:
    - `username`: unique login name
    - `password_hash`: hashed password string (never store plaintext)
    - `role`: one of `student`, `instructor`, `admin`
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str
    role: str = Field(default='student', index=True)
    created_at: datetime = Field(default_factory=_utcnow)


class Course(SQLModel, table=True):
    """A course owned by exactly one instructor."""
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ''
    instructor_id: int = Field(foreign_key='user.id', index=True)
    created_at: datetime = Field(default_factory=_utcnow)
    quizzes: List['Quiz'] = Relationship(back_populates='course')


class Enrollment(SQLModel, table=True):
    """A student's enrollment in a course and their progress (0-100)."""
    __table_args__ = (UniqueConstraint('student_id', 'course_id'),)

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(foreign_key='user.id', index=True)
    course_id: int = Field(foreign_key='course.id', index=True)
    status: str = 'active'
    progress: int = 0
    enrolled_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None


class Quiz(SQLModel, table=True):
    """A quiz belonging to a course.

    `questions` holds the ordered question dictionaries; their order
    defines which answer index grades which question. `total_points` is
    derived from `questions` by the repository on every write.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: str = ''
    course_id: int = Field(foreign_key='course.id', index=True)
    lesson_id: Optional[int] = None
    questions: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    total_points: int = 0
    passing_score: int = 60
    duration_minutes: int = 30
    is_published: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    course: Optional[Course] = Relationship(back_populates='quizzes')


class QuizSubmission(SQLModel, table=True):
    """One graded attempt at a quiz. Rows are written once and never updated."""
    id: Optional[int] = Field(default=None, primary_key=True)
    learner_id: int = Field(foreign_key='user.id', index=True)
    # no FK: submissions outlive a deleted quiz
    quiz_id: int = Field(index=True)
    course_id: int = Field(index=True)
    answers: List[Dict[str, Any]] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    score: int
    total_points: int
    percentage: int
    passed: bool = False
    attempt_number: int = 1
    time_spent_seconds: int = 0
    submitted_at: datetime = Field(default_factory=_utcnow, index=True)
