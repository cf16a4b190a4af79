"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
courses, enrollments, quizzes, submissions). Repositories return SQLModel
objects and perform commits/refreshes where appropriate. Commit errors
roll the session back and surface as `StorageFailure`.
"""

from datetime import datetime, timezone
from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from . import models
from .errors import StorageFailure
from .grading import compute_total_points


def _commit(session: Session, operation: str):
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise StorageFailure(operation, e) from e


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user: models.User) -> models.User:
        """Persist a new user and return the managed instance."""
        self.session.add(user)
        _commit(self.session, 'create user')
        self.session.refresh(user)
        return user

    def get_by_username(self, username: str) -> Optional[models.User]:
        """Return a `User` by username or `None` if not found."""
        stmt = select(models.User).where(models.User.username == username)
        return self.session.exec(stmt).first()

    def get(self, user_id: int) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class CourseRepository:
    """Create and fetch `Course` rows."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, course: models.Course) -> models.Course:
        self.session.add(course)
        _commit(self.session, 'create course')
        self.session.refresh(course)
        return course

    def get(self, course_id: int) -> Optional[models.Course]:
        return self.session.get(models.Course, course_id)


class EnrollmentRepository:
    """Enrollment lookups, creation and progress updates."""
    def __init__(self, session: Session):
        self.session = session

    def get_for_student(self, student_id: int, course_id: int) -> Optional[models.Enrollment]:
        """Return the enrollment of `student_id` in `course_id`, if any."""
        stmt = select(models.Enrollment).where(
            models.Enrollment.student_id == student_id,
            models.Enrollment.course_id == course_id
        )
        return self.session.exec(stmt).first()

    def create(self, enrollment: models.Enrollment) -> models.Enrollment:
        self.session.add(enrollment)
        _commit(self.session, 'create enrollment')
        self.session.refresh(enrollment)
        return enrollment

    def save(self, enrollment: models.Enrollment) -> models.Enrollment:
        self.session.add(enrollment)
        _commit(self.session, 'update enrollment')
        self.session.refresh(enrollment)
        return enrollment

    def list_for_course_between(self, course_id: int, start: datetime, end: datetime) -> List[models.Enrollment]:
        """Return enrollments of a course created in `[start, end)`."""
        stmt = select(models.Enrollment).where(
            models.Enrollment.course_id == course_id,
            models.Enrollment.enrolled_at >= start,
            models.Enrollment.enrolled_at < end
        )
        return self.session.exec(stmt).all()

    def count_for_course(self, course_id: int) -> int:
        stmt = select(func.count()).select_from(models.Enrollment).where(models.Enrollment.course_id == course_id)
        return self.session.exec(stmt).one()


class QuizRepository:
    """Persist quizzes, keeping `total_points` in step with `questions`."""
    def __init__(self, session: Session):
        self.session = session

    def get(self, quiz_id: int) -> Optional[models.Quiz]:
        """Fetch a quiz by id."""
        return self.session.get(models.Quiz, quiz_id)

    def list_for_course(self, course_id: int) -> List[models.Quiz]:
        stmt = select(models.Quiz).where(models.Quiz.course_id == course_id).order_by(models.Quiz.id)
        return self.session.exec(stmt).all()

    def save(self, quiz: models.Quiz) -> models.Quiz:
        """Insert or update `quiz`.

        `total_points` is always recomputed from the current question list
        right before the commit so it can never go stale.
        """
        quiz.total_points = compute_total_points(quiz.questions or [])
        quiz.updated_at = datetime.now(timezone.utc)
        self.session.add(quiz)
        _commit(self.session, 'save quiz')
        self.session.refresh(quiz)
        return quiz

    def delete(self, quiz: models.Quiz) -> None:
        self.session.delete(quiz)
        _commit(self.session, 'delete quiz')


class SubmissionRepository:
    """Append-only storage for graded quiz submissions.

    There is intentionally no update or delete method.
    """
    def __init__(self, session: Session):
        self.session = session

    def create(self, submission: models.QuizSubmission) -> models.QuizSubmission:
        """Store a submission and its evaluated answers in one commit."""
        self.session.add(submission)
        _commit(self.session, 'create submission')
        self.session.refresh(submission)
        return submission

    def count_attempts(self, learner_id: int, quiz_id: int) -> int:
        stmt = select(func.count()).select_from(models.QuizSubmission).where(
            models.QuizSubmission.learner_id == learner_id,
            models.QuizSubmission.quiz_id == quiz_id
        )
        return self.session.exec(stmt).one()

    def list_for_learner_quiz(self, learner_id: int, quiz_id: int) -> List[models.QuizSubmission]:
        """Return a learner's submissions for one quiz, oldest first."""
        stmt = select(models.QuizSubmission).where(
            models.QuizSubmission.learner_id == learner_id,
            models.QuizSubmission.quiz_id == quiz_id
        ).order_by(models.QuizSubmission.submitted_at, models.QuizSubmission.id)
        return self.session.exec(stmt).all()

    def list_for_course_between(self, course_id: int, start: datetime, end: datetime) -> List[models.QuizSubmission]:
        stmt = select(models.QuizSubmission).where(
            models.QuizSubmission.course_id == course_id,
            models.QuizSubmission.submitted_at >= start,
            models.QuizSubmission.submitted_at < end
        )
        return self.session.exec(stmt).all()

    def list_for_learner_between(self, learner_id: int, start: datetime, end: datetime) -> List[models.QuizSubmission]:
        stmt = select(models.QuizSubmission).where(
            models.QuizSubmission.learner_id == learner_id,
            models.QuizSubmission.submitted_at >= start,
            models.QuizSubmission.submitted_at < end
        )
        return self.session.exec(stmt).all()
