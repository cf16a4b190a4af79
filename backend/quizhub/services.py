"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories,
the grading core and authorization checks. Services are intentionally
thin: they perform validation, execute domain logic and persist
aggregates via repositories. They raise the exceptions from `errors`;
translating them into HTTP responses is the controller's job.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from passlib.context import CryptContext
import jwt
from sqlmodel import Session
from . import analytics, models, repositories
from .auth import AuthContext
from .config import settings
from .errors import AuthorizationError, NotFoundError, ValidationError
from .grading import QuizSpec, ensure_answer_list, evaluate, validate_question

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

logger = logging.getLogger("quizhub.quizzes")
grading_logger = logging.getLogger("quizhub.grading")


def _log(target: logging.Logger, event: str, **fields):
    target.info("%s %s", event, json.dumps(fields, ensure_ascii=True, default=str))


class AuthService:
    """Authentication related operations (register + authenticate)."""
    def __init__(self, session: Session):
        self.session = session
        self.user_repo = repositories.UserRepository(session)

    def register(self, username: str, password: str, role: str = 'student') -> models.User:
        """Create a new user with a hashed password.

        Returns the persisted `User` instance.
        """
        if role not in models.ROLES:
            raise ValidationError(f"unknown role: {role}", field='role')
        hashed = PWD_CTX.hash(password)
        u = models.User(username=username, password_hash=hashed, role=role)
        return self.user_repo.create(u)

    def authenticate(self, username: str, password: str) -> Optional[str]:
        """Verify credentials and return a signed JWT token on success.

        Returns `None` if authentication fails.
        """
        user = self.user_repo.get_by_username(username)
        if not user:
            return None
        if not PWD_CTX.verify(password, user.password_hash):
            return None
        expire = datetime.now(timezone.utc) + timedelta(hours=settings.JWT_EXPIRE_HOURS)
        payload = {"user_id": user.id, "username": user.username, "role": user.role, "exp": int(expire.timestamp())}
        return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _ensure_course_owner(ctx: AuthContext, course: models.Course, action: str):
    """Raise `AuthorizationError` unless the caller teaches `course` or is an admin."""
    if ctx.is_admin or course.instructor_id == ctx.user_id:
        return
    _log(logger, "authorization_denied", action=action, course_id=course.id, user_id=ctx.user_id, role=ctx.role)
    raise AuthorizationError(
        action,
        resource_owner=course.instructor_id,
        details={
            'reason': 'only the course instructor can manage its quizzes',
            'course_id': course.id,
            'course_title': course.title,
            'instructor_id': course.instructor_id,
            'your_id': ctx.user_id,
            'your_role': ctx.role,
        },
    )


class CourseService:
    """Minimal course and enrollment handling needed by quizzes and analytics."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)

    def create_course(self, ctx: AuthContext, title: str, description: str = '') -> models.Course:
        if not title or not title.strip():
            raise ValidationError('course title is required', field='title')
        course = models.Course(title=title.strip(), description=(description or '').strip(), instructor_id=ctx.user_id)
        return self.course_repo.create(course)

    def get_course(self, course_id: int) -> models.Course:
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFoundError('course', course_id)
        return course

    def enroll(self, ctx: AuthContext, course_id: int) -> models.Enrollment:
        """Enroll the caller; enrolling twice returns the existing record."""
        self.get_course(course_id)
        existing = self.enrollment_repo.get_for_student(ctx.user_id, course_id)
        if existing:
            return existing
        return self.enrollment_repo.create(models.Enrollment(student_id=ctx.user_id, course_id=course_id))

    def update_progress(self, ctx: AuthContext, course_id: int, progress: int) -> models.Enrollment:
        """Set the caller's progress in a course; 100 marks the enrollment completed."""
        if not 0 <= progress <= 100:
            raise ValidationError('progress must be between 0 and 100', field='progress')
        enrollment = self.enrollment_repo.get_for_student(ctx.user_id, course_id)
        if not enrollment:
            raise NotFoundError('enrollment', course_id)
        enrollment.progress = progress
        if progress == 100 and enrollment.status != 'completed':
            enrollment.status = 'completed'
            enrollment.completed_at = datetime.now(timezone.utc)
        return self.enrollment_repo.save(enrollment)


def _normalise_questions(questions: Any) -> List[Dict[str, Any]]:
    """Validate authored questions and return stored copies with stable ids."""
    if not isinstance(questions, list) or not questions:
        raise ValidationError('at least one question is required', field='questions')
    out = []
    for idx, q in enumerate(questions):
        try:
            validate_question(q, strict_index=settings.STRICT_ANSWER_INDEX)
        except ValidationError as e:
            raise ValidationError(f"question {idx + 1}: {e.message}", field=e.field) from e
        stored = {
            'id': str(q.get('id') or uuid.uuid4().hex),
            'question_text': q['question_text'].strip(),
            'kind': q['kind'],
            'options': list(q.get('options') or []),
            'correct_answer': q['correct_answer'],
            'points': q.get('points') or 1,
        }
        out.append(stored)
    return out


class QuizService:
    """Quiz authoring with course-ownership checks."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.course_repo = repositories.CourseRepository(session)

    def get_quiz(self, quiz_id: int) -> models.Quiz:
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFoundError('quiz', quiz_id)
        return quiz

    def list_course_quizzes(self, course_id: int) -> List[models.Quiz]:
        return self.quiz_repo.list_for_course(course_id)

    def create_quiz(self, ctx: AuthContext, data: Dict[str, Any]) -> models.Quiz:
        """Validate and store a new, unpublished quiz.

        The caller must be the course instructor or an admin. Missing
        passing score and duration fall back to the configured defaults.
        """
        title = (data.get('title') or '').strip()
        if not title:
            raise ValidationError('quiz title is required', field='title')
        course_id = data.get('course_id')
        if course_id is None:
            raise ValidationError('course id is required', field='course_id')
        questions = _normalise_questions(data.get('questions'))
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFoundError('course', course_id)
        _ensure_course_owner(ctx, course, 'create quiz for this course')
        passing_score = data.get('passing_score')
        duration = data.get('duration_minutes')
        quiz = models.Quiz(
            title=title,
            description=(data.get('description') or '').strip(),
            course_id=course.id,
            lesson_id=data.get('lesson_id'),
            questions=questions,
            passing_score=settings.DEFAULT_PASSING_SCORE if passing_score is None else passing_score,
            duration_minutes=duration or settings.DEFAULT_DURATION_MINUTES,
            is_published=False,
        )
        quiz = self.quiz_repo.save(quiz)
        _log(logger, "quiz_created", quiz_id=quiz.id, course_id=course.id, user_id=ctx.user_id,
             questions=len(questions), total_points=quiz.total_points)
        return quiz

    def update_quiz(self, ctx: AuthContext, quiz_id: int, data: Dict[str, Any]) -> models.Quiz:
        """Apply a partial update; a new question list replaces the old one."""
        quiz = self.get_quiz(quiz_id)
        _ensure_course_owner(ctx, self._course_of(quiz), 'update this quiz')
        if data.get('title') is not None:
            title = data['title'].strip()
            if not title:
                raise ValidationError('quiz title is required', field='title')
            quiz.title = title
        if data.get('description') is not None:
            quiz.description = data['description'].strip()
        if data.get('questions') is not None:
            quiz.questions = _normalise_questions(data['questions'])
        if data.get('passing_score') is not None:
            quiz.passing_score = data['passing_score']
        if data.get('duration_minutes') is not None:
            quiz.duration_minutes = data['duration_minutes']
        if data.get('is_published') is not None:
            quiz.is_published = data['is_published']
        quiz = self.quiz_repo.save(quiz)
        _log(logger, "quiz_updated", quiz_id=quiz.id, user_id=ctx.user_id, total_points=quiz.total_points)
        return quiz

    def delete_quiz(self, ctx: AuthContext, quiz_id: int) -> None:
        """Delete a quiz. Submissions already made against it are kept."""
        quiz = self.get_quiz(quiz_id)
        _ensure_course_owner(ctx, self._course_of(quiz), 'delete this quiz')
        self.quiz_repo.delete(quiz)
        _log(logger, "quiz_deleted", quiz_id=quiz_id, user_id=ctx.user_id)

    def _course_of(self, quiz: models.Quiz) -> models.Course:
        course = quiz.course
        if not course:
            raise NotFoundError('course', quiz.course_id)
        return course


class GradingService:
    """Grade submitted quizzes and persist results."""
    def __init__(self, session: Session):
        self.session = session
        self.quiz_repo = repositories.QuizRepository(session)
        self.submission_repo = repositories.SubmissionRepository(session)

    def submit(self, ctx: AuthContext, quiz_id: int, answers: Any, time_spent_seconds: int = 0) -> Dict[str, Any]:
        """Grade `answers` for `quiz_id` and store the attempt.

        The whole answer list is graded before anything is written, and
        the submission is stored in a single commit. Repeated attempts are
        allowed; each one gets the next attempt number. A storage failure
        is propagated and not retried, since a retry could record the same
        attempt twice.
        """
        ensure_answer_list(answers)
        quiz = self.quiz_repo.get(quiz_id)
        if not quiz:
            raise NotFoundError('quiz', quiz_id)
        spec = QuizSpec.from_questions(quiz.questions or [], passing_score=quiz.passing_score)
        attempt = self.submission_repo.count_attempts(ctx.user_id, quiz.id) + 1
        graded = evaluate(
            spec,
            answers,
            learner_id=ctx.user_id,
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            attempt_number=attempt,
            time_spent_seconds=time_spent_seconds,
        )
        row = models.QuizSubmission(
            learner_id=ctx.user_id,
            quiz_id=quiz.id,
            course_id=quiz.course_id,
            answers=graded.answers_as_dicts(),
            score=graded.score,
            total_points=graded.total_points,
            percentage=graded.percentage,
            passed=graded.passed,
            attempt_number=graded.attempt_number,
            time_spent_seconds=graded.time_spent_seconds,
            submitted_at=graded.submitted_at,
        )
        self.submission_repo.create(row)
        _log(grading_logger, "submission_graded", submission_id=row.id, quiz_id=quiz.id, learner_id=ctx.user_id,
             score=graded.score, total_points=graded.total_points, percentage=graded.percentage,
             passed=graded.passed, attempt=graded.attempt_number, skipped=graded.skipped_count)
        return graded.summary()

    def list_submissions(self, ctx: AuthContext, quiz_id: int) -> List[models.QuizSubmission]:
        """Return the caller's own attempts at `quiz_id`, oldest first."""
        return self.submission_repo.list_for_learner_quiz(ctx.user_id, quiz_id)


class AnalyticsService:
    """Daily engagement and quiz performance summaries."""
    def __init__(self, session: Session):
        self.session = session
        self.course_repo = repositories.CourseRepository(session)
        self.enrollment_repo = repositories.EnrollmentRepository(session)
        self.submission_repo = repositories.SubmissionRepository(session)

    def course_analytics(self, ctx: AuthContext, course_id: int, days: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Per-day enrollments and quiz results for a course the caller owns."""
        course = self.course_repo.get(course_id)
        if not course:
            raise NotFoundError('course', course_id)
        _ensure_course_owner(ctx, course, 'view analytics for this course')
        start, end = self._window(days, now)
        enrollments = self.enrollment_repo.list_for_course_between(course_id, start, end)
        submissions = self.submission_repo.list_for_course_between(course_id, start, end)
        return {
            'course_id': course_id,
            'from': start.date().isoformat(),
            'to': (end - timedelta(days=1)).date().isoformat(),
            'enrollments': analytics.daily_series(
                enrollments, start=start, end=end,
                timestamp_of=lambda e: e.enrolled_at, value_of=lambda e: e.progress),
            'quiz_submissions': analytics.daily_series(
                submissions, start=start, end=end,
                timestamp_of=lambda s: s.submitted_at, value_of=lambda s: s.percentage),
            'totals': {
                'enrollments': self.enrollment_repo.count_for_course(course_id),
                'submissions': len(submissions),
                'average_percentage': analytics.mean([s.percentage for s in submissions]),
                'pass_rate': analytics.pass_rate(submissions),
            },
        }

    def learner_analytics(self, ctx: AuthContext, days: int, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Per-day quiz activity of the caller plus best/latest attempt per quiz."""
        start, end = self._window(days, now)
        submissions = self.submission_repo.list_for_learner_between(ctx.user_id, start, end)
        return {
            'learner_id': ctx.user_id,
            'from': start.date().isoformat(),
            'to': (end - timedelta(days=1)).date().isoformat(),
            'quiz_submissions': analytics.daily_series(
                submissions, start=start, end=end,
                timestamp_of=lambda s: s.submitted_at, value_of=lambda s: s.percentage),
            'quizzes': [
                {'quiz_id': quiz_id, **stats}
                for quiz_id, stats in analytics.attempts_by_quiz(submissions).items()
            ],
            'totals': {
                'submissions': len(submissions),
                'average_percentage': analytics.mean([s.percentage for s in submissions]),
                'pass_rate': analytics.pass_rate(submissions),
            },
        }

    @staticmethod
    def _window(days: int, now: Optional[datetime]):
        try:
            return analytics.window_for_days(days, now, max_days=settings.ANALYTICS_MAX_DAYS)
        except ValueError as e:
            raise ValidationError(str(e), field='days') from e
