"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints of the course quiz backend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Domain exceptions raised by the
services are mapped to status codes by the handlers registered below.

Endpoints implemented:
- POST /auth/register
- POST /auth/login
- POST /courses
- GET /courses/{course_id}
- POST /courses/{course_id}/enroll
- PUT /courses/{course_id}/progress
- GET /quizzes/course/{course_id}
- GET /quizzes/{quiz_id}
- POST /quizzes
- PUT /quizzes/{quiz_id}
- DELETE /quizzes/{quiz_id}
- POST /quizzes/{quiz_id}/submit
- GET /quizzes/{quiz_id}/submissions
- GET /analytics/courses/{course_id}
- GET /analytics/me
- GET /health
"""

from fastapi import FastAPI, Depends, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from sqlmodel import Session
import json
import logging
import time
import uuid
from typing import Optional
from .database import create_db_and_tables, get_session
from . import services, repositories
from .auth import AuthContext, get_auth_context, require_roles
from .config import settings
from .errors import AuthorizationError, NotFoundError, StorageFailure, ValidationError
from .schemas import CourseIn, LoginIn, ProgressIn, QuizCreate, QuizSubmissionIn, QuizUpdate, RegisterIn, SubmissionSummary, TokenOut

app = FastAPI(title="Course Quiz API")
logger = logging.getLogger("quizhub.api")
if not logging.getLogger().handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

instructor_only = require_roles('instructor', 'admin')


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    logger.info(
        "request_done %s",
        json.dumps(
            {
                "request_id": req_id,
                "path": request.url.path,
                "method": request.method,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client": request.client.host if request.client else "unknown",
            },
            ensure_ascii=True,
        ),
    )
    return response


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"detail": exc.message, "field": exc.field})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": str(exc), "details": jsonable_encoder(exc.details)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    logger.error(
        "storage_failure %s",
        json.dumps(
            {
                "request_id": getattr(request.state, "request_id", ""),
                "operation": exc.operation,
                "error": repr(exc.cause),
            },
            ensure_ascii=True,
        ),
    )
    return JSONResponse(status_code=500, content={"detail": "could not save changes, please try again later"})


def _quiz_out(quiz) -> dict:
    return {
        'id': quiz.id,
        'title': quiz.title,
        'description': quiz.description,
        'course_id': quiz.course_id,
        'lesson_id': quiz.lesson_id,
        'questions': quiz.questions,
        'total_points': quiz.total_points,
        'passing_score': quiz.passing_score,
        'duration_minutes': quiz.duration_minutes,
        'is_published': quiz.is_published,
        'created_at': quiz.created_at,
        'updated_at': quiz.updated_at,
    }


@app.post('/auth/register', status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_session)):
    """Register a new student or instructor account.

    Usernames are unique; registering a taken name is rejected with 409.
    """
    if repositories.UserRepository(db).get_by_username(payload.username):
        raise HTTPException(status_code=409, detail='username already taken')
    user = services.AuthService(db).register(payload.username, payload.password, payload.role)
    return {'id': user.id, 'username': user.username, 'role': user.role}


@app.post('/auth/login', response_model=TokenOut)
def login(payload: LoginIn, db: Session = Depends(get_session)):
    """Authenticate a user and return a short-lived JWT token.

    The returned token contains `user_id`, `username` and `role` and is
    signed using the configured JWT secret.
    """
    token = services.AuthService(db).authenticate(payload.username, payload.password)
    if not token:
        raise HTTPException(status_code=401, detail='invalid credentials')
    return {'access_token': token}


@app.post('/courses', status_code=201)
def create_course(payload: CourseIn, db: Session = Depends(get_session), ctx: AuthContext = Depends(instructor_only)):
    course = services.CourseService(db).create_course(ctx, payload.title, payload.description)
    return {'id': course.id, 'title': course.title, 'description': course.description, 'instructor_id': course.instructor_id}


@app.get('/courses/{course_id}')
def get_course(course_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    course = services.CourseService(db).get_course(course_id)
    return {'id': course.id, 'title': course.title, 'description': course.description, 'instructor_id': course.instructor_id}


@app.post('/courses/{course_id}/enroll', status_code=201)
def enroll(course_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(require_roles('student'))):
    """Enroll the authenticated student; repeated calls return the same enrollment."""
    e = services.CourseService(db).enroll(ctx, course_id)
    return {'id': e.id, 'course_id': e.course_id, 'status': e.status, 'progress': e.progress, 'enrolled_at': e.enrolled_at}


@app.put('/courses/{course_id}/progress')
def update_progress(course_id: int, payload: ProgressIn, db: Session = Depends(get_session), ctx: AuthContext = Depends(require_roles('student'))):
    e = services.CourseService(db).update_progress(ctx, course_id, payload.progress)
    return {'id': e.id, 'course_id': e.course_id, 'status': e.status, 'progress': e.progress, 'completed_at': e.completed_at}


@app.get('/quizzes/course/{course_id}')
def list_course_quizzes(course_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    quizzes = services.QuizService(db).list_course_quizzes(course_id)
    return {'count': len(quizzes), 'quizzes': [_quiz_out(q) for q in quizzes]}


@app.get('/quizzes/{quiz_id}')
def get_quiz(quiz_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    return _quiz_out(services.QuizService(db).get_quiz(quiz_id))


@app.post('/quizzes', status_code=201)
def create_quiz(payload: QuizCreate, db: Session = Depends(get_session), ctx: AuthContext = Depends(instructor_only)):
    """Create a quiz for a course the caller teaches.

    `total_points` is derived from the questions and cannot be supplied.
    """
    quiz = services.QuizService(db).create_quiz(ctx, payload.model_dump())
    return {'message': 'quiz created', 'quiz': _quiz_out(quiz)}


@app.put('/quizzes/{quiz_id}')
def update_quiz(quiz_id: int, payload: QuizUpdate, db: Session = Depends(get_session), ctx: AuthContext = Depends(instructor_only)):
    quiz = services.QuizService(db).update_quiz(ctx, quiz_id, payload.model_dump(exclude_unset=True))
    return {'message': 'quiz updated', 'quiz': _quiz_out(quiz)}


@app.delete('/quizzes/{quiz_id}')
def delete_quiz(quiz_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(instructor_only)):
    services.QuizService(db).delete_quiz(ctx, quiz_id)
    return {'message': 'quiz deleted'}


@app.post('/quizzes/{quiz_id}/submit', status_code=201)
def submit_quiz(quiz_id: int, payload: QuizSubmissionIn, db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    """Grade a submitted quiz.

    The body holds the answers in question order (option index for
    choice questions, text for short answers, `null` to skip). The
    graded attempt is stored with per-question detail; the response only
    carries the summary.
    """
    summary = services.GradingService(db).submit(ctx, quiz_id, payload.answers, payload.time_spent_seconds)
    return {'message': 'quiz submitted', 'submission': SubmissionSummary(**summary)}


@app.get('/quizzes/{quiz_id}/submissions')
def list_submissions(quiz_id: int, db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    """Return the caller's own attempts at a quiz, including per-question results."""
    subs = services.GradingService(db).list_submissions(ctx, quiz_id)
    return {
        'count': len(subs),
        'submissions': [
            {
                'id': s.id,
                'attempt_number': s.attempt_number,
                'answers': s.answers,
                'score': s.score,
                'total_points': s.total_points,
                'percentage': s.percentage,
                'passed': s.passed,
                'time_spent_seconds': s.time_spent_seconds,
                'submitted_at': s.submitted_at,
            }
            for s in subs
        ],
    }


@app.get('/analytics/courses/{course_id}')
def course_analytics(course_id: int, days: Optional[int] = Query(None, ge=1, le=settings.ANALYTICS_MAX_DAYS), db: Session = Depends(get_session), ctx: AuthContext = Depends(instructor_only)):
    """Daily enrollment and quiz performance for the last `days` days."""
    return services.AnalyticsService(db).course_analytics(ctx, course_id, settings.ANALYTICS_DEFAULT_DAYS if days is None else days)


@app.get('/analytics/me')
def my_analytics(days: Optional[int] = Query(None, ge=1, le=settings.ANALYTICS_MAX_DAYS), db: Session = Depends(get_session), ctx: AuthContext = Depends(get_auth_context)):
    """Daily quiz activity of the caller for the last `days` days."""
    return services.AnalyticsService(db).learner_analytics(ctx, settings.ANALYTICS_DEFAULT_DAYS if days is None else days)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}
