from pathlib import Path
import os
import shutil
import tempfile
import uuid
import pytest

# Point the app at a throwaway SQLite file before `quizhub` is imported.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="quizhub-tests-"))
os.environ["QUIZHUB_DB_URL"] = f"sqlite:///{_TMP_DIR / 'test.db'}"

from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session  # noqa: E402
from quizhub.main import app  # noqa: E402
from quizhub.database import engine  # noqa: E402
from quizhub import services  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Remove the temporary database once the session is over."""
    yield
    engine.dispose()
    shutil.rmtree(_TMP_DIR, ignore_errors=True)


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def make_user(client):
    """Create a user with a random name and return `(user_id, auth headers)`."""
    def _make(role: str = "student"):
        username = f"{role}-{uuid.uuid4().hex[:8]}"
        if role == "admin":
            with Session(engine) as session:
                user = services.AuthService(session).register(username, "pw123456", role="admin")
                user_id = user.id
        else:
            r = client.post("/auth/register", json={"username": username, "password": "pw123456", "role": role})
            assert r.status_code == 201
            user_id = r.json()["id"]
        login = client.post("/auth/login", json={"username": username, "password": "pw123456"})
        assert login.status_code == 200
        return user_id, {"Authorization": f"Bearer {login.json()['access_token']}"}
    return _make


def choice_question(correct: int, points: int = 1, text: str = "Pick one"):
    return {
        "question_text": text,
        "kind": "multiple-choice",
        "options": ["a", "b", "c", "d"],
        "correct_answer": correct,
        "points": points,
    }


@pytest.fixture
def course_for(client):
    """Create a course owned by the instructor behind `headers` and return its id."""
    def _make(headers, title: str = "Intro course"):
        r = client.post("/courses", json={"title": title, "description": "d"}, headers=headers)
        assert r.status_code == 201
        return r.json()["id"]
    return _make


@pytest.fixture
def quiz_for(client):
    """Create a quiz in `course_id` and return the response body's quiz."""
    def _make(headers, course_id: int, questions=None, passing_score=None):
        body = {
            "title": "Checkpoint",
            "course_id": course_id,
            "questions": questions if questions is not None else [choice_question(1), choice_question(3)],
        }
        if passing_score is not None:
            body["passing_score"] = passing_score
        r = client.post("/quizzes", json=body, headers=headers)
        assert r.status_code == 201, r.text
        return r.json()["quiz"]
    return _make
