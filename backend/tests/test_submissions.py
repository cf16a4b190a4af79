from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select

from quizhub import models
from quizhub.database import engine


def _setup(make_user, course_for, quiz_for, questions=None, passing_score=None):
    _, teacher = make_user('instructor')
    learner_id, student = make_user('student')
    course_id = course_for(teacher)
    quiz = quiz_for(teacher, course_id, questions=questions, passing_score=passing_score)
    return quiz, learner_id, student


def test_submit_scores_and_returns_summary(client, make_user, course_for, quiz_for):
    quiz, _, student = _setup(make_user, course_for, quiz_for)
    r = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 3]}, headers=student)
    assert r.status_code == 201, r.text
    summary = r.json()['submission']
    assert summary['score'] == 2
    assert summary['percentage'] == 100
    assert summary['passed'] is True
    assert summary['total_points'] == 2
    assert summary['attempt_number'] == 1
    assert summary['submitted_at']
    assert 'answers' not in summary


def test_partial_and_skipped_answers(client, make_user, course_for, quiz_for):
    quiz, _, student = _setup(make_user, course_for, quiz_for)
    wrong = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 0]}, headers=student).json()['submission']
    assert (wrong['score'], wrong['percentage'], wrong['passed']) == (1, 50, False)
    skipped = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1]}, headers=student).json()['submission']
    assert (skipped['score'], skipped['percentage'], skipped['passed']) == (1, 50, False)
    history = client.get(f"/quizzes/{quiz['id']}/submissions", headers=student).json()
    assert history['count'] == 2
    last = history['submissions'][-1]
    assert len(last['answers']) == 2
    assert last['answers'][1]['answer'] is None
    assert last['answers'][1]['is_correct'] is False
    assert last['answers'][1]['points_earned'] == 0
    assert last['answers'][0]['question_ref'] == quiz['questions'][0]['id']


def test_short_answer_case_sensitive_over_http(client, make_user, course_for, quiz_for):
    questions = [{'question_text': 'Capital of France?', 'kind': 'short-answer', 'correct_answer': 'Paris'}]
    quiz, _, student = _setup(make_user, course_for, quiz_for, questions=questions)
    ok = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': ['Paris']}, headers=student).json()['submission']
    assert (ok['score'], ok['percentage'], ok['passed']) == (1, 100, True)
    miss = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': ['paris']}, headers=student).json()['submission']
    assert (miss['score'], miss['percentage'], miss['passed']) == (0, 0, False)


def test_attempts_are_numbered_per_learner(client, make_user, course_for, quiz_for):
    quiz, _, student = _setup(make_user, course_for, quiz_for)
    _, other = make_user('student')
    numbers = [client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 3]}, headers=student).json()['submission']['attempt_number']
               for _ in range(3)]
    assert numbers == [1, 2, 3]
    first_for_other = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': []}, headers=other).json()['submission']
    assert first_for_other['attempt_number'] == 1
    assert client.get(f"/quizzes/{quiz['id']}/submissions", headers=other).json()['count'] == 1


def test_malformed_answers_rejected_without_saving(client, make_user, course_for, quiz_for):
    quiz, learner_id, student = _setup(make_user, course_for, quiz_for)
    for body in ({'answers': '13'}, {'answers': {'0': 1}}, {}, {'answers': [1, 3, 0]}):
        r = client.post(f"/quizzes/{quiz['id']}/submit", json=body, headers=student)
        assert r.status_code == 400, body
        assert r.json()['field'] == 'answers'
    assert client.get(f"/quizzes/{quiz['id']}/submissions", headers=student).json()['count'] == 0


def test_unknown_quiz_is_not_found(client, make_user):
    _, student = make_user('student')
    r = client.post('/quizzes/999999/submit', json={'answers': [0]}, headers=student)
    assert r.status_code == 404


def test_answer_shape_checked_before_quiz_lookup(client, make_user):
    _, student = make_user('student')
    for body in ({'answers': '13'}, {'answers': {'0': 1}}, {}):
        r = client.post('/quizzes/999999/submit', json=body, headers=student)
        assert r.status_code == 400, body
        assert r.json()['field'] == 'answers'


def test_storage_failure_is_reported_and_not_retried(client, make_user, course_for, quiz_for, monkeypatch):
    quiz, learner_id, student = _setup(make_user, course_for, quiz_for)
    commits = []
    rollbacks = []
    real_rollback = Session.rollback

    def failing_commit(self):
        commits.append(self)
        raise OperationalError('INSERT INTO quizsubmission', {}, Exception('database is locked'))

    def tracking_rollback(self):
        rollbacks.append(self)
        return real_rollback(self)

    monkeypatch.setattr(Session, 'commit', failing_commit)
    monkeypatch.setattr(Session, 'rollback', tracking_rollback)
    r = client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 3]}, headers=student)
    assert r.status_code == 500
    assert r.json() == {'detail': 'could not save changes, please try again later'}
    assert len(commits) == 1
    assert len(rollbacks) == 1
    monkeypatch.undo()
    with Session(engine) as session:
        rows = session.exec(select(models.QuizSubmission).where(models.QuizSubmission.learner_id == learner_id)).all()
    assert rows == []


def test_submissions_survive_quiz_deletion(client, make_user, course_for, quiz_for):
    _, teacher = make_user('instructor')
    _, student = make_user('student')
    quiz = quiz_for(teacher, course_for(teacher))
    client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 3]}, headers=student)
    assert client.delete(f"/quizzes/{quiz['id']}", headers=teacher).status_code == 200
    history = client.get(f"/quizzes/{quiz['id']}/submissions", headers=student).json()
    assert history['count'] == 1


def test_no_update_path_for_submissions(client, make_user, course_for, quiz_for):
    quiz, _, student = _setup(make_user, course_for, quiz_for)
    client.post(f"/quizzes/{quiz['id']}/submit", json={'answers': [1, 3]}, headers=student)
    r = client.put(f"/quizzes/{quiz['id']}/submissions", json={'score': 0}, headers=student)
    assert r.status_code == 405
