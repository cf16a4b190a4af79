from quizhub.config import settings


def _mc(correct, points=1):
    return {'question_text': 'Pick one', 'kind': 'multiple-choice', 'options': ['a', 'b', 'c', 'd'],
            'correct_answer': correct, 'points': points}


def test_create_quiz_derives_total_points_and_defaults(client, make_user, course_for):
    _, teacher = make_user('instructor')
    course_id = course_for(teacher)
    body = {
        'title': '  Week 1  ',
        'course_id': course_id,
        'questions': [_mc(0, points=2), _mc(1, points=3),
                      {'question_text': 'Capital?', 'kind': 'short-answer', 'correct_answer': 'Paris'}],
        'total_points': 999,
    }
    r = client.post('/quizzes', json=body, headers=teacher)
    assert r.status_code == 201, r.text
    quiz = r.json()['quiz']
    assert quiz['title'] == 'Week 1'
    assert quiz['total_points'] == 6
    assert quiz['passing_score'] == 60
    assert quiz['duration_minutes'] == 30
    assert quiz['is_published'] is False
    assert all(q['id'] for q in quiz['questions'])
    assert len({q['id'] for q in quiz['questions']}) == 3


def test_update_replaces_questions_and_recomputes_total(client, make_user, course_for, quiz_for):
    _, teacher = make_user('instructor')
    quiz = quiz_for(teacher, course_for(teacher))
    assert quiz['total_points'] == 2
    r = client.put(f"/quizzes/{quiz['id']}", json={'questions': [_mc(2, points=5)], 'is_published': True}, headers=teacher)
    assert r.status_code == 200
    updated = r.json()['quiz']
    assert updated['total_points'] == 5
    assert updated['is_published'] is True
    assert updated['title'] == quiz['title']
    fetched = client.get(f"/quizzes/{quiz['id']}", headers=teacher).json()
    assert fetched['total_points'] == 5


def test_other_instructor_gets_diagnostic_403(client, make_user, course_for, quiz_for):
    owner_id, owner = make_user('instructor')
    other_id, other = make_user('instructor')
    course_id = course_for(owner, title='Owned course')
    r = client.post('/quizzes', json={'title': 'Q', 'course_id': course_id, 'questions': [_mc(0)]}, headers=other)
    assert r.status_code == 403
    details = r.json()['details']
    assert details['course_title'] == 'Owned course'
    assert details['instructor_id'] == owner_id
    assert details['your_id'] == other_id
    assert details['your_role'] == 'instructor'
    quiz = quiz_for(owner, course_id)
    assert client.put(f"/quizzes/{quiz['id']}", json={'title': 'x'}, headers=other).status_code == 403
    assert client.delete(f"/quizzes/{quiz['id']}", headers=other).status_code == 403


def test_admin_may_author_for_any_course(client, make_user, course_for):
    _, owner = make_user('instructor')
    _, admin = make_user('admin')
    course_id = course_for(owner)
    r = client.post('/quizzes', json={'title': 'Admin quiz', 'course_id': course_id, 'questions': [_mc(0)]}, headers=admin)
    assert r.status_code == 201


def test_students_cannot_author(client, make_user, course_for):
    _, owner = make_user('instructor')
    _, student = make_user('student')
    course_id = course_for(owner)
    r = client.post('/quizzes', json={'title': 'Q', 'course_id': course_id, 'questions': [_mc(0)]}, headers=student)
    assert r.status_code == 403


def test_authoring_validation_errors(client, make_user, course_for):
    _, teacher = make_user('instructor')
    course_id = course_for(teacher)
    few_options = {'question_text': 'Q', 'kind': 'multiple-choice', 'options': ['a', 'b', 'c'], 'correct_answer': 0}
    cases = [
        ({'title': ' ', 'course_id': course_id, 'questions': [_mc(0)]}, 'title'),
        ({'title': 'Q', 'course_id': course_id, 'questions': []}, 'questions'),
        ({'title': 'Q', 'course_id': course_id, 'questions': [few_options]}, 'options'),
        ({'title': 'Q', 'course_id': course_id, 'questions': [_mc(0, points=0)]}, 'points'),
    ]
    for body, field in cases:
        r = client.post('/quizzes', json=body, headers=teacher)
        assert r.status_code == 400, body
        assert r.json()['field'] == field
    missing_course = client.post('/quizzes', json={'title': 'Q', 'course_id': 987654, 'questions': [_mc(0)]}, headers=teacher)
    assert missing_course.status_code == 404
    bad_threshold = client.post('/quizzes', json={'title': 'Q', 'course_id': course_id, 'questions': [_mc(0)], 'passing_score': 101}, headers=teacher)
    assert bad_threshold.status_code == 422


def test_course_id_zero_is_looked_up(client, make_user):
    _, teacher = make_user('instructor')
    r = client.post('/quizzes', json={'title': 'Q', 'course_id': 0, 'questions': [_mc(0)]}, headers=teacher)
    assert r.status_code == 404


def test_out_of_range_index_with_strict_setting(client, make_user, course_for, monkeypatch):
    _, teacher = make_user('instructor')
    course_id = course_for(teacher)
    body = {'title': 'Q', 'course_id': course_id, 'questions': [_mc(4)]}
    lenient = client.post('/quizzes', json=body, headers=teacher)
    assert lenient.status_code == 201
    assert lenient.json()['quiz']['questions'][0]['correct_answer'] == 4

    monkeypatch.setattr(settings, 'STRICT_ANSWER_INDEX', True)
    strict = client.post('/quizzes', json=body, headers=teacher)
    assert strict.status_code == 400
    assert strict.json()['field'] == 'correct_answer'
    assert strict.json()['detail'].startswith('question 1:')
    in_range = client.post('/quizzes', json={**body, 'questions': [_mc(3)]}, headers=teacher)
    assert in_range.status_code == 201


def test_list_and_delete(client, make_user, course_for, quiz_for):
    _, teacher = make_user('instructor')
    course_id = course_for(teacher)
    first = quiz_for(teacher, course_id)
    quiz_for(teacher, course_id)
    listing = client.get(f'/quizzes/course/{course_id}', headers=teacher).json()
    assert listing['count'] == 2
    r = client.delete(f"/quizzes/{first['id']}", headers=teacher)
    assert r.status_code == 200
    assert client.get(f"/quizzes/{first['id']}", headers=teacher).status_code == 404
    assert client.get(f'/quizzes/course/{course_id}', headers=teacher).json()['count'] == 1
