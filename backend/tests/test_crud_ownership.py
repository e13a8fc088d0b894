import pytest
from sqlalchemy.exc import OperationalError


def test_assignment_crud_flow(client, headers):
    created = client.post('/api/assignments', json={'title': 'Lab report', 'subject': 'Physics', 'due': '2030-05-01'}, headers=headers)
    assert created.status_code == 200
    body = created.json()
    assert body['id'] > 0
    assert body['status'] == 'Pending'
    assert body['due'] == '2030-05-01'

    updated = client.put('/api/assignments', json={'id': body['id'], 'status': 'Completed'}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()['status'] == 'Completed'
    assert updated.json()['title'] == 'Lab report'

    listed = client.get('/api/assignments', headers=headers).json()
    assert [a['id'] for a in listed] == [body['id']]

    deleted = client.delete('/api/assignments', params={'id': body['id']}, headers=headers)
    assert deleted.status_code == 200
    assert deleted.json() == {'success': True}
    assert client.get('/api/assignments', headers=headers).json() == []


def test_list_is_scoped_and_newest_first(client, make_user):
    alice, bob = make_user(), make_user()
    first = client.post('/api/ideas', json={'content': 'first'}, headers=alice).json()
    second = client.post('/api/ideas', json={'content': 'second'}, headers=alice).json()
    client.post('/api/ideas', json={'content': 'not yours'}, headers=bob)
    ideas = client.get('/api/ideas', headers=alice).json()
    assert [i['id'] for i in ideas] == [second['id'], first['id']]
    assert all(i['content'] != 'not yours' for i in ideas)


def test_foreign_record_looks_like_missing_record(client, make_user):
    owner, intruder = make_user(), make_user()
    record = client.post('/api/assignments', json={'title': 'Mine'}, headers=owner).json()

    foreign_delete = client.delete('/api/assignments', params={'id': record['id']}, headers=intruder)
    missing_delete = client.delete('/api/assignments', params={'id': 99999999}, headers=intruder)
    assert foreign_delete.status_code == missing_delete.status_code == 404
    assert foreign_delete.json() == missing_delete.json() == {'error': 'Not Found or Unauthorized'}

    foreign_put = client.put('/api/assignments', json={'id': record['id'], 'title': 'Hijacked'}, headers=intruder)
    missing_put = client.put('/api/assignments', json={'id': 99999999, 'title': 'Hijacked'}, headers=intruder)
    assert foreign_put.status_code == missing_put.status_code == 404
    assert foreign_put.json() == missing_put.json()

    still_there = client.get('/api/assignments', headers=owner).json()
    assert still_there[0]['title'] == 'Mine'


def test_missing_id_and_missing_fields_are_client_errors(client, headers):
    r = client.put('/api/projects', json={'title': 'x'}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'id is required'}

    r = client.delete('/api/projects', headers=headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'id is required'}

    r = client.post('/api/projects', json={'description': 'no title'}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'title is required'}

    r = client.post('/api/logs', json={'date': 'not-a-date'}, headers=headers)
    assert r.status_code == 400
    assert 'date' in r.json()['error']


def test_explicit_null_does_not_clear_required_field(client, headers):
    snippet = client.post('/api/snippets', json={'title': 'Regex', 'content': '^a+$'}, headers=headers).json()
    r = client.put('/api/snippets', json={'id': snippet['id'], 'title': None, 'language': 'regex'}, headers=headers)
    assert r.status_code == 200
    assert r.json()['title'] == 'Regex'
    assert r.json()['language'] == 'regex'


def test_project_tech_list_is_joined(client, headers):
    r = client.post('/api/projects', json={'title': 'Board', 'tech': ['FastAPI', 'SQLModel']}, headers=headers)
    assert r.status_code == 200
    assert r.json()['tech'] == 'FastAPI,SQLModel'
    assert r.json()['status'] == 'Planning'


def test_exam_title_fallback_and_time_merge(client, headers):
    r = client.post('/api/exams', json={'type': 'Midterm', 'date': '2030-03-10', 'time': '09:30', 'room': 'B12'}, headers=headers)
    assert r.status_code == 200
    exam = r.json()
    assert exam['title'] == 'Midterm'
    assert exam['date'].startswith('2030-03-10T09:30')

    client.post('/api/exams', json={'date': '2030-01-05'}, headers=headers)
    exams = client.get('/api/exams', headers=headers).json()
    assert [e['date'][:10] for e in exams] == ['2030-01-05', '2030-03-10']
    assert exams[0]['title'] == 'Exam'


def test_todo_completion_stamps_completed_at(client, headers):
    todo = client.post('/api/todos', json={'text': 'Read chapter 3'}, headers=headers).json()
    assert todo['completed_at'] is None
    done = client.put('/api/todos', json={'id': todo['id'], 'completed': True}, headers=headers).json()
    assert done['completed'] is True
    assert done['completed_at'] is not None
    undone = client.put('/api/todos', json={'id': todo['id'], 'completed': False}, headers=headers).json()
    assert undone['completed_at'] is None


@pytest.mark.parametrize('path,payload', [
    ('/api/resources', {'title': 'Lecture notes', 'url': 'https://example.com'}),
    ('/api/schedule', {'title': 'Algorithms', 'day': 'Monday', 'time': '10:00'}),
    ('/api/academics', {'name': 'Data Structures', 'code': 'CS201'}),
    ('/api/logs', {'date': '2030-02-01', 'mood': 'good', 'sleep': 7.5}),
])
def test_every_resource_is_owner_scoped(client, make_user, path, payload):
    owner, other = make_user(), make_user()
    created = client.post(path, json=payload, headers=owner)
    assert created.status_code == 200
    record_id = created.json()['id']
    assert client.get(path, headers=other).json() == []
    assert client.delete(path, params={'id': record_id}, headers=other).status_code == 404
    assert client.delete(path, params={'id': record_id}, headers=owner).status_code == 200


def test_storage_failure_is_opaque(client, headers, monkeypatch):
    def broken(*_args, **_kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr("studyboard.repositories.OwnedRepository.list", broken)
    r = client.get('/api/snippets', headers=headers)
    assert r.status_code == 500
    assert r.json() == {'error': 'Internal Server Error'}
