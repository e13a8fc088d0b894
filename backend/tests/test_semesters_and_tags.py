import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from studyboard import models
from studyboard.database import engine
from studyboard.repositories import SemesterRepository


def _current(client, headers):
    return [s['id'] for s in client.get('/api/semesters', headers=headers).json() if s['is_current']]


def test_only_one_current_semester(client, headers):
    fall = client.post('/api/semesters', json={'name': 'Fall', 'is_current': True}, headers=headers).json()
    assert _current(client, headers) == [fall['id']]

    spring = client.post('/api/semesters', json={'name': 'Spring', 'is_current': True}, headers=headers).json()
    assert _current(client, headers) == [spring['id']]

    r = client.put('/api/semesters', json={'id': fall['id'], 'is_current': True}, headers=headers)
    assert r.status_code == 200
    assert r.json()['is_current'] is True
    assert _current(client, headers) == [fall['id']]


def test_current_flag_is_per_user(client, make_user):
    alice, bob = make_user(), make_user()
    a = client.post('/api/semesters', json={'name': 'A', 'is_current': True}, headers=alice).json()
    b = client.post('/api/semesters', json={'name': 'B', 'is_current': True}, headers=bob).json()
    assert _current(client, alice) == [a['id']]
    assert _current(client, bob) == [b['id']]


def test_renaming_keeps_current_flag(client, headers):
    sem = client.post('/api/semesters', json={'name': 'Winter', 'is_current': True}, headers=headers).json()
    r = client.put('/api/semesters', json={'id': sem['id'], 'name': 'Winter 2030'}, headers=headers)
    assert r.json()['name'] == 'Winter 2030'
    assert _current(client, headers) == [sem['id']]


def test_storage_rejects_two_current_semesters(client, headers):
    client.post('/api/semesters', json={'name': 'One', 'is_current': True}, headers=headers)
    user_id = client.get('/api/semesters', headers=headers).json()[0]['user_id']
    with Session(engine) as session:
        session.add(models.Semester(user_id=user_id, name='Two', is_current=True))
        with pytest.raises(IntegrityError):
            session.commit()


def _conflict_once(monkeypatch):
    """Make the next clear-then-set hit a uniqueness conflict, then behave normally."""
    real_clear = SemesterRepository.clear_current
    calls = []

    def clear_current(self, user_id, keep_id=None):
        calls.append(user_id)
        if len(calls) == 1:
            raise IntegrityError("UPDATE semester", {}, Exception("UNIQUE constraint failed: semester.user_id"))
        return real_clear(self, user_id, keep_id=keep_id)

    monkeypatch.setattr(SemesterRepository, 'clear_current', clear_current)
    return calls


def test_current_semester_conflict_is_retried_on_create(client, headers, monkeypatch):
    old = client.post('/api/semesters', json={'name': 'Old', 'is_current': True}, headers=headers).json()
    calls = _conflict_once(monkeypatch)

    r = client.post('/api/semesters', json={'name': 'New', 'is_current': True}, headers=headers)
    assert r.status_code == 200
    assert len(calls) == 2
    assert _current(client, headers) == [r.json()['id']]
    assert old['id'] != r.json()['id']


def test_current_semester_conflict_is_retried_on_update(client, headers, monkeypatch):
    first = client.post('/api/semesters', json={'name': 'First', 'is_current': True}, headers=headers).json()
    second = client.post('/api/semesters', json={'name': 'Second'}, headers=headers).json()
    calls = _conflict_once(monkeypatch)

    r = client.put('/api/semesters', json={'id': second['id'], 'is_current': True}, headers=headers)
    assert r.status_code == 200
    assert r.json()['is_current'] is True
    assert len(calls) == 2
    assert _current(client, headers) == [second['id']]
    assert first['id'] not in _current(client, headers)


def test_tag_names_are_normalized_and_unique(client, headers):
    first = client.post('/api/tags', json={'name': 'math'}, headers=headers)
    assert first.status_code == 200
    again = client.post('/api/tags', json={'name': '  Math ', 'color': '#000000'}, headers=headers)
    assert again.status_code == 200
    assert again.json() == first.json()
    assert len(client.get('/api/tags', headers=headers).json()) == 1


def test_same_tag_name_allowed_for_different_users(client, make_user):
    alice, bob = make_user(), make_user()
    a = client.post('/api/tags', json={'name': 'Physics'}, headers=alice).json()
    b = client.post('/api/tags', json={'name': 'physics'}, headers=bob).json()
    assert a['name'] == b['name'] == 'physics'
    assert a['id'] != b['id']


def test_tag_requires_name(client, headers):
    r = client.post('/api/tags', json={'name': '   '}, headers=headers)
    assert r.status_code == 400
    assert r.json() == {'error': 'name is required'}


def test_tag_rename_onto_existing_name_refused(client, headers):
    client.post('/api/tags', json={'name': 'exam'}, headers=headers)
    other = client.post('/api/tags', json={'name': 'review'}, headers=headers).json()
    r = client.put('/api/tags', json={'id': other['id'], 'name': 'EXAM'}, headers=headers)
    assert r.status_code == 400
    renamed = client.put('/api/tags', json={'id': other['id'], 'name': ' Revision '}, headers=headers)
    assert renamed.json()['name'] == 'revision'
    names = [t['name'] for t in client.get('/api/tags', headers=headers).json()]
    assert names == ['exam', 'revision']
