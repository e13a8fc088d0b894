import uuid

import jwt

from studyboard.config import settings


def test_register_login_and_fetch_assignments(client):
    email = f"auth-{uuid.uuid4().hex[:8]}@example.com"
    r = client.post('/auth/register', json={'email': email, 'password': 'pass123'})
    assert r.status_code == 200
    assert r.json()['email'] == email
    r2 = client.post('/auth/login', json={'email': email, 'password': 'pass123'})
    assert r2.status_code == 200
    assert 'access_token' in r2.json()
    token = r2.json()['access_token']
    r3 = client.get('/api/assignments', headers={'Authorization': f'Bearer {token}'})
    assert r3.status_code == 200
    assert r3.json() == []


def test_duplicate_register_rejected(client):
    email = f"dup-{uuid.uuid4().hex[:8]}@example.com"
    assert client.post('/auth/register', json={'email': email, 'password': 'a'}).status_code == 200
    r = client.post('/auth/register', json={'email': email.upper(), 'password': 'b'})
    assert r.status_code == 400
    assert r.json() == {'error': 'email already registered'}


def test_wrong_password_rejected(client):
    email = f"pw-{uuid.uuid4().hex[:8]}@example.com"
    client.post('/auth/register', json={'email': email, 'password': 'right'})
    r = client.post('/auth/login', json={'email': email, 'password': 'wrong'})
    assert r.status_code == 401
    assert r.json() == {'error': 'invalid credentials'}


def test_missing_token_rejected_before_storage(client, monkeypatch):
    def boom(*_args, **_kwargs):
        raise AssertionError("storage touched without a session")

    monkeypatch.setattr("studyboard.repositories.OwnedRepository.list", boom)
    r = client.get('/api/assignments')
    assert r.status_code == 401
    assert r.json() == {'error': 'Unauthorized'}


def test_invalid_token_rejected(client):
    r = client.get('/api/tags', headers={'Authorization': 'Bearer invalid.token.here'})
    assert r.status_code == 401


def test_token_for_deleted_user_rejected(client):
    token = jwt.encode({'user_id': 987654321}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    r = client.get('/api/tags', headers={'Authorization': f'Bearer {token}'})
    assert r.status_code == 401


def test_request_id_header_exists(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert 'X-Request-ID' in r.headers
    r2 = client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert r2.headers['X-Request-ID'] == 'abc123'
