import os
import tempfile
import uuid
from pathlib import Path

import pytest

# Point the app at a throwaway SQLite database before it is imported.
_DB_DIR = Path(tempfile.mkdtemp(prefix="studyboard-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["EMAIL_BACKEND"] = "log"
os.environ.pop("RESEND_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402
from studyboard.main import app  # noqa: E402


@pytest.fixture(scope="session")
def client():
    return TestClient(app)


@pytest.fixture
def make_user(client):
    """Register a fresh user and return its bearer headers."""
    def _make(name="Student"):
        email = f"user-{uuid.uuid4().hex[:10]}@example.com"
        r = client.post("/auth/register", json={"email": email, "password": "pw-123", "name": name})
        assert r.status_code == 200
        login = client.post("/auth/login", json={"email": email, "password": "pw-123"})
        assert login.status_code == 200
        return {"Authorization": f"Bearer {login.json()['access_token']}"}
    return _make


@pytest.fixture
def headers(make_user):
    return make_user()
