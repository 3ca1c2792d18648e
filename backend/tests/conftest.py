import itertools
import os
import tempfile

# Cheap Argon2 parameters and no rate limits unless a test turns them on.
os.environ.setdefault("ARGON2_TIME_COST", "1")
os.environ.setdefault("ARGON2_MEMORY_COST", "1024")
os.environ.setdefault("ARGON2_PARALLELISM", "1")
os.environ.setdefault("ENABLE_RATE_LIMITS", "0")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "dicey-tests.log"))

import pytest
from fastapi.testclient import TestClient

from dicey.core.settings import reload_settings
from dicey.db import Database
from dicey.main import app
from dicey.services import identity

_emails = itertools.count(1)


@pytest.fixture
def database(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'dicey-test.sqlite3'}").open()
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    def _make(name: str = "Player"):
        n = next(_emails)
        return identity.create_user(db, f"{name} {n}", f"player{n}@example.com", "Secret123!")

    return _make


def _reset_limits() -> None:
    limiter = getattr(app.state, "limiter", None)
    if limiter is not None:
        limiter.reset()


@pytest.fixture
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'dicey-api.sqlite3'}")
    reload_settings()
    _reset_limits()
    with TestClient(app) as test_client:
        yield test_client
    _reset_limits()


@pytest.fixture
def signup(client):
    """Create an account over HTTP and return bearer headers for it."""

    def _signup(name: str = "Player"):
        n = next(_emails)
        response = client.post(
            "/auth/signup",
            json={"name": f"{name} {n}", "email": f"api{n}@example.com", "password": "Secret123!"},
        )
        assert response.status_code == 201, response.text
        token = response.cookies.get("session")
        assert token
        return {"Authorization": f"Bearer {token}"}

    return _signup
