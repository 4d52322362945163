"""
Pytest configuration for ems_api. Use in-memory SQLite so tests don't touch the filesystem.
"""
import os

# In-memory SQLite; database.py uses StaticPool so all connections share the same DB
os.environ["EMS_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["EMS_JWT_SECRET_KEY"] = "test-secret-key-for-ems-tests-0123456789"
os.environ["EMS_RATE_LIMIT_LOGIN_PER_MINUTE"] = "1000"
# Avoid seed_from_env and the mailer picking up the developer's environment
for _name in ("EMS_SEED_ADMIN_USER", "EMS_SEED_ADMIN_PASSWORD", "EMS_SEED_ADMIN_EMAIL", "EMS_SENDGRID_API_KEY"):
    os.environ.pop(_name, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from ems_api.database import SessionLocal, reset_db  # noqa: E402
from ems_api.mailer import mailer  # noqa: E402
from ems_api.main import app  # noqa: E402
from ems_api.rate_limit import login_limiter  # noqa: E402
from ems_api.seed import create_user  # noqa: E402
from ems_client.hashing import hash_password as client_prehash  # noqa: E402
from ems_client.models import UserRole  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_db():
    reset_db()
    login_limiter.reset()
    mailer.outbox.clear()
    yield


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db):
    """Factory: active user with password '<username>-pass'."""

    def _make(username: str, role: UserRole = UserRole.EMPLOYEE, **extra):
        return create_user(db, username, f"{username}-pass", role, **extra)

    return _make


@pytest.fixture
def login(client):
    """Factory: log in and return the auth response body."""

    def _login(username: str, password: str | None = None) -> dict:
        r = client.post(
            "/api/auth/login",
            json={"username": username, "password": client_prehash(password or f"{username}-pass")},
        )
        assert r.status_code == 200, r.text
        return r.json()

    return _login


@pytest.fixture
def auth_headers(make_user, login):
    """Factory: create a user with the role and return Authorization headers for it."""

    def _headers(role: UserRole = UserRole.SYSTEM_ADMIN, username: str | None = None, **extra) -> dict:
        username = username or role.value.lower()
        make_user(username, role, **extra)
        return {"Authorization": f"Bearer {login(username)['token']}"}

    return _headers
