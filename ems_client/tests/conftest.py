"""
Pytest configuration for ems_client. A scripted fake API behind httpx.MockTransport
stands in for the server; the end-to-end tests use the real ems_api app in memory.
"""
import asyncio
import json
import os
import time
from typing import Any

import httpx
import jwt
import pytest

# ems_api is imported by the end-to-end tests; keep it off the filesystem
os.environ["EMS_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["EMS_JWT_SECRET_KEY"] = "test-secret-key-for-ems-tests-0123456789"
os.environ["EMS_RATE_LIMIT_LOGIN_PER_MINUTE"] = "1000"
for _name in ("EMS_SEED_ADMIN_USER", "EMS_SEED_ADMIN_PASSWORD", "EMS_API_BASE_URL", "EMS_SENDGRID_API_KEY"):
    os.environ.pop(_name, None)

from ems_client.api_client import ApiClient  # noqa: E402
from ems_client.hashing import hash_password  # noqa: E402
from ems_client.navigation import HistoryNavigator  # noqa: E402
from ems_client.storage import MemoryStorage  # noqa: E402

BASE_URL = "http://ems.test/api"
PASSWORD = "secret"

_counter = 0


def make_token(exp_in: int = 3600, **claims) -> str:
    """Signed JWT with exp relative to now. Every call returns a distinct token."""
    global _counter
    _counter += 1
    payload = {"sub": "alice", "exp": int(time.time()) + exp_in, "n": _counter, **claims}
    return jwt.encode(payload, "fake-api-secret", algorithm="HS256")


def user_dict(role: str = "EMPLOYEE", username: str = "alice") -> dict:
    return {"id": "u-1", "username": username, "email": f"{username}@example.com", "role": role, "employeeId": "e-1"}


class FakeApi:
    """
    Scripted server: accepts the tokens in valid_tokens, answers 401 otherwise.
    routes maps (method, path) to a canned response or a callable taking the request.
    refresh_gate (an asyncio.Event) holds /auth/refresh until set.
    """

    def __init__(self):
        self.valid_tokens: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.refresh_calls = 0
        self.logout_calls = 0
        self.refresh_gate: asyncio.Event | None = None
        self.refresh_fails = False
        self.always_401 = False
        self.connection_error = False
        self.role = "EMPLOYEE"
        self.routes: dict[tuple[str, str], Any] = {}
        # exempt endpoints that answer 401 before any other handling
        self.reject_exempt: set[str] = set()

    def issue(self) -> dict:
        token = make_token()
        self.valid_tokens = {token}
        return {"token": token, "refreshToken": make_token(exp_in=7 * 86400), "user": user_dict(self.role), "expiresIn": 3600}

    def calls_to(self, suffix: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(suffix)]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.connection_error:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path
        if any(path.endswith(p) for p in self.reject_exempt):
            return httpx.Response(401, json={"status": 401, "message": "Invalid or expired token"})

        if path.endswith("/auth/login"):
            body = json.loads(request.content)
            if body["password"] != hash_password(PASSWORD):
                return httpx.Response(401, json={"status": 401, "message": "Invalid username or password. Please try again."})
            return httpx.Response(200, json=self.issue())

        if path.endswith("/auth/refresh"):
            self.refresh_calls += 1
            if self.refresh_gate is not None:
                await self.refresh_gate.wait()
            if self.refresh_fails:
                return httpx.Response(401, json={"status": 401, "message": "Invalid refresh token"})
            return httpx.Response(200, json=self.issue())

        if path.endswith("/auth/logout"):
            self.logout_calls += 1
            return httpx.Response(200, json={"message": "Logged out"})

        if path.rsplit("/auth/", 1)[-1] in ("activate", "forgot-password", "reset-password"):
            return httpx.Response(200, json={"message": "ok"})

        token = request.headers.get("Authorization", "").removeprefix("Bearer ")
        if self.always_401 or token not in self.valid_tokens:
            return httpx.Response(401, json={"status": 401, "message": "Token expired"})
        scripted = self.routes.get((request.method, path))
        if callable(scripted):
            return scripted(request)
        if scripted is not None:
            return scripted
        return httpx.Response(200, json={"path": path, "token": token})


@pytest.fixture
def fake_api():
    return FakeApi()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def navigator():
    return HistoryNavigator()


@pytest.fixture
def make_client(fake_api, storage, navigator):
    """Factory: ApiClient wired to the fake API. Call inside the running event loop."""

    def _make(**overrides) -> ApiClient:
        kwargs = {
            "storage": storage,
            "navigator": navigator,
            "transport": httpx.MockTransport(fake_api.handler),
        }
        kwargs.update(overrides)
        return ApiClient(BASE_URL, **kwargs)

    return _make


@pytest.fixture
def seed_session(storage, fake_api):
    """Store a session whose access token the fake API does (valid=True) or does not accept."""

    def _seed(*, valid: bool = False, refresh: bool = True) -> str:
        access = make_token()
        if valid:
            fake_api.valid_tokens = {access}
        storage.set_item("access_token", access)
        if refresh:
            storage.set_item("refresh_token", make_token(exp_in=7 * 86400))
        storage.set_item("user", json.dumps(user_dict()))
        return access

    return _seed


@pytest.fixture
def token_factory():
    return make_token
