"""Tests for the request interceptor and refresh coordinator."""
import asyncio

import pytest

from ems_client.config import EXEMPT_PATHS
from ems_client.errors import CredentialError, NoRefreshTokenError, SessionExpiredError
from ems_client.http import send
from ems_client.interceptor import RefreshCoordinator, RefreshState
from ems_client.models import AuthResponse, Session, UserProfile


async def wait_until(predicate, attempts: int = 2000) -> None:
    """Yield to the event loop until predicate() holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def test_attaches_bearer_token(make_client, fake_api, seed_session):
    token = seed_session(valid=True)

    async def run():
        api = make_client()
        try:
            return await api.get("/employees")
        finally:
            await api.aclose()

    body = asyncio.run(run())
    assert body["token"] == token
    assert fake_api.requests[0].headers["Authorization"] == f"Bearer {token}"
    assert fake_api.refresh_calls == 0


def test_concurrent_401s_trigger_exactly_one_refresh(make_client, fake_api, seed_session):
    """Five parallel requests with an expired token: one refresh, all retried with the new token."""
    old = seed_session()

    async def run():
        fake_api.refresh_gate = asyncio.Event()
        api = make_client()
        try:
            tasks = [asyncio.create_task(api.get(f"/employees/{i}")) for i in range(5)]
            await wait_until(lambda: api.interceptor.coordinator.waiting == 4)
            assert api.interceptor.coordinator.state is RefreshState.REFRESHING
            fake_api.refresh_gate.set()
            return await asyncio.gather(*tasks), api.auth.get_token()
        finally:
            await api.aclose()

    results, new = asyncio.run(run())
    assert fake_api.refresh_calls == 1
    assert new != old
    assert [r["token"] for r in results] == [new] * 5
    retried = [r for r in fake_api.requests if "/employees/" in r.url.path]
    # five originals with the old token, five retries with the new one
    assert len(retried) == 10
    assert sorted(r.headers["Authorization"] for r in retried) == sorted([f"Bearer {old}"] * 5 + [f"Bearer {new}"] * 5)


def test_refresh_failure_rejects_all_and_logs_out_once(make_client, fake_api, seed_session, storage, navigator):
    seed_session()
    fake_api.refresh_fails = True

    async def run():
        fake_api.refresh_gate = asyncio.Event()
        api = make_client()
        try:
            tasks = [asyncio.create_task(api.get(f"/projects/{i}")) for i in range(4)]
            await wait_until(lambda: api.interceptor.coordinator.waiting == 3)
            fake_api.refresh_gate.set()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            assert api.interceptor.coordinator.state is RefreshState.IDLE
            assert api.auth.is_authenticated() is False
            return results
        finally:
            await api.aclose()

    results = asyncio.run(run())
    assert all(isinstance(r, SessionExpiredError) for r in results)
    assert fake_api.refresh_calls == 1
    assert fake_api.logout_calls == 1
    assert storage.keys() == []
    assert navigator.history.count("/login?expired=true") == 1


def test_retried_request_is_not_retried_again(make_client, fake_api, seed_session):
    """A 401 on the retry propagates instead of starting another refresh."""
    seed_session()
    fake_api.always_401 = True

    async def run():
        api = make_client()
        try:
            with pytest.raises(SessionExpiredError):
                await api.get("/tasks/1")
        finally:
            await api.aclose()

    asyncio.run(run())
    assert fake_api.refresh_calls == 1
    assert len(fake_api.calls_to("/tasks/1")) == 2


def test_missing_refresh_token_fails_without_network_and_logs_out(make_client, fake_api, seed_session, storage):
    seed_session(refresh=False)

    async def run():
        api = make_client()
        try:
            with pytest.raises(SessionExpiredError) as exc_info:
                await api.get("/departments")
            assert isinstance(exc_info.value.__cause__, NoRefreshTokenError)
        finally:
            await api.aclose()

    asyncio.run(run())
    assert fake_api.refresh_calls == 0
    assert fake_api.logout_calls == 1
    assert storage.get_item("access_token") is None


@pytest.mark.parametrize("path", EXEMPT_PATHS)
def test_exempt_endpoint_401_is_a_credential_error_without_refresh(path, make_client, fake_api, seed_session, storage):
    """A stored session never rides along, and a 401 neither refreshes nor logs out."""
    token = seed_session()
    fake_api.reject_exempt = {path}

    async def run():
        api = make_client()
        try:
            with pytest.raises(CredentialError) as exc_info:
                await api.post(path, json={"token": "t", "password": "p", "email": "a@example.com"})
            return exc_info.value
        finally:
            await api.aclose()

    err = asyncio.run(run())
    assert err.status == 401
    assert err.message == "Invalid or expired token"
    (request,) = fake_api.calls_to(path)
    assert "Authorization" not in request.headers
    assert fake_api.refresh_calls == 0
    assert fake_api.logout_calls == 0
    assert storage.get_item("access_token") == token


def test_wrong_password_login_is_not_a_session_problem(make_client, fake_api, seed_session):
    seed_session()

    async def run():
        api = make_client()
        try:
            with pytest.raises(CredentialError) as exc_info:
                await api.auth.login("alice", "wrong")
            assert exc_info.value.status == 401
        finally:
            await api.aclose()

    asyncio.run(run())
    assert "Authorization" not in fake_api.calls_to("/auth/login")[0].headers
    assert fake_api.refresh_calls == 0


def test_stale_token_after_refresh_reuses_new_token(make_client, fake_api, seed_session):
    """A 401 for a request sent before a finished refresh retries with the stored token."""
    old = seed_session()

    async def run():
        api = make_client()
        try:
            await api.get("/employees")
            assert fake_api.refresh_calls == 1
            token = await api.interceptor.coordinator.renewed_token(old)
            return token, api.auth.get_token()
        finally:
            await api.aclose()

    token, current = asyncio.run(run())
    assert token == current
    assert fake_api.refresh_calls == 1


def test_logout_carries_token_but_never_refreshes(make_client, fake_api, seed_session):
    token = seed_session()

    async def run():
        api = make_client()
        api.auth.logout()
        await api.aclose()

    asyncio.run(run())
    (request,) = fake_api.calls_to("/auth/logout")
    assert request.headers["Authorization"] == f"Bearer {token}"
    assert fake_api.refresh_calls == 0


def test_explicit_authorization_header_is_kept_on_401(make_client, fake_api, seed_session, storage):
    token = seed_session()

    async def run():
        api = make_client()
        try:
            with pytest.raises(SessionExpiredError):
                await send(api.http, "GET", "/employees", headers={"Authorization": "Bearer caller-token"})
        finally:
            await api.aclose()

    asyncio.run(run())
    (request,) = fake_api.requests
    assert request.headers["Authorization"] == "Bearer caller-token"
    assert fake_api.refresh_calls == 0
    assert storage.get_item("access_token") == token


class _StubAuth:
    """Just enough of AuthService for the coordinator."""

    def __init__(self):
        self.token = "old"
        self.gate = asyncio.Event()
        self.fail: Exception | None = None
        self.refreshes = 0
        self.logouts = 0

    def get_token(self):
        return self.token

    async def refresh_token(self):
        self.refreshes += 1
        await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        self.token = "new"
        user = UserProfile(id="1", username="alice", email=None, role=None)
        return Session.from_auth_response(AuthResponse("new", "r2", user, 60))

    def logout(self, *, expired=False):
        self.logouts += 1
        self.token = None


def test_waiters_released_in_fifo_order():
    async def run():
        auth = _StubAuth()
        coordinator = RefreshCoordinator(auth)
        order = []

        async def request(name):
            token = await coordinator.renewed_token("old")
            order.append((name, token))

        trigger = asyncio.create_task(request("trigger"))
        await wait_until(lambda: coordinator.state is RefreshState.REFRESHING)
        waiters = []
        for name in ("a", "b", "c"):
            waiters.append(asyncio.create_task(request(name)))
            await wait_until(lambda n=len(waiters): coordinator.waiting == n)
        auth.gate.set()
        await asyncio.gather(trigger, *waiters)
        return auth, order

    auth, order = asyncio.run(run())
    assert auth.refreshes == 1
    assert order == [("trigger", "new"), ("a", "new"), ("b", "new"), ("c", "new")]


def test_no_refresh_token_inside_coordinator_logs_out_once():
    async def run():
        auth = _StubAuth()
        auth.fail = NoRefreshTokenError()
        auth.gate.set()
        coordinator = RefreshCoordinator(auth)
        with pytest.raises(SessionExpiredError):
            await coordinator.renewed_token("old")
        # session is gone: a late 401 from the same session fails without another logout
        with pytest.raises(SessionExpiredError):
            await coordinator.renewed_token("old")
        return auth

    auth = asyncio.run(run())
    assert auth.refreshes == 1
    assert auth.logouts == 1


def test_cancelled_refresh_releases_waiters():
    async def run():
        auth = _StubAuth()
        coordinator = RefreshCoordinator(auth)
        trigger = asyncio.create_task(coordinator.renewed_token("old"))
        await wait_until(lambda: coordinator.state is RefreshState.REFRESHING)
        waiter = asyncio.create_task(coordinator.renewed_token("old"))
        await wait_until(lambda: coordinator.waiting == 1)
        trigger.cancel()
        with pytest.raises(SessionExpiredError):
            await waiter
        return coordinator

    coordinator = asyncio.run(run())
    assert coordinator.state is RefreshState.IDLE
    assert coordinator.waiting == 0
