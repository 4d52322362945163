"""
Request interceptor and refresh coordinator.

AuthInterceptor is an httpx.Auth flow installed on the shared AsyncClient: it attaches
the bearer token and, on a 401, asks the RefreshCoordinator for a renewed token and
retries the request once. The coordinator guarantees at most one refresh call in
flight; every other 401 in the same window waits on a future that resolves with the
new token or fails with SessionExpiredError.
"""
import asyncio
import logging
from collections import deque
from enum import Enum
from typing import AsyncGenerator, Generator

import httpx

from ems_client.auth_service import AuthService
from ems_client.config import NO_REFRESH_PATHS
from ems_client.errors import NoRefreshTokenError, SessionExpiredError, is_exempt_path

logger = logging.getLogger(__name__)


class RefreshState(Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    def __init__(self, auth_service: AuthService):
        self._auth = auth_service
        self._state = RefreshState.IDLE
        self._waiters: deque[asyncio.Future] = deque()

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    async def renewed_token(self, stale_token: str | None) -> str:
        """
        Token to retry a request that got 401 while carrying stale_token.
        Raises SessionExpiredError when the session cannot be renewed.
        """
        current = self._auth.get_token()
        if self._state is RefreshState.IDLE and stale_token and not current:
            # The session this request was sent under has already ended
            raise SessionExpiredError()
        if self._state is RefreshState.IDLE and current and current != stale_token:
            # A refresh finished after this request was sent
            return current

        if self._state is RefreshState.REFRESHING:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            logger.debug("Refresh in flight; queued request (%d waiting)", len(self._waiters))
            return await waiter

        # Set before the first await: no other coroutine can observe IDLE in between
        self._state = RefreshState.REFRESHING
        logger.info("Access token rejected; refreshing")
        try:
            session = await self._auth.refresh_token()
        except Exception as e:
            if isinstance(e, NoRefreshTokenError):
                # refresh_token only logs out after a server-side failure
                self._auth.logout(expired=True)
            self._settle(None)
            raise SessionExpiredError() from e
        except BaseException:
            self._settle(None)
            raise
        self._settle(session.access_token)
        return session.access_token

    def _settle(self, token: str | None) -> None:
        """Back to IDLE; release every waiter in FIFO order with the token, or fail them all."""
        self._state = RefreshState.IDLE
        released = 0
        while self._waiters:
            waiter = self._waiters.popleft()
            if waiter.done():
                continue
            if token is None:
                waiter.set_exception(SessionExpiredError())
            else:
                waiter.set_result(token)
            released += 1
        if released:
            logger.debug("Released %d queued request(s) (%s)", released, "renewed" if token else "failed")


class AuthInterceptor(httpx.Auth):
    def __init__(self, auth_service: AuthService, coordinator: RefreshCoordinator | None = None):
        self._auth = auth_service
        self.coordinator = coordinator or RefreshCoordinator(auth_service)

    def sync_auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        raise RuntimeError("AuthInterceptor requires httpx.AsyncClient")

    async def async_auth_flow(self, request: httpx.Request) -> AsyncGenerator[httpx.Request, httpx.Response]:
        path = request.url.path
        if is_exempt_path(path):
            yield request
            return

        # a caller-supplied header is sent as is and its 401 is returned untouched
        explicit = "Authorization" in request.headers
        sent_token = None
        if not explicit:
            sent_token = self._auth.get_token()
            if sent_token:
                request.headers["Authorization"] = f"Bearer {sent_token}"

        response = yield request
        if response.status_code != 401 or explicit or path.rstrip("/").endswith(NO_REFRESH_PATHS):
            return

        token = await self.coordinator.renewed_token(sent_token)
        request.headers["Authorization"] = f"Bearer {token}"
        # Single retry: a second 401 is returned to the caller as is
        yield request
